"""Shared fixtures: a scripted Frappe site behind httpx.MockTransport."""

import json
import os
import sys

import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from frappe_mcp.client import FrappeClient
from frappe_mcp.config import FrappeConfig
from frappe_mcp.documents import DocumentOperations


def reply(status=200, body=None):
    """A route reply: builds a fresh httpx.Response for every request."""
    def build(request):
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)
    return build


class FakeFrappe:
    """Routes (method, path) to scripted replies and records every request.

    A route given several replies plays them in order and repeats the last.
    Unrouted requests get a Frappe-style 404.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method, path, *replies):
        self.routes[(method, path)] = list(replies)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        replies = self.routes.get(key)
        if not replies:
            return httpx.Response(404, json={
                "exc_type": "DoesNotExistError",
                "exception": f"frappe.exceptions.DoesNotExistError: {request.url.path} not found",
            })
        build = replies.pop(0) if len(replies) > 1 else replies[0]
        return build(request)

    def calls(self, method=None, path=None):
        return [r for r in self.requests
                if (method is None or r.method == method)
                and (path is None or r.url.path == path)]

    @staticmethod
    def params(request):
        """Query params with JSON-encoded values decoded."""
        decoded = {}
        for key, value in request.url.params.items():
            try:
                decoded[key] = json.loads(value)
            except ValueError:
                decoded[key] = value
        return decoded

    @staticmethod
    def body(request):
        return json.loads(request.content) if request.content else None


@pytest.fixture
def config():
    return FrappeConfig(url="http://frappe.test/", api_key="key123", api_secret="secret456")


@pytest.fixture
def frappe():
    return FakeFrappe()


@pytest.fixture
def client(config, frappe):
    return FrappeClient(config, transport=httpx.MockTransport(frappe.handler))


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def documents(client, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)
    return DocumentOperations(client, sleep=fake_sleep)
