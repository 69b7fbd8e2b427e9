# client.py - thin async HTTP adapter around the Frappe REST API
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from frappe_mcp.config import FrappeConfig
from frappe_mcp.errors import AuthenticationError

logger = logging.getLogger("frappe_mcp.client")


def resource_path(doctype: str, name: Optional[str] = None) -> str:
    path = f"/api/resource/{quote(doctype, safe='')}"
    if name is not None:
        path += f"/{quote(str(name), safe='')}"
    return path


def method_path(method: str) -> str:
    return f"/api/method/{method}"


class ApiKeyCredentials:
    """Frappe token auth: ``Authorization: token <api_key>:<api_secret>``."""

    def __init__(self, api_key: Optional[str], api_secret: Optional[str]):
        self.api_key = api_key
        self.api_secret = api_secret

    @classmethod
    def from_config(cls, config: FrappeConfig) -> "ApiKeyCredentials":
        return cls(config.api_key, config.api_secret)

    def presence(self) -> Dict[str, bool]:
        return {
            "apiKeyAvailable": bool(self.api_key),
            "apiSecretAvailable": bool(self.api_secret),
        }

    def auth_header(self, endpoint: Optional[str] = None) -> str:
        if not self.api_key or not self.api_secret:
            raise AuthenticationError(
                "Authentication failed: Missing API key or secret. Both are required.",
                endpoint=endpoint, details={"error": "Authentication Error", **self.presence()})
        return f"token {self.api_key}:{self.api_secret}"


@dataclass(frozen=True)
class FrappeResponse:
    """A response body reduced to one of: data, message, empty, raw."""
    kind: str
    payload: Any
    status: int = 200

    @classmethod
    def from_body(cls, body: Any, status: int = 200) -> "FrappeResponse":
        if body is None or body == "":
            return cls("empty", None, status)
        if isinstance(body, dict) and "data" in body:
            return cls("data", body["data"], status)
        if isinstance(body, dict) and "message" in body:
            return cls("message", body["message"], status)
        return cls("raw", body, status)


def _encode_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    encoded = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, dict)):
            encoded[key] = json.dumps(value)
        else:
            encoded[key] = value
    return encoded


def _loggable_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() != "authorization"}


class FrappeClient:
    def __init__(self, config: FrappeConfig, credentials=None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.credentials = credentials or ApiKeyCredentials.from_config(config)
        self._transport = transport

    def _headers(self, url: str, has_body: bool) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Authorization": self.credentials.auth_header(url),
        }
        if self.config.team_name:
            headers["X-Press-Team"] = self.config.team_name
        if has_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                      json_body: Any = None) -> FrappeResponse:
        url = path if path.startswith("http") else f"{self.config.url}/{path.lstrip('/')}"
        headers = self._headers(url, json_body is not None)
        query = _encode_params(params)

        logger.info("[REQUEST] %s %s", method, url)
        logger.debug("[REQUEST] params=%s headers=%s", query, _loggable_headers(headers))
        if json_body is not None:
            logger.debug("[REQUEST] data=%s", json.dumps(json_body, default=str))

        async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as c:
            r = await c.request(method, url, params=query, json=json_body, headers=headers)

        text = r.text or ""
        try:
            body = r.json() if text else None
        except ValueError:
            body = text

        logger.info("[RESPONSE] %s %s -> %s", method, url, r.status_code)
        logger.debug("[RESPONSE] headers=%s", dict(r.headers))
        logger.debug("[RESPONSE] data=%s", text[:2000])

        r.raise_for_status()
        return FrappeResponse.from_body(body, r.status_code)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> FrappeResponse:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json_body: Any = None,
                   params: Optional[Dict[str, Any]] = None) -> FrappeResponse:
        return await self.request("POST", path, params=params, json_body=json_body)

    async def put(self, path: str, json_body: Any = None,
                  params: Optional[Dict[str, Any]] = None) -> FrappeResponse:
        return await self.request("PUT", path, params=params, json_body=json_body)

    async def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> FrappeResponse:
        return await self.request("DELETE", path, params=params)
