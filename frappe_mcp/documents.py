# documents.py - document CRUD against /api/resource and whitelisted /api/method calls
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from frappe_mcp.client import FrappeClient, FrappeResponse, method_path, resource_path
from frappe_mcp.errors import RemoteApiError, classify_error
from frappe_mcp.validator import normalize_filters, require
from frappe_mcp import verification

logger = logging.getLogger("frappe_mcp.documents")


def _data(response: FrappeResponse, what: str, path: str, shape=dict):
    """Unwrap a `{"data": ...}` envelope; anything else is a malformed reply."""
    if response.kind != "data" or not isinstance(response.payload, shape):
        raise RemoteApiError(f"Invalid response format for {what}",
                             response.status, path, response.payload)
    return response.payload


class DocumentOperations:
    def __init__(self, client: FrappeClient, sleep=asyncio.sleep):
        self.client = client
        self.sleep = sleep

    def _fail(self, exc: Exception, operation: str):
        return classify_error(exc, operation, self.client.credentials)

    @staticmethod
    def validate_create(doctype: str, values: Dict[str, Any]):
        require(doctype, "DocType is required")
        require(values, "Document values are required")

    async def get_document(self, doctype: str, name: str,
                           fields: Optional[List[str]] = None) -> Dict[str, Any]:
        require(doctype, "DocType is required")
        require(name, "Document name is required")
        operation = f"get_document({doctype}, {name})"
        params = {"fields": fields} if fields else None
        try:
            response = await self.client.get(resource_path(doctype, name), params=params)
        except httpx.HTTPError as e:
            raise self._fail(e, operation) from e
        return _data(response, f"document {doctype}/{name}", resource_path(doctype, name))

    async def insert_document(self, doctype: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """POST a new document without verifying it."""
        self.validate_create(doctype, values)
        operation = f"create_document({doctype})"
        logger.info("Creating document of type %s with values: %s",
                    doctype, json.dumps(values, default=str))
        try:
            response = await self.client.post(resource_path(doctype), json_body=values)
        except httpx.HTTPError as e:
            raise self._fail(e, operation) from e
        return _data(response, f"creating {doctype}", resource_path(doctype))

    async def create_document(self, doctype: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Create a document and verify it exists.

        A failed verification does not raise: the created document is returned
        with the result attached under ``_verification`` so the caller can
        decide how loudly to report it.
        """
        result = await self.insert_document(doctype, values)
        outcome = await verification.verify_document_creation(self, doctype, values, result)
        if not outcome.success:
            logger.warning("Document creation verification failed: %s", outcome.message)
            return {**result, "_verification": outcome.as_dict()}
        return result

    async def create_document_with_retry(self, doctype: str, values: Dict[str, Any],
                                         max_retries: int = verification.DEFAULT_MAX_RETRIES):
        return await verification.create_with_retry(self, doctype, values, max_retries, self.sleep)

    async def create_document_transactional(self, doctype: str, values: Dict[str, Any],
                                            max_retries: int = verification.DEFAULT_MAX_RETRIES):
        return await verification.create_transactional(self, doctype, values, max_retries, self.sleep)

    async def update_document(self, doctype: str, name: str,
                              values: Dict[str, Any]) -> Dict[str, Any]:
        require(doctype, "DocType is required")
        require(name, "Document name is required")
        require(values, "Update values are required")
        operation = f"update_document({doctype}, {name})"
        try:
            response = await self.client.put(resource_path(doctype, name), json_body=values)
        except httpx.HTTPError as e:
            raise self._fail(e, operation) from e
        return _data(response, f"updating {doctype}/{name}", resource_path(doctype, name))

    async def delete_document(self, doctype: str, name: str) -> Any:
        require(doctype, "DocType is required")
        require(name, "Document name is required")
        operation = f"delete_document({doctype}, {name})"
        try:
            response = await self.client.delete(resource_path(doctype, name))
        except httpx.HTTPError as e:
            raise self._fail(e, operation) from e
        return response.payload

    async def list_documents(self, doctype: str, filters: Any = None,
                             fields: Optional[List[str]] = None, limit: Optional[int] = None,
                             order_by: Optional[str] = None,
                             limit_start: Optional[int] = None) -> List[Dict[str, Any]]:
        require(doctype, "DocType is required")
        operation = f"list_documents({doctype})"
        params = {
            "fields": fields or None,
            "filters": normalize_filters(filters) or None,
            "limit_page_length": limit,
            "order_by": order_by or None,
            "limit_start": limit_start,
        }
        logger.debug("Requesting documents for %s with params: %s", doctype, params)
        try:
            response = await self.client.get(resource_path(doctype), params=params)
        except httpx.HTTPError as e:
            raise self._fail(e, operation) from e
        docs = _data(response, f"listing {doctype}", resource_path(doctype), list)
        logger.debug("Retrieved %d %s documents", len(docs), doctype)
        return docs

    async def call_method(self, method: str, params: Optional[Dict[str, Any]] = None,
                          http_method: str = "POST") -> Any:
        """Call a whitelisted server method and return its ``message``."""
        require(method, "Method name is required")
        operation = f"call_method({method})"
        try:
            if http_method == "GET":
                response = await self.client.get(method_path(method), params=params)
            else:
                response = await self.client.post(method_path(method), json_body=params or {})
        except httpx.HTTPError as e:
            raise self._fail(e, operation) from e
        return response.payload
