# helpers.py - discovery and convenience lookups built on documents/schema
import logging
from typing import Any, Dict, List, Optional

from frappe_mcp.documents import DocumentOperations
from frappe_mcp.errors import FrappeApiError, NotFoundError
from frappe_mcp.schema import SchemaOperations
from frappe_mcp.validator import require

logger = logging.getLogger("frappe_mcp.helpers")

NOT_FOUND_MARKERS = ("not found", "does not exist")


def _is_not_found(exc: Exception) -> bool:
    if isinstance(exc, NotFoundError):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in NOT_FOUND_MARKERS)


def _flag_filter(value: Optional[bool]):
    return None if value is None else int(bool(value))


class DiscoveryHelpers:
    def __init__(self, documents: DocumentOperations, schema: SchemaOperations):
        self.documents = documents
        self.schema = schema

    async def find_doctypes(self, search_term: str = "", module: Optional[str] = None,
                            is_table: Optional[bool] = None, is_single: Optional[bool] = None,
                            is_custom: Optional[bool] = None, limit: int = 20) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {}
        if search_term:
            filters["name"] = ["like", f"%{search_term}%"]
        if module:
            filters["module"] = module
        for key, value in (("istable", is_table), ("issingle", is_single), ("custom", is_custom)):
            flag = _flag_filter(value)
            if flag is not None:
                filters[key] = flag
        return await self.documents.list_documents(
            "DocType", filters=filters,
            fields=["name", "module", "description", "istable", "issingle", "custom"],
            limit=limit or 20)

    async def get_module_list(self) -> List[str]:
        modules = await self.documents.list_documents(
            "Module Def", fields=["name", "module_name"], limit=100)
        return [m.get("name") or m.get("module_name") for m in modules]

    async def get_doctypes_in_module(self, module: str) -> List[Dict[str, Any]]:
        require(module, "Module name is required")
        return await self.documents.list_documents(
            "DocType", filters={"module": module},
            fields=["name", "description", "istable", "issingle", "custom"], limit=100)

    async def doctype_exists(self, doctype: str) -> bool:
        require(doctype, "DocType name is required")
        try:
            await self.schema.get_doctype_schema(doctype)
            return True
        except FrappeApiError as e:
            if _is_not_found(e):
                return False
            raise

    async def document_exists(self, doctype: str, name: str) -> bool:
        require(doctype, "DocType is required")
        require(name, "Document name is required")
        try:
            await self.documents.get_document(doctype, name, fields=["name"])
            return True
        except FrappeApiError as e:
            if _is_not_found(e):
                return False
            raise

    async def get_document_count(self, doctype: str, filters: Any = None) -> int:
        require(doctype, "DocType is required")
        rows = await self.documents.list_documents(
            doctype, filters=filters, fields=["count(name) as total_count"], limit=1)
        if rows and rows[0].get("total_count") is not None:
            return int(rows[0]["total_count"])

        logger.info("Count query for %s returned no total, counting names instead", doctype)
        # limit_page_length=0 asks Frappe for every row
        names = await self.documents.list_documents(doctype, filters=filters,
                                                    fields=["name"], limit=0)
        return len(names)

    async def get_naming_info(self, doctype: str) -> Dict[str, Any]:
        schema = await self.schema.get_doctype_schema(doctype)
        autoname = schema.get("autoname")
        series_field = next((f for f in schema["fields"] if f["fieldname"] == "naming_series"), None)
        return {
            "autoname": autoname,
            "namingSeriesField": series_field,
            "isAutoNamed": bool(autoname) and autoname != "prompt",
            "isPromptNamed": autoname == "prompt",
            "hasNamingSeries": series_field is not None,
        }

    async def get_required_fields(self, doctype: str) -> List[Dict[str, Any]]:
        schema = await self.schema.get_doctype_schema(doctype)
        return [f for f in schema["fields"] if f["required"]]

    async def missing_required_fields(self, doctype: str, values: Dict[str, Any]) -> List[str]:
        """Names of required fields without a default that ``values`` leaves empty.

        Any failure while loading the schema yields an empty list so the create
        itself can report the real problem.
        """
        try:
            required = await self.get_required_fields(doctype)
        except FrappeApiError as e:
            logger.warning("Could not load required fields for %s: %s", doctype, e)
            return []
        missing = []
        for field in required:
            if field.get("default") not in (None, ""):
                continue
            value = (values or {}).get(field["fieldname"])
            if value is None or value == "":
                missing.append(field["fieldname"])
        return missing

    async def check_api_health(self) -> Dict[str, Any]:
        """Probe the site with a token-authenticated one-row DocType list."""
        try:
            await self.documents.list_documents("DocType", fields=["name"], limit=1)
            return {"healthy": True, "message": "API connection successful"}
        except FrappeApiError as e:
            logger.error("API health check failed: %s", e)
            return {"healthy": False, "message": f"API connection failed: {e}"}
