# schema.py - DocType metadata and field options
import logging
from typing import Any, Dict, List, Optional

from frappe_mcp.documents import DocumentOperations
from frappe_mcp.errors import FrappeApiError, NotFoundError, RemoteApiError, ValidationError
from frappe_mcp.validator import require

logger = logging.getLogger("frappe_mcp.schema")

LINK_OPTION_LIMIT = 50

DOCTYPE_FLAGS = (
    "issingle", "istable", "custom", "is_submittable", "quick_entry", "track_changes",
    "track_views", "has_web_view", "allow_rename", "allow_copy", "allow_import",
    "allow_events_in_timeline", "allow_auto_repeat",
)

FIELD_FLAGS = (
    "in_list_view", "in_standard_filter", "in_global_search", "bold", "hidden", "read_only",
    "allow_on_submit", "set_only_once", "allow_bulk_edit", "translatable",
)


def _flag(value: Any) -> bool:
    # Frappe sends 0/1, sometimes as strings
    if isinstance(value, str):
        return value.strip() not in ("", "0")
    return bool(value)


def normalize_field(field: Dict[str, Any]) -> Dict[str, Any]:
    fieldtype = field.get("fieldtype")
    normalized = {
        "fieldname": field.get("fieldname"),
        "label": field.get("label"),
        "fieldtype": fieldtype,
        "required": _flag(field.get("reqd", field.get("required"))),
        "description": field.get("description"),
        "default": field.get("default"),
        "options": field.get("options"),
        "linked_doctype": field.get("options") if fieldtype == "Link" else None,
        "child_doctype": field.get("options") if fieldtype == "Table" else None,
        "min_length": field.get("min_length"),
        "max_length": field.get("max_length"),
        "min_value": field.get("min_value"),
        "max_value": field.get("max_value"),
    }
    for flag in FIELD_FLAGS:
        normalized[flag] = _flag(field.get(flag))
    return normalized


def normalize_schema(doctype: str, info: Dict[str, Any], fields: List[Dict[str, Any]],
                     permissions: List[Any], workflow: Any = None) -> Dict[str, Any]:
    schema = {
        "name": doctype,
        "label": info.get("name") or doctype,
        "description": info.get("description"),
        "module": info.get("module"),
        "fields": [normalize_field(f) for f in fields or [] if isinstance(f, dict)],
        "permissions": permissions or [],
        "autoname": info.get("autoname"),
        "name_case": info.get("name_case"),
        "workflow": workflow,
        "document_type": info.get("document_type"),
        "icon": info.get("icon"),
        "max_attachments": info.get("max_attachments"),
    }
    for flag in DOCTYPE_FLAGS:
        schema[flag] = _flag(info.get(flag))
    return schema


class SchemaOperations:
    def __init__(self, documents: DocumentOperations):
        self.documents = documents

    async def _meta_from_method(self, doctype: str) -> Optional[Dict[str, Any]]:
        meta = await self.documents.call_method("frappe.get_meta", {"doctype": doctype},
                                                http_method="GET")
        if not isinstance(meta, dict) or not meta:
            return None
        info = meta.get("doctype") if isinstance(meta.get("doctype"), dict) else meta
        return normalize_schema(doctype, info, meta.get("fields"), meta.get("permissions"),
                                meta.get("workflow"))

    async def get_doctype_schema(self, doctype: str) -> Dict[str, Any]:
        """Fetch a DocType's schema, falling back to reading the DocType document."""
        require(doctype, "DocType name is required")
        try:
            schema = await self._meta_from_method(doctype)
            if schema is not None:
                return schema
            logger.info("Empty metadata response for %s, falling back to document API", doctype)
        except ValidationError:
            raise
        except FrappeApiError as e:
            logger.warning("Metadata endpoint failed for %s: %s", doctype, e)

        doc = await self.documents.get_document("DocType", doctype)
        return normalize_schema(doctype, doc, doc.get("fields"), doc.get("permissions"))

    async def get_field_metadata(self, doctype: str, fieldname: str) -> Optional[Dict[str, Any]]:
        schema = await self.get_doctype_schema(doctype)
        for field in schema["fields"]:
            if field["fieldname"] == fieldname:
                return field
        return None

    async def _link_options(self, linked_doctype: str, filters: Any) -> List[Dict[str, str]]:
        try:
            linked = await self.get_doctype_schema(linked_doctype)
            title_field = next((f for f in linked["fields"]
                                if f["fieldname"] == "title" or f["bold"]), None)
            display = ["name", title_field["fieldname"]] if title_field else ["name"]
            rows = await self.documents.list_documents(
                linked_doctype, filters=filters, fields=display, limit=LINK_OPTION_LIMIT)
            options = []
            for row in rows:
                title = row.get(title_field["fieldname"]) if title_field else None
                label = f"{row['name']} - {title}" if title else row["name"]
                options.append({"value": row["name"], "label": label})
            return options
        except FrappeApiError as e:
            logger.warning("Falling back to plain names for %s options: %s", linked_doctype, e)
            rows = await self.documents.list_documents(
                linked_doctype, filters=filters, fields=["name"], limit=LINK_OPTION_LIMIT)
            return [{"value": row["name"], "label": row["name"]} for row in rows]

    async def get_field_options(self, doctype: str, fieldname: str,
                                filters: Any = None) -> List[Dict[str, str]]:
        require(doctype, "DocType name is required")
        require(fieldname, "Field name is required")
        field = await self.get_field_metadata(doctype, fieldname)
        if field is None:
            raise NotFoundError(f"Field {fieldname} not found in DocType {doctype}")
        return await self.options_for_field(field, filters)

    async def options_for_field(self, field: Dict[str, Any],
                                filters: Any = None) -> List[Dict[str, str]]:
        """Options for an already resolved field."""
        fieldname, fieldtype = field["fieldname"], field["fieldtype"]
        if fieldtype == "Link":
            if not field["options"]:
                raise RemoteApiError(
                    f"Link field {fieldname} has no options (linked DocType) specified")
            return await self._link_options(field["options"], filters)
        if fieldtype == "Select":
            options = field["options"] or ""
            return [{"value": o.strip(), "label": o.strip()}
                    for o in options.split("\n") if o.strip()]
        logger.debug("Field %s is type %s, no options available", fieldname, fieldtype)
        return []
