# router.py - dispatch MCP tool calls to operations and render text results
import json
import logging
from collections import Counter
from typing import Any, Dict, Optional

from frappe_mcp.client import FrappeClient
from frappe_mcp.config import FrappeConfig
from frappe_mcp.documents import DocumentOperations
from frappe_mcp.errors import FrappeApiError, ValidationError
from frappe_mcp.helpers import DiscoveryHelpers
from frappe_mcp.instructions import get_instructions
from frappe_mcp.reports import ReportOperations
from frappe_mcp.schema import SchemaOperations
from frappe_mcp.tools import TOOLS, enum_violations
from frappe_mcp.validator import coerce_int, missing_params, normalize_filters

logger = logging.getLogger("frappe_mcp.router")

REQUIRED_FIELDS_TIP = "\nTip: Use get_required_fields tool to see all required fields for this DocType."


def _json(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def result(*texts: str, is_error: bool = False) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": t} for t in texts], "isError": is_error}


def error_result(exc: Exception, operation: str) -> Dict[str, Any]:
    if isinstance(exc, FrappeApiError):
        return result(str(exc), f"\nDetails: {_json(exc.to_details())}", is_error=True)
    return result(f"Error in {operation}: {exc}", is_error=True)


def schema_summary(schema: Dict[str, Any]) -> Dict[str, Any]:
    fields = schema["fields"]
    return {
        "name": schema["name"],
        "module": schema.get("module"),
        "isSingle": schema.get("issingle"),
        "isTable": schema.get("istable"),
        "isCustom": schema.get("custom"),
        "autoname": schema.get("autoname"),
        "fieldCount": len(fields),
        "fieldTypes": dict(Counter(f["fieldtype"] for f in fields)),
        "requiredFields": [f["fieldname"] for f in fields if f["required"]],
        "permissions": len(schema.get("permissions") or []),
    }


def pagination_hint(count: int, limit: Optional[int], limit_start: Optional[int]) -> str:
    if not limit:
        return ""
    start = limit_start or 0
    end = start + count
    hint = f"\n\nShowing items {start + 1}-{end}"
    if count == limit:
        hint += f" (more items may be available, use limit_start={end} to see next page)"
    return hint


class ToolRouter:
    def __init__(self, documents: DocumentOperations, schema: SchemaOperations = None,
                 helpers: DiscoveryHelpers = None, reports: ReportOperations = None):
        self.documents = documents
        self.schema = schema or SchemaOperations(documents)
        self.helpers = helpers or DiscoveryHelpers(documents, self.schema)
        self.reports = reports or ReportOperations(documents)

    @classmethod
    def from_config(cls, config: FrappeConfig, transport=None) -> "ToolRouter":
        return cls(DocumentOperations(FrappeClient(config, transport=transport)))

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        logger.info("Received tool call for: %s", name)
        tool = TOOLS.get(name)
        if tool is None:
            return result(f"Unknown tool: {name}", is_error=True)
        if arguments is None:
            if tool["required"]:
                return result("Missing arguments for tool call", is_error=True)
            arguments = {}

        missing = missing_params(arguments, tool["required"])
        if missing:
            return result(f"Missing required parameters: {', '.join(missing)}", is_error=True)
        problems = enum_violations(name, arguments)
        if problems:
            return result(*problems, is_error=True)

        handler = getattr(self, f"_{name}")
        try:
            return await handler(arguments)
        except FrappeApiError as e:
            logger.warning("Tool %s failed: %s", name, e)
            return error_result(e, name)
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return error_result(e, name)

    # -- general --

    async def _ping(self, args):
        return result("pong")

    async def _call_method(self, args):
        params = args.get("params")
        if params is not None and not isinstance(params, dict):
            raise ValidationError("Parameter 'params' must be an object")
        response = await self.documents.call_method(args["method"], params)
        return result(_json(response))

    # -- documents --

    async def _create_document(self, args):
        doctype, values = args["doctype"], args["values"]
        if not isinstance(values, dict):
            raise ValidationError("Parameter 'values' must be an object")
        max_retries = coerce_int(args.get("max_retries"), "max_retries")

        missing = await self.helpers.missing_required_fields(doctype, values)
        if missing:
            return result(f"Missing required fields: {', '.join(missing)}",
                          REQUIRED_FIELDS_TIP, is_error=True)

        if max_retries is not None and max_retries > 1:
            created = await self.documents.create_document_transactional(doctype, values, max_retries)
        else:
            created = await self.documents.create_document(doctype, values)

        record = dict(created)
        verification = record.pop("_verification", None)
        if verification and not verification["success"]:
            return result(
                f"Document created, but it could not be verified: {verification['message']}"
                f"\n\n{_json(record)}")
        return result(f"Document created successfully:\n\n{_json(record)}")

    async def _get_document(self, args):
        doc = await self.documents.get_document(args["doctype"], args["name"], args.get("fields"))
        return result(_json(doc))

    async def _update_document(self, args):
        doc = await self.documents.update_document(args["doctype"], args["name"], args["values"])
        return result(f"Document updated successfully:\n\n{_json(doc)}")

    async def _delete_document(self, args):
        doctype, name = args["doctype"], args["name"]
        await self.documents.delete_document(doctype, name)
        return result(_json({"success": True,
                             "message": f"Document {doctype}/{name} deleted successfully"}))

    async def _list_documents(self, args):
        limit = coerce_int(args.get("limit"), "limit")
        limit_start = coerce_int(args.get("limit_start"), "limit_start")
        docs = await self.documents.list_documents(
            args["doctype"], filters=normalize_filters(args.get("filters")),
            fields=args.get("fields"), limit=limit, order_by=args.get("order_by"),
            limit_start=limit_start)
        return result(_json(docs) + pagination_hint(len(docs), limit, limit_start))

    # -- schema --

    async def _get_doctype_schema(self, args):
        schema = await self.schema.get_doctype_schema(args["doctype"])
        return result(f"Schema Summary:\n{_json(schema_summary(schema))}"
                      f"\n\nFull Schema:\n{_json(schema)}")

    async def _get_field_options(self, args):
        doctype, fieldname = args["doctype"], args["fieldname"]
        field = await self.schema.get_field_metadata(doctype, fieldname)
        if field is None:
            return result(f"Field {fieldname} not found in DocType {doctype}", is_error=True)
        options = await self.schema.options_for_field(field, normalize_filters(args.get("filters")))
        info = {k: field.get(k) for k in
                ("fieldname", "label", "fieldtype", "required", "description", "options")}
        return result(f"Field Information:\n{_json(info)}"
                      f"\n\nAvailable Options ({len(options)}):\n{_json(options)}")

    # -- discovery helpers --

    async def _find_doctypes(self, args):
        doctypes = await self.helpers.find_doctypes(
            args.get("search_term") or "", module=args.get("module"),
            is_table=args.get("is_table"), is_single=args.get("is_single"),
            is_custom=args.get("is_custom"), limit=coerce_int(args.get("limit"), "limit") or 20)
        return result(_json(doctypes))

    async def _get_module_list(self, args):
        return result(_json(await self.helpers.get_module_list()))

    async def _get_doctypes_in_module(self, args):
        return result(_json(await self.helpers.get_doctypes_in_module(args["module"])))

    async def _check_doctype_exists(self, args):
        exists = await self.helpers.doctype_exists(args["doctype"])
        return result(_json({"exists": exists}))

    async def _check_document_exists(self, args):
        exists = await self.helpers.document_exists(args["doctype"], args["name"])
        return result(_json({"exists": exists}))

    async def _get_document_count(self, args):
        count = await self.helpers.get_document_count(
            args["doctype"], normalize_filters(args.get("filters")))
        return result(_json({"count": count}))

    async def _get_naming_info(self, args):
        return result(_json(await self.helpers.get_naming_info(args["doctype"])))

    async def _get_required_fields(self, args):
        return result(_json(await self.helpers.get_required_fields(args["doctype"])))

    async def _get_api_instructions(self, args):
        return result(get_instructions(args["category"], args["operation"]))

    # -- reports --

    async def _run_query_report(self, args):
        report = await self.reports.run_query_report(
            args["report_name"], args.get("filters"), args.get("user"))
        return result(_json(report))

    async def _get_report_meta(self, args):
        return result(_json(await self.reports.get_report_meta(args["report_name"])))

    async def _get_report_columns(self, args):
        columns = await self.reports.get_report_columns(args["report_name"], args.get("filters"))
        return result(_json(columns))

    async def _export_report(self, args):
        exported = await self.reports.export_report(
            args["report_name"], args["file_format"], args.get("filters"), args.get("visible_idx"))
        return result(_json(exported))

    async def _get_financial_statements(self, args):
        include = args.get("include_default_book_entries")
        statement = await self.reports.get_financial_statements(
            args["report_type"], args["company"], args["from_date"], args["to_date"],
            periodicity=args.get("periodicity"),
            include_default_book_entries=True if include is None else bool(include))
        return result(_json(statement))

    async def _list_reports(self, args):
        return result(_json(await self.reports.list_reports(args.get("module"))))

    async def _run_doctype_report(self, args):
        rows = await self.reports.run_doctype_report(
            args["doctype"], fields=args.get("fields"),
            filters=normalize_filters(args.get("filters")), order_by=args.get("order_by"),
            limit=coerce_int(args.get("limit"), "limit"))
        return result(_json(rows))
