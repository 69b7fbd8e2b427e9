# tools.py - MCP tool table: name -> description, properties, required
from typing import Any, Dict, List

from frappe_mcp.instructions import categories
from frappe_mcp.reports import EXPORT_FORMATS, FINANCIAL_STATEMENTS, PERIODICITIES

FILTERS = {
    "type": ["object", "array"],
    "description": "Filters as {field: value}, {field: [operator, value]} "
                   "or a list of [field, operator, value] (optional)",
}


def _str(description: str, **extra) -> Dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def _int(description: str) -> Dict[str, Any]:
    return {"type": "integer", "description": description}


def _bool(description: str) -> Dict[str, Any]:
    return {"type": "boolean", "description": description}


def _obj(description: str) -> Dict[str, Any]:
    return {"type": "object", "description": description}


def _list(description: str) -> Dict[str, Any]:
    return {"type": "array", "description": description}


DOCTYPE = _str("DocType name")

TOOLS: Dict[str, Dict[str, Any]] = {
    "ping": {
        "description": "A simple tool to check if the server is responding.",
        "properties": {},
        "required": [],
    },
    "call_method": {
        "description": "Execute a whitelisted Frappe method",
        "properties": {
            "method": _str("Method name to call (whitelisted)"),
            "params": _obj("Parameters to pass to the method (optional)"),
        },
        "required": ["method"],
    },
    # documents
    "create_document": {
        "description": "Create a new document in Frappe. The document is looked up again "
                       "after the create to confirm it was saved.",
        "properties": {
            "doctype": DOCTYPE,
            "values": _obj("Document field values. Required fields must be included. "
                           "Table fields take a list of row objects."),
            "max_retries": _int("Retry the create this many times when it cannot be "
                                "confirmed (optional; values above 1 enable retries)"),
        },
        "required": ["doctype", "values"],
    },
    "get_document": {
        "description": "Retrieve a document from Frappe",
        "properties": {
            "doctype": DOCTYPE,
            "name": _str("Document name (case-sensitive)"),
            "fields": _list("Fields to retrieve (optional)"),
        },
        "required": ["doctype", "name"],
    },
    "update_document": {
        "description": "Update an existing document in Frappe",
        "properties": {
            "doctype": DOCTYPE,
            "name": _str("Document name (case-sensitive)"),
            "values": _obj("Field values to change"),
        },
        "required": ["doctype", "name", "values"],
    },
    "delete_document": {
        "description": "Delete a document from Frappe",
        "properties": {
            "doctype": DOCTYPE,
            "name": _str("Document name (case-sensitive)"),
        },
        "required": ["doctype", "name"],
    },
    "list_documents": {
        "description": "List documents from Frappe with filters",
        "properties": {
            "doctype": DOCTYPE,
            "filters": FILTERS,
            "fields": _list("Fields to include (optional)"),
            "limit": _int("Maximum number of documents to return (optional)"),
            "order_by": _str("Field to order by, e.g. 'modified desc' (optional)"),
            "limit_start": _int("Offset for pagination (optional)"),
        },
        "required": ["doctype"],
    },
    # schema
    "get_doctype_schema": {
        "description": "Get the complete schema for a DocType including field definitions, "
                       "validations and linked DocTypes. Use this to understand a DocType "
                       "before creating or updating documents.",
        "properties": {"doctype": DOCTYPE},
        "required": ["doctype"],
    },
    "get_field_options": {
        "description": "Get available options for a Link or Select field. Link fields return "
                       "records of the linked DocType, Select fields their predefined options.",
        "properties": {
            "doctype": DOCTYPE,
            "fieldname": _str("Field name"),
            "filters": FILTERS,
        },
        "required": ["doctype", "fieldname"],
    },
    # discovery helpers
    "find_doctypes": {
        "description": "Find DocTypes in the system matching a search term",
        "properties": {
            "search_term": _str("Search term to look for in DocType names"),
            "module": _str("Filter by module name (optional)"),
            "is_table": _bool("Only child table DocTypes (optional)"),
            "is_single": _bool("Only single DocTypes (optional)"),
            "is_custom": _bool("Only custom DocTypes (optional)"),
            "limit": _int("Maximum number of results (optional, default 20)"),
        },
        "required": [],
    },
    "get_module_list": {
        "description": "Get a list of all modules in the system",
        "properties": {},
        "required": [],
    },
    "get_doctypes_in_module": {
        "description": "Get a list of DocTypes in a specific module",
        "properties": {"module": _str("Module name")},
        "required": ["module"],
    },
    "check_doctype_exists": {
        "description": "Check if a DocType exists in the system",
        "properties": {"doctype": DOCTYPE},
        "required": ["doctype"],
    },
    "check_document_exists": {
        "description": "Check if a document exists",
        "properties": {"doctype": DOCTYPE, "name": _str("Document name")},
        "required": ["doctype", "name"],
    },
    "get_document_count": {
        "description": "Get a count of documents matching filters",
        "properties": {"doctype": DOCTYPE, "filters": FILTERS},
        "required": ["doctype"],
    },
    "get_naming_info": {
        "description": "Get the naming series information for a DocType",
        "properties": {"doctype": DOCTYPE},
        "required": ["doctype"],
    },
    "get_required_fields": {
        "description": "Get a list of required fields for a DocType",
        "properties": {"doctype": DOCTYPE},
        "required": ["doctype"],
    },
    "get_api_instructions": {
        "description": "Get detailed instructions for using the Frappe API",
        "properties": {
            "category": _str(f"Instruction category ({', '.join(categories())})"),
            "operation": _str("Operation name (e.g. CREATE, GET, UPDATE, DELETE, LIST, "
                              "GET_DOCTYPE_SCHEMA)"),
        },
        "required": ["category", "operation"],
    },
    # reports
    "run_query_report": {
        "description": "Execute a Frappe query report with filters",
        "properties": {
            "report_name": _str("Name of the report to run"),
            "filters": _obj("Filters to apply to the report (optional)"),
            "user": _str("User to run the report as (optional)"),
        },
        "required": ["report_name"],
    },
    "get_report_meta": {
        "description": "Get metadata for a report including columns and filters",
        "properties": {"report_name": _str("Name of the report")},
        "required": ["report_name"],
    },
    "get_report_columns": {
        "description": "Get the column structure for a report",
        "properties": {
            "report_name": _str("Name of the report"),
            "filters": _obj("Filters that determine dynamic columns (optional)"),
        },
        "required": ["report_name"],
    },
    "export_report": {
        "description": "Export a report in PDF, Excel or CSV format",
        "properties": {
            "report_name": _str("Name of the report to export"),
            "file_format": _str("Export format", enum=list(EXPORT_FORMATS)),
            "filters": _obj("Filters to apply to the report (optional)"),
            "visible_idx": _list("Visible column indices (optional)"),
        },
        "required": ["report_name", "file_format"],
    },
    "get_financial_statements": {
        "description": "Get standard financial reports (P&L, Balance Sheet, Cash Flow)",
        "properties": {
            "report_type": _str("Type of financial statement", enum=list(FINANCIAL_STATEMENTS)),
            "company": _str("Company name"),
            "from_date": _str("Start date (YYYY-MM-DD)"),
            "to_date": _str("End date (YYYY-MM-DD)"),
            "periodicity": _str("Period frequency (optional, default Yearly)",
                                enum=list(PERIODICITIES)),
            "include_default_book_entries": _bool("Include default book entries (optional)"),
        },
        "required": ["report_type", "company", "from_date", "to_date"],
    },
    "list_reports": {
        "description": "Get a list of all available reports in the system",
        "properties": {"module": _str("Filter reports by module (optional)")},
        "required": [],
    },
    "run_doctype_report": {
        "description": "Run a standard DocType report with filters and sorting",
        "properties": {
            "doctype": _str("DocType to generate the report for"),
            "fields": _list("Fields to include (optional)"),
            "filters": FILTERS,
            "order_by": _str("Field to order by (optional)"),
            "limit": _int("Maximum number of records (optional)"),
        },
        "required": ["doctype"],
    },
}


def enum_violations(name: str, arguments: Dict[str, Any]) -> List[str]:
    problems = []
    for key, prop in TOOLS[name]["properties"].items():
        value = arguments.get(key)
        if value is not None and "enum" in prop and value not in prop["enum"]:
            problems.append(f"Invalid value for '{key}': {value!r}. "
                            f"Must be one of: {', '.join(prop['enum'])}")
    return problems
