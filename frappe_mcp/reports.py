# reports.py - query reports, exports and financial statements
import logging
from typing import Any, Dict, List, Optional

from frappe_mcp.documents import DocumentOperations
from frappe_mcp.errors import ValidationError
from frappe_mcp.validator import require

logger = logging.getLogger("frappe_mcp.reports")

QUERY_REPORT = "frappe.desk.query_report"

EXPORT_FORMATS = ("PDF", "Excel", "CSV")
FINANCIAL_STATEMENTS = ("Profit and Loss Statement", "Balance Sheet", "Cash Flow")
PERIODICITIES = ("Monthly", "Quarterly", "Half-Yearly", "Yearly")

REPORT_LIST_FIELDS = ["name", "report_name", "report_type", "ref_doctype", "module", "is_standard"]
REPORT_LIST_LIMIT = 1000


def _choice(value: str, allowed, name: str) -> str:
    if value not in allowed:
        raise ValidationError(f"Invalid {name} '{value}'. Must be one of: {', '.join(allowed)}")
    return value


class ReportOperations:
    def __init__(self, documents: DocumentOperations):
        self.documents = documents

    async def _query_report(self, method: str, params: Dict[str, Any]) -> Any:
        return await self.documents.call_method(f"{QUERY_REPORT}.{method}", params)

    async def run_query_report(self, report_name: str, filters: Optional[Dict[str, Any]] = None,
                               user: Optional[str] = None) -> Any:
        require(report_name, "Report name is required")
        logger.info("Running query report: %s", report_name)
        params = {"report_name": report_name, "filters": filters or {}}
        if user:
            params["user"] = user
        return await self._query_report("run", params)

    async def get_report_meta(self, report_name: str) -> Any:
        require(report_name, "Report name is required")
        return await self._query_report("get_report_meta", {"report_name": report_name})

    async def get_report_columns(self, report_name: str,
                                 filters: Optional[Dict[str, Any]] = None) -> Any:
        require(report_name, "Report name is required")
        return await self._query_report("get_columns",
                                        {"report_name": report_name, "filters": filters or {}})

    async def export_report(self, report_name: str, file_format: str,
                            filters: Optional[Dict[str, Any]] = None,
                            visible_idx: Optional[List[int]] = None) -> Any:
        require(report_name, "Report name is required")
        _choice(file_format, EXPORT_FORMATS, "file_format")
        logger.info("Exporting report %s as %s", report_name, file_format)
        params = {
            "report_name": report_name,
            "file_format_type": file_format,
            "filters": filters or {},
        }
        if visible_idx is not None:
            params["visible_idx"] = visible_idx
        return await self._query_report("export_query", params)

    async def get_financial_statements(self, report_type: str, company: str, from_date: str,
                                       to_date: str, periodicity: Optional[str] = None,
                                       include_default_book_entries: bool = True) -> Any:
        _choice(report_type, FINANCIAL_STATEMENTS, "report_type")
        require(company, "Company is required")
        require(from_date, "from_date is required")
        require(to_date, "to_date is required")
        periodicity = _choice(periodicity or "Yearly", PERIODICITIES, "periodicity")
        logger.info("Getting financial statement %s for %s", report_type, company)
        filters = {
            "company": company,
            "from_date": from_date,
            "to_date": to_date,
            "periodicity": periodicity,
            "include_default_book_entries": include_default_book_entries,
        }
        return await self._query_report("run", {"report_name": report_type, "filters": filters})

    async def list_reports(self, module: Optional[str] = None) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {"disabled": 0}
        if module:
            filters["module"] = module
        return await self.documents.list_documents(
            "Report", filters=filters, fields=REPORT_LIST_FIELDS, limit=REPORT_LIST_LIMIT)

    async def run_doctype_report(self, doctype: str, fields: Optional[List[str]] = None,
                                 filters: Any = None, order_by: Optional[str] = None,
                                 limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self.documents.list_documents(
            doctype, filters=filters, fields=fields, limit=limit, order_by=order_by)
