"""
Post-create verification for Frappe documents.

Frappe occasionally answers a create with HTTP 200 and a document-shaped body
even though nothing was persisted. After every create we look the document
up again, first by name and then by a filter built from the submitted values.
This is a heuristic: it cannot tell a slow replica from a lost write, and
retrying after a failed verification issues a brand-new create, so a document
that was in fact saved can end up duplicated.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, List

from frappe_mcp.errors import FrappeApiError, ValidationError, VerificationFailure
from frappe_mcp.validator import normalize_filters

logger = logging.getLogger("frappe_mcp.verification")

SEARCH_LIMIT = 5
DESCRIPTION_PREFIX = 20
DEFAULT_MAX_RETRIES = 3


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    message: str

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def verification_filters(values: Dict[str, Any]) -> List[list]:
    """Pick the most distinguishing submitted field: name, title, then description."""
    if values.get("name"):
        return normalize_filters({"name": ["=", values["name"]]})
    if values.get("title"):
        return normalize_filters({"title": ["=", values["title"]]})
    if values.get("description"):
        snippet = str(values["description"])[:DESCRIPTION_PREFIX]
        return normalize_filters({"description": ["like", f"%{snippet}%"]})
    return []


async def verify_document_creation(documents, doctype: str, values: Dict[str, Any],
                                   creation_response: Any) -> VerificationResult:
    try:
        expected = creation_response.get("name") if isinstance(creation_response, dict) else None
        if not expected:
            return VerificationResult(False, "Response does not contain a document name")

        try:
            document = await documents.get_document(doctype, expected)
            if document and document.get("name") == expected:
                return VerificationResult(True, "Document verified by direct fetch")
        except Exception as e:
            # inconclusive, fall through to the filter search
            logger.warning("Direct fetch of %s/%s during verification failed: %s", doctype, expected, e)

        filters = verification_filters(values)
        if not filters:
            return VerificationResult(
                False, "Could not verify document creation - no suitable filters available")

        matches = await documents.list_documents(doctype, filters=filters, limit=SEARCH_LIMIT)
        if not matches:
            return VerificationResult(False, "No documents found matching the creation filters")

        if any(doc.get("name") == expected for doc in matches):
            return VerificationResult(True, "Document verified by filter search")

        return VerificationResult(
            False,
            f"Found {len(matches)} documents matching filters, "
            f"but none match the expected name {expected}")
    except Exception as e:
        return VerificationResult(False, f"Error during verification: {e}")


async def create_with_retry(documents, doctype: str, values: Dict[str, Any],
                            max_retries: int = DEFAULT_MAX_RETRIES, sleep=asyncio.sleep) -> Dict[str, Any]:
    """Create and verify, retrying up to ``max_retries`` times.

    A failed verification is treated like a failed request: the next attempt
    posts the values again. Backoff is 1s, 2s, 4s, ... between attempts.
    """
    documents.validate_create(doctype, values)
    if max_retries < 1:
        raise ValidationError("max_retries must be at least 1")

    last_error = None
    for attempt in range(1, max_retries + 1):
        try:
            logger.info("Attempt %d to create document of type %s", attempt, doctype)
            result = await documents.insert_document(doctype, values)
            verification = await verify_document_creation(documents, doctype, values, result)
            if verification.success:
                logger.info("Document creation verified on attempt %d", attempt)
                return {**result, "_verification": verification.as_dict()}
            logger.warning("Verification failed on attempt %d: %s", attempt, verification.message)
            last_error = VerificationFailure(
                f"Verification failed: {verification.message}",
                details={"verification": verification.as_dict(), "response": result})
        except ValidationError:
            raise
        except FrappeApiError as e:
            logger.warning("Error on attempt %d: %s", attempt, e)
            last_error = e

        if attempt < max_retries:
            await sleep(2 ** (attempt - 1))

    raise last_error or VerificationFailure(
        f"Failed to create document after {max_retries} attempts")


def log_operation(operation_id: str, status: str, data: Dict[str, Any]):
    logger.info("[Operation %s] %s: %s", operation_id, status, json.dumps(data, default=str))


async def create_transactional(documents, doctype: str, values: Dict[str, Any],
                               max_retries: int = DEFAULT_MAX_RETRIES, sleep=asyncio.sleep,
                               clock=time.time) -> Dict[str, Any]:
    # The operation log only goes to the process log; nothing reads it back.
    operation_id = f"create_{doctype}_{int(clock() * 1000)}"
    try:
        log_operation(operation_id, "start", {"doctype": doctype, "values": values})
        result = await create_with_retry(documents, doctype, values, max_retries, sleep)
        verification = await verify_document_creation(documents, doctype, values, result)
        log_operation(operation_id, "success" if verification.success else "failure",
                      {"result": result, "verification": verification.as_dict()})
        return {**result, "_verification": verification.as_dict()}
    except FrappeApiError as e:
        log_operation(operation_id, "error", {"error": str(e)})
        raise
