"""Tests for post-create verification, retries and the transactional wrapper."""

import logging

import pytest

from frappe_mcp.errors import NotFoundError, RemoteApiError, ValidationError, VerificationFailure
from frappe_mcp.verification import (
    create_transactional,
    create_with_retry,
    verification_filters,
    verify_document_creation,
)


class FakeDocuments:
    """Scripted stand-in for DocumentOperations."""

    def __init__(self, fetched=None, fetch_error=None, matches=None, created=None):
        self.fetched = fetched
        self.fetch_error = fetch_error
        self.matches = matches or []
        self.created = created or []
        self.calls = []

    @staticmethod
    def validate_create(doctype, values):
        if not doctype:
            raise ValidationError("DocType is required")

    async def insert_document(self, doctype, values):
        self.calls.append(("insert", doctype, values))
        result = self.created.pop(0) if len(self.created) > 1 else self.created[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def get_document(self, doctype, name, fields=None):
        self.calls.append(("get", doctype, name))
        if self.fetch_error:
            raise self.fetch_error
        return self.fetched

    async def list_documents(self, doctype, filters=None, fields=None, limit=None, **kwargs):
        self.calls.append(("list", doctype, filters, limit))
        return self.matches


class TestVerificationFilters:

    def test_prefers_name_then_title_then_description(self):
        assert verification_filters({"name": "N", "title": "T"}) == [["name", "=", "N"]]
        assert verification_filters({"title": "T", "description": "D"}) == [["title", "=", "T"]]
        assert verification_filters({"description": "A long description text here"}) == [
            ["description", "like", "%A long description t%"]]
        assert verification_filters({"status": "Open"}) == []


class TestVerifyDocumentCreation:

    @pytest.mark.asyncio
    async def test_response_without_name_fails_without_network(self):
        docs = FakeDocuments()
        result = await verify_document_creation(docs, "ToDo", {"description": "x"}, {"status": "Open"})

        assert result.success is False
        assert result.message == "Response does not contain a document name"
        assert docs.calls == []

    @pytest.mark.asyncio
    async def test_direct_fetch_skips_search(self):
        docs = FakeDocuments(fetched={"name": "DOC-1"})
        result = await verify_document_creation(docs, "ToDo", {"name": "DOC-1"}, {"name": "DOC-1"})

        assert result.success is True
        assert result.message == "Document verified by direct fetch"
        assert [c[0] for c in docs.calls] == ["get"]

    @pytest.mark.asyncio
    async def test_search_finds_the_document_after_fetch_fails(self):
        docs = FakeDocuments(fetch_error=NotFoundError("gone"),
                             matches=[{"name": "DOC-9"}, {"name": "DOC-1"}])
        result = await verify_document_creation(docs, "ToDo", {"title": "Hello"}, {"name": "DOC-1"})

        assert result.success is True
        assert result.message == "Document verified by filter search"
        assert docs.calls[-1] == ("list", "ToDo", [["title", "=", "Hello"]], 5)

    @pytest.mark.asyncio
    async def test_search_mismatch_names_expected_document(self):
        docs = FakeDocuments(fetch_error=RemoteApiError("boom"),
                             matches=[{"name": "DOC-2"}, {"name": "DOC-3"}])
        result = await verify_document_creation(docs, "ToDo", {"name": "DOC-1"}, {"name": "DOC-1"})

        assert result.success is False
        assert result.message == ("Found 2 documents matching filters, "
                                  "but none match the expected name DOC-1")

    @pytest.mark.asyncio
    async def test_no_usable_filter(self):
        docs = FakeDocuments(fetch_error=RemoteApiError("boom"))
        result = await verify_document_creation(docs, "ToDo", {"status": "Open"}, {"name": "DOC-1"})

        assert result.message == "Could not verify document creation - no suitable filters available"

    @pytest.mark.asyncio
    async def test_search_failure_is_reported_not_raised(self):
        class BrokenSearch(FakeDocuments):
            async def list_documents(self, *args, **kwargs):
                raise RemoteApiError("search exploded")

        docs = BrokenSearch(fetch_error=RemoteApiError("boom"))
        result = await verify_document_creation(docs, "ToDo", {"name": "DOC-1"}, {"name": "DOC-1"})

        assert result.success is False
        assert result.message == "Error during verification: search exploded"


class TestCreateWithRetry:

    @pytest.mark.asyncio
    async def test_always_unverified_creates_three_times_then_raises(self):
        docs = FakeDocuments(fetch_error=RemoteApiError("boom"), matches=[],
                             created=[{"name": "DOC-1"}])
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        with pytest.raises(VerificationFailure, match="No documents found"):
            await create_with_retry(docs, "ToDo", {"name": "DOC-1"}, max_retries=3, sleep=fake_sleep)

        assert [c[0] for c in docs.calls].count("insert") == 3
        assert sleeps == [1, 2]

    @pytest.mark.asyncio
    async def test_recovers_on_second_attempt(self):
        docs = FakeDocuments(fetched={"name": "DOC-1"},
                             created=[RemoteApiError("timeout"), {"name": "DOC-1"}])
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        result = await create_with_retry(docs, "ToDo", {"name": "DOC-1"}, max_retries=3, sleep=fake_sleep)

        assert result["name"] == "DOC-1"
        assert result["_verification"]["success"] is True
        assert sleeps == [1]

    @pytest.mark.asyncio
    async def test_last_request_error_is_raised(self):
        docs = FakeDocuments(created=[RemoteApiError("first"), RemoteApiError("second")])

        async def no_sleep(seconds):
            pass

        with pytest.raises(RemoteApiError, match="second"):
            await create_with_retry(docs, "ToDo", {"a": 1}, max_retries=2, sleep=no_sleep)

    @pytest.mark.asyncio
    async def test_validation_errors_are_not_retried(self):
        docs = FakeDocuments(created=[ValidationError("bad values")])
        with pytest.raises(ValidationError):
            await create_with_retry(docs, "ToDo", {"a": 1}, max_retries=3)
        assert len(docs.calls) == 1

    @pytest.mark.asyncio
    async def test_max_retries_must_be_positive(self):
        with pytest.raises(ValidationError):
            await create_with_retry(FakeDocuments(), "ToDo", {"a": 1}, max_retries=0)


class TestCreateTransactional:

    @pytest.mark.asyncio
    async def test_logs_start_and_success(self, caplog):
        docs = FakeDocuments(fetched={"name": "DOC-1"}, created=[{"name": "DOC-1"}])

        with caplog.at_level(logging.INFO, logger="frappe_mcp.verification"):
            result = await create_transactional(docs, "ToDo", {"name": "DOC-1"}, clock=lambda: 1.5)

        assert result["_verification"]["success"] is True
        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("[Operation create_ToDo_1500] start") for m in messages)
        assert any(m.startswith("[Operation create_ToDo_1500] success") for m in messages)

    @pytest.mark.asyncio
    async def test_logs_error_and_reraises(self, caplog):
        docs = FakeDocuments(created=[RemoteApiError("down")])

        async def no_sleep(seconds):
            pass

        with caplog.at_level(logging.INFO, logger="frappe_mcp.verification"):
            with pytest.raises(RemoteApiError):
                await create_transactional(docs, "ToDo", {"a": 1}, max_retries=2,
                                           sleep=no_sleep, clock=lambda: 2.0)

        assert any("[Operation create_ToDo_2000] error" in r.getMessage() for r in caplog.records)
