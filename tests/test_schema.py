"""Tests for DocType schema loading and field options."""

import httpx
import pytest

from conftest import reply
from frappe_mcp.errors import NotFoundError
from frappe_mcp.schema import SchemaOperations, normalize_field

META_PATH = "/api/method/frappe.get_meta"

TODO_META = {
    "name": "ToDo",
    "module": "Desk",
    "autoname": "hash",
    "istable": 0,
    "track_changes": "1",
    "fields": [
        {"fieldname": "status", "fieldtype": "Select", "label": "Status",
         "options": "Open\nClosed\n\nCancelled", "default": "Open"},
        {"fieldname": "description", "fieldtype": "Text Editor", "reqd": 1,
         "in_list_view": 1},
        {"fieldname": "allocated_to", "fieldtype": "Link", "options": "User"},
        {"fieldname": "items", "fieldtype": "Table", "options": "ToDo Item"},
    ],
    "permissions": [{"role": "All", "read": 1}],
}

USER_META = {
    "name": "User",
    "fields": [
        {"fieldname": "email", "fieldtype": "Data"},
        {"fieldname": "full_name", "fieldtype": "Data", "bold": 1},
    ],
}


def meta_router(metas):
    """Reply to frappe.get_meta with the meta named by the doctype param."""
    def build(request):
        meta = metas.get(request.url.params.get("doctype"))
        if meta is None:
            return httpx.Response(404, json={"exception": "DoesNotExistError: DocType not found"})
        return httpx.Response(200, json={"message": meta})
    return build


@pytest.fixture
def schema(documents):
    return SchemaOperations(documents)


class TestNormalization:

    def test_field_flags_and_links(self):
        field = normalize_field({"fieldname": "owner", "fieldtype": "Link", "options": "User",
                                 "reqd": "1", "hidden": 0})
        assert field["required"] is True
        assert field["hidden"] is False
        assert field["linked_doctype"] == "User"
        assert field["child_doctype"] is None


class TestGetDoctypeSchema:

    @pytest.mark.asyncio
    async def test_schema_from_meta_method(self, schema, frappe):
        frappe.on("GET", META_PATH, meta_router({"ToDo": TODO_META}))

        result = await schema.get_doctype_schema("ToDo")

        assert result["name"] == "ToDo"
        assert result["module"] == "Desk"
        assert result["istable"] is False
        assert result["track_changes"] is True
        assert [f["fieldname"] for f in result["fields"]] == ["status", "description", "allocated_to", "items"]
        assert result["fields"][1]["required"] is True
        assert result["fields"][3]["child_doctype"] == "ToDo Item"
        assert frappe.requests[0].url.params["doctype"] == "ToDo"

    @pytest.mark.asyncio
    async def test_falls_back_to_doctype_document(self, schema, frappe):
        frappe.on("GET", META_PATH, reply(500, {"message": "Internal error"}))
        frappe.on("GET", "/api/resource/DocType/ToDo", reply(body={"data": TODO_META}))

        result = await schema.get_doctype_schema("ToDo")

        assert result["autoname"] == "hash"
        assert result["fields"][0]["options"] == "Open\nClosed\n\nCancelled"
        assert len(frappe.requests) == 2

    @pytest.mark.asyncio
    async def test_empty_meta_also_falls_back(self, schema, frappe):
        frappe.on("GET", META_PATH, reply(body={"message": {}}))
        frappe.on("GET", "/api/resource/DocType/ToDo", reply(body={"data": TODO_META}))

        result = await schema.get_doctype_schema("ToDo")
        assert result["permissions"] == [{"role": "All", "read": 1}]

    @pytest.mark.asyncio
    async def test_unknown_doctype(self, schema, frappe):
        frappe.on("GET", META_PATH, meta_router({}))
        with pytest.raises(NotFoundError):
            await schema.get_doctype_schema("Nope")


class TestFieldOptions:

    @pytest.mark.asyncio
    async def test_select_options_skip_blanks(self, schema, frappe):
        frappe.on("GET", META_PATH, meta_router({"ToDo": TODO_META}))

        options = await schema.get_field_options("ToDo", "status")

        assert options == [
            {"value": "Open", "label": "Open"},
            {"value": "Closed", "label": "Closed"},
            {"value": "Cancelled", "label": "Cancelled"},
        ]

    @pytest.mark.asyncio
    async def test_link_options_use_title_field(self, schema, frappe):
        frappe.on("GET", META_PATH, meta_router({"ToDo": TODO_META, "User": USER_META}))
        frappe.on("GET", "/api/resource/User", reply(body={"data": [
            {"name": "a@x.com", "full_name": "Ann"},
            {"name": "b@x.com", "full_name": None},
        ]}))

        options = await schema.get_field_options("ToDo", "allocated_to", [["enabled", "=", 1]])

        assert options == [
            {"value": "a@x.com", "label": "a@x.com - Ann"},
            {"value": "b@x.com", "label": "b@x.com"},
        ]
        params = frappe.params(frappe.calls("GET", "/api/resource/User")[0])
        assert params["fields"] == ["name", "full_name"]
        assert params["limit_page_length"] == 50
        assert params["filters"] == [["enabled", "=", 1]]

    @pytest.mark.asyncio
    async def test_link_options_fall_back_to_names(self, schema, frappe):
        # linked DocType meta is unavailable everywhere
        frappe.on("GET", META_PATH, meta_router({"ToDo": TODO_META}))
        frappe.on("GET", "/api/resource/User", reply(body={"data": [{"name": "a@x.com"}]}))

        options = await schema.get_field_options("ToDo", "allocated_to")

        assert options == [{"value": "a@x.com", "label": "a@x.com"}]

    @pytest.mark.asyncio
    async def test_table_fields_have_no_options(self, schema, frappe):
        frappe.on("GET", META_PATH, meta_router({"ToDo": TODO_META}))
        assert await schema.get_field_options("ToDo", "items") == []

    @pytest.mark.asyncio
    async def test_unknown_field(self, schema, frappe):
        frappe.on("GET", META_PATH, meta_router({"ToDo": TODO_META}))
        with pytest.raises(NotFoundError, match="Field nope not found in DocType ToDo"):
            await schema.get_field_options("ToDo", "nope")
