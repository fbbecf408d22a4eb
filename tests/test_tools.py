"""Tests for tool generation and dispatch."""

import asyncio
import json

import pytest

from saaskit_mcp.schema import normalize_schema
from saaskit_mcp.store import DataStore
from saaskit_mcp.tools import (
    ToolDispatcher,
    ToolKind,
    ToolResult,
    generate_input_schema,
    generate_tool_description,
    generate_tools,
    map_field_type,
)


def _payload(result: ToolResult):
    return json.loads(result.content[0]["text"])


def _circular():
    record = {}
    record["self"] = record
    return record


@pytest.fixture
def dispatcher(todo_nouns):
    def complete(ctx):
        return ctx.db["Todo"].update(ctx.id, {"done": True})

    def explode(ctx):
        raise RuntimeError("Intentional failure")

    schema = normalize_schema(
        nouns=todo_nouns, verbs={"Todo": {"complete": complete, "explode": explode}}
    )
    return ToolDispatcher(schema, DataStore(schema.nouns))


class TestFieldTypes:
    """Tests for map_field_type()."""

    @pytest.mark.parametrize(
        ("type_string", "expected"),
        [
            ("string", "string"),
            ("number", "number"),
            ("int", "number"),
            ("boolean", "boolean"),
            ("bool?", "boolean"),
            ("array", "array"),
            ("object", "object"),
            ("->User", "string"),
            ("markdown", "string"),
        ],
    )
    def test_mapping(self, type_string, expected):
        """Field types map to JSON Schema types."""
        assert map_field_type(type_string) == expected


class TestDescriptions:
    """Tests for generate_tool_description()."""

    def test_crud_descriptions(self):
        """CRUD verbs have fixed phrasing."""
        assert generate_tool_description("Todo", "create") == "Create a new todo"
        assert generate_tool_description("Todo", "get") == "Get a todo by ID"
        assert generate_tool_description("Todo", "list") == "List all todos"

    def test_custom_verb_description(self):
        """Custom verbs are capitalized."""
        assert generate_tool_description("Todo", "complete") == "Complete a todo"


class TestInputSchemas:
    """Tests for generate_input_schema()."""

    FIELDS = {"id": "string", "title": "string", "done": "boolean", "createdAt": "string"}

    def test_create_has_no_required_fields(self):
        """Create accepts every writable field, none required."""
        schema = generate_input_schema(self.FIELDS, "create")

        assert set(schema["properties"]) == {"id", "title", "done"}
        assert "required" not in schema

    def test_get_requires_id(self):
        """Get and delete take only an id."""
        schema = generate_input_schema(self.FIELDS, "get")
        assert schema["required"] == ["id"]
        assert list(schema["properties"]) == ["id"]

    def test_update_requires_id(self):
        """Update requires id and accepts writable fields."""
        schema = generate_input_schema(self.FIELDS, "update")

        assert schema["required"] == ["id"]
        assert schema["properties"]["done"]["type"] == "boolean"
        assert "createdAt" not in schema["properties"]

    def test_list_fields_are_filters(self):
        """List takes every field as an optional filter."""
        schema = generate_input_schema(self.FIELDS, "list")
        assert set(schema["properties"]) == set(self.FIELDS)
        assert "required" not in schema

    def test_custom_verb_schema(self):
        """Custom verbs require id and allow extra input."""
        schema = generate_input_schema({}, "complete")
        assert schema["required"] == ["id"]
        assert schema["additionalProperties"] is True


class TestGenerateTools:
    """Tests for generate_tools()."""

    def test_todo_tools(self, todo_nouns):
        """A Todo noun with one verb yields five CRUD tools and the verb."""
        schema = normalize_schema(nouns=todo_nouns, verbs={"Todo": {"complete": lambda c: None}})
        names = [tool.name for tool in generate_tools(schema)]

        assert names == [
            "todo_create",
            "todo_get",
            "todo_update",
            "todo_delete",
            "todo_list",
            "todo_complete",
        ]

    def test_verbs_for_unknown_nouns_are_skipped(self):
        """Verbs on undeclared nouns produce no tools."""
        schema = normalize_schema(nouns={}, verbs={"Ghost": {"haunt": lambda c: None}})
        assert generate_tools(schema) == []

    def test_multi_word_noun(self):
        """PascalCase nouns become snake_case tool prefixes."""
        schema = normalize_schema(nouns={"TodoItem": {"title": "string"}})
        assert generate_tools(schema)[0].name == "todo_item_create"


class TestDispatcherRegistry:
    """Tests for the tool registry."""

    def test_list_tools_matches_registry(self, dispatcher):
        """Every listed tool can be looked up."""
        for tool in dispatcher.list_tools():
            assert dispatcher.get_tool(tool["name"]) is not None
            assert set(tool) == {"name", "description", "inputSchema"}

    def test_get_tool_schema_unknown(self, dispatcher):
        """Unknown tools have no schema."""
        assert dispatcher.get_tool_schema("nope") is None

    def test_crud_named_verb_overrides_crud(self, todo_nouns):
        """A verb named like a CRUD operation replaces the built-in handler."""
        schema = normalize_schema(
            nouns=todo_nouns, verbs={"Todo": {"create": lambda ctx: {"custom": True}}}
        )
        dispatcher = ToolDispatcher(schema, DataStore(schema.nouns))

        names = [tool["name"] for tool in dispatcher.list_tools()]
        assert names.count("todo_create") == 1
        assert _payload(dispatcher.call_tool("todo_create", {})) == {"custom": True}


class TestCrudCalls:
    """Tests for CRUD tool calls."""

    def test_round_trip(self, dispatcher):
        """create, get and delete work together; get after delete carries an in-body error."""
        created = _payload(dispatcher.call_tool("todo_create", {"title": "X"}))
        assert created["id"]

        fetched = _payload(dispatcher.call_tool("todo_get", {"id": created["id"]}))
        assert fetched["title"] == "X"

        deleted = dispatcher.call_tool("todo_delete", {"id": created["id"]})
        assert _payload(deleted) == {"success": True, "id": created["id"]}

        missing = dispatcher.call_tool("todo_get", {"id": created["id"]})
        assert not missing.is_error
        assert "not found" in _payload(missing)["error"]

    def test_delete_missing(self, dispatcher):
        """Deleting a missing record reports success false."""
        result = dispatcher.call_tool("todo_delete", {"id": "nope"})

        assert not result.is_error
        assert _payload(result)["success"] is False

    def test_update_missing(self, dispatcher):
        """Updating a missing record is an error result."""
        result = dispatcher.call_tool("todo_update", {"id": "nope", "title": "X"})

        assert result.is_error
        assert _payload(result) == {"error": "Todo not found: nope", "id": "nope"}

    def test_update(self, dispatcher):
        """Update merges fields."""
        created = _payload(dispatcher.call_tool("todo_create", {"title": "X", "done": False}))
        updated = _payload(dispatcher.call_tool("todo_update", {"id": created["id"], "done": True}))

        assert updated["done"] is True
        assert updated["title"] == "X"

    def test_list_filters(self, dispatcher):
        """List arguments filter by exact match."""
        dispatcher.call_tool("todo_create", {"title": "a", "done": True})
        dispatcher.call_tool("todo_create", {"title": "b", "done": False})

        assert len(_payload(dispatcher.call_tool("todo_list", {}))) == 2
        done = _payload(dispatcher.call_tool("todo_list", {"done": True}))
        assert [r["title"] for r in done] == ["a"]

    def test_string_arguments_are_coerced(self, dispatcher):
        """Boolean fields accept "true"/"false" strings."""
        created = _payload(dispatcher.call_tool("todo_create", {"title": "a", "done": "true"}))
        assert created["done"] is True

    def test_duplicate_id(self, dispatcher):
        """Creating an existing id is an error result."""
        dispatcher.call_tool("todo_create", {"id": "t1"})
        result = dispatcher.call_tool("todo_create", {"id": "t1"})

        assert result.is_error
        assert "already exists" in _payload(result)["error"]

    def test_missing_required_argument(self, dispatcher):
        """Schema violations are reported without raising."""
        result = dispatcher.call_tool("todo_get", {})

        assert result.is_error
        assert result.content[0]["text"].startswith("Validation failed for todo_get")

    def test_wrong_type(self, dispatcher):
        """Uncoercible values fail validation."""
        result = dispatcher.call_tool("todo_create", {"done": "maybe"})
        assert result.is_error

    def test_unknown_tool(self, dispatcher):
        """Unknown tools are error results."""
        result = dispatcher.call_tool("ghost_create", {})

        assert result.is_error
        assert result.content[0]["text"] == "Unknown tool: ghost_create"


class TestVerbCalls:
    """Tests for custom verb calls."""

    def test_verb_uses_db(self, dispatcher):
        """Verb handlers can read and write through the db accessors."""
        created = _payload(dispatcher.call_tool("todo_create", {"title": "X", "done": False}))
        result = dispatcher.call_tool("todo_complete", {"id": created["id"]})

        assert not result.is_error
        assert _payload(result)["done"] is True

    def test_failing_verb(self, dispatcher):
        """A raising handler becomes an isError result."""
        result = dispatcher.call_tool("todo_explode", {"id": "x"})

        assert result.is_error
        assert "Error executing tool todo_explode: Intentional failure" in result.content[0]["text"]

    def test_failing_async_verb(self, todo_nouns):
        """A rejecting coroutine handler becomes an isError result."""

        async def explode(ctx):
            raise ValueError("async failure")

        schema = normalize_schema(nouns=todo_nouns, verbs={"Todo": {"explode": explode}})
        dispatcher = ToolDispatcher(schema, DataStore(schema.nouns))
        result = dispatcher.call_tool("todo_explode", {})

        assert result.is_error
        assert "async failure" in result.content[0]["text"]

    def test_verb_context(self, todo_nouns):
        """Handlers receive noun, id and the full input."""
        seen = {}

        def capture(ctx):
            seen.update(noun=ctx.noun, id=ctx.id, input=ctx.input)
            return "ok"

        schema = normalize_schema(nouns=todo_nouns, verbs={"Todo": {"capture": capture}})
        dispatcher = ToolDispatcher(schema, DataStore(schema.nouns))
        dispatcher.call_tool("todo_capture", {"id": 7, "note": "hi"})

        assert seen == {"noun": "Todo", "id": "7", "input": {"id": 7, "note": "hi"}}

    def test_async_verb_inside_running_loop(self, todo_nouns):
        """Coroutine handlers still run when the caller is already inside an event loop."""

        async def ping(ctx):
            await asyncio.sleep(0)
            return {"pong": ctx.id}

        schema = normalize_schema(nouns=todo_nouns, verbs={"Todo": {"ping": ping}})
        dispatcher = ToolDispatcher(schema, DataStore(schema.nouns))

        async def caller():
            return dispatcher.call_tool("todo_ping", {"id": "t1"})

        result = asyncio.run(caller())

        assert not result.is_error
        assert _payload(result) == {"pong": "t1"}

    @pytest.mark.parametrize(
        "make_result",
        [lambda: {("a", "b"): 1}, _circular],
        ids=["tuple-keys", "circular"],
    )
    def test_unencodable_result(self, todo_nouns, make_result):
        """A result that cannot be encoded as JSON is reported, not raised."""
        schema = normalize_schema(
            nouns=todo_nouns, verbs={"Todo": {"odd": lambda ctx: make_result()}}
        )
        dispatcher = ToolDispatcher(schema, DataStore(schema.nouns))

        result = dispatcher.call_tool("todo_odd", {"id": "t1"})

        assert result.is_error
        assert result.content[0]["text"].startswith("Error executing tool todo_odd:")

    def test_registry_kinds(self, dispatcher):
        """CRUD and verb tools are registered with their kind."""
        assert dispatcher._registry["todo_create"].kind is ToolKind.CRUD
        assert dispatcher._registry["todo_complete"].kind is ToolKind.VERB


class TestToolResult:
    """Tests for ToolResult."""

    def test_to_dict(self):
        """Results serialize to MCP wire format."""
        assert ToolResult.text("hi").to_dict() == {
            "content": [{"type": "text", "text": "hi"}],
            "isError": False,
        }
