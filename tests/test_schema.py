"""Tests for schema normalization and verb handler adaptation."""

import asyncio

import pytest

from saaskit_mcp.schema import (
    DEFAULT_FIELDS,
    VerbContext,
    VerbHandler,
    field_base_type,
    from_mcp_key,
    normalize_schema,
    placeholder_verbs,
    to_mcp_key,
)


class TestKeyConversion:
    """Tests for noun name <-> key conversion."""

    @pytest.mark.parametrize(
        ("name", "key"),
        [("Todo", "todo"), ("TodoItem", "todo_item"), ("APIKey", "a_p_i_key"), ("user", "user")],
    )
    def test_to_mcp_key(self, name, key):
        """Should insert underscores before capitals and lowercase."""
        assert to_mcp_key(name) == key

    def test_from_mcp_key(self):
        """Should rebuild PascalCase from a snake_case key."""
        assert from_mcp_key("todo_item") == "TodoItem"


class TestFieldBaseType:
    """Tests for field type reduction."""

    def test_strips_optional_marker(self):
        """Trailing ? should be dropped."""
        assert field_base_type("number?") == "number"

    def test_relationship_is_string(self):
        """Relationship fields are stored as references."""
        assert field_base_type("->User") == "string"
        assert field_base_type("<~Tag[]") == "string"

    def test_plain_type_unchanged(self):
        """Plain types pass through."""
        assert field_base_type("boolean") == "boolean"


class TestNormalizeSchema:
    """Tests for normalize_schema()."""

    def test_explicit_shape(self):
        """Nouns and verbs should be taken as given."""
        schema = normalize_schema(
            nouns={"Todo": {"title": "string"}},
            verbs={"Todo": {"complete": lambda ctx: "ok"}},
        )

        assert schema.nouns == {"Todo": {"title": "string"}}
        assert isinstance(schema.verbs["Todo"]["complete"], VerbHandler)

    def test_app_config_shape_adds_default_fields(self):
        """Nouns named in app_config get id/createdAt/updatedAt string fields."""
        schema = normalize_schema(app_config={"nouns": ["Task"], "verbs": {"Task": ["start"]}})

        assert schema.nouns == {"Task": DEFAULT_FIELDS}
        assert list(schema.verbs["Task"]) == ["start"]

    def test_app_config_takes_precedence(self):
        """app_config should override explicit nouns."""
        schema = normalize_schema(nouns={"Todo": {}}, app_config={"nouns": ["Task"]})
        assert list(schema.nouns) == ["Task"]

    def test_app_config_verbs_overlay_handlers(self):
        """Explicit handlers replace app_config placeholders and add new verbs."""
        schema = normalize_schema(
            verbs={"Task": {"start": lambda ctx: "started", "stop": lambda ctx: "stopped"}},
            app_config={"nouns": ["Task"], "verbs": {"Task": ["start"]}},
        )

        ctx = VerbContext(noun="Task", id="t1", input={})
        assert schema.verbs["Task"]["start"].invoke(ctx) == "started"
        assert schema.verbs["Task"]["stop"].invoke(ctx) == "stopped"

    def test_malformed_verb_list_is_skipped(self):
        """A non-list verb entry should yield no verbs for that noun."""
        schema = normalize_schema(app_config={"nouns": ["Task"], "verbs": {"Task": "start"}})
        assert schema.custom_verbs("Task") == {}

    def test_malformed_explicit_verbs_are_skipped(self):
        """A non-mapping verb entry should be ignored."""
        schema = normalize_schema(nouns={"Todo": {}}, verbs={"Todo": ["complete"]})
        assert schema.custom_verbs("Todo") == {}

    def test_noun_for_key(self):
        """Should resolve keys back to declared noun names."""
        schema = normalize_schema(nouns={"TodoItem": {}})
        assert schema.noun_for_key("todo_item") == "TodoItem"
        assert schema.noun_for_key("missing") is None

    def test_non_callable_handler_rejected(self):
        """Handlers must be callable."""
        with pytest.raises(TypeError):
            normalize_schema(nouns={"Todo": {}}, verbs={"Todo": {"complete": "nope"}})


class TestPlaceholderVerbs:
    """Tests for synthesized verb handlers."""

    def test_placeholder_echoes_call(self):
        """Placeholder handlers report success without touching storage."""
        verbs = placeholder_verbs({"Task": ["start"]})
        result = verbs["Task"]["start"].invoke(VerbContext(noun="Task", id="t1", input={}))

        assert result == {"success": True, "verb": "start", "noun": "Task", "id": "t1"}


class TestVerbHandler:
    """Tests for the VerbHandler adapter."""

    def test_sync_handler(self):
        """Sync handlers return their value."""
        handler = VerbHandler.wrap(lambda ctx: {"id": ctx.id})
        assert handler.invoke(VerbContext(noun="Todo", id="1", input={})) == {"id": "1"}
        assert not handler.is_async

    def test_async_handler(self):
        """Coroutine handlers are run to completion."""

        async def handler(ctx):
            return ctx.input["value"] * 2

        wrapped = VerbHandler.wrap(handler)
        assert wrapped.is_async
        assert wrapped.invoke(VerbContext(noun="Todo", id=None, input={"value": 21})) == 42

    def test_async_handler_exception_propagates(self):
        """Exceptions from coroutine handlers surface from invoke()."""

        async def handler(ctx):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            VerbHandler.wrap(handler).invoke(VerbContext(noun="Todo", id=None, input={}))

    def test_async_handler_inside_running_loop(self):
        """Coroutine handlers complete when invoked from inside a running loop."""

        async def handler(ctx):
            await asyncio.sleep(0)
            return ctx.id

        wrapped = VerbHandler.wrap(handler)

        async def caller():
            return wrapped.invoke(VerbContext(noun="Todo", id="7", input={}))

        assert asyncio.run(caller()) == "7"

    def test_wrap_is_idempotent(self):
        """Wrapping a VerbHandler returns it unchanged."""
        handler = VerbHandler.wrap(lambda ctx: None)
        assert VerbHandler.wrap(handler) is handler
