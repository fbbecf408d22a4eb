"""Tool dispatcher - routes tool calls to the data store or verb handlers."""

from __future__ import annotations

from typing import Any

from saaskit_mcp.schema import NormalizedSchema, VerbContext, to_mcp_key
from saaskit_mcp.store import DataStore, RecordExistsError, RecordNotFoundError, StoreError
from saaskit_mcp.tools.base import CRUD_VERBS, ToolDefinition, ToolEntry, ToolKind, ToolResult
from saaskit_mcp.tools.generator import generate_tools
from saaskit_mcp.validation import InputValidator, ValidationError


class ToolDispatcher:
    """Routes tool calls by name.

    The registry is built once from the schema and is the single source of
    truth for both tools/list and tools/call.
    """

    def __init__(
        self,
        schema: NormalizedSchema,
        store: DataStore,
        validator: InputValidator | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            schema: Normalized noun/verb schema.
            store: Data store backing CRUD tools.
            validator: Validator for CRUD tool arguments.
        """
        self._schema = schema
        self._store = store
        self._validator = validator or InputValidator()
        self._db = {noun: store.accessor(noun) for noun in schema.nouns}
        self._registry: dict[str, ToolEntry] = {}
        self._build_registry()

    def _build_registry(self) -> None:
        definitions = {tool.name: tool for tool in generate_tools(self._schema)}

        for noun in self._schema.nouns:
            key = to_mcp_key(noun)
            handlers = self._schema.custom_verbs(noun)
            for verb in CRUD_VERBS:
                name = f"{key}_{verb}"
                handler = handlers.get(verb)
                self._registry[name] = ToolEntry(
                    kind=ToolKind.VERB if handler else ToolKind.CRUD,
                    noun=noun,
                    op=verb,
                    definition=definitions[name],
                    handler=handler,
                )
            for verb, handler in handlers.items():
                if verb in CRUD_VERBS:
                    continue
                name = f"{key}_{verb}"
                self._registry[name] = ToolEntry(
                    kind=ToolKind.VERB,
                    noun=noun,
                    op=verb,
                    definition=definitions[name],
                    handler=handler,
                )

    def list_tools(self) -> list[dict[str, Any]]:
        """List all available tools in MCP format.

        Returns:
            List of tool definitions in MCP format.
        """
        return [entry.definition.to_dict() for entry in self._registry.values()]

    def get_tool(self, tool_name: str) -> ToolDefinition | None:
        entry = self._registry.get(tool_name)
        return entry.definition if entry else None

    def get_tool_schema(self, tool_name: str) -> dict[str, Any] | None:
        """Get the input schema for a tool.

        Args:
            tool_name: Name of the tool.

        Returns:
            Input schema dict or None if tool not found.
        """
        definition = self.get_tool(tool_name)
        return definition.input_schema if definition else None

    def call_tool(self, tool_name: str, arguments: dict[str, Any] | None) -> ToolResult:
        """Call a tool by name.

        Never raises: unknown tools, invalid arguments, missing records and
        failing verb handlers all come back as error results.

        Args:
            tool_name: Name of the tool to call.
            arguments: Arguments to pass to the tool.

        Returns:
            ToolResult from the tool execution.
        """
        entry = self._registry.get(tool_name)
        if entry is None:
            return ToolResult.text(f"Unknown tool: {tool_name}", is_error=True)

        args = dict(arguments or {})

        if entry.kind is ToolKind.VERB:
            return self._call_verb(tool_name, entry, args)

        try:
            args = self._validator.validate_tool_input(
                tool_name, entry.definition.input_schema, args
            )
        except ValidationError as e:
            return ToolResult.text(f"Validation failed for {tool_name}: {e}", is_error=True)

        try:
            return self._call_crud(entry.noun, entry.op, args)
        except RecordNotFoundError as e:
            payload: dict[str, Any] = {"error": str(e), "id": e.record_id}
            # Lookups and deletes of a missing id answer normally; update fails
            if entry.op == "delete":
                return ToolResult.data({"success": False, **payload})
            return ToolResult.data(payload, is_error=entry.op != "get")
        except RecordExistsError as e:
            return ToolResult.data({"error": str(e), "id": e.record_id}, is_error=True)
        except StoreError as e:
            return ToolResult.data({"error": str(e)}, is_error=True)

    def _call_crud(self, noun: str, op: str, args: dict[str, Any]) -> ToolResult:
        match op:
            case "create":
                return ToolResult.data(self._store.create(noun, args))
            case "get":
                return ToolResult.data(self._store.get(noun, args["id"]))
            case "update":
                record_id = args.pop("id")
                return ToolResult.data(self._store.update(noun, record_id, args))
            case "delete":
                self._store.delete(noun, args["id"])
                return ToolResult.data({"success": True, "id": args["id"]})
            case _:
                return ToolResult.data(self._store.list(noun, args or None))

    def _call_verb(self, tool_name: str, entry: ToolEntry, args: dict[str, Any]) -> ToolResult:
        assert entry.handler is not None
        record_id = args.get("id")
        context = VerbContext(
            noun=entry.noun,
            id=str(record_id) if record_id is not None else None,
            input=args,
            db=self._db,
        )
        try:
            result = entry.handler.invoke(context)
            # Results that cannot be encoded as JSON are handler failures too
            return ToolResult.data(result)
        except Exception as e:
            return ToolResult.text(f"Error executing tool {tool_name}: {e}", is_error=True)
