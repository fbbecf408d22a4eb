"""Tool generation from noun fields and verb handlers."""

from __future__ import annotations

from typing import Any

from saaskit_mcp.schema import NormalizedSchema, field_base_type, to_mcp_key
from saaskit_mcp.store import TIMESTAMP_FIELDS
from saaskit_mcp.tools.base import CRUD_VERBS, ToolDefinition
from saaskit_mcp.validation import SchemaBuilder

_TYPE_MAP = {
    "number": "number",
    "integer": "number",
    "int": "number",
    "float": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "array": "array",
    "object": "object",
}


def map_field_type(type_string: str) -> str:
    """Map a schema field type to a JSON Schema type (default ``string``)."""
    return _TYPE_MAP.get(field_base_type(type_string).lower(), "string")


def generate_tool_description(noun: str, verb: str) -> str:
    """Describe a noun/verb tool in plain words."""
    noun_lower = noun.lower()
    match verb:
        case "create":
            return f"Create a new {noun_lower}"
        case "get":
            return f"Get a {noun_lower} by ID"
        case "update":
            return f"Update an existing {noun_lower}"
        case "delete":
            return f"Delete a {noun_lower} by ID"
        case "list":
            return f"List all {noun_lower}s"
        case _:
            return f"{verb[:1].upper()}{verb[1:]} a {noun_lower}"


def generate_input_schema(fields: dict[str, str], verb: str) -> dict[str, Any]:
    """Build the input schema for one noun/verb pair.

    Args:
        fields: Noun field definitions.
        verb: CRUD verb or custom verb name.

    Returns:
        JSON Schema object.
    """
    builder = SchemaBuilder()

    if verb == "create":
        for name, type_string in fields.items():
            if name == "id":
                builder.id("Optional ID (auto-generated if not provided)")
            elif name not in TIMESTAMP_FIELDS:
                builder.field(name, map_field_type(type_string), f"The {name} field")

    elif verb in ("get", "delete"):
        builder.id(required=True)

    elif verb == "update":
        builder.id(required=True)
        for name, type_string in fields.items():
            if name != "id" and name not in TIMESTAMP_FIELDS:
                builder.field(name, map_field_type(type_string), f"The {name} field")

    elif verb == "list":
        for name, type_string in fields.items():
            builder.field(name, map_field_type(type_string), f"Filter by exact {name}")

    else:
        # Verb handlers decide their own input shape
        builder.id(required=True).allow_additional()

    return builder.build()


def generate_crud_tools(noun: str, fields: dict[str, str]) -> list[ToolDefinition]:
    """Generate the five CRUD tools for a noun."""
    key = to_mcp_key(noun)
    return [
        ToolDefinition(
            name=f"{key}_{verb}",
            description=generate_tool_description(noun, verb),
            input_schema=generate_input_schema(fields, verb),
        )
        for verb in CRUD_VERBS
    ]


def generate_verb_tool(noun: str, verb: str) -> ToolDefinition:
    """Generate the tool for a custom verb."""
    return ToolDefinition(
        name=f"{to_mcp_key(noun)}_{verb}",
        description=generate_tool_description(noun, verb),
        input_schema=generate_input_schema({}, verb),
    )


def generate_tools(schema: NormalizedSchema) -> list[ToolDefinition]:
    """Generate every tool for a normalized schema.

    CRUD tools for each noun come first, then one tool per custom verb.
    Verbs named after a CRUD operation do not produce a second tool.
    """
    tools: list[ToolDefinition] = []

    for noun, fields in schema.nouns.items():
        tools.extend(generate_crud_tools(noun, fields))

    for noun, handlers in schema.verbs.items():
        if noun not in schema.nouns:
            continue
        for verb in handlers:
            if verb not in CRUD_VERBS:
                tools.append(generate_verb_tool(noun, verb))

    return tools
