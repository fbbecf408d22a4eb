"""Tool generation and dispatch."""

from saaskit_mcp.tools.base import CRUD_VERBS, ToolDefinition, ToolEntry, ToolKind, ToolResult
from saaskit_mcp.tools.dispatcher import ToolDispatcher
from saaskit_mcp.tools.generator import (
    generate_crud_tools,
    generate_input_schema,
    generate_tool_description,
    generate_tools,
    generate_verb_tool,
    map_field_type,
)

__all__ = [
    "CRUD_VERBS",
    "ToolDefinition",
    "ToolDispatcher",
    "ToolEntry",
    "ToolKind",
    "ToolResult",
    "generate_crud_tools",
    "generate_input_schema",
    "generate_tool_description",
    "generate_tools",
    "generate_verb_tool",
    "map_field_type",
]
