"""Tool data structures."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from saaskit_mcp.schema import VerbHandler

# Standard operations generated for every noun
CRUD_VERBS = ("create", "get", "update", "delete", "list")


class ToolKind(Enum):
    """How a tool call is executed."""

    CRUD = "crud"
    VERB = "verb"


@dataclass
class ToolDefinition:
    """Definition of a generated tool."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP tool format.

        Returns:
            Dictionary in MCP tools/list format.
        """
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass
class ToolResult:
    """Result of a tool execution."""

    content: list[dict[str, Any]]
    is_error: bool = False

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> ToolResult:
        return cls(content=[{"type": "text", "text": text}], is_error=is_error)

    @classmethod
    def data(cls, payload: Any, is_error: bool = False) -> ToolResult:
        return cls.text(json.dumps(payload, default=str), is_error=is_error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP result format.

        Returns:
            Dictionary in MCP tools/call result format.
        """
        return {
            "content": self.content,
            "isError": self.is_error,
        }


@dataclass
class ToolEntry:
    """Registry entry mapping a tool name to what it runs."""

    kind: ToolKind
    noun: str
    op: str
    definition: ToolDefinition
    handler: VerbHandler | None = field(default=None, repr=False)
