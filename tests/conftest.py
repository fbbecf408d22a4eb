"""Shared fixtures for saaskit-mcp tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from saaskit_mcp.server import MCPServer

TODO_NOUNS = {"Todo": {"id": "string", "title": "string", "done": "boolean"}}


@pytest.fixture
def todo_nouns() -> dict[str, dict[str, str]]:
    return {noun: dict(fields) for noun, fields in TODO_NOUNS.items()}


@pytest.fixture
def todo_server(todo_nouns) -> MCPServer:
    """Server with a Todo noun and a working ``complete`` verb."""

    def complete(ctx):
        return ctx.db["Todo"].update(ctx.id, {"done": True})

    return MCPServer(nouns=todo_nouns, verbs={"Todo": {"complete": complete}})


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a minimal valid server config and return its path."""
    path = tmp_path / "server.yaml"
    path.write_text(
        """
version: "1.0"
server:
  name: todo-server
  version: 0.1.0
nouns:
  Todo:
    title: string
    done: boolean
verbs:
  Todo: [complete]
"""
    )
    return path
