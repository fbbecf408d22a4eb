"""MCP lifecycle management.

Tracks whether the connection has completed ``initialize``. The server is
ready as soon as it answers ``initialize``; ``notifications/initialized`` is
accepted but not required.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

MCP_PROTOCOL_VERSION = "2024-11-05"


def default_capabilities() -> dict[str, Any]:
    """Capabilities advertised in the ``initialize`` result."""
    return {"tools": {}, "resources": {}, "prompts": {}, "sampling": {}}


class LifecycleState(Enum):
    """MCP connection lifecycle states."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"


class ProtocolError(Exception):
    """Raised when lifecycle constraints are violated."""

    pass


@dataclass
class LifecycleManager:
    """Manages the initialize handshake for one connection."""

    server_info: dict[str, str] = field(
        default_factory=lambda: {"name": "saaskit-mcp-server", "version": "1.0.0"}
    )
    capabilities: dict[str, Any] = field(default_factory=default_capabilities)
    protocol_version: str = MCP_PROTOCOL_VERSION
    state: LifecycleState = LifecycleState.UNINITIALIZED
    client_info: dict[str, Any] | None = None
    client_capabilities: dict[str, Any] | None = None
    client_protocol_version: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.state == LifecycleState.READY

    def require_ready(self) -> None:
        """Assert that ``initialize`` has completed.

        Raises:
            ProtocolError: If not initialized.
        """
        if self.state != LifecycleState.READY:
            raise ProtocolError("Server not initialized")

    def handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle an initialize request.

        The server always answers with its own protocol version; the
        client's requested version is recorded but not negotiated. A repeat
        initialize replaces the recorded client details and gets the same
        answer.

        Args:
            params: Initialize request parameters.

        Returns:
            Initialize response result.
        """
        self.client_info = params.get("clientInfo")
        self.client_capabilities = params.get("capabilities") or {}
        self.client_protocol_version = params.get("protocolVersion")
        self.state = LifecycleState.READY

        return {
            "protocolVersion": self.protocol_version,
            "serverInfo": dict(self.server_info),
            "capabilities": self.capabilities,
        }
