"""JSON-RPC method routing.

Maps MCP methods onto an ``MCPServer`` and converts every failure into a
JSON-RPC error object. One router holds the lifecycle of one connection.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from saaskit_mcp.protocol.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    NOT_INITIALIZED,
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    format_error,
    make_error,
    make_response,
    parse_message,
    validate_message,
)
from saaskit_mcp.log import LogCategory
from saaskit_mcp.protocol.lifecycle import LifecycleManager, ProtocolError

if TYPE_CHECKING:
    from saaskit_mcp.server import MCPServer


class RequestRouter:
    """Routes decoded JSON-RPC messages to server operations."""

    def __init__(self, server: MCPServer) -> None:
        self._server = server
        self._lifecycle = LifecycleManager(
            server_info=server.get_server_info(),
            protocol_version=server.get_protocol_version(),
        )
        self._handlers = {
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/templates/list": self._resource_templates_list,
            "resources/read": self._resources_read,
            "prompts/list": self._prompts_list,
            "prompts/get": self._prompts_get,
        }

    @property
    def lifecycle(self) -> LifecycleManager:
        return self._lifecycle

    def handle_message(self, raw_message: str) -> str | None:
        """Handle a raw JSON-RPC message.

        Args:
            raw_message: Raw JSON-RPC message string.

        Returns:
            Response string, or None for notifications.
        """
        try:
            message = parse_message(raw_message)
        except JsonRpcError as e:
            return format_error(None, e.code, e.message, e.data)

        response = self._dispatch(message)
        if response is None:
            return None
        return json.dumps(response, default=str)

    def handle(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Handle a decoded JSON-RPC message.

        Returns:
            Response object, or None for notifications.
        """
        try:
            parsed = validate_message(message)
        except JsonRpcError as e:
            msg_id = message.get("id") if isinstance(message, dict) else None
            return make_error(msg_id, e.code, e.message, e.data)
        return self._dispatch(parsed)

    def _dispatch(self, message: JsonRpcRequest | JsonRpcNotification) -> dict[str, Any] | None:
        if isinstance(message, JsonRpcNotification):
            # notifications/initialized and friends need no reply
            return None
        return self._handle_request(message)

    def _handle_request(self, request: JsonRpcRequest) -> dict[str, Any]:
        method = request.method
        params = request.params or {}
        msg_id = request.id

        if method == "initialize":
            result = self._lifecycle.handle_initialize(params)
            self._server.logger.info(
                "Client initialized",
                {"clientInfo": self._lifecycle.client_info},
                LogCategory.LIFECYCLE,
            )
            return make_response(msg_id, result)

        try:
            self._lifecycle.require_ready()
        except ProtocolError as e:
            return make_error(msg_id, NOT_INITIALIZED, str(e))

        handler = self._handlers.get(method)
        if handler is None:
            return make_error(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        try:
            return make_response(msg_id, handler(params))
        except JsonRpcError as e:
            return make_error(msg_id, e.code, e.message, e.data)
        except Exception as e:
            self._server.logger.error(
                f"Request {method} failed: {e}", category=LogCategory.TRANSPORT, exc_info=True
            )
            return make_error(msg_id, INTERNAL_ERROR, f"Internal error: {e}")

    def _ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    def _tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": self._server.list_tools()}

    def _tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        name = _require_str(params, "name")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise JsonRpcError(INVALID_PARAMS, "Invalid params: arguments must be an object")
        return self._server.call_tool(name, arguments)

    def _resources_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"resources": self._server.list_resources()}

    def _resource_templates_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"resourceTemplates": self._server.list_resource_templates()}

    def _resources_read(self, params: dict[str, Any]) -> dict[str, Any]:
        return self._server.read_resource(_require_str(params, "uri"))

    def _prompts_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"prompts": self._server.list_prompts()}

    def _prompts_get(self, params: dict[str, Any]) -> dict[str, Any]:
        name = _require_str(params, "name")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise JsonRpcError(INVALID_PARAMS, "Invalid params: arguments must be an object")
        return self._server.get_prompt(name, arguments)


def _require_str(params: dict[str, Any], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise JsonRpcError(INVALID_PARAMS, f"Invalid params: '{key}' is required")
    return value
