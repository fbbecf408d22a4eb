"""MCP protocol layer: JSON-RPC codec, lifecycle, routing and stdio transport."""

from saaskit_mcp.protocol.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    NOT_INITIALIZED,
    PARSE_ERROR,
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    format_error,
    make_error,
    make_response,
    parse_message,
    validate_message,
)
from saaskit_mcp.protocol.lifecycle import (
    MCP_PROTOCOL_VERSION,
    LifecycleManager,
    LifecycleState,
    ProtocolError,
)
from saaskit_mcp.protocol.router import RequestRouter
from saaskit_mcp.protocol.transport import StdioTransport

__all__ = [
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "LifecycleManager",
    "LifecycleState",
    "MCP_PROTOCOL_VERSION",
    "METHOD_NOT_FOUND",
    "NOT_INITIALIZED",
    "PARSE_ERROR",
    "ProtocolError",
    "RequestRouter",
    "StdioTransport",
    "format_error",
    "make_error",
    "make_response",
    "parse_message",
    "validate_message",
]
