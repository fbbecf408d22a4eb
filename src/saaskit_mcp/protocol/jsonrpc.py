"""JSON-RPC 2.0 message parsing and formatting.

Messages are validated as decoded objects so the router can work on dicts;
``format_error`` serializes errors raised before a message could be decoded.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Server error range: request received before initialize
NOT_INITIALIZED = -32002

# Maximum message size (1 MB)
MAX_MESSAGE_SIZE = 1_048_576


class JsonRpcError(Exception):
    """JSON-RPC error with code and message."""

    def __init__(self, code: int, message: str, data: Any | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


@dataclass
class JsonRpcRequest:
    """A JSON-RPC request (has id)."""

    id: int | str
    method: str
    params: dict[str, Any] | None = None


@dataclass
class JsonRpcNotification:
    """A JSON-RPC notification (no id)."""

    method: str
    params: dict[str, Any] | None = None


def validate_message(data: Any) -> JsonRpcRequest | JsonRpcNotification:
    """Validate a decoded JSON-RPC envelope.

    Args:
        data: Decoded JSON value.

    Returns:
        Request or notification.

    Raises:
        JsonRpcError: If the envelope is invalid.
    """
    if not isinstance(data, dict):
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: message must be an object")

    if data.get("jsonrpc") != JSONRPC_VERSION:
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'")

    method = data.get("method")
    if not isinstance(method, str):
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: method must be a string")

    params = data.get("params")
    if params is not None and not isinstance(params, dict):
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: params must be an object")

    if "id" not in data or data["id"] is None:
        return JsonRpcNotification(method=method, params=params)

    msg_id = data["id"]
    # bool is an int subclass but not a valid id
    if isinstance(msg_id, bool) or not isinstance(msg_id, int | str):
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: id must be integer or string")
    return JsonRpcRequest(id=msg_id, method=method, params=params)


def parse_message(raw: str) -> JsonRpcRequest | JsonRpcNotification:
    """Parse a JSON-RPC message from a string.

    Raises:
        JsonRpcError: If the message is too large, not JSON, or invalid.
    """
    if len(raw) > MAX_MESSAGE_SIZE:
        raise JsonRpcError(
            PARSE_ERROR, f"Message too large: {len(raw)} bytes exceeds {MAX_MESSAGE_SIZE} limit"
        )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise JsonRpcError(PARSE_ERROR, f"Parse error: {e}") from e

    return validate_message(data)


def make_response(msg_id: int | str | None, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": msg_id, "result": result}


def make_error(
    msg_id: int | str | None,
    code: int,
    message: str,
    data: Any | None = None,
) -> dict[str, Any]:
    error_obj: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error_obj["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": msg_id, "error": error_obj}


def format_error(
    msg_id: int | str | None,
    code: int,
    message: str,
    data: Any | None = None,
) -> str:
    """Format a JSON-RPC error response as a JSON string.

    Args:
        msg_id: Request ID (or None for parse errors).
        code: Error code.
        message: Error message.
        data: Optional error data.
    """
    return json.dumps(make_error(msg_id, code, message, data), default=str)
