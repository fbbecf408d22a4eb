"""Structured logging for MCP server operations.

Records go through stdlib ``logging`` under the ``saaskit_mcp`` logger tree.
Each server owns an ``MCPLogger`` carrying a category, the current request and
trace ids, and named timers; these ride on every record as ``extra`` fields.
``configure_logging`` attaches one stderr handler in JSON or text form, since
stdout belongs to the protocol stream.
"""

from __future__ import annotations

import functools
import json
import logging
import sys
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TextIO

LOGGER_NAME = "saaskit_mcp"

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

LOG_FORMATS = ("json", "text")

# Fields copied from record extras into formatted output, in order
_EXTRA_FIELDS = ("request_id", "trace_id", "duration_ms", "data")


class LogCategory:
    """Category names for MCP operations."""

    TRANSPORT = "transport"
    TOOLS = "tools"
    RESOURCES = "resources"
    PROMPTS = "prompts"
    SAMPLING = "sampling"
    VALIDATION = "validation"
    LIFECYCLE = "lifecycle"
    PERFORMANCE = "performance"


def parse_level(level: str | int) -> int:
    """Resolve a level name (``debug``, ``info``, ``warn``, ``error``) or number."""
    if isinstance(level, int):
        return level
    try:
        return LOG_LEVELS[level.lower()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level}") from None


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "category": getattr(record, "category", None),
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``[timestamp] [LEVEL] [category] message (Nms) {data}``"""

    def __init__(self, timestamps: bool = True) -> None:
        super().__init__()
        self._timestamps = timestamps

    def format(self, record: logging.LogRecord) -> str:
        parts: list[str] = []
        if self._timestamps:
            created = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
            parts.append(f"[{created}]")
        parts.append(f"[{record.levelname}]")
        category = getattr(record, "category", None)
        if category:
            parts.append(f"[{category}]")
        parts.append(record.getMessage())

        duration_ms = getattr(record, "duration_ms", None)
        if duration_ms is not None:
            parts.append(f"({duration_ms}ms)")
        data = getattr(record, "data", None)
        if data is not None:
            parts.append(json.dumps(data, default=str))

        text = " ".join(parts)
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


def configure_logging(
    level: str | int = "info",
    fmt: str = "json",
    stream: TextIO | None = None,
) -> logging.Handler:
    """Send ``saaskit_mcp`` records to a stream (stderr by default).

    Replaces any handler installed by an earlier call.

    Args:
        level: Minimum level name or number.
        fmt: ``json`` or ``text``.
        stream: Output stream.

    Returns:
        The installed handler.
    """
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {fmt}")

    logger = logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    logger.addHandler(handler)
    logger.setLevel(parse_level(level))
    return handler


class MCPLogger:
    """Category-aware logger bound to one server instance.

    Request and trace ids set through ``request_context`` are attached to
    every record until the context exits.
    """

    def __init__(
        self,
        category: str = "server",
        name: str = LOGGER_NAME,
        level: str | int = logging.NOTSET,
        track_performance: bool = True,
    ) -> None:
        """Initialize the logger.

        Args:
            category: Default category for records.
            name: Name of the underlying stdlib logger.
            level: Extra minimum level applied by this instance only.
            track_performance: When False, timers are no-ops.
        """
        self._logger = logging.getLogger(name)
        self.category = category
        self.level = parse_level(level)
        self.track_performance = track_performance
        self.request_id: str | None = None
        self.trace_id: str | None = None
        self._timers: dict[str, float] = {}
        self._prefix: str | None = None

    @property
    def name(self) -> str:
        return self._logger.name

    def set_request_context(
        self, request_id: str | None = None, trace_id: str | None = None
    ) -> None:
        self.request_id = request_id
        self.trace_id = trace_id

    def clear_request_context(self) -> None:
        self.request_id = None
        self.trace_id = None

    @contextmanager
    def request_context(
        self, request_id: str | None, trace_id: str | None = None
    ) -> Iterator[MCPLogger]:
        """Attach ids to records inside the block, restoring the previous ones after."""
        previous = (self.request_id, self.trace_id)
        self.set_request_context(request_id, trace_id)
        try:
            yield self
        finally:
            self.set_request_context(*previous)

    def is_enabled_for(self, level: int) -> bool:
        return level >= self.level and self._logger.isEnabledFor(level)

    def log(
        self,
        level: int,
        message: str,
        data: Any = None,
        category: str | None = None,
        duration_ms: float | None = None,
        exc_info: bool = False,
    ) -> None:
        if not self.is_enabled_for(level):
            return
        category = category or self.category
        if self._prefix:
            category = f"{self._prefix}:{category}"
        extra = {
            "category": category,
            "data": data,
            "duration_ms": duration_ms,
            "request_id": self.request_id,
            "trace_id": self.trace_id,
        }
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, data: Any = None, category: str | None = None) -> None:
        self.log(logging.DEBUG, message, data, category)

    def info(self, message: str, data: Any = None, category: str | None = None) -> None:
        self.log(logging.INFO, message, data, category)

    def warning(self, message: str, data: Any = None, category: str | None = None) -> None:
        self.log(logging.WARNING, message, data, category)

    def error(
        self,
        message: str,
        data: Any = None,
        category: str | None = None,
        exc_info: bool = False,
    ) -> None:
        self.log(logging.ERROR, message, data, category, exc_info=exc_info)

    def start_timer(self, name: str) -> None:
        if self.track_performance:
            self._timers[name] = time.perf_counter()

    def end_timer(
        self, name: str, message: str | None = None, category: str | None = None
    ) -> float | None:
        """Stop a timer and log its duration at debug level.

        Returns:
            Elapsed milliseconds, or None when tracking is off or the timer
            was never started.
        """
        if not self.track_performance:
            return None

        started = self._timers.pop(name, None)
        if started is None:
            self.warning(f"Timer '{name}' was not started", category=LogCategory.PERFORMANCE)
            return None

        duration_ms = round((time.perf_counter() - started) * 1000, 3)
        self.log(
            logging.DEBUG,
            message or f"{name} completed",
            category=category,
            duration_ms=duration_ms,
        )
        return duration_ms

    def child(self, prefix: str) -> MCPLogger:
        """Logger writing to ``<name>.<prefix>`` with ``<prefix>:`` before every category."""
        child = MCPLogger(
            category=self.category,
            name=f"{self._logger.name}.{prefix}",
            level=self.level,
            track_performance=self.track_performance,
        )
        child._prefix = f"{self._prefix}:{prefix}" if self._prefix else prefix
        child.set_request_context(self.request_id, self.trace_id)
        return child


def with_logging(logger: MCPLogger, operation: str, category: str | None = None) -> Callable:
    """Decorator logging start, duration and failure of a function.

    Exceptions are logged with their traceback and re-raised.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            logger.debug(f"{operation} started", category=category)
            logger.start_timer(operation)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.end_timer(operation, f"{operation} failed", category=category)
                logger.error(f"{operation} failed: {e}", category=category, exc_info=True)
                raise
            logger.end_timer(operation, f"{operation} completed", category=category)
            return result

        return wrapper

    return decorator


@dataclass
class TraceNode:
    """One traced operation and the operations started inside it."""

    operation: str
    input: Any = None
    output: Any = None
    error: str | None = None
    duration_ms: float | None = None
    children: list[TraceNode] = field(default_factory=list)
    _started: float = field(default_factory=time.perf_counter, repr=False)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"operation": self.operation}
        for key in ("input", "output", "error", "duration_ms"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result["children"] = [child.to_dict() for child in self.children]
        return result


class DebugTracer:
    """Records a tree of nested operations for debugging."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.root: TraceNode | None = None
        self._stack: list[TraceNode] = []

    def start(self, operation: str, input: Any = None) -> None:
        if not self.enabled:
            return
        node = TraceNode(operation=operation, input=input)
        if self._stack:
            self._stack[-1].children.append(node)
        else:
            self.root = node
        self._stack.append(node)

    def end(self, output: Any = None, error: BaseException | None = None) -> None:
        if not self.enabled or not self._stack:
            return
        node = self._stack.pop()
        node.duration_ms = round((time.perf_counter() - node._started) * 1000, 3)
        node.output = output
        node.error = str(error) if error is not None else None

    @contextmanager
    def trace(self, operation: str, input: Any = None) -> Iterator[None]:
        """Trace the block as one operation; exceptions are recorded and re-raised."""
        self.start(operation, input)
        try:
            yield
        except Exception as e:
            self.end(error=e)
            raise
        self.end()

    def format(self) -> str:
        if self.root is None:
            return "No trace recorded"
        return "".join(self._format_node(self.root, 0))

    def _format_node(self, node: TraceNode, depth: int) -> Iterator[str]:
        prefix = "  " * depth
        line = f"{prefix}{node.operation}"
        if node.duration_ms is not None:
            line += f" ({node.duration_ms}ms)"
        if node.error:
            line += f" [ERROR: {node.error}]"
        yield line + "\n"

        if node.input is not None:
            yield f"{prefix}  Input: {json.dumps(node.input, default=str)}\n"
        if node.output is not None:
            yield f"{prefix}  Output: {json.dumps(node.output, default=str)}\n"
        for child in node.children:
            yield from self._format_node(child, depth + 1)

    def to_dict(self) -> dict[str, Any] | None:
        return self.root.to_dict() if self.root else None

    def clear(self) -> None:
        self.root = None
        self._stack = []
