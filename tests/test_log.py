"""Tests for structured operation logging."""

import io
import json
import logging

import pytest

from saaskit_mcp.log import (
    LOGGER_NAME,
    DebugTracer,
    MCPLogger,
    configure_logging,
    parse_level,
    with_logging,
)
from saaskit_mcp.server import MCPServer


def _configure(fmt: str):
    stream = io.StringIO()
    handler = configure_logging("debug", fmt, stream)
    return stream, handler


@pytest.fixture
def json_log():
    """Capture ``saaskit_mcp`` records as parsed JSON lines."""
    stream, handler = _configure("json")

    def entries() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines()]

    yield entries
    logging.getLogger(LOGGER_NAME).removeHandler(handler)
    logging.getLogger(LOGGER_NAME).setLevel(logging.NOTSET)


@pytest.fixture
def text_log():
    stream, handler = _configure("text")
    yield stream
    logging.getLogger(LOGGER_NAME).removeHandler(handler)
    logging.getLogger(LOGGER_NAME).setLevel(logging.NOTSET)


class TestConfigureLogging:
    """Tests for configure_logging() and level parsing."""

    def test_json_entry(self, json_log):
        """Records carry level, category, message and data."""
        MCPLogger(category="tools").info("hello", {"a": 1})

        (entry,) = json_log()
        assert entry["level"] == "info"
        assert entry["category"] == "tools"
        assert entry["message"] == "hello"
        assert entry["data"] == {"a": 1}
        assert entry["logger"] == LOGGER_NAME
        assert "request_id" not in entry

    def test_text_entry(self, text_log):
        """Text output puts level and category in brackets."""
        MCPLogger(category="tools").warning("careful", {"n": 2})
        assert "[WARNING] [tools] careful {\"n\": 2}" in text_log.getvalue()

    def test_reconfigure_replaces_handler(self, json_log):
        """A second call leaves exactly one handler."""
        stream, handler = _configure("json")
        logger = logging.getLogger(LOGGER_NAME)

        try:
            assert logger.handlers == [handler]
            MCPLogger().info("once")
            assert len(stream.getvalue().splitlines()) == 1
        finally:
            logger.removeHandler(handler)

    def test_unknown_format(self):
        """Unknown formats are rejected."""
        with pytest.raises(ValueError, match="Unknown log format"):
            configure_logging(fmt="xml")

    @pytest.mark.parametrize(
        ("name", "level"),
        [("debug", logging.DEBUG), ("WARN", logging.WARNING), ("error", logging.ERROR), (5, 5)],
    )
    def test_parse_level(self, name, level):
        """Level names are case-insensitive; numbers pass through."""
        assert parse_level(name) == level

    def test_parse_unknown_level(self):
        """Unknown level names are rejected."""
        with pytest.raises(ValueError, match="Unknown log level"):
            parse_level("loud")


class TestMCPLogger:
    """Tests for MCPLogger."""

    def test_instance_level(self, json_log):
        """An instance level filters records below it."""
        logger = MCPLogger(level="error")
        logger.info("dropped")
        logger.error("kept")

        assert [e["message"] for e in json_log()] == ["kept"]

    def test_request_context(self, json_log):
        """Request and trace ids are attached only inside the context."""
        logger = MCPLogger()
        with logger.request_context("req-1", "trace-1"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = json_log()
        assert inside["request_id"] == "req-1"
        assert inside["trace_id"] == "trace-1"
        assert "request_id" not in outside

    def test_timer(self, json_log):
        """end_timer() logs and returns the elapsed milliseconds."""
        logger = MCPLogger(category="tools")
        logger.start_timer("call")
        duration = logger.end_timer("call")

        (entry,) = json_log()
        assert duration is not None and duration >= 0
        assert entry["message"] == "call completed"
        assert entry["duration_ms"] == duration

    def test_timer_not_started(self, json_log):
        """Ending an unknown timer warns and returns None."""
        assert MCPLogger().end_timer("ghost") is None

        (entry,) = json_log()
        assert entry["level"] == "warning"
        assert entry["category"] == "performance"
        assert entry["message"] == "Timer 'ghost' was not started"

    def test_timer_disabled(self, json_log):
        """Timers are no-ops without performance tracking."""
        logger = MCPLogger(track_performance=False)
        logger.start_timer("call")

        assert logger.end_timer("call") is None
        assert json_log() == []

    def test_child(self, json_log):
        """Children nest logger names and category prefixes."""
        parent = MCPLogger(category="tools")
        child = parent.child("todo").child("create")
        child.info("made")
        child.info("listed", category="resources")

        made, listed = json_log()
        assert child.name == f"{LOGGER_NAME}.todo.create"
        assert made["category"] == "todo:create:tools"
        assert listed["category"] == "todo:create:resources"


class TestWithLogging:
    """Tests for the with_logging() decorator."""

    def test_success(self, json_log):
        """Start and completion are logged; the result is returned."""
        logger = MCPLogger(category="tools")

        @with_logging(logger, "double")
        def double(x):
            return x * 2

        assert double(21) == 42
        assert [e["message"] for e in json_log()] == ["double started", "double completed"]

    def test_failure_is_reraised(self, json_log):
        """Failures are logged with their traceback and re-raised."""
        logger = MCPLogger(category="tools")

        @with_logging(logger, "explode")
        def explode():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            explode()

        error = json_log()[-1]
        assert error["level"] == "error"
        assert error["message"] == "explode failed: boom"
        assert "RuntimeError" in error["exception"]


class TestDebugTracer:
    """Tests for DebugTracer."""

    def test_nested_operations(self):
        """Nested operations form a tree with durations."""
        tracer = DebugTracer()
        with tracer.trace("call_tool", {"name": "todo_create"}):
            with tracer.trace("store.create"):
                pass

        tree = tracer.to_dict()
        assert tree["operation"] == "call_tool"
        assert tree["input"] == {"name": "todo_create"}
        assert tree["children"][0]["operation"] == "store.create"
        assert tree["children"][0]["duration_ms"] >= 0

        lines = tracer.format().splitlines()
        assert lines[0].startswith("call_tool (")
        assert lines[1] == '  Input: {"name": "todo_create"}'
        assert lines[2].startswith("  store.create (")

    def test_error_recorded(self):
        """Exceptions are recorded on the node and re-raised."""
        tracer = DebugTracer()
        with pytest.raises(ValueError):
            with tracer.trace("validate"):
                raise ValueError("bad input")

        assert tracer.root.error == "bad input"
        assert "[ERROR: bad input]" in tracer.format()

    def test_disabled_and_clear(self):
        """A disabled tracer records nothing; clear() resets."""
        disabled = DebugTracer(enabled=False)
        disabled.start("x")
        disabled.end()
        assert disabled.format() == "No trace recorded"

        tracer = DebugTracer()
        tracer.start("x")
        tracer.end(output={"ok": True})
        assert tracer.root.output == {"ok": True}
        tracer.clear()
        assert tracer.to_dict() is None


class TestServerLogging:
    """Tests for logging from server operations."""

    def test_tool_calls_are_logged(self, json_log, todo_nouns):
        """Tool calls log at debug, failures at warning, with a request id."""

        def fail(ctx):
            raise RuntimeError("Intentional failure")

        server = MCPServer(nouns=todo_nouns, verbs={"Todo": {"fail": fail}})
        server.call_tool("todo_fail", {"id": "1"})

        tool_entries = [e for e in json_log() if e["category"] == "tools"]
        assert [e["level"] for e in tool_entries] == ["debug", "warning", "debug"]
        assert tool_entries[0]["message"] == "Calling tool todo_fail"
        assert tool_entries[2]["duration_ms"] >= 0
        assert len({e["request_id"] for e in tool_entries}) == 1

    def test_failed_resource_read_is_logged(self, json_log, todo_server):
        """Failed resource reads log a warning with the uri."""
        todo_server.read_resource("saaskit://ghost")

        (entry,) = [e for e in json_log() if e["category"] == "resources"]
        assert entry["level"] == "warning"
        assert entry["data"] == {"uri": "saaskit://ghost"}

    def test_initialize_is_logged(self, json_log, todo_server):
        """The router logs client initialization."""
        todo_server.create_router().handle(
            {
                "jsonrpc": "2.0",
                "id": 1,
                "method": "initialize",
                "params": {"clientInfo": {"name": "c"}},
            }
        )

        (entry,) = [e for e in json_log() if e["category"] == "lifecycle"]
        assert entry["message"] == "Client initialized"
        assert entry["data"] == {"clientInfo": {"name": "c"}}

    def test_custom_logger(self, json_log, todo_nouns):
        """A logger passed to the server is used for its records."""
        server = MCPServer(nouns=todo_nouns, logger=MCPLogger(name=f"{LOGGER_NAME}.custom"))
        assert server.logger.name == f"{LOGGER_NAME}.custom"

        server.get_prompt("missing")
        assert json_log()[-1]["logger"] == f"{LOGGER_NAME}.custom"
