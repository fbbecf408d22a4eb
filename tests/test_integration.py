"""Integration tests for a complete stdio session."""

import io
import json
import logging
from pathlib import Path

import pytest

from saaskit_mcp.log import LOGGER_NAME
from saaskit_mcp.main import main
from saaskit_mcp.server import MCPServer


def _session(server: MCPServer, messages: list[dict]) -> list[dict]:
    stdin = io.StringIO("\n".join(json.dumps(m) for m in messages) + "\n")
    stdout = io.StringIO()
    server.create_stdio_transport(stdin=stdin, stdout=stdout, stderr=io.StringIO()).serve()
    return [json.loads(line) for line in stdout.getvalue().splitlines()]


class TestStdioSession:
    """End-to-end JSON-RPC over stdio."""

    def test_full_session(self, todo_server):
        """A client initializes, creates, completes and reads a todo."""
        responses = _session(
            todo_server,
            [
                {"jsonrpc": "2.0", "id": 0, "method": "tools/list"},
                {
                    "jsonrpc": "2.0",
                    "id": 1,
                    "method": "initialize",
                    "params": {
                        "protocolVersion": "2024-11-05",
                        "capabilities": {},
                        "clientInfo": {"name": "test-client", "version": "1.0"},
                    },
                },
                {"jsonrpc": "2.0", "method": "notifications/initialized"},
                {
                    "jsonrpc": "2.0",
                    "id": 2,
                    "method": "tools/call",
                    "params": {"name": "todo_create", "arguments": {"id": "t1", "title": "Ship"}},
                },
                {
                    "jsonrpc": "2.0",
                    "id": 3,
                    "method": "tools/call",
                    "params": {"name": "todo_complete", "arguments": {"id": "t1"}},
                },
                {
                    "jsonrpc": "2.0",
                    "id": 4,
                    "method": "resources/read",
                    "params": {"uri": "saaskit://todo/t1"},
                },
                {"jsonrpc": "2.0", "id": 5, "method": "bogus/method"},
            ],
        )

        assert [r["id"] for r in responses] == [0, 1, 2, 3, 4, 5]
        assert "not initialized" in responses[0]["error"]["message"].lower()
        assert responses[1]["result"]["capabilities"]["tools"] == {}
        assert responses[2]["result"]["isError"] is False
        assert json.loads(responses[4]["result"]["contents"][0]["text"])["done"] is True
        assert responses[5]["error"]["code"] == -32601

    def test_garbage_line_does_not_stop_session(self, todo_server):
        """A parse error is answered and the session continues."""
        stdin = io.StringIO('not json\n{"jsonrpc": "2.0", "id": 1, "method": "initialize"}\n')
        stdout = io.StringIO()
        todo_server.create_stdio_transport(stdin=stdin, stdout=stdout, stderr=io.StringIO()).serve()

        first, second = [json.loads(line) for line in stdout.getvalue().splitlines()]
        assert first["error"]["code"] == -32700
        assert second["id"] == 1


class TestMain:
    """Tests for the command line entry point."""

    def test_serves_until_eof(self, config_file: Path, monkeypatch, capsys):
        """main() answers stdin and exits 0 at EOF."""
        monkeypatch.setattr(
            "sys.stdin",
            io.StringIO(
                '{"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}\n'
                '{"jsonrpc": "2.0", "id": 2, "method": "tools/list"}\n'
            ),
        )

        assert main(["--config", str(config_file)]) == 0

        captured = capsys.readouterr()
        responses = [json.loads(line) for line in captured.out.splitlines()]
        assert responses[0]["result"]["serverInfo"]["name"] == "todo-server"
        assert "todo_complete" in [t["name"] for t in responses[1]["result"]["tools"]]
        assert "[MCP] todo-server 0.1.0 started" in captured.err
        assert "EOF received" in captured.err

    def test_log_flags(self, config_file: Path, monkeypatch, capsys):
        """--log-level and --log-format send JSON operation logs to stderr."""
        monkeypatch.setattr(
            "sys.stdin",
            io.StringIO('{"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}\n'),
        )

        argv = ["--config", str(config_file), "--log-level", "debug", "--log-format", "json"]
        assert main(argv) == 0

        err = capsys.readouterr().err
        entries = [json.loads(line) for line in err.splitlines() if line.startswith("{")]
        assert "Client initialized" in [e["message"] for e in entries]
        assert logging.getLogger(LOGGER_NAME).handlers == []

    def test_missing_config(self, tmp_path: Path, capsys):
        """A missing config exits 1."""
        assert main(["--config", str(tmp_path / "missing.yaml")]) == 1
        assert "Config file not found" in capsys.readouterr().err

    def test_invalid_config(self, tmp_path: Path, capsys):
        """An invalid config exits 1."""
        path = tmp_path / "bad.yaml"
        path.write_text("nouns: {}\n")
        assert main(["--config", str(path)]) == 1

    def test_keyboard_interrupt(self, config_file: Path, monkeypatch, capsys):
        """Ctrl-C exits 130."""

        def interrupt(self):
            raise KeyboardInterrupt

        monkeypatch.setattr("saaskit_mcp.protocol.transport.StdioTransport.serve", interrupt)
        assert main(["--config", str(config_file)]) == 130
        assert "Interrupted" in capsys.readouterr().err

    def test_version(self, capsys):
        """--version prints the package version."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert "saaskit-mcp 0.1.0" in capsys.readouterr().out
