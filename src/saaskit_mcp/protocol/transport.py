"""STDIO transport layer for MCP communication.

Reads newline-delimited JSON-RPC messages from stdin and writes responses to
stdout. Logging goes to stderr to avoid corrupting the protocol stream.
"""

from __future__ import annotations

import sys
from typing import TextIO

from saaskit_mcp.protocol.router import RequestRouter


class StdioTransport:
    """STDIO transport bound to a request router."""

    def __init__(
        self,
        router: RequestRouter,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            router: Router that answers each message.
            stdin: Input stream (defaults to sys.stdin).
            stdout: Output stream (defaults to sys.stdout).
            stderr: Log stream (defaults to sys.stderr).
        """
        self._router = router
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def read_message(self) -> str | None:
        """Read the next non-empty line.

        Returns:
            Message string (stripped), or None on EOF or a read failure.
        """
        while True:
            try:
                line = self._stdin.readline()
            except (OSError, ValueError):
                return None

            if not line:
                return None

            line = line.strip()
            if line:
                return line

    def write_message(self, message: str) -> None:
        self._stdout.write(message + "\n")
        self._stdout.flush()

    def log(self, message: str) -> None:
        """Write a log message to stderr."""
        self._stderr.write(f"[MCP] {message}\n")
        self._stderr.flush()

    def handle_message(self, message: str) -> str | None:
        return self._router.handle_message(message)

    def serve(self) -> None:
        """Answer messages until EOF or ``close()``."""
        self._running = True
        while self._running:
            message = self.read_message()
            if message is None:
                self.log("EOF received, shutting down")
                break

            response = self.handle_message(message)
            if response is not None:
                self.write_message(response)
        self._running = False

    def close(self) -> None:
        self._running = False
