"""SaaSkit MCP Server - command line entry point.

Serves a schema-driven MCP server over stdio.

================================================================================
CONFIGURATION
================================================================================

The server is described by a YAML file (see config/server.yaml):

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

Every noun gets create/get/update/delete/list tools, a collection resource,
an item resource template and an analyze prompt. Verbs listed in YAML get
placeholder handlers; to run real code, build the server in Python instead:

    from saaskit_mcp import MCPServer, load_config

    def complete(ctx):
        return ctx.db["Todo"].update(ctx.id, {"done": True})

    server = MCPServer.from_config(load_config(path), verbs={"Todo": {"complete": complete}})
    server.create_stdio_transport().serve()

================================================================================
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from saaskit_mcp import __version__
from saaskit_mcp.config import ConfigLoadError, load_config
from saaskit_mcp.log import LOG_FORMATS, LOG_LEVELS, LOGGER_NAME, configure_logging
from saaskit_mcp.server import MCPServer


def main(argv: list[str] | None = None) -> int:
    """Run the MCP server.

    Returns:
        Exit code (0 on EOF, 1 on configuration errors, 130 on interrupt).
    """
    parser = argparse.ArgumentParser(
        prog="saaskit-mcp",
        description="SaaSkit MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config/server.yaml"),
        help="Path to server configuration YAML file (default: config/server.yaml)",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"saaskit-mcp {__version__}",
    )
    parser.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS),
        help="Minimum level for operation logs on stderr (default: from config, else info)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        help="Operation log format (default: from config, else text)",
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        server = MCPServer.from_config(config)
    except (ConfigLoadError, OSError, ValueError) as e:
        print(f"Error loading server: {e}", file=sys.stderr)
        return 1

    handler = configure_logging(
        args.log_level or config.log_level, args.log_format or config.log_format
    )
    try:
        return _serve(server, args.config)
    finally:
        logging.getLogger(LOGGER_NAME).removeHandler(handler)


def _serve(server: MCPServer, config_path: Path) -> int:
    with server:
        transport = server.create_stdio_transport()
        info = server.get_server_info()
        transport.log(f"{info['name']} {info['version']} started")
        transport.log(f"Config loaded from: {config_path}")
        transport.log(
            f"Serving {len(server.list_tools())} tools, "
            f"{len(server.list_resources())} resources, "
            f"{len(server.list_prompts())} prompts"
        )

        try:
            transport.serve()
        except KeyboardInterrupt:
            transport.log("Interrupted, shutting down")
            return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
