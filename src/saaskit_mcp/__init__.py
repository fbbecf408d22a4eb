"""SaaSkit MCP Server.

Generates MCP tools, resources and prompts from a noun/verb schema and
serves them over JSON-RPC.
"""

__version__ = "0.1.0"

from saaskit_mcp.config import ConfigLoadError, ServerConfig, load_config
from saaskit_mcp.schema import VerbContext, VerbHandler, normalize_schema
from saaskit_mcp.server import MCPServer, MCPServerConfig, generate_mcp_server
from saaskit_mcp.store import DataStore

__all__ = [
    "ConfigLoadError",
    "DataStore",
    "MCPServer",
    "MCPServerConfig",
    "ServerConfig",
    "VerbContext",
    "VerbHandler",
    "__version__",
    "generate_mcp_server",
    "load_config",
    "normalize_schema",
]
