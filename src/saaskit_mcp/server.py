"""MCP Server facade.

Integrates the schema, data store and tool/resource/prompt engines into one
server object. Callers either use its methods directly or talk JSON-RPC to it
through ``create_router()`` / ``create_stdio_transport()``.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

from saaskit_mcp.audit import AuditLogger
from saaskit_mcp.config import DEFAULT_SERVER_INFO, ServerConfig
from saaskit_mcp.log import LOGGER_NAME, LogCategory, MCPLogger
from saaskit_mcp.prompts import PromptConfig, PromptExecutor, WorkflowConfig, generate_prompts
from saaskit_mcp.protocol.lifecycle import MCP_PROTOCOL_VERSION
from saaskit_mcp.protocol.router import RequestRouter
from saaskit_mcp.protocol.transport import StdioTransport
from saaskit_mcp.resources import DEFAULT_URI_SCHEME, ResourceReader, generate_resources
from saaskit_mcp.sampling import create_sampling_request, create_tool_assisted_request
from saaskit_mcp.schema import NormalizedSchema, normalize_schema, placeholder_verbs
from saaskit_mcp.store import DataStore
from saaskit_mcp.tools.dispatcher import ToolDispatcher
from saaskit_mcp.tools.generator import generate_tools


def _prompt_configs(prompts: Mapping[str, Any] | None) -> dict[str, PromptConfig]:
    return {name: PromptConfig.from_dict(cfg) for name, cfg in (prompts or {}).items()}


def _workflow_config(workflows: Any) -> WorkflowConfig | None:
    if workflows is None:
        return None
    return WorkflowConfig.from_dict(workflows)


class MCPServer:
    """Schema-driven MCP server.

    Tools, resources and prompts are derived from the noun/verb schema once
    at construction; records live in an in-memory store owned by the server.
    """

    def __init__(
        self,
        nouns: Mapping[str, Mapping[str, str]] | None = None,
        verbs: Mapping[str, Mapping[str, Any]] | None = None,
        prompts: Mapping[str, Any] | None = None,
        server_info: Mapping[str, str] | None = None,
        uri_scheme: str | None = None,
        app_config: Mapping[str, Any] | None = None,
        workflows: WorkflowConfig | Mapping[str, Any] | None = None,
        audit_logger: AuditLogger | None = None,
        logger: MCPLogger | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            nouns: Noun name to ``{field: type}`` mapping.
            verbs: Noun name to ``{verb: handler}`` mapping.
            prompts: Custom prompts as ``PromptConfig`` or plain dicts.
            server_info: ``name`` and ``version`` reported on initialize.
            uri_scheme: Scheme for resource URIs (default ``saaskit``).
            app_config: Coarse schema shape; overrides ``nouns``/``verbs``.
            workflows: Workflow prompt selection.
            audit_logger: Optional audit trail for tool, resource and prompt calls.
            logger: Operational logger (default: one named after the server).
        """
        self._schema: NormalizedSchema = normalize_schema(nouns, verbs, app_config)
        self._server_info = dict(server_info or DEFAULT_SERVER_INFO)
        self._uri_scheme = uri_scheme or DEFAULT_URI_SCHEME
        self._prompts = _prompt_configs(prompts)
        self._workflows = _workflow_config(workflows)
        self._audit_logger = audit_logger
        self._logger = logger or MCPLogger(name=f"{LOGGER_NAME}.{self._server_info['name']}")

        self._store = DataStore(self._schema.nouns)
        self._dispatcher = ToolDispatcher(self._schema, self._store)
        self._resources, self._resource_templates = generate_resources(
            self._schema.nouns, self._uri_scheme
        )
        self._resource_reader = ResourceReader(self._store, self._schema, self._uri_scheme)
        self._prompt_list = generate_prompts(self._schema.nouns, self._prompts, self._workflows)
        self._prompt_executor = PromptExecutor(
            self._schema, self._store, self._prompts, self._workflows
        )
        self._logger.debug(
            "Server created",
            data={
                "nouns": list(self._schema.nouns),
                "tools": len(self._dispatcher.list_tools()),
                "prompts": len(self._prompt_list),
            },
        )

    @classmethod
    def from_config(
        cls,
        config: ServerConfig,
        verbs: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> MCPServer:
        """Create a server from a loaded configuration.

        Verb names from the config get placeholder handlers; handlers passed
        in ``verbs`` replace them.

        Args:
            config: Loaded server configuration.
            verbs: Handlers supplied in code.

        Returns:
            Configured MCPServer.
        """
        merged = placeholder_verbs(config.verbs)
        for noun, handlers in (verbs or {}).items():
            merged.setdefault(noun, {}).update(handlers)

        audit_logger = AuditLogger(Path(config.audit_log_file)) if config.audit_log_file else None

        return cls(
            nouns=config.nouns,
            verbs=merged,
            prompts=config.prompts,
            server_info=config.server_info,
            uri_scheme=config.uri_scheme,
            app_config=config.app_config,
            workflows=config.workflows,
            audit_logger=audit_logger,
        )

    @property
    def logger(self) -> MCPLogger:
        return self._logger

    @property
    def store(self) -> DataStore:
        return self._store

    @property
    def schema(self) -> NormalizedSchema:
        return self._schema

    @property
    def uri_scheme(self) -> str:
        return self._uri_scheme

    def get_server_info(self) -> dict[str, str]:
        return dict(self._server_info)

    def get_protocol_version(self) -> str:
        return MCP_PROTOCOL_VERSION

    def get_capabilities(self) -> dict[str, Any]:
        return {"tools": True, "resources": True, "prompts": True, "sampling": {}}

    # Tools

    def list_tools(self) -> list[dict[str, Any]]:
        return self._dispatcher.list_tools()

    def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Call a tool by name.

        Never raises; failures come back with ``isError`` set.

        Args:
            name: Tool name, e.g. ``todo_create``.
            arguments: Tool arguments.

        Returns:
            Tool result in MCP wire format.
        """
        arguments = arguments or {}
        request_id = str(uuid.uuid4())
        if self._audit_logger:
            self._audit_logger.log_request(request_id, name, arguments)

        with self._logger.request_context(request_id):
            self._logger.debug(f"Calling tool {name}", {"arguments": arguments}, LogCategory.TOOLS)
            start = time.perf_counter()
            result = self._dispatcher.call_tool(name, arguments)
            duration_ms = (time.perf_counter() - start) * 1000

            if result.is_error:
                self._logger.warning(
                    f"Tool {name} returned an error",
                    {"content": result.content},
                    LogCategory.TOOLS,
                )
            self._logger.log(
                logging.DEBUG,
                f"Tool {name} finished",
                category=LogCategory.TOOLS,
                duration_ms=round(duration_ms, 3),
            )

        if self._audit_logger:
            status = "error" if result.is_error else "success"
            self._audit_logger.log_response(request_id, status, duration_ms)
        return result.to_dict()

    # Resources

    def list_resources(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self._resources]

    def list_resource_templates(self) -> list[dict[str, Any]]:
        return [dict(t) for t in self._resource_templates]

    def read_resource(self, uri: str) -> dict[str, Any]:
        result = self._resource_reader.read(uri)
        if result.error:
            self._logger.warning(
                f"Resource read failed: {result.error}", {"uri": uri}, LogCategory.RESOURCES
            )
        else:
            self._logger.debug(f"Read resource {uri}", category=LogCategory.RESOURCES)
        if self._audit_logger:
            self._audit_logger.log_resource_read(uri, result.error)
        return result.to_dict()

    # Prompts

    def list_prompts(self) -> list[dict[str, Any]]:
        return [dict(p) for p in self._prompt_list]

    def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        result = self._prompt_executor.get_prompt(name, arguments)
        if result.error:
            self._logger.warning(
                f"Prompt {name} failed: {result.error}", category=LogCategory.PROMPTS
            )
        else:
            self._logger.debug(f"Rendered prompt {name}", category=LogCategory.PROMPTS)
        if self._audit_logger:
            self._audit_logger.log_prompt_get(name, result.error)
        return result.to_dict()

    # Sampling

    def create_sampling_request(
        self,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        **options: Any,
    ) -> dict[str, Any]:
        """Build ``sampling/createMessage`` parameters.

        Keyword options are passed through to ``create_sampling_request``.
        """
        return create_sampling_request(messages, max_tokens=max_tokens, **options)

    def create_tool_assisted_request(self, task: str, **options: Any) -> dict[str, Any]:
        """Sampling request asking the client model to plan ``task`` with this server's tools."""
        self._logger.debug(f"Building tool-assisted request: {task}", category=LogCategory.SAMPLING)
        return create_tool_assisted_request(task, self.list_tools(), **options)

    # Transport

    def create_router(self) -> RequestRouter:
        """Create a router with its own lifecycle state."""
        return RequestRouter(self)

    def create_stdio_transport(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> StdioTransport:
        return StdioTransport(self.create_router(), stdin=stdin, stdout=stdout, stderr=stderr)

    def close(self) -> None:
        """Flush and close the audit log."""
        if self._audit_logger:
            self._audit_logger.close()

    def __enter__(self) -> MCPServer:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


@dataclass
class MCPServerConfig:
    """Static description of what a server would expose."""

    server_info: dict[str, str]
    tools: list[dict[str, Any]] = field(default_factory=list)
    resources: list[dict[str, Any]] = field(default_factory=list)
    resource_templates: list[dict[str, Any]] = field(default_factory=list)
    prompts: list[dict[str, Any]] = field(default_factory=list)
    uri_scheme: str = DEFAULT_URI_SCHEME


def generate_mcp_server(
    nouns: Mapping[str, Mapping[str, str]] | None = None,
    verbs: Mapping[str, Mapping[str, Any]] | None = None,
    prompts: Mapping[str, Any] | None = None,
    server_info: Mapping[str, str] | None = None,
    uri_scheme: str | None = None,
) -> MCPServerConfig:
    """Describe the tools, resources and prompts for a schema without a store."""
    schema = normalize_schema(nouns, verbs)
    scheme = uri_scheme or DEFAULT_URI_SCHEME
    resources, templates = generate_resources(schema.nouns, scheme)

    return MCPServerConfig(
        server_info=dict(server_info or DEFAULT_SERVER_INFO),
        tools=[tool.to_dict() for tool in generate_tools(schema)],
        resources=resources,
        resource_templates=templates,
        prompts=generate_prompts(schema.nouns, _prompt_configs(prompts)),
        uri_scheme=scheme,
    )
