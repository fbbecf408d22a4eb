"""Server configuration loader.

Loads the noun/verb schema and server settings from a YAML file.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from saaskit_mcp.log import LOG_FORMATS, LOG_LEVELS
from saaskit_mcp.prompts import PromptConfig, WorkflowConfig
from saaskit_mcp.resources import DEFAULT_URI_SCHEME

DEFAULT_SERVER_INFO = {"name": "saaskit-mcp-server", "version": "1.0.0"}


class ConfigLoadError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def expand_env_vars(value: str) -> str:
    """Expand environment variables in a string.

    Supports ${VAR_NAME} syntax. Unknown variables are left unchanged.

    Args:
        value: String potentially containing environment variable references.

    Returns:
        String with known environment variables expanded.
    """
    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if var_name == "HOME":
            return os.path.expanduser("~")
        return match.group(0)

    return pattern.sub(replacer, value)


@dataclass
class ServerConfig:
    """Server configuration.

    ``verbs`` holds verb names only; handlers are supplied in code or get
    placeholder implementations.
    """

    version: str
    server_info: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SERVER_INFO))
    uri_scheme: str = DEFAULT_URI_SCHEME
    nouns: dict[str, dict[str, str]] = field(default_factory=dict)
    verbs: dict[str, list[str]] = field(default_factory=dict)
    app_config: dict[str, Any] | None = None
    workflows: WorkflowConfig | None = None
    prompts: dict[str, PromptConfig] = field(default_factory=dict)
    audit_log_file: str = ""
    log_level: str = "info"
    log_format: str = "text"

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> ServerConfig:
        """Create a ServerConfig from a configuration dictionary.

        Args:
            config: Dictionary parsed from YAML configuration.

        Returns:
            ServerConfig instance with all settings populated.

        Raises:
            ConfigLoadError: If a section has the wrong shape.
        """
        server = config.get("server") or {}
        audit = config.get("audit") or {}
        logging_section = config.get("logging") or {}

        nouns = config.get("nouns") or {}
        if not isinstance(nouns, dict) or not all(isinstance(f, dict) for f in nouns.values()):
            raise ConfigLoadError("'nouns' must map noun names to field mappings")

        verbs = config.get("verbs") or {}
        if not isinstance(verbs, dict) or not all(isinstance(v, list) for v in verbs.values()):
            raise ConfigLoadError("'verbs' must map noun names to lists of verb names")

        log_level = str(logging_section.get("level", "info")).lower()
        if log_level not in LOG_LEVELS:
            raise ConfigLoadError(f"Unknown log level: {log_level}")
        log_format = str(logging_section.get("format", "text")).lower()
        if log_format not in LOG_FORMATS:
            raise ConfigLoadError(f"Unknown log format: {log_format}")

        app_config = config.get("app_config")
        if app_config is not None and not isinstance(app_config, dict):
            raise ConfigLoadError("'app_config' must be a mapping")

        try:
            workflows_section = config.get("workflows")
            workflows = (
                WorkflowConfig.from_dict(workflows_section) if workflows_section is not None else None
            )
            prompts = {
                name: PromptConfig.from_dict(prompt)
                for name, prompt in (config.get("prompts") or {}).items()
            }
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ConfigLoadError(f"Invalid prompt configuration: {e}") from e

        return cls(
            version=str(config.get("version", "")),
            server_info={
                "name": server.get("name", DEFAULT_SERVER_INFO["name"]),
                "version": str(server.get("version", DEFAULT_SERVER_INFO["version"])),
            },
            uri_scheme=config.get("uri_scheme", DEFAULT_URI_SCHEME),
            nouns={noun: {k: str(v) for k, v in fields.items()} for noun, fields in nouns.items()},
            verbs={noun: [str(v) for v in names] for noun, names in verbs.items()},
            app_config=app_config,
            workflows=workflows,
            prompts=prompts,
            audit_log_file=expand_env_vars(audit.get("log_file", "")),
            log_level=log_level,
            log_format=log_format,
        )


def load_config(path: Path) -> ServerConfig:
    """Load server configuration from a YAML file.

    Args:
        path: Path to the configuration YAML file.

    Returns:
        ServerConfig instance.

    Raises:
        ConfigLoadError: If the file cannot be found, parsed, or validated.
    """
    if not path.exists():
        raise ConfigLoadError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse config YAML: {e}") from e

    if not isinstance(config, dict):
        raise ConfigLoadError("Config must be a YAML mapping")

    if "version" not in config:
        raise ConfigLoadError("Config must include 'version' field")

    return ServerConfig.from_dict(config)
