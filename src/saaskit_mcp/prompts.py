"""MCP prompts.

Three kinds of prompt are served:

- ``analyze_<noun_key>`` for every noun, embedding the current records.
- Workflow prompts (``crud_guide_<key>``, ``data_analysis_<key>``, ...) when
  workflows are enabled for the server.
- Custom prompts with ``{{name}}`` placeholders.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from saaskit_mcp.schema import NormalizedSchema, to_mcp_key
from saaskit_mcp.store import DataStore

WORKFLOW_TYPES = (
    "crud_guide",
    "data_analysis",
    "bulk_operations",
    "data_migration",
    "troubleshoot",
    "report_generation",
)

DEFAULT_WORKFLOWS = ("crud_guide", "data_analysis", "bulk_operations", "troubleshoot")

# Prompt name prefix per workflow type
WORKFLOW_PREFIXES = {
    "crud_guide": "crud_guide",
    "data_analysis": "data_analysis",
    "bulk_operations": "bulk_operations",
    "data_migration": "data_migration",
    "troubleshoot": "troubleshoot",
    "report_generation": "report",
}

_ANALYZE_NAME = re.compile(r"^analyze_(.+)$")
_WORKFLOW_NAME = re.compile(
    r"^(crud_guide|data_analysis|bulk_operations|data_migration|troubleshoot|report)_(.+)$"
)


@dataclass
class PromptArgument:
    name: str
    description: str = ""
    required: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PromptArgument:
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            required=bool(data.get("required", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "required": self.required}


@dataclass
class PromptConfig:
    """User-supplied prompt template."""

    description: str
    template: str
    arguments: list[PromptArgument] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | PromptConfig) -> PromptConfig:
        if isinstance(data, PromptConfig):
            return data
        return cls(
            description=data.get("description", ""),
            template=data.get("template", ""),
            arguments=[PromptArgument.from_dict(a) for a in data.get("arguments") or []],
        )


@dataclass
class WorkflowConfig:
    """Which workflow prompts a server exposes."""

    enabled: list[str] = field(default_factory=lambda: list(DEFAULT_WORKFLOWS))
    custom: dict[str, PromptConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | WorkflowConfig) -> WorkflowConfig:
        if isinstance(data, WorkflowConfig):
            return data
        enabled = data.get("enabled")
        unknown = [w for w in enabled or [] if w not in WORKFLOW_TYPES]
        if unknown:
            raise ValueError(f"Unknown workflow prompt types: {', '.join(unknown)}")
        return cls(
            enabled=list(enabled) if enabled is not None else list(DEFAULT_WORKFLOWS),
            custom={
                name: PromptConfig.from_dict(cfg) for name, cfg in (data.get("custom") or {}).items()
            },
        )


@dataclass
class PromptResult:
    """Rendered prompt."""

    messages: list[dict[str, Any]] = field(default_factory=list)
    description: str | None = None
    error: str | None = None

    @classmethod
    def user_text(cls, text: str, description: str) -> PromptResult:
        return cls(
            messages=[{"role": "user", "content": {"type": "text", "text": text}}],
            description=description,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"messages": self.messages}
        if self.description is not None:
            result["description"] = self.description
        if self.error is not None:
            result["error"] = self.error
        return result


def _prompt(name: str, description: str, *arguments: PromptArgument) -> dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "arguments": [a.to_dict() for a in arguments],
    }


def generate_analyze_prompt(noun: str) -> dict[str, Any]:
    return _prompt(f"analyze_{to_mcp_key(noun)}", f"Analyze {noun.lower()} data and provide insights")


def generate_workflow_prompt(workflow: str, noun: str) -> dict[str, Any]:
    """Describe one workflow prompt for a noun."""
    key = to_mcp_key(noun)
    lower = noun.lower()
    name = f"{WORKFLOW_PREFIXES[workflow]}_{key}"

    match workflow:
        case "crud_guide":
            return _prompt(
                name,
                f"Step-by-step guide for {lower} CRUD operations",
                PromptArgument(
                    "operation", "The operation to guide: create, read, update, delete, or list"
                ),
            )
        case "data_analysis":
            return _prompt(
                name,
                f"Comprehensive analysis of {lower} data with statistics and recommendations",
                PromptArgument("focus", "Analysis focus: trends, outliers, patterns, summary, or all"),
                PromptArgument("format", "Output format: text, json, or markdown"),
            )
        case "bulk_operations":
            return _prompt(
                name,
                f"Guide for bulk operations on {lower} records",
                PromptArgument("action", "Bulk action: create, update, delete, or export", True),
                PromptArgument("criteria", "Filter criteria for selecting records (JSON format)"),
            )
        case "data_migration":
            return _prompt(
                name,
                f"Guide for migrating {lower} data between systems",
                PromptArgument("direction", "Migration direction: import or export", True),
                PromptArgument("format", "Data format: json, csv, or yaml"),
            )
        case "troubleshoot":
            return _prompt(
                name,
                f"Troubleshoot issues with {lower} data or operations",
                PromptArgument("issue", "Description of the issue to troubleshoot", True),
                PromptArgument("context", "Additional context about the issue"),
            )
        case "report_generation":
            return _prompt(
                name,
                f"Generate a report on {lower} data",
                PromptArgument("type", "Report type: summary, detailed, comparison, or trend"),
                PromptArgument("timeRange", "Time range for the report: day, week, month, or custom"),
            )
    raise ValueError(f"Unknown workflow prompt type: {workflow}")


def prompt_config_to_mcp(name: str, config: PromptConfig) -> dict[str, Any]:
    return {
        "name": name,
        "description": config.description,
        "arguments": [a.to_dict() for a in config.arguments],
    }


def generate_prompts(
    nouns: dict[str, dict[str, str]],
    prompts: dict[str, PromptConfig] | None = None,
    workflows: WorkflowConfig | None = None,
) -> list[dict[str, Any]]:
    """Generate the full prompt list: analyze, workflow, then custom prompts."""
    result = [generate_analyze_prompt(noun) for noun in nouns]

    if workflows is not None:
        for noun in nouns:
            result.extend(generate_workflow_prompt(w, noun) for w in workflows.enabled)
        result.extend(prompt_config_to_mcp(n, c) for n, c in workflows.custom.items())

    result.extend(prompt_config_to_mcp(n, c) for n, c in (prompts or {}).items())
    return result


def fill_template(template: str, args: dict[str, Any]) -> str:
    """Replace each ``{{name}}`` with the matching argument, verbatim."""
    text = template
    for key, value in args.items():
        text = text.replace("{{" + key + "}}", str(value))
    return text


def _dump(items: Any) -> str:
    return json.dumps(items, indent=2, default=str)


def _field_list(fields: dict[str, str]) -> str:
    return "\n".join(f"  - {name}: {type_}" for name, type_ in fields.items())


class PromptExecutor:
    """Renders prompts by name."""

    def __init__(
        self,
        schema: NormalizedSchema,
        store: DataStore,
        prompts: dict[str, PromptConfig] | None = None,
        workflows: WorkflowConfig | None = None,
    ) -> None:
        self._schema = schema
        self._store = store
        self._prompts = dict(prompts or {})
        self._workflows = workflows
        if workflows is not None:
            # Custom prompts win over same-named workflow extras
            self._prompts = {**workflows.custom, **self._prompts}

    def get_prompt(self, name: str, args: dict[str, Any] | None = None) -> PromptResult:
        """Render a prompt.

        Args:
            name: Prompt name.
            args: Prompt arguments.

        Returns:
            PromptResult; ``error`` is set for unknown prompts and missing
            required arguments.
        """
        args = dict(args or {})

        match = _ANALYZE_NAME.match(name)
        if match:
            noun = self._schema.noun_for_key(match.group(1))
            if noun is not None:
                return self._analyze(noun)

        match = _WORKFLOW_NAME.match(name)
        if match:
            noun = self._schema.noun_for_key(match.group(2))
            if noun is not None:
                return self._workflow(match.group(1), noun, args)

        config = self._prompts.get(name)
        if config is None:
            return PromptResult(error=f"Prompt not found: {name}")

        for argument in config.arguments:
            if argument.required and argument.name not in args:
                return PromptResult(error=f"Missing required argument: {argument.name}")

        return PromptResult.user_text(fill_template(config.template, args), config.description)

    def _analyze(self, noun: str) -> PromptResult:
        lower = noun.lower()
        text = (
            f"Please analyze the following {lower} data and provide insights:\n"
            f"\n"
            f"{_dump(self._store.list(noun))}\n"
            f"\n"
            f"Consider:\n"
            f"1. Patterns and trends in the data\n"
            f"2. Any notable observations\n"
            f"3. Suggestions for improvements or actions"
        )
        return PromptResult.user_text(text, f"Analysis of {lower} data")

    def _workflow(self, prefix: str, noun: str, args: dict[str, Any]) -> PromptResult:
        lower = noun.lower()
        fields = self._schema.nouns[noun]
        items = self._store.list(noun)

        match prefix:
            case "crud_guide":
                text = _crud_guide_text(noun, fields, args.get("operation"))
                description = f"CRUD guide for {lower}"
            case "data_analysis":
                text = _data_analysis_text(noun, items, args.get("focus"), args.get("format"))
                description = f"Data analysis for {lower}"
            case "bulk_operations":
                criteria = args.get("criteria")
                if criteria:
                    # Parsed for validation only; records are not filtered by it yet
                    try:
                        json.loads(criteria)
                    except (TypeError, json.JSONDecodeError) as e:
                        return PromptResult(error=f"Invalid criteria: {e}")
                text = _bulk_operations_text(noun, items, args.get("action"), criteria)
                description = f"Bulk operations guide for {lower}"
            case "data_migration":
                text = _data_migration_text(
                    noun, fields, items, args.get("direction"), args.get("format")
                )
                description = f"Data migration guide for {lower}"
            case "troubleshoot":
                text = _troubleshoot_text(noun, items, args.get("issue"), args.get("context"))
                description = f"Troubleshooting for {lower}"
            case _:
                text = _report_text(noun, items, args.get("type"), args.get("timeRange"))
                description = f"Report for {lower}"

        return PromptResult.user_text(text, description)


def _crud_guide_text(noun: str, fields: dict[str, str], operation: str | None) -> str:
    guide = f'Focus on the "{operation}" operation.' if operation else "Cover all CRUD operations."
    return f"""# CRUD Operations Guide for {noun}

## Schema
{_field_list(fields)}

## Instructions
{guide}

Please provide:
1. Step-by-step instructions for each operation
2. Example API calls or tool invocations
3. Common patterns and best practices
4. Error handling recommendations"""


def _data_analysis_text(
    noun: str, items: list[dict[str, Any]], focus: str | None, output_format: str | None
) -> str:
    second = "Trend analysis over time" if focus == "trends" else "Data distribution patterns"
    third = "Outlier detection and anomalies" if focus == "outliers" else "Notable observations"
    return f"""# Data Analysis: {noun}

## Current Data ({len(items)} records)
{_dump(items)}

## Analysis Focus: {focus or "all aspects"}

Please provide a comprehensive analysis including:
1. Summary statistics
2. {second}
3. {third}
4. Actionable recommendations

Output format: {output_format or "markdown"}"""


def _bulk_operations_text(
    noun: str, items: list[dict[str, Any]], action: str | None, criteria: str | None
) -> str:
    criteria_line = f"## Filter Criteria: {criteria}" if criteria else ""
    return f"""# Bulk Operations: {noun}

## Action: {action or "Not specified"}
## Current Records: {len(items)}
{criteria_line}

## Current Data
{_dump(items)}

Please provide:
1. Step-by-step bulk operation workflow
2. Safety checks and validation steps
3. Rollback strategy if needed
4. Expected outcomes and verification steps"""


def _data_migration_text(
    noun: str,
    fields: dict[str, str],
    items: list[dict[str, Any]],
    direction: str | None,
    data_format: str | None,
) -> str:
    first = (
        "Import validation and mapping guide"
        if direction == "import"
        else "Export format and structure"
    )
    return f"""# Data Migration: {noun}

## Direction: {direction or "export"}
## Format: {data_format or "json"}

## Schema
{_field_list(fields)}

## Sample Data ({len(items)} records)
{_dump(items[:5])}

Please provide:
1. {first}
2. Data transformation requirements
3. Validation checks
4. Migration script template"""


def _troubleshoot_text(
    noun: str, items: list[dict[str, Any]], issue: str | None, context: str | None
) -> str:
    context_section = f"## Additional Context\n{context}" if context else ""
    return f"""# Troubleshooting: {noun}

## Issue
{issue or "General troubleshooting requested"}

{context_section}

## Current State
- Total records: {len(items)}
- Sample data: {_dump(items[:3])}

Please help diagnose:
1. Root cause analysis
2. Common issues and solutions
3. Diagnostic steps
4. Resolution recommendations"""


def _report_text(
    noun: str, items: list[dict[str, Any]], report_type: str | None, time_range: str | None
) -> str:
    third = (
        "Trend analysis and projections" if report_type == "trend" else "Current state overview"
    )
    return f"""# Report: {noun}

## Report Type: {report_type or "summary"}
## Time Range: {time_range or "all time"}

## Data ({len(items)} records)
{_dump(items)}

Please generate a {report_type or "summary"} report including:
1. Executive summary
2. Key metrics and statistics
3. {third}
4. Recommendations and action items"""
