"""Sampling request construction.

Builds parameters for the MCP ``sampling/createMessage`` request, which a
server sends to ask the client's model for a completion. ``ContextBuilder``
renders tools, resources, prompts and data into one markdown message; the
``create_*_request`` presets combine it with the builder for common tasks.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

DEFAULT_MAX_TOKENS = 1000

CONTEXT_SCOPES = ("none", "thisServer", "allServers")

ANALYSIS_TYPES = {
    "summary": "Provide a concise summary of the key insights from this data.",
    "trends": "Identify and explain any trends, patterns, or changes over time.",
    "anomalies": "Detect and explain any outliers, anomalies, or unusual patterns.",
    "comparison": "Compare and contrast the different elements or categories in the data.",
}

COORDINATION_STYLES = {
    "sequential": "Coordinate agents to work one after another, passing results to the next.",
    "parallel": "Divide the task so agents can work simultaneously on different parts.",
    "hierarchical": "Assign a lead agent to coordinate and delegate to other agents.",
}


def text_message(role: str, text: str) -> dict[str, Any]:
    if role not in ("user", "assistant"):
        raise ValueError(f"Invalid message role: {role}")
    return {"role": role, "content": {"type": "text", "text": text}}


def create_sampling_request(
    messages: list[dict[str, Any]],
    max_tokens: int | None = None,
    stop_sequences: list[str] | None = None,
    temperature: float | None = None,
    model_preferences: dict[str, Any] | None = None,
    system_prompt: str | None = None,
    include_context: str | None = None,
) -> dict[str, Any]:
    """Create sampling request parameters.

    Unset optional fields are omitted from the result.

    Args:
        messages: Conversation messages.
        max_tokens: Completion budget (default 1000).
        stop_sequences: Sequences that end generation.
        temperature: Sampling temperature.
        model_preferences: ``hints`` and cost/speed/intelligence priorities.
        system_prompt: System prompt for the client model.
        include_context: One of ``none``, ``thisServer``, ``allServers``.

    Returns:
        Request parameters in MCP wire format.
    """
    if include_context is not None and include_context not in CONTEXT_SCOPES:
        raise ValueError(f"Invalid context scope: {include_context}")

    request: dict[str, Any] = {
        "messages": list(messages),
        "maxTokens": max_tokens or DEFAULT_MAX_TOKENS,
    }
    if stop_sequences:
        request["stopSequences"] = list(stop_sequences)
    if temperature is not None:
        request["temperature"] = temperature
    if model_preferences:
        request["modelPreferences"] = dict(model_preferences)
    if system_prompt:
        request["systemPrompt"] = system_prompt
    if include_context:
        request["includeContext"] = include_context
    return request


class SamplingRequestBuilder:
    """Fluent builder for sampling requests."""

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float | None = None,
        model_hints: list[str] | None = None,
        include_context: str | None = None,
    ) -> None:
        self._messages: list[dict[str, Any]] = []
        self._max_tokens = max_tokens
        self._stop_sequences: list[str] = []
        self._temperature = temperature
        self._model_hints = list(model_hints or [])
        self._priorities: dict[str, float] = {}
        self._system_prompt: str | None = None
        self._include_context = include_context

    def user(self, text: str) -> SamplingRequestBuilder:
        self._messages.append(text_message("user", text))
        return self

    def assistant(self, text: str) -> SamplingRequestBuilder:
        self._messages.append(text_message("assistant", text))
        return self

    def user_with_image(self, text: str, data: str, mime_type: str) -> SamplingRequestBuilder:
        """Append a text message followed by a base64 image message.

        Each sampling message holds a single content item, so the image
        travels as its own user turn.
        """
        self._messages.append(text_message("user", text))
        self._messages.append(
            {"role": "user", "content": {"type": "image", "data": data, "mimeType": mime_type}}
        )
        return self

    def with_conversation(self, messages: list[dict[str, str]]) -> SamplingRequestBuilder:
        """Append ``{"role", "content"}`` turns as text messages."""
        for message in messages:
            self._messages.append(text_message(message["role"], message["content"]))
        return self

    def with_max_tokens(self, tokens: int) -> SamplingRequestBuilder:
        self._max_tokens = tokens
        return self

    def with_stop_sequences(self, sequences: list[str]) -> SamplingRequestBuilder:
        self._stop_sequences = list(sequences)
        return self

    def with_temperature(self, temperature: float) -> SamplingRequestBuilder:
        self._temperature = temperature
        return self

    def with_model_hints(self, *hints: str) -> SamplingRequestBuilder:
        self._model_hints = list(hints)
        return self

    def with_priorities(
        self,
        cost: float | None = None,
        speed: float | None = None,
        intelligence: float | None = None,
    ) -> SamplingRequestBuilder:
        for key, value in (
            ("costPriority", cost),
            ("speedPriority", speed),
            ("intelligencePriority", intelligence),
        ):
            if value is not None:
                if not 0 <= value <= 1:
                    raise ValueError(f"{key} must be between 0 and 1")
                self._priorities[key] = value
            else:
                self._priorities.pop(key, None)
        return self

    def with_system_prompt(self, prompt: str) -> SamplingRequestBuilder:
        self._system_prompt = prompt
        return self

    def with_context(self, scope: str) -> SamplingRequestBuilder:
        self._include_context = scope
        return self

    def build(self) -> dict[str, Any]:
        preferences: dict[str, Any] = {}
        if self._model_hints:
            preferences["hints"] = [{"name": hint} for hint in self._model_hints]
        preferences.update(self._priorities)

        return create_sampling_request(
            messages=self._messages,
            max_tokens=self._max_tokens,
            stop_sequences=self._stop_sequences,
            temperature=self._temperature,
            model_preferences=preferences or None,
            system_prompt=self._system_prompt,
            include_context=self._include_context,
        )


class ContextBuilder:
    """Collects markdown sections describing what the client model can use.

    Free text, data and instructions keep the order they were added in; the
    tool, resource and prompt listings follow them.
    """

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._resources: list[Mapping[str, Any]] = []
        self._tools: list[Mapping[str, Any]] = []
        self._prompts: list[Mapping[str, Any]] = []

    def add_text(self, text: str, label: str | None = None) -> ContextBuilder:
        self._parts.append(f"## {label}\n{text}" if label else text)
        return self

    def add_data(self, data: Any, label: str | None = None) -> ContextBuilder:
        block = f"```json\n{json.dumps(data, indent=2, default=str)}\n```"
        self._parts.append(f"## {label}\n{block}" if label else block)
        return self

    def add_instructions(self, instructions: Iterable[str]) -> ContextBuilder:
        lines = [f"{i}. {instruction}" for i, instruction in enumerate(instructions, 1)]
        self._parts.append("## Instructions\n" + "\n".join(lines))
        return self

    def add_resource(self, resource: Mapping[str, Any]) -> ContextBuilder:
        self._resources.append(resource)
        return self

    def add_resources(self, resources: Iterable[Mapping[str, Any]]) -> ContextBuilder:
        self._resources.extend(resources)
        return self

    def add_tool(self, tool: Mapping[str, Any]) -> ContextBuilder:
        self._tools.append(tool)
        return self

    def add_tools(self, tools: Iterable[Mapping[str, Any]]) -> ContextBuilder:
        self._tools.extend(tools)
        return self

    def add_prompt(self, prompt: Mapping[str, Any]) -> ContextBuilder:
        self._prompts.append(prompt)
        return self

    def build(self) -> str:
        sections = list(self._parts)

        if self._resources:
            lines = []
            for resource in self._resources:
                line = f"- **{resource['name']}**: {resource['uri']} ({resource.get('mimeType')})"
                if resource.get("description"):
                    line += f"\n  {resource['description']}"
                lines.append(line)
            sections.append("## Available Resources\n" + "\n".join(lines))

        if self._tools:
            lines = []
            for tool in self._tools:
                line = f"- **{tool['name']}**: {tool.get('description', '')}"
                properties = (tool.get("inputSchema") or {}).get("properties") or {}
                for name, prop in properties.items():
                    line += f"\n    - {name}: {prop.get('type')}"
                lines.append(line)
            sections.append("## Available Tools\n" + "\n".join(lines))

        if self._prompts:
            lines = []
            for prompt in self._prompts:
                line = f"- **{prompt['name']}**: {prompt.get('description', '')}"
                for argument in prompt.get("arguments") or []:
                    required = " (required)" if argument.get("required") else ""
                    description = argument.get("description", "")
                    line += f"\n    - {argument['name']}{required}: {description}"
                lines.append(line)
            sections.append("## Available Prompts\n" + "\n".join(lines))

        return "\n\n".join(sections)


def create_simple_sampling_request(
    message: str,
    max_tokens: int | None = None,
    temperature: float | None = None,
    model_hints: list[str] | None = None,
    system_prompt: str | None = None,
) -> dict[str, Any]:
    """Single user message with optional defaults."""
    builder = SamplingRequestBuilder(
        max_tokens=max_tokens or DEFAULT_MAX_TOKENS,
        temperature=temperature,
        model_hints=model_hints,
    )
    if system_prompt:
        builder.with_system_prompt(system_prompt)
    return builder.user(message).build()


def create_tool_assisted_request(
    task: str,
    tools: Iterable[Mapping[str, Any]],
    max_tokens: int | None = None,
    temperature: float | None = None,
    additional_context: str | None = None,
) -> dict[str, Any]:
    """Ask the client model to plan a task with the listed tools.

    Args:
        task: What needs doing.
        tools: Tool definitions in ``tools/list`` format.
        max_tokens: Completion budget (default 2000).
        temperature: Sampling temperature.
        additional_context: Extra notes shown after the tool list.

    Returns:
        Request parameters in MCP wire format.
    """
    context = ContextBuilder().add_text(task, "Task").add_tools(tools)
    if additional_context:
        context.add_text(additional_context, "Additional Context")
    context.add_instructions(
        [
            "Analyze the task and determine which tools are needed",
            "Execute the necessary tools in the correct order",
            "Report the results clearly",
        ]
    )

    builder = SamplingRequestBuilder(max_tokens=max_tokens or 2000, temperature=temperature)
    return builder.user(context.build()).build()


def create_data_analysis_request(
    data: Any,
    analysis_type: str,
    max_tokens: int | None = None,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Ask the client model to analyze data.

    Args:
        data: JSON-serializable data to analyze.
        analysis_type: One of ``summary``, ``trends``, ``anomalies``, ``comparison``.
        max_tokens: Completion budget (default 2000).
        output_format: ``text``, ``json`` or ``markdown``.

    Returns:
        Request parameters with a low temperature and an analyst system prompt.

    Raises:
        ValueError: If the analysis type is unknown.
    """
    if analysis_type not in ANALYSIS_TYPES:
        raise ValueError(f"Unknown analysis type: {analysis_type}")

    context = (
        ContextBuilder()
        .add_data(data, "Data")
        .add_text(ANALYSIS_TYPES[analysis_type], "Analysis Focus")
        .add_instructions(
            [
                f"Output format: {output_format}",
                "Be specific and cite data points when making claims",
                "Highlight actionable insights",
            ]
        )
    )

    return (
        SamplingRequestBuilder(max_tokens=max_tokens or 2000, temperature=0.3)
        .with_system_prompt("You are a data analyst. Provide clear, actionable insights.")
        .user(context.build())
        .build()
    )


def create_agent_coordination_request(
    agents: Iterable[Mapping[str, Any]],
    task: str,
    max_tokens: int | None = None,
    coordination_style: str = "sequential",
) -> dict[str, Any]:
    """Ask the client model to plan a task across several agents.

    Args:
        agents: ``{"name", "role", "capabilities"}`` mappings.
        task: What needs doing.
        max_tokens: Completion budget (default 3000).
        coordination_style: ``sequential``, ``parallel`` or ``hierarchical``.

    Returns:
        Request parameters in MCP wire format.

    Raises:
        ValueError: If the coordination style is unknown.
    """
    if coordination_style not in COORDINATION_STYLES:
        raise ValueError(f"Unknown coordination style: {coordination_style}")

    agent_list = "\n".join(
        f"- **{agent['name']}** ({agent['role']}): {', '.join(agent.get('capabilities') or [])}"
        for agent in agents
    )
    context = (
        ContextBuilder()
        .add_text(task, "Task")
        .add_text(agent_list, "Available Agents")
        .add_text(COORDINATION_STYLES[coordination_style], "Coordination Strategy")
        .add_instructions(
            [
                "Create a step-by-step execution plan",
                "Assign specific responsibilities to each agent",
                "Define success criteria and verification steps",
            ]
        )
    )

    return (
        SamplingRequestBuilder(max_tokens=max_tokens or 3000, temperature=0.5)
        .with_system_prompt(
            "You are a coordination agent responsible for orchestrating multi-agent workflows."
        )
        .user(context.build())
        .build()
    )
