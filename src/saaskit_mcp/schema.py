"""Noun/verb schema normalization.

Accepts either the explicit ``{noun: {field: type}}`` / ``{noun: {verb: handler}}``
shape or the coarser app config shape (``{"nouns": [...], "verbs": {noun: [...]}}``)
and produces the canonical schema every engine is built from.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from saaskit_mcp.store import NounAccessor

# Fields given to nouns declared by name only
DEFAULT_FIELDS = {"id": "string", "createdAt": "string", "updatedAt": "string"}

# Relationship operators used by the wider framework's field DSL
RELATIONSHIP_OPERATORS = ("->", "~>", "<-", "<~")

_UPPERCASE = re.compile(r"([A-Z])")


def to_mcp_key(name: str) -> str:
    """Convert a PascalCase noun name to a snake_case key.

    Args:
        name: Noun name (e.g. "TodoItem").

    Returns:
        Key used in tool names, resource URIs and prompt names (e.g. "todo_item").
    """
    key = _UPPERCASE.sub(r"_\1", name).lower()
    return key[1:] if key.startswith("_") else key


def from_mcp_key(key: str) -> str:
    """Convert a snake_case key back to a PascalCase noun name."""
    return "".join(part[:1].upper() + part[1:] for part in key.split("_"))


def field_base_type(type_string: str) -> str:
    """Reduce a field type string to its primitive type.

    Optional markers (trailing ``?``) are dropped and relationship fields
    collapse to ``string`` since they are stored as references.
    """
    value = type_string.strip()
    if any(op in value for op in RELATIONSHIP_OPERATORS):
        return "string"
    return value.rstrip("?").strip() or "string"


@dataclass
class VerbContext:
    """Argument passed to every verb handler."""

    noun: str
    id: str | None
    input: dict[str, Any]
    db: Mapping[str, NounAccessor] = field(default_factory=dict)


class VerbHandler:
    """Uniform synchronous wrapper around a user-supplied verb function.

    Plain functions, coroutine functions and plain functions returning an
    awaitable are all accepted; awaitables are driven to completion here so
    the tool engine only ever sees a value or an exception.
    """

    def __init__(self, func: Callable[[VerbContext], Any]) -> None:
        self._func = func

    @classmethod
    def wrap(cls, func: Callable[[VerbContext], Any] | VerbHandler) -> VerbHandler:
        if isinstance(func, VerbHandler):
            return func
        if not callable(func):
            raise TypeError(f"Verb handler must be callable, got {type(func).__name__}")
        return cls(func)

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self._func)

    def invoke(self, context: VerbContext) -> Any:
        """Run the handler and return its (awaited) result.

        When called from inside a running event loop the awaitable is driven
        on a worker thread with its own loop, so the caller's loop is only
        blocked, never re-entered.
        """
        result = self._func(context)
        if not inspect.isawaitable(result):
            return result

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(_await(result))

        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, _await(result)).result()


async def _await(awaitable: Any) -> Any:
    return await awaitable


def _placeholder_handler(noun: str, verb: str) -> VerbHandler:
    def handler(ctx: VerbContext) -> dict[str, Any]:
        return {"success": True, "verb": verb, "noun": noun, "id": ctx.id}

    return VerbHandler(handler)


@dataclass
class NormalizedSchema:
    """Canonical noun and verb definitions."""

    nouns: dict[str, dict[str, str]] = field(default_factory=dict)
    verbs: dict[str, dict[str, VerbHandler]] = field(default_factory=dict)

    def noun_for_key(self, key: str) -> str | None:
        """Resolve a snake_case key to its declared noun name."""
        for noun in self.nouns:
            if to_mcp_key(noun) == key:
                return noun
        return None

    def custom_verbs(self, noun: str) -> dict[str, VerbHandler]:
        return self.verbs.get(noun, {})


def normalize_schema(
    nouns: Mapping[str, Mapping[str, str]] | None = None,
    verbs: Mapping[str, Mapping[str, Any]] | None = None,
    app_config: Mapping[str, Any] | None = None,
) -> NormalizedSchema:
    """Build the canonical schema from either supported input shape.

    Args:
        nouns: Explicit noun field definitions.
        verbs: Explicit verb handlers per noun.
        app_config: Coarse shape with noun names and verb name lists. Its
            nouns replace ``nouns`` when given; handlers in ``verbs`` still
            replace the placeholders it synthesizes.

    Returns:
        NormalizedSchema with handlers adapted to VerbHandler.
    """
    if app_config is not None:
        normalized = _normalize_app_config(app_config)
    else:
        normalized = NormalizedSchema()
        for noun, fields in (nouns or {}).items():
            normalized.nouns[noun] = {str(k): str(v) for k, v in (fields or {}).items()}

    for noun, handlers in (verbs or {}).items():
        if not isinstance(handlers, Mapping):
            continue
        noun_verbs = normalized.verbs.setdefault(noun, {})
        for verb, handler in handlers.items():
            noun_verbs[verb] = VerbHandler.wrap(handler)

    return normalized


def placeholder_verbs(verb_names: Mapping[str, Any]) -> dict[str, dict[str, VerbHandler]]:
    """Give every named verb a handler that echoes its call without touching storage.

    Entries whose value is not a list of names are skipped.
    """
    verbs: dict[str, dict[str, VerbHandler]] = {}
    for noun, names in verb_names.items():
        if not isinstance(names, list | tuple):
            continue
        verbs[noun] = {
            verb: _placeholder_handler(noun, verb) for verb in names if isinstance(verb, str)
        }
    return verbs


def _normalize_app_config(app_config: Mapping[str, Any]) -> NormalizedSchema:
    normalized = NormalizedSchema()

    for noun in app_config.get("nouns") or []:
        normalized.nouns[noun] = dict(DEFAULT_FIELDS)

    normalized.verbs = placeholder_verbs(app_config.get("verbs") or {})
    return normalized
