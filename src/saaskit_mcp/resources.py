"""MCP resources: one collection and one item template per noun.

URIs take the form ``<scheme>://<noun_key>[/<id>][?<query>]``. Collection
reads accept ``limit``/``offset`` for paging unless the noun declares a field
of that name; every other query parameter is an exact-match filter after type
coercion.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.parse import parse_qsl

from saaskit_mcp.schema import NormalizedSchema, to_mcp_key
from saaskit_mcp.store import DataStore
from saaskit_mcp.validation import coerce_number

DEFAULT_URI_SCHEME = "saaskit"
JSON_MIME_TYPE = "application/json"

PARAMETER_TYPES = ("string", "number", "boolean", "uuid", "date")

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

PAGINATION_PARAMS = ("limit", "offset")


def generate_resource_description(noun: str) -> str:
    return f"{noun} collection - access and manage {noun.lower()} records"


def generate_noun_resource(noun: str, uri_scheme: str) -> dict[str, Any]:
    """Build the collection resource for a noun."""
    return {
        "uri": f"{uri_scheme}://{to_mcp_key(noun)}",
        "name": noun,
        "description": generate_resource_description(noun),
        "mimeType": JSON_MIME_TYPE,
    }


def generate_noun_resource_template(noun: str, uri_scheme: str) -> dict[str, Any]:
    """Build the single-item resource template for a noun."""
    return {
        "uriTemplate": f"{uri_scheme}://{to_mcp_key(noun)}/{{id}}",
        "name": f"{noun} by ID",
        "description": f"Get a specific {noun.lower()} by its ID",
        "mimeType": JSON_MIME_TYPE,
    }


def generate_resources(
    nouns: dict[str, dict[str, str]], uri_scheme: str = DEFAULT_URI_SCHEME
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Generate collection resources and item templates for every noun.

    Returns:
        Tuple of (resources, templates).
    """
    resources = [generate_noun_resource(noun, uri_scheme) for noun in nouns]
    templates = [generate_noun_resource_template(noun, uri_scheme) for noun in nouns]
    return resources, templates


@dataclass
class ParsedResourceUri:
    """Components of a resource URI."""

    noun_key: str | None
    id: str | None = None
    query: dict[str, str] = field(default_factory=dict)


def parse_resource_uri(uri: str, uri_scheme: str = DEFAULT_URI_SCHEME) -> ParsedResourceUri:
    """Split a resource URI into noun key, id and query parameters.

    A URI with a different scheme parses to ``noun_key=None``.
    """
    prefix = f"{uri_scheme}://"
    if not uri.startswith(prefix):
        return ParsedResourceUri(noun_key=None)

    path, _, query_string = uri[len(prefix) :].partition("?")
    parts = path.split("/")

    noun_key = parts[0] or None
    record_id = parts[1] if len(parts) > 1 and parts[1] else None
    query = dict(parse_qsl(query_string, keep_blank_values=True))

    return ParsedResourceUri(noun_key=noun_key, id=record_id, query=query)


def coerce_query_value(value: str) -> Any:
    """Coerce a query string value for use as a filter."""
    if value == "true":
        return True
    if value == "false":
        return False
    number = coerce_number(value)
    return number if number is not None else value


@dataclass
class URIParameterRule:
    """Validation rule for one URI parameter."""

    name: str
    type: str = "string"
    required: bool = False
    pattern: str | None = None
    min: float | None = None
    max: float | None = None
    enum: list[str] | None = None
    default: Any = None

    def __post_init__(self) -> None:
        if self.type not in PARAMETER_TYPES:
            raise ValueError(f"Unsupported parameter type: {self.type}")


@dataclass
class ParameterValidationResult:
    """Result of validating URI parameters."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    coerced_value: Any = None
    coerced_params: dict[str, Any] = field(default_factory=dict)


class URIParameterValidator:
    """Validates and coerces URI parameters against a rule set.

    Parameters without a rule pass through unchanged.
    """

    def __init__(self, rules: list[URIParameterRule] | None = None) -> None:
        self._rules: dict[str, URIParameterRule] = {}
        for rule in rules or []:
            self._rules[rule.name] = rule

    @property
    def rules(self) -> dict[str, URIParameterRule]:
        return dict(self._rules)

    def add_rule(self, rule: URIParameterRule) -> URIParameterValidator:
        self._rules[rule.name] = rule
        return self

    def validate_parameter(self, name: str, value: str | None) -> ParameterValidationResult:
        """Validate a single parameter value.

        Args:
            name: Parameter name.
            value: Raw string value, or None when absent.

        Returns:
            ParameterValidationResult with ``coerced_value`` set on success.
        """
        rule = self._rules.get(name)
        if rule is None:
            return ParameterValidationResult(valid=True, coerced_value=value)

        if value is None or value == "":
            if rule.required:
                return ParameterValidationResult(
                    valid=False, errors=[f"Parameter '{name}' is required"]
                )
            return ParameterValidationResult(valid=True, coerced_value=rule.default)

        errors: list[str] = []
        coerced: Any = value

        match rule.type:
            case "number":
                number = coerce_number(value)
                if number is None:
                    errors.append(f"Parameter '{name}' must be a number")
                else:
                    coerced = number
                    if rule.min is not None and number < rule.min:
                        errors.append(f"Parameter '{name}' must be >= {_format_bound(rule.min)}")
                    if rule.max is not None and number > rule.max:
                        errors.append(f"Parameter '{name}' must be <= {_format_bound(rule.max)}")
            case "boolean":
                if value in ("true", "1"):
                    coerced = True
                elif value in ("false", "0"):
                    coerced = False
                else:
                    errors.append(f"Parameter '{name}' must be a boolean (true/false)")
            case "uuid":
                if not UUID_PATTERN.match(value):
                    errors.append(f"Parameter '{name}' must be a valid UUID")
            case "date":
                try:
                    coerced = datetime.fromisoformat(value).isoformat()
                except ValueError:
                    errors.append(f"Parameter '{name}' must be a valid date")
            case _:
                if rule.pattern and not re.search(rule.pattern, value):
                    errors.append(f"Parameter '{name}' does not match required pattern")

        if rule.enum is not None and value not in rule.enum:
            errors.append(f"Parameter '{name}' must be one of: {', '.join(rule.enum)}")

        return ParameterValidationResult(valid=not errors, errors=errors, coerced_value=coerced)

    def validate(self, params: dict[str, str | None]) -> ParameterValidationResult:
        """Validate every rule and collect all violations.

        Returns:
            Result with ``coerced_params`` holding coerced ruled parameters
            (defaults applied) and unruled parameters unchanged.
        """
        errors: list[str] = []
        coerced_params: dict[str, Any] = {}

        for name in self._rules:
            result = self.validate_parameter(name, params.get(name))
            if not result.valid:
                errors.extend(result.errors)
            elif result.coerced_value is not None:
                coerced_params[name] = result.coerced_value

        for name, value in params.items():
            if name not in self._rules and value is not None:
                coerced_params[name] = value

        return ParameterValidationResult(
            valid=not errors, errors=errors, coerced_params=coerced_params
        )


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def create_id_validator(id_type: str = "string") -> URIParameterValidator:
    """Validator requiring an ``id`` parameter of the given kind."""
    return URIParameterValidator([URIParameterRule(name="id", type=id_type, required=True)])


def create_pagination_validator() -> URIParameterValidator:
    """Validator for ``limit`` (1..100, default 20) and ``offset`` (>= 0, default 0)."""
    return URIParameterValidator(
        [
            URIParameterRule(name="limit", type="number", min=1, max=100, default=20),
            URIParameterRule(name="offset", type="number", min=0, default=0),
        ]
    )


@dataclass
class ResourceContent:
    """Result of a resource read."""

    contents: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"contents": self.contents}
        if self.error is not None:
            result["error"] = self.error
        return result


class ResourceReader:
    """Reads collections and single records addressed by resource URI."""

    def __init__(
        self,
        store: DataStore,
        schema: NormalizedSchema,
        uri_scheme: str = DEFAULT_URI_SCHEME,
    ) -> None:
        self._store = store
        self._schema = schema
        self._uri_scheme = uri_scheme
        self._id_validator = create_id_validator()
        self._pagination_validator = create_pagination_validator()

    @property
    def uri_scheme(self) -> str:
        return self._uri_scheme

    def read(self, uri: str) -> ResourceContent:
        """Read a resource.

        Args:
            uri: Resource URI.

        Returns:
            ResourceContent with one JSON content entry, or an error.
        """
        parsed = parse_resource_uri(uri, self._uri_scheme)
        if parsed.noun_key is None:
            return ResourceContent(error=f"Invalid resource URI: {uri}")

        noun = self._schema.noun_for_key(parsed.noun_key)
        if noun is None:
            return ResourceContent(error=f"Unknown resource: {parsed.noun_key}")

        if parsed.id is not None:
            return self._read_item(noun, parsed.id, uri)
        return self._read_collection(noun, parsed.query, uri)

    def _read_item(self, noun: str, record_id: str, uri: str) -> ResourceContent:
        check = self._id_validator.validate({"id": record_id})
        if not check.valid:
            return ResourceContent(error="; ".join(check.errors))

        item = self._store.find(noun, record_id)
        if item is None:
            return ResourceContent(error=f"{noun} not found: {record_id}")
        return ResourceContent(contents=[_json_content(uri, item)])

    def _read_collection(self, noun: str, query: dict[str, str], uri: str) -> ResourceContent:
        # A noun field named like a paging parameter stays a filter
        fields = self._schema.nouns.get(noun, {})
        paging = {
            name: query.pop(name)
            for name in PAGINATION_PARAMS
            if name in query and name not in fields
        }

        filter_ = {key: coerce_query_value(value) for key, value in query.items()}
        items = self._store.list(noun, filter_ or None)

        if paging:
            check = self._pagination_validator.validate(paging)
            if not check.valid:
                return ResourceContent(error=f"Invalid parameters: {'; '.join(check.errors)}")
            offset = int(check.coerced_params["offset"])
            limit = int(check.coerced_params["limit"])
            items = items[offset : offset + limit]

        base_uri = uri.split("?", 1)[0]
        return ResourceContent(contents=[_json_content(base_uri, items)])


def _json_content(uri: str, payload: Any) -> dict[str, Any]:
    return {"uri": uri, "mimeType": JSON_MIME_TYPE, "text": json.dumps(payload, default=str)}
