"""Input validation and coercion for tool arguments.

Provides JSON Schema validation for generated CRUD tool inputs, with a
coercion pass that turns loosely-typed string arguments into the types the
schema declares.
"""

from __future__ import annotations

import json
import math
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass


def coerce_number(value: str) -> int | float | None:
    """Parse numeric text, returning None when it is not a finite number."""
    text = value.strip()
    # Digit separators are Python literal syntax, not numeric text
    if not text or "_" in text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def coerce_input(data: dict[str, Any], schema: dict[str, Any]) -> dict[str, Any]:
    """Coerce string values to the types declared by a schema.

    Values that cannot be coerced are left unchanged so schema validation
    can report them.

    Args:
        data: Raw arguments.
        schema: Object schema with ``properties``.

    Returns:
        New dictionary with coerced values.
    """
    result = dict(data)
    properties = schema.get("properties") or {}

    for name, prop in properties.items():
        value = result.get(name)
        if not isinstance(value, str):
            continue

        prop_type = prop.get("type")
        if prop_type == "number":
            number = coerce_number(value)
            if number is not None:
                result[name] = number
        elif prop_type == "boolean":
            if value in ("true", "1"):
                result[name] = True
            elif value in ("false", "0"):
                result[name] = False
        elif prop_type in ("array", "object"):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                continue
            if prop_type == "array" and isinstance(parsed, list):
                result[name] = parsed
            elif prop_type == "object" and isinstance(parsed, dict):
                result[name] = parsed

    return result


class InputValidator:
    """Validates tool inputs against their declared JSON Schema."""

    def __init__(self, max_string_length: int = 10000) -> None:
        """Initialize the validator.

        Args:
            max_string_length: Maximum allowed length of any string argument.
        """
        self._max_string_length = max_string_length

    def _validate_string_lengths(self, value: Any, field: str) -> None:
        if isinstance(value, str):
            if len(value) > self._max_string_length:
                raise ValidationError(
                    f"Field '{field}' exceeds maximum length of {self._max_string_length}"
                )
        elif isinstance(value, dict):
            for key, item in value.items():
                self._validate_string_lengths(item, f"{field}.{key}")
        elif isinstance(value, list):
            for i, item in enumerate(value):
                self._validate_string_lengths(item, f"{field}[{i}]")

    def validate_tool_input(
        self, tool_name: str, schema: dict[str, Any], arguments: dict[str, Any]
    ) -> dict[str, Any]:
        """Coerce and validate tool input.

        Args:
            tool_name: Name of the tool (for error messages).
            schema: JSON Schema for the tool's input.
            arguments: Arguments to validate.

        Returns:
            Coerced arguments.

        Raises:
            ValidationError: If validation fails.
        """
        coerced = coerce_input(arguments, schema)

        try:
            Draft202012Validator.check_schema(schema)
            validator = Draft202012Validator(schema)
            errors = list(validator.iter_errors(coerced))
            if errors:
                # Report first error
                error = errors[0]
                path = ".".join(str(p) for p in error.path) if error.path else "root"
                raise ValidationError(f"Schema validation failed at '{path}': {error.message}")
        except SchemaError as e:
            raise ValidationError(f"Invalid schema for tool {tool_name}: {e}") from e

        for key, value in coerced.items():
            self._validate_string_lengths(value, key)

        return coerced


class SchemaBuilder:
    """Fluent builder for object input schemas.

    Unset options are left out of the property definitions.

    Example:
        SchemaBuilder().id(required=True).string("title", max_length=200).build()
    """

    def __init__(self) -> None:
        self._properties: dict[str, dict[str, Any]] = {}
        self._required: list[str] = []
        self._description: str | None = None
        self._additional_properties: bool | None = None

    def describe(self, description: str) -> SchemaBuilder:
        self._description = description
        return self

    def allow_additional(self, allowed: bool = True) -> SchemaBuilder:
        self._additional_properties = allowed
        return self

    def field(
        self,
        name: str,
        json_type: str,
        description: str | None = None,
        required: bool = False,
        **constraints: Any,
    ) -> SchemaBuilder:
        """Add a property of any JSON Schema type.

        Keyword constraints (``enum``, ``minimum``, ``items`` ...) are copied
        into the property unless they are None.
        """
        prop: dict[str, Any] = {"type": json_type}
        if description is not None:
            prop["description"] = description
        prop.update({key: value for key, value in constraints.items() if value is not None})

        self._properties[name] = prop
        if required and name not in self._required:
            self._required.append(name)
        return self

    def string(
        self,
        name: str,
        description: str | None = None,
        required: bool = False,
        default: str | None = None,
        enum: list[str] | None = None,
        pattern: str | None = None,
        min_length: int | None = None,
        max_length: int | None = None,
    ) -> SchemaBuilder:
        return self.field(
            name,
            "string",
            description,
            required,
            default=default,
            enum=enum,
            pattern=pattern,
            minLength=min_length,
            maxLength=max_length,
        )

    def number(
        self,
        name: str,
        description: str | None = None,
        required: bool = False,
        default: float | None = None,
        minimum: float | None = None,
        maximum: float | None = None,
    ) -> SchemaBuilder:
        return self.field(
            name, "number", description, required, default=default, minimum=minimum, maximum=maximum
        )

    def boolean(
        self,
        name: str,
        description: str | None = None,
        required: bool = False,
        default: bool | None = None,
    ) -> SchemaBuilder:
        return self.field(name, "boolean", description, required, default=default)

    def array(
        self,
        name: str,
        item_type: str,
        description: str | None = None,
        required: bool = False,
    ) -> SchemaBuilder:
        return self.field(name, "array", description, required, items={"type": item_type})

    def object(
        self,
        name: str,
        builder: SchemaBuilder,
        description: str | None = None,
        required: bool = False,
    ) -> SchemaBuilder:
        prop = builder.build()
        if description is not None:
            prop["description"] = description

        self._properties[name] = prop
        if required and name not in self._required:
            self._required.append(name)
        return self

    def id(
        self, description: str = "The unique identifier", required: bool = False
    ) -> SchemaBuilder:
        return self.string("id", description, required)

    def build(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {name: dict(prop) for name, prop in self._properties.items()},
        }
        if self._description is not None:
            schema["description"] = self._description
        if self._required:
            schema["required"] = list(self._required)
        if self._additional_properties is not None:
            schema["additionalProperties"] = self._additional_properties
        return schema
