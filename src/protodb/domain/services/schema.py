"""Schema normalization and document validation."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Mapping

from protodb.domain.errors import ValidationError
from protodb.domain.services.operators import strict_equals
from protodb.domain.value_objects import (
    UNSET,
    FieldType,
    NormalizedField,
    NormalizedSchema,
    parse_date,
    to_iso,
)


# Declaration keys accepted in full field definitions, camelCase aliases included
_KEY_ALIASES = {
    "type": "type",
    "required": "required",
    "unique": "unique",
    "index": "index",
    "default": "default",
    "min_length": "min_length",
    "minLength": "min_length",
    "max_length": "max_length",
    "maxLength": "max_length",
    "min": "min",
    "max": "max",
    "enum": "enum",
}


def _field_type(field: str, value: Any) -> FieldType:
    if isinstance(value, FieldType):
        return value
    if isinstance(value, str) and FieldType.is_valid(value):
        return FieldType(value)
    raise ValidationError(field, f"unknown type: {value!r}")


def normalize_field(field: str, definition: Any) -> NormalizedField:
    """Normalize one field declaration.

    A bare type name yields a field with every flag off. A full definition
    gets explicit flags, with ``index`` defaulting to ``unique``.
    """
    if isinstance(definition, NormalizedField):
        return definition
    if isinstance(definition, (str, FieldType)):
        return NormalizedField(type=_field_type(field, definition))
    if not isinstance(definition, Mapping):
        raise ValidationError(field, f"invalid field definition: {definition!r}")

    options: dict[str, Any] = {}
    for key, value in definition.items():
        if key not in _KEY_ALIASES:
            raise ValidationError(field, f"unknown field option: {key!r}")
        options[_KEY_ALIASES[key]] = value

    if "type" not in options:
        raise ValidationError(field, "field definition requires a type")

    unique = bool(options.get("unique", False))
    index = options.get("index")
    enum = options.get("enum")
    return NormalizedField(
        type=_field_type(field, options["type"]),
        required=bool(options.get("required", False)),
        unique=unique,
        index=unique if index is None else bool(index),
        default=options.get("default", UNSET),
        min_length=options.get("min_length"),
        max_length=options.get("max_length"),
        min=options.get("min"),
        max=options.get("max"),
        enum=tuple(enum) if enum is not None else None,
    )


def normalize_schema(raw: Mapping[str, Any]) -> dict[str, NormalizedField]:
    """Turn declarative field definitions into their canonical form.

    Example:
        >>> schema = normalize_schema({"name": "string", "email": {"type": "string", "unique": True}})
        >>> schema["email"].index
        True
    """
    return {field: normalize_field(field, definition) for field, definition in raw.items()}


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def check_field_type(value: Any, field_type: FieldType) -> str | None:
    """Return a reason string when ``value`` does not fit ``field_type``.

    None is accepted here; presence is the job of the required check.
    """
    if value is None:
        return None

    if field_type is FieldType.STRING:
        if not isinstance(value, str):
            return f"expected string, got {_type_name(value)}"
    elif field_type is FieldType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return f"expected number, got {_type_name(value)}"
        if isinstance(value, float) and math.isnan(value):
            return "expected number, got NaN"
    elif field_type is FieldType.BOOLEAN:
        if not isinstance(value, bool):
            return f"expected boolean, got {_type_name(value)}"
    elif field_type is FieldType.DATE:
        if isinstance(value, str):
            if parse_date(value) is None:
                return "invalid date string"
        elif not isinstance(value, (datetime, date)):
            return f"expected date string or datetime, got {_type_name(value)}"
    elif field_type is FieldType.ARRAY:
        if not isinstance(value, (list, tuple)):
            return f"expected array, got {_type_name(value)}"
    # FieldType.JSON accepts any value

    return None


def coerce_field_value(value: Any, field_type: FieldType) -> Any:
    """Convert accepted values to their stored form."""
    if value is None:
        return value
    if field_type is FieldType.DATE:
        if isinstance(value, datetime):
            return to_iso(value)
        if isinstance(value, date):
            return value.isoformat()
    if field_type is FieldType.ARRAY and isinstance(value, tuple):
        return list(value)
    return value


def _check_constraints(field: str, value: Any, definition: NormalizedField) -> None:
    if definition.type is FieldType.STRING and isinstance(value, str):
        if definition.min_length is not None and len(value) < definition.min_length:
            raise ValidationError(
                field, f"minimum length is {definition.min_length}, got {len(value)}"
            )
        if definition.max_length is not None and len(value) > definition.max_length:
            raise ValidationError(
                field, f"maximum length is {definition.max_length}, got {len(value)}"
            )

    if (
        definition.type is FieldType.NUMBER
        and isinstance(value, (int, float))
        and not isinstance(value, bool)
    ):
        if definition.min is not None and value < definition.min:
            raise ValidationError(field, f"minimum value is {definition.min}")
        if definition.max is not None and value > definition.max:
            raise ValidationError(field, f"maximum value is {definition.max}")

    if definition.enum is not None and not any(
        strict_equals(value, option) for option in definition.enum
    ):
        allowed = ", ".join(str(option) for option in definition.enum)
        raise ValidationError(field, f"value must be one of: {allowed}")


def validate_document(
    data: Mapping[str, Any],
    schema: NormalizedSchema,
    is_update: bool = False,
) -> dict[str, Any]:
    """Validate and coerce a document against a schema.

    Fields are checked in schema order and the first violation aborts. Per
    field the order is: default, required, type, length/range, enum.

    Args:
        data: Input document (or partial update).
        schema: Normalized schema of the collection.
        is_update: Partial-update mode. Absent fields are skipped, defaults
            are not applied, required is not enforced, and keys outside the
            schema pass through unchanged.

    Returns:
        A new mapping holding the validated, coerced values.

    Raises:
        ValidationError: On the first violated constraint.
    """
    result: dict[str, Any] = {}

    for field, definition in schema.items():
        present = field in data
        value = data.get(field)

        if not present and not is_update and definition.has_default:
            value = definition.resolve_default()
            present = True

        if not is_update and definition.required and value is None:
            raise ValidationError(field, "field is required")

        if not present:
            continue

        reason = check_field_type(value, definition.type)
        if reason:
            raise ValidationError(field, reason)

        _check_constraints(field, value, definition)

        result[field] = coerce_field_value(value, definition.type)

    if is_update:
        for key, value in data.items():
            if key not in schema:
                result[key] = value

    return result
