"""Unit tests for schema normalization and validation."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from protodb.domain.errors import ValidationError
from protodb.domain.services.schema import (
    check_field_type,
    normalize_field,
    normalize_schema,
    validate_document,
)
from protodb.domain.value_objects import UNSET, FieldType, NormalizedField


@pytest.mark.unit
class TestNormalizeField:
    """Tests for field normalization."""

    def test_bare_type(self) -> None:
        """A bare type name turns every flag off."""
        field = normalize_field("name", "string")
        assert field == NormalizedField(type=FieldType.STRING)
        assert field.default is UNSET
        assert not field.has_default

    def test_unique_implies_index(self) -> None:
        """index defaults to the value of unique."""
        field = normalize_field("email", {"type": "string", "unique": True})
        assert field.unique
        assert field.index
        assert field.indexed

    def test_explicit_index(self) -> None:
        """A non-unique field can be indexed explicitly."""
        field = normalize_field("city", {"type": "string", "index": True})
        assert field.index
        assert not field.unique

    def test_camel_case_options(self) -> None:
        """camelCase option names are accepted."""
        field = normalize_field("name", {"type": "string", "minLength": 2, "maxLength": 5})
        assert field.min_length == 2
        assert field.max_length == 5

    def test_enum_becomes_tuple(self) -> None:
        """Enum values are stored as a tuple."""
        field = normalize_field("role", {"type": "string", "enum": ["a", "b"]})
        assert field.enum == ("a", "b")

    def test_unknown_type(self) -> None:
        """Unknown types are rejected."""
        with pytest.raises(ValidationError, match="unknown type"):
            normalize_field("x", "uuid")

    def test_missing_type(self) -> None:
        """Full definitions need a type."""
        with pytest.raises(ValidationError, match="requires a type"):
            normalize_field("x", {"required": True})

    def test_unknown_option(self) -> None:
        """Unknown options are rejected."""
        with pytest.raises(ValidationError, match="unknown field option"):
            normalize_field("x", {"type": "string", "nullable": True})

    def test_normalize_schema_keeps_order(self) -> None:
        """Field order is preserved."""
        schema = normalize_schema({"b": "string", "a": "number"})
        assert list(schema) == ["b", "a"]


@pytest.mark.unit
class TestCheckFieldType:
    """Tests for type checks."""

    @pytest.mark.parametrize(
        "value, field_type",
        [
            ("x", FieldType.STRING),
            (1, FieldType.NUMBER),
            (1.5, FieldType.NUMBER),
            (False, FieldType.BOOLEAN),
            ("2024-01-15", FieldType.DATE),
            ("2024-01-15T10:30:00.000Z", FieldType.DATE),
            (datetime(2024, 1, 15), FieldType.DATE),
            ([1, 2], FieldType.ARRAY),
            ({"any": ["thing"]}, FieldType.JSON),
            (None, FieldType.STRING),
        ],
    )
    def test_accepted(self, value: object, field_type: FieldType) -> None:
        """Values of the declared type pass."""
        assert check_field_type(value, field_type) is None

    @pytest.mark.parametrize(
        "value, field_type",
        [
            (1, FieldType.STRING),
            (True, FieldType.NUMBER),
            ("1", FieldType.NUMBER),
            (float("nan"), FieldType.NUMBER),
            (1, FieldType.BOOLEAN),
            ("not a date", FieldType.DATE),
            (12, FieldType.DATE),
            ("abc", FieldType.ARRAY),
        ],
    )
    def test_rejected(self, value: object, field_type: FieldType) -> None:
        """Values of another type produce a reason."""
        assert check_field_type(value, field_type)


@pytest.mark.unit
class TestValidateDocument:
    """Tests for document validation."""

    @pytest.fixture
    def schema(self) -> dict[str, NormalizedField]:
        """A user schema exercising every constraint."""
        return normalize_schema(
            {
                "name": {"type": "string", "required": True, "minLength": 2, "maxLength": 10},
                "age": {"type": "number", "min": 0, "max": 150},
                "role": {"type": "string", "enum": ["admin", "member"], "default": "member"},
                "active": {"type": "boolean", "default": True},
                "birthday": "date",
                "tags": {"type": "array", "default": list},
            }
        )

    def test_defaults_applied(self, schema: dict) -> None:
        """Absent fields with defaults get them on create."""
        result = validate_document({"name": "Alice"}, schema)
        assert result == {"name": "Alice", "role": "member", "active": True, "tags": []}

    def test_callable_default_is_fresh(self, schema: dict) -> None:
        """Callable defaults are invoked per document."""
        first = validate_document({"name": "Alice"}, schema)
        second = validate_document({"name": "Bobby"}, schema)
        assert first["tags"] is not second["tags"]

    def test_required_missing(self, schema: dict) -> None:
        """A missing required field fails."""
        with pytest.raises(ValidationError, match='"name": field is required'):
            validate_document({}, schema)

    def test_required_none(self, schema: dict) -> None:
        """A None required field fails."""
        with pytest.raises(ValidationError, match="required"):
            validate_document({"name": None}, schema)

    def test_type_error(self, schema: dict) -> None:
        """Wrong types fail with the field name."""
        with pytest.raises(ValidationError) as exc_info:
            validate_document({"name": "Alice", "age": "old"}, schema)
        assert exc_info.value.field == "age"
        assert "expected number" in exc_info.value.reason

    def test_length_constraints(self, schema: dict) -> None:
        """String lengths are bounded."""
        with pytest.raises(ValidationError, match="minimum length"):
            validate_document({"name": "A"}, schema)
        with pytest.raises(ValidationError, match="maximum length"):
            validate_document({"name": "A" * 11}, schema)

    def test_range_constraints(self, schema: dict) -> None:
        """Numbers are bounded."""
        with pytest.raises(ValidationError, match="minimum value"):
            validate_document({"name": "Alice", "age": -1}, schema)
        with pytest.raises(ValidationError, match="maximum value"):
            validate_document({"name": "Alice", "age": 200}, schema)

    def test_enum(self, schema: dict) -> None:
        """Values outside the enum fail."""
        with pytest.raises(ValidationError, match="must be one of: admin, member"):
            validate_document({"name": "Alice", "role": "owner"}, schema)

    def test_first_violation_in_schema_order(self, schema: dict) -> None:
        """The first failing field in schema order is reported."""
        with pytest.raises(ValidationError) as exc_info:
            validate_document({"name": "A", "age": -1}, schema)
        assert exc_info.value.field == "name"

    def test_unknown_keys_dropped_on_create(self, schema: dict) -> None:
        """Keys outside the schema are not stored on create."""
        result = validate_document({"name": "Alice", "extra": 1}, schema)
        assert "extra" not in result

    def test_dates_coerced(self, schema: dict) -> None:
        """datetime and date values are stored as ISO strings."""
        result = validate_document(
            {"name": "Alice", "birthday": datetime(2000, 5, 17, 8, 30, tzinfo=timezone.utc)},
            schema,
        )
        assert result["birthday"] == "2000-05-17T08:30:00.000Z"
        result = validate_document({"name": "Alice", "birthday": date(2000, 5, 17)}, schema)
        assert result["birthday"] == "2000-05-17"

    def test_update_mode(self, schema: dict) -> None:
        """Partial updates skip absent fields, defaults and required checks."""
        result = validate_document({"age": 31, "note": "x"}, schema, is_update=True)
        assert result == {"age": 31, "note": "x"}

    def test_update_mode_still_checks_types(self, schema: dict) -> None:
        """Fields present in an update are validated."""
        with pytest.raises(ValidationError):
            validate_document({"age": "x"}, schema, is_update=True)
