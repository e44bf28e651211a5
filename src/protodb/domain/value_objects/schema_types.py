"""Schema value objects: field types and normalized field definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class FieldType(str, Enum):
    """Supported field types."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    JSON = "json"
    ARRAY = "array"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if a string names a field type."""
        return value in {t.value for t in cls}


class _Unset:
    """Marker for "no default configured" (``None`` is a legal default)."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class NormalizedField:
    """Canonical form of a field definition.

    Attributes:
        type: Declared field type.
        required: Value must be present (and not None) on create.
        unique: At most one document may hold a given value.
        index: Field is indexed; always True when ``unique`` is.
        default: Static value or zero-argument callable applied on create.
        min_length: Minimum string length.
        max_length: Maximum string length.
        min: Minimum numeric value.
        max: Maximum numeric value.
        enum: Allowed values.
    """

    type: FieldType
    required: bool = False
    unique: bool = False
    index: bool = False
    default: Any = UNSET
    min_length: int | None = None
    max_length: int | None = None
    min: float | None = None
    max: float | None = None
    enum: tuple[Any, ...] | None = None

    def __post_init__(self) -> None:
        if self.unique and not self.index:
            object.__setattr__(self, "index", True)

    @property
    def has_default(self) -> bool:
        return self.default is not UNSET

    @property
    def indexed(self) -> bool:
        """Whether the field needs an index (unique fields always do)."""
        return self.index or self.unique

    def resolve_default(self) -> Any:
        """Return the default value, invoking it when it is a callable."""
        return self.default() if callable(self.default) else self.default


NormalizedSchema = Mapping[str, NormalizedField]
"""Field name to normalized definition, in declaration order."""
