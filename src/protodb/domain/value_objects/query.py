"""Query value objects: filters, sort specifications and find options."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from protodb.domain.errors import QueryError


FilterQuery = Mapping[str, Any]
"""Field name to condition (a bare value or an operator mapping)."""

SortSpec = Mapping[str, int]
"""Field name to direction, 1 for ascending and -1 for descending."""

ASCENDING = 1
DESCENDING = -1


@dataclass(frozen=True)
class FindOptions:
    """Options accepted by find operations.

    Pipeline order is filter, then sort, then offset, then limit.
    """

    filter: FilterQuery | None = None
    sort: SortSpec | None = None
    limit: int | None = None
    offset: int | None = None

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 0:
            raise QueryError(f"limit must be non-negative, got {self.limit}")
        if self.offset is not None and self.offset < 0:
            raise QueryError(f"offset must be non-negative, got {self.offset}")
        for field, direction in (self.sort or {}).items():
            if direction not in (ASCENDING, DESCENDING) or isinstance(direction, bool):
                raise QueryError(f"Sort direction for {field!r} must be 1 or -1, got {direction!r}")

    @classmethod
    def coerce(cls, options: FindOptions | Mapping[str, Any] | None) -> FindOptions:
        """Accept a FindOptions instance, a plain mapping, or None."""
        if options is None:
            return cls()
        if isinstance(options, FindOptions):
            return options
        unknown = set(options) - {"filter", "sort", "limit", "offset"}
        if unknown:
            raise QueryError(f"Unknown find options: {sorted(unknown)}")
        return cls(**options)
