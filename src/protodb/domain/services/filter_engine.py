"""In-memory filter, sort and pagination over document lists.

Every find is a full scan: filter, then sort, then offset, then limit.
Indexes are not consulted here; they only back unique-constraint checks on
the write path.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Any, Iterable, Mapping, Sequence

from protodb.domain.services.operators import (
    FilterOperator,
    evaluate,
    is_operator_object,
    strict_equals,
)
from protodb.domain.value_objects import Document, FilterQuery, FindOptions, SortSpec


# Type families used when sorting values of different types
_RANK_BOOLEAN = 0
_RANK_NUMBER = 1
_RANK_STRING = 2
_RANK_OTHER = 3


def matches_filter(doc: Mapping[str, Any], filter: FilterQuery) -> bool:
    """Check whether a document satisfies every condition of a filter.

    Conditions across fields, and operator keys within one field, are
    combined with AND. A bare value is shorthand for ``$eq``.
    """
    for field, condition in filter.items():
        value = doc.get(field)

        if is_operator_object(condition):
            for op, operand in condition.items():
                if not evaluate(FilterOperator.from_string(op), value, operand):
                    return False
        elif not strict_equals(value, condition):
            return False
    return True


def _validate_filter(filter: FilterQuery) -> None:
    """Reject unknown operators up front, even when no document is scanned."""
    for condition in filter.values():
        if is_operator_object(condition):
            for op in condition:
                FilterOperator.from_string(op)


def _type_rank(value: Any) -> int:
    if isinstance(value, bool):
        return _RANK_BOOLEAN
    if isinstance(value, (int, float)):
        return _RANK_NUMBER
    if isinstance(value, str):
        return _RANK_STRING
    return _RANK_OTHER


def _compare_values(left: Any, right: Any) -> int:
    """Three-way comparison of two present (non-None) values."""
    left_rank, right_rank = _type_rank(left), _type_rank(right)
    if left_rank != right_rank:
        return -1 if left_rank < right_rank else 1
    if left_rank == _RANK_OTHER:
        left, right = repr(left), repr(right)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def sort_documents(docs: Iterable[Document], sort: SortSpec) -> list[Document]:
    """Stable multi-key sort.

    Missing and None values sort after present ones when ascending and
    before them when descending.
    """
    keys = list(sort.items())

    def compare(a: Document, b: Document) -> int:
        for field, direction in keys:
            av, bv = a.get(field), b.get(field)
            if av is None and bv is None:
                continue
            if av is None:
                return direction
            if bv is None:
                return -direction
            result = _compare_values(av, bv)
            if result:
                return result * direction
        return 0

    return sorted(docs, key=cmp_to_key(compare))


def apply_find_options(
    docs: Sequence[Document],
    options: FindOptions | Mapping[str, Any] | None = None,
) -> list[Document]:
    """Run the find pipeline: filter, sort, offset, limit.

    Args:
        docs: Documents in storage order.
        options: FindOptions or an equivalent mapping.

    Returns:
        A new list; the input sequence is never reordered.
    """
    options = FindOptions.coerce(options)

    if options.filter:
        _validate_filter(options.filter)
        result = [doc for doc in docs if matches_filter(doc, options.filter)]
    else:
        result = list(docs)

    if options.sort:
        result = sort_documents(result, options.sort)

    if options.offset:
        result = result[options.offset:]

    if options.limit is not None:
        result = result[: options.limit]

    return result


def count_with_filter(docs: Sequence[Document], filter: FilterQuery | None = None) -> int:
    """Count matching documents without building the filtered list."""
    if not filter:
        return len(docs)
    _validate_filter(filter)
    return sum(1 for doc in docs if matches_filter(doc, filter))
