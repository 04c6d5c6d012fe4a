from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from photomirror.diff.types import (
    SAME,
    DiffResult,
    ListChange,
    ListDiff,
    ListDiffAdded,
    ListDiffChanged,
    ListDiffRemoved,
    OptionalDiff,
    OptionalDiffPartial,
    SetDiff,
    SingleValueDiff,
    StructDiff,
    different,
)
from photomirror.util.time import seconds_equal, to_iso

Differ = Callable[[Any, Any], DiffResult]

NUMBER_SCALE = 1_000_000

_RECORDS: dict[type, Differ] = {}


def describe(value: Any) -> str:
    if isinstance(value, datetime):
        return f"Date({to_iso(value)}, {value.timestamp()})"
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, (set, frozenset)):
        return "{" + ", ".join(sorted(describe(v) for v in value)) + "}"
    return str(value)


def diff_scalar(left: Any, right: Any) -> DiffResult:
    if left == right:
        return SAME
    return different(SingleValueDiff(describe(left), describe(right)))


def diff_date(left: datetime, right: datetime) -> DiffResult:
    if seconds_equal(left, right):
        return SAME
    return different(SingleValueDiff(describe(left), describe(right)))


def diff_number(left: float | Decimal, right: float | Decimal) -> DiffResult:
    if int(float(left) * NUMBER_SCALE) == int(float(right) * NUMBER_SCALE):
        return SAME
    return different(SingleValueDiff(describe(left), describe(right)))


def diff_optional(inner: Differ | None = None) -> Differ:
    def _diff(left: Any, right: Any) -> DiffResult:
        if left is None and right is None:
            return SAME
        if left is None:
            return different(OptionalDiff(partial=OptionalDiffPartial(None, describe(right))))
        if right is None:
            return different(OptionalDiff(partial=OptionalDiffPartial(describe(left), None)))
        result = (inner or get_diff)(left, right)
        if result.diff is None:
            return SAME
        return different(OptionalDiff(inner=result.diff))

    return _diff


def diff_set(left: Iterable[Any], right: Iterable[Any]) -> DiffResult:
    left_str = {describe(v) for v in left}
    right_str = {describe(v) for v in right}
    only_left = tuple(sorted(left_str - right_str))
    only_right = tuple(sorted(right_str - left_str))
    if not only_left and not only_right:
        return SAME
    return different(SetDiff(only_in_left=only_left, only_in_right=only_right))


def diff_list(inner: Differ | None = None) -> Differ:
    """Index-aligned sequence diff.

    Positions are compared pairwise; an insertion near the front shows up as a
    change at every later index rather than a single addition.
    """

    def _diff(left: list[Any], right: list[Any]) -> DiffResult:
        element_diff = inner or get_diff
        changes: list[ListChange] = []
        shared = min(len(left), len(right))
        for idx in range(shared):
            result = element_diff(left[idx], right[idx])
            if result.diff is not None:
                changes.append(ListDiffChanged(idx, result.diff))
        for idx in range(shared, len(left)):
            changes.append(ListDiffRemoved(idx, describe(left[idx])))
        for idx in range(shared, len(right)):
            changes.append(ListDiffAdded(idx, describe(right[idx])))
        if not changes:
            return SAME
        return different(ListDiff(tuple(changes)))

    return _diff


def diff_record(fields: Mapping[str, Differ]) -> Differ:
    field_list = tuple(fields.items())

    def _diff(left: Any, right: Any) -> DiffResult:
        changes = {}
        for name, differ in field_list:
            result = differ(getattr(left, name), getattr(right, name))
            if result.diff is not None:
                changes[name] = result.diff
        if not changes:
            return SAME
        return different(StructDiff(changes))

    return _diff


def register_record(cls: type, fields: Mapping[str, Differ]) -> Differ:
    differ = diff_record(fields)
    _RECORDS[cls] = differ
    return differ


def record_differ(cls: type) -> Differ:
    try:
        return _RECORDS[cls]
    except KeyError:
        raise TypeError(f"{cls.__name__} is not registered for diffing") from None


def get_diff(left: Any, right: Any) -> DiffResult:
    if left is None or right is None:
        return diff_optional(get_diff)(left, right)
    differ = _RECORDS.get(type(left))
    if differ is not None:
        return differ(left, right)
    if isinstance(left, bool):
        return diff_scalar(left, right)
    if isinstance(left, datetime):
        return diff_date(left, right)
    if isinstance(left, (float, Decimal)):
        return diff_number(left, right)
    if isinstance(left, (set, frozenset)):
        return diff_set(left, right)
    if isinstance(left, (list, tuple)):
        return diff_list(get_diff)(left, right)
    return diff_scalar(left, right)
