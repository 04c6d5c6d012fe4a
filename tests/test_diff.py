from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from photomirror.diff import (
    SAME,
    ListDiff,
    ListDiffAdded,
    ListDiffChanged,
    ListDiffRemoved,
    OptionalDiff,
    OptionalDiffPartial,
    SetDiff,
    SingleValueDiff,
    StructDiff,
    diff_date,
    diff_number,
    diff_optional,
    diff_scalar,
    get_diff,
    register_record,
)
from photomirror.models import FileType


@dataclass(frozen=True)
class _Point:
    x: int
    y: int
    label: str | None = None


register_record(_Point, {"y": diff_scalar, "x": diff_scalar, "label": diff_optional(diff_scalar)})


def test_scalar_diff_is_symmetric() -> None:
    forward = get_diff(1, 2)
    backward = get_diff(2, 1)

    assert forward.is_different and backward.is_different
    assert forward.diff == SingleValueDiff("1", "2")
    assert backward.diff == SingleValueDiff("2", "1")
    assert str(forward) == "different(SingleValueDiff(left: 1, right: 2))"
    assert get_diff("a", "a") is SAME


def test_enum_values_render_by_name() -> None:
    result = get_diff(FileType.ORIGINAL_IMAGE, FileType.EDITED_IMAGE)
    assert result.diff == SingleValueDiff("ORIGINAL_IMAGE", "EDITED_IMAGE")


def test_dates_compare_at_second_resolution() -> None:
    base = datetime(2025, 3, 1, 8, 30, 0, tzinfo=timezone.utc)

    assert diff_date(base, base + timedelta(milliseconds=400)).is_same
    assert diff_date(base, base + timedelta(seconds=1)).is_different
    assert get_diff(base, base.replace(microsecond=999_000)).is_same


def test_numbers_compare_at_six_decimal_places() -> None:
    assert diff_number(51.5073509, 51.50735091).is_same
    assert diff_number(1.0, 1.00001).is_different
    assert get_diff(0.1 + 0.2, 0.3).is_same


def test_list_diff_is_index_aligned() -> None:
    removed = get_diff([1, 2, 3], [1, 2])
    added = get_diff([1, 2], [1, 2, 3])
    changed = get_diff([1, 2], [1, 3])

    assert removed.diff == ListDiff((ListDiffRemoved(2, "3"),))
    assert added.diff == ListDiff((ListDiffAdded(2, "3"),))
    assert changed.diff == ListDiff((ListDiffChanged(1, SingleValueDiff("2", "3")),))
    assert str(removed) == "different(ListDiff([2]removed: 3))"
    assert str(changed) == "different(ListDiff([1]changed: SingleValueDiff(left: 2, right: 3)))"


def test_front_insertion_cascades_into_changes() -> None:
    result = get_diff([1, 2, 3], [0, 1, 2, 3])

    assert result.diff == ListDiff(
        (
            ListDiffChanged(0, SingleValueDiff("1", "0")),
            ListDiffChanged(1, SingleValueDiff("2", "1")),
            ListDiffChanged(2, SingleValueDiff("3", "2")),
            ListDiffAdded(3, "3"),
        )
    )


def test_set_diff_ignores_order() -> None:
    assert get_diff({1, 2, 3}, {3, 2, 1}).is_same

    result = get_diff({2, 3, 4}, {1, 2, 3})
    assert result.diff == SetDiff(only_in_left=("4",), only_in_right=("1",))
    assert str(result) == "different(SetDiff(only_in_left: [4], only_in_right: [1]))"


def test_set_diff_lists_are_sorted() -> None:
    result = get_diff(frozenset({"c", "a", "b"}), frozenset())
    assert result.diff == SetDiff(only_in_left=("a", "b", "c"))


def test_optional_diff() -> None:
    assert get_diff(None, None).is_same

    partial = get_diff(None, 1)
    assert partial.diff == OptionalDiff(partial=OptionalDiffPartial(None, "1"))
    assert str(partial) == 'different(OptionalDiff(partial(left: None, right: "1")))'

    inner = diff_optional(diff_scalar)("x", "y")
    assert inner.diff == OptionalDiff(inner=SingleValueDiff("x", "y"))
    assert diff_optional(diff_scalar)("x", "x").is_same


def test_record_diff_sorts_fields_by_name() -> None:
    result = get_diff(_Point(1, 2), _Point(5, 7, "moved"))

    assert isinstance(result.diff, StructDiff)
    assert [name for name, _ in result.diff.sorted_changes()] == ["label", "x", "y"]
    assert str(result) == (
        'different(StructDiff(label: OptionalDiff(partial(left: None, right: "moved")), '
        "x: SingleValueDiff(left: 1, right: 5), y: SingleValueDiff(left: 2, right: 7)))"
    )
    assert get_diff(_Point(1, 2), _Point(1, 2)).is_same


def test_pretty_rendering() -> None:
    assert SAME.pretty() == "Same"
    assert str(SAME) == "same"
    assert get_diff(1, 2).pretty() == "Left: 1\nRight: 2"
    assert get_diff([1, 2, 3], [1, 2]).pretty() == "ListDiff:\n  Removed at 2:\n    3"
    assert get_diff(_Point(1, 2), _Point(1, 3)).pretty() == "StructDiff:\n  y:\n    Left: 2\n    Right: 3"
