from photomirror.diff.differ import (
    Differ,
    describe,
    diff_date,
    diff_list,
    diff_number,
    diff_optional,
    diff_record,
    diff_scalar,
    diff_set,
    get_diff,
    record_differ,
    register_record,
)
from photomirror.diff.types import (
    SAME,
    DiffResult,
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
    indent,
)

__all__ = [
    "SAME",
    "Differ",
    "DiffResult",
    "ListDiff",
    "ListDiffAdded",
    "ListDiffChanged",
    "ListDiffRemoved",
    "OptionalDiff",
    "OptionalDiffPartial",
    "SetDiff",
    "SingleValueDiff",
    "StructDiff",
    "describe",
    "diff_date",
    "diff_list",
    "diff_number",
    "diff_optional",
    "diff_record",
    "diff_scalar",
    "diff_set",
    "different",
    "get_diff",
    "indent",
    "record_differ",
    "register_record",
]
