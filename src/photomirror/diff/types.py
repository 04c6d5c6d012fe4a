from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


def indent(text: str, spaces: int = 2) -> str:
    pad = " " * spaces
    return f"\n{pad}".join(text.split("\n"))


def _quoted(value: str | None) -> str:
    return "None" if value is None else f'"{value}"'


@dataclass(frozen=True, slots=True)
class SingleValueDiff:
    left: str
    right: str

    def __str__(self) -> str:
        return f"SingleValueDiff(left: {self.left}, right: {self.right})"

    def pretty(self) -> str:
        return f"Left: {self.left}\nRight: {self.right}"


@dataclass(frozen=True, slots=True)
class OptionalDiffPartial:
    """Exactly one side is absent; the present side is kept as a string."""

    left: str | None
    right: str | None

    def __str__(self) -> str:
        return f"partial(left: {_quoted(self.left)}, right: {_quoted(self.right)})"

    def pretty(self) -> str:
        return f"Partial:\n  Left: {_quoted(self.left)}\n  Right: {_quoted(self.right)}"


@dataclass(frozen=True, slots=True)
class OptionalDiff:
    partial: OptionalDiffPartial | None = None
    inner: DiffType | None = None

    def _body(self) -> OptionalDiffPartial | DiffType:
        body = self.partial if self.partial is not None else self.inner
        if body is None:
            raise ValueError("OptionalDiff needs either a partial or an inner diff")
        return body

    def __str__(self) -> str:
        return f"OptionalDiff({self._body()})"

    def pretty(self) -> str:
        return f"OptionalDiff:\n  {indent(self._body().pretty())}"


@dataclass(frozen=True, slots=True)
class SetDiff:
    # Both lists are sorted by their string form.
    only_in_left: tuple[str, ...] = ()
    only_in_right: tuple[str, ...] = ()

    def __str__(self) -> str:
        parts = []
        if self.only_in_left:
            parts.append(f"only_in_left: [{', '.join(self.only_in_left)}]")
        if self.only_in_right:
            parts.append(f"only_in_right: [{', '.join(self.only_in_right)}]")
        return f"SetDiff({', '.join(parts)})"

    def pretty(self) -> str:
        out = "SetDiff:"
        if self.only_in_left:
            out += "\n  Only in left:\n    " + indent("\n".join(self.only_in_left), 4)
        if self.only_in_right:
            out += "\n  Only in right:\n    " + indent("\n".join(self.only_in_right), 4)
        return out


@dataclass(frozen=True, slots=True)
class ListDiffAdded:
    index: int
    element: str

    def __str__(self) -> str:
        return f"[{self.index}]added: {self.element}"

    def pretty(self) -> str:
        return f"Added at {self.index}:\n  {indent(self.element)}"


@dataclass(frozen=True, slots=True)
class ListDiffRemoved:
    index: int
    element: str

    def __str__(self) -> str:
        return f"[{self.index}]removed: {self.element}"

    def pretty(self) -> str:
        return f"Removed at {self.index}:\n  {indent(self.element)}"


@dataclass(frozen=True, slots=True)
class ListDiffChanged:
    index: int
    diff: DiffType

    def __str__(self) -> str:
        return f"[{self.index}]changed: {self.diff}"

    def pretty(self) -> str:
        return f"Changed at {self.index}:\n  {indent(self.diff.pretty())}"


ListChange = Union[ListDiffAdded, ListDiffRemoved, ListDiffChanged]


@dataclass(frozen=True, slots=True)
class ListDiff:
    changes: tuple[ListChange, ...] = ()

    def __str__(self) -> str:
        return f"ListDiff({', '.join(str(c) for c in self.changes)})"

    def pretty(self) -> str:
        body = "\n".join(c.pretty() for c in self.changes)
        return f"ListDiff:\n  {indent(body)}"


@dataclass(frozen=True, slots=True)
class StructDiff:
    changes: dict[str, DiffType] = field(default_factory=dict)

    def sorted_changes(self) -> list[tuple[str, DiffType]]:
        return sorted(self.changes.items(), key=lambda kv: kv[0])

    def __str__(self) -> str:
        if not self.changes:
            return "StructDiff(same)"
        body = ", ".join(f"{name}: {diff}" for name, diff in self.sorted_changes())
        return f"StructDiff({body})"

    def pretty(self) -> str:
        if not self.changes:
            return ""
        body = "\n".join(f"{name}:\n  {indent(diff.pretty())}" for name, diff in self.sorted_changes())
        return f"StructDiff:\n  {indent(body)}"


DiffType = Union[SingleValueDiff, OptionalDiff, SetDiff, ListDiff, StructDiff]


@dataclass(frozen=True, slots=True)
class DiffResult:
    diff: DiffType | None = None

    @property
    def is_same(self) -> bool:
        return self.diff is None

    @property
    def is_different(self) -> bool:
        return self.diff is not None

    def __str__(self) -> str:
        if self.diff is None:
            return "same"
        return f"different({self.diff})"

    def pretty(self) -> str:
        if self.diff is None:
            return "Same"
        return self.diff.pretty()


SAME = DiffResult()


def different(diff: DiffType) -> DiffResult:
    return DiffResult(diff)
