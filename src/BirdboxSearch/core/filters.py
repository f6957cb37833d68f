"""Engine-agnostic boolean filter tree.

A filter tree is built once per call and never mutated. Adapters translate it
into their own query language (see `BirdboxSearch.index.dsl`) or evaluate it
directly (see `BirdboxSearch.index.memory`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence, Union

FILTER_FIELDS = frozenset(
    {
        "provider",
        "owner_uid",
        "tags",
        "albums.id",
        "_id",
        "uploaded_at",
        "external_id",
        "removed",
    }
)

AGGREGATION_FIELDS = frozenset({"people.id", "tags"})


def _check_field(field: str) -> None:
    if field not in FILTER_FIELDS:
        raise ValueError(f"Unsupported filter field: {field}")


@dataclass(frozen=True, slots=True)
class Term:
    """Exact match of a single value."""

    field: str
    value: Any

    def __post_init__(self) -> None:
        _check_field(self.field)


@dataclass(frozen=True, slots=True)
class Terms:
    """Match when the field holds any of `values`."""

    field: str
    values: Sequence[Any]

    def __post_init__(self) -> None:
        _check_field(self.field)
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True, slots=True)
class Range:
    """Bounded interval over an ordered field.

    Attributes:
        field: Field name.
        start: Lower bound, or None for unbounded.
        end: Upper bound, or None for unbounded.
        include_lower: Whether `start` itself matches.
        include_upper: Whether `end` itself matches.
    """

    field: str
    start: Any = None
    end: Any = None
    include_lower: bool = True
    include_upper: bool = True

    def __post_init__(self) -> None:
        _check_field(self.field)
        if self.start is None and self.end is None:
            raise ValueError(f"Range on {self.field} needs at least one bound")


@dataclass(frozen=True, slots=True)
class And:
    children: Sequence["FilterTree"]

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))


@dataclass(frozen=True, slots=True)
class Or:
    children: Sequence["FilterTree"]

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))


@dataclass(frozen=True, slots=True)
class Not:
    node: "FilterTree"


FilterTree = Union[And, Or, Not, Term, Terms, Range]


@dataclass(frozen=True, slots=True)
class SortField:
    """One sort clause: field plus direction (`asc` or `desc`)."""

    field: str
    direction: str = "desc"

    def __post_init__(self) -> None:
        if self.direction not in ("asc", "desc"):
            raise ValueError(f"Unsupported sort direction: {self.direction}")


@dataclass(frozen=True, slots=True)
class TermsAggregation:
    """Term-frequency breakdown over one field, capped at `size` buckets."""

    field: str
    size: int = 100

    def __post_init__(self) -> None:
        if self.field not in AGGREGATION_FIELDS:
            raise ValueError(f"Unsupported aggregation field: {self.field}")
        if self.size <= 0:
            raise ValueError("Aggregation size must be positive")


def iter_leaves(tree: FilterTree):
    """Yield every leaf node of `tree` depth-first."""
    if isinstance(tree, (And, Or)):
        for child in tree.children:
            yield from iter_leaves(child)
    elif isinstance(tree, Not):
        yield from iter_leaves(tree.node)
    else:
        yield tree
