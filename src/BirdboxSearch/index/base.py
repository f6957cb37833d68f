"""SearchIndex capability consumed by the fetcher and the merger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

from BirdboxSearch.core.filters import FilterTree, SortField, TermsAggregation


@dataclass(frozen=True, slots=True)
class SearchResult:
    """Raw documents of one result window plus the total match count."""

    documents: Sequence[Mapping[str, Any]]
    total: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "documents", tuple(self.documents))


@dataclass(frozen=True, slots=True)
class TermBucket:
    """One aggregation bucket: a term and how many documents carry it."""

    term: str
    count: int


class SearchIndex(Protocol):
    """Protocol for a document search index.

    `filter_tree=None` means "match all documents". Implementations raise
    `SearchIndexError`/`IndexUnavailable` on failure; callers never see
    engine-specific exceptions.
    """

    index_name: str

    def execute(
        self,
        filter_tree: FilterTree | None,
        sort: Sequence[SortField],
        start: int,
        size: int,
    ) -> SearchResult:
        """Return the `[start, start + size)` window of matches in sort order."""
        raise NotImplementedError

    def aggregate(self, filter_tree: FilterTree | None, aggregation: TermsAggregation) -> list[TermBucket]:
        """Return term buckets ordered by count desc, then term asc."""
        raise NotImplementedError

    def count(self, filter_tree: FilterTree | None) -> int:
        raise NotImplementedError

    def get_by_ids(self, ids: Sequence[str]) -> list[dict[str, Any]]:
        """Return stored documents for `ids`; missing ids are skipped."""
        raise NotImplementedError

    def upsert(self, document: Mapping[str, Any]) -> None:
        """Create or fully replace the document keyed by `document["id"]`."""
        raise NotImplementedError

    def delete(self, index_name: str | None = None) -> None:
        """Drop an index (defaults to this adapter's index)."""
        raise NotImplementedError

    def refresh(self, index_name: str | None = None) -> None:
        """Make recent writes visible to searches."""
        raise NotImplementedError
