"""Paginated nest queries over a `SearchIndex`."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from BirdboxSearch.config.fetch import FetchConfig
from BirdboxSearch.core.filters import And, FilterTree, Term, Terms, TermsAggregation
from BirdboxSearch.core.models import FetchOptions, Page, Resource
from BirdboxSearch.index.base import SearchIndex
from BirdboxSearch.query.builder import build_filter, build_sort
from BirdboxSearch.utils.log import log

PEOPLE_FIELD = "people.id"
TAGS_FIELD = "tags"


class PaginatedFetcher:
    """Answer nest queries: pages, counts, facets and membership checks.

    Every operation builds its filter before touching the index, so invalid
    source descriptions or bounds fail without a round trip. An empty source
    description matches nothing.
    """

    def __init__(self, index: SearchIndex, config: FetchConfig | None = None) -> None:
        """Initialize the fetcher.

        Args:
            index: Index holding resource documents.
            config: Defaults for paging, sorting and facet size.
        """
        self.index = index
        self.config = config or FetchConfig()

    def default_options(self, **overrides: Any) -> FetchOptions:
        """Return `FetchOptions` seeded from configuration, then `overrides`."""
        values: dict[str, Any] = {
            "sort_by": self.config.sort_by,
            "sort_direction": self.config.sort_direction,
            "page_size": self.config.page_size,
        }
        values.update(overrides)
        return FetchOptions(**values)

    def fetch(self, sources: Mapping[Any, Any] | None, opts: FetchOptions | None = None) -> Page:
        """Return one page of the nest's resources.

        Args:
            sources: Mapping of provider name to `{albums, tags}` filter.
            opts: Paging, ordering and bound options.

        Returns:
            Page of resources with the total match count. Pass
            `page.next_options()` back in to continue after the last hit.

        Raises:
            InvalidSpecification: If a provider filter is invalid.
            InvalidArgument: If `since`/`until` cannot be parsed.
        """
        opts = opts or self.default_options()
        filter_tree = build_filter(sources, opts)
        if filter_tree is None:
            return Page(hits=(), total=0, options=opts)

        sort = build_sort(opts)
        log.debug("Fetch filter=%s sort=%s start=%d size=%d", filter_tree, sort, opts.start, opts.page_size)
        result = self.index.execute(filter_tree, sort, opts.start, opts.page_size)
        hits = [Resource.from_document(doc) for doc in result.documents]
        log.info("Fetched %d of %d resources (page=%d)", len(hits), result.total, opts.page)
        return Page(hits=hits, total=result.total, options=opts)

    def count(self, sources: Mapping[Any, Any] | None, opts: FetchOptions | None = None) -> int:
        """Return how many resources match, ignoring paging."""
        filter_tree = build_filter(sources, opts or self.default_options())
        if filter_tree is None:
            return 0
        log.debug("Count filter=%s", filter_tree)
        total = self.index.count(filter_tree)
        log.info("Counted %d resources", total)
        return total

    def fetch_ids(self, ids: Sequence[str], owner_uids: Optional[Sequence[str]] = None) -> list[Resource]:
        """Load resources by id, optionally restricted to some owners.

        Tombstoned resources are returned too; callers asking by id get what
        is stored.
        """
        ids = [str(i) for i in ids]
        if not ids:
            return []
        filter_tree: FilterTree = Terms("_id", ids)
        if owner_uids:
            filter_tree = And([filter_tree, Terms("owner_uid", [str(o) for o in owner_uids])])
        log.debug("Fetch ids filter=%s", filter_tree)
        result = self.index.execute(filter_tree, build_sort(self.default_options()), 0, len(ids))
        resources = [Resource.from_document(doc) for doc in result.documents]
        log.info("Fetched %d of %d requested ids", len(resources), len(ids))
        return resources

    def find_tagged_people(
        self, sources: Mapping[Any, Any] | None, opts: FetchOptions | None = None
    ) -> list[tuple[str, int]]:
        """Return `(person_id, count)` pairs over the nest, most tagged first."""
        filter_tree = build_filter(sources, opts or self.default_options())
        if filter_tree is None:
            return []
        return self._facet(filter_tree, PEOPLE_FIELD)

    def includes(self, sources: Mapping[Any, Any] | None, resource_id: str) -> bool:
        """Return whether the resource with `resource_id` belongs to the nest."""
        opts = self.default_options(id=str(resource_id))
        filter_tree = build_filter(sources, opts)
        if filter_tree is None:
            return False
        log.debug("Includes filter=%s", filter_tree)
        found = self.index.count(filter_tree) > 0
        log.info("Resource %s %s nest", resource_id, "in" if found else "not in")
        return found

    def find_user_tags(self, owner_uid: str) -> list[tuple[str, int]]:
        """Return `(tag, count)` pairs over one owner's visible resources."""
        filter_tree = And([Term("owner_uid", str(owner_uid)), Term("removed", False)])
        return self._facet(filter_tree, TAGS_FIELD)

    def next_page(self, sources: Mapping[Any, Any] | None, page: Page) -> Page | None:
        """Fetch the page after `page` using the keyset cursor; None when done."""
        opts = page.next_options()
        if opts is None:
            return None
        return self.fetch(sources, opts)

    def _facet(self, filter_tree: FilterTree, field: str) -> list[tuple[str, int]]:
        aggregation = TermsAggregation(field, size=self.config.facet_size)
        log.debug("Aggregate %s filter=%s", field, filter_tree)
        buckets = self.index.aggregate(filter_tree, aggregation)
        log.info("Aggregated %d %s buckets", len(buckets), field)
        return [(bucket.term, bucket.count) for bucket in buckets]
