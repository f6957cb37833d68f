"""Search index adapters for BirdboxSearch.

`create_search_index` selects the adapter configured under `index.backend`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from BirdboxSearch.index.base import SearchIndex, SearchResult, TermBucket
from BirdboxSearch.index.memory import InMemorySearchIndex
from BirdboxSearch.index.schema import RESOURCE_SCHEMA, IndexSchema

if TYPE_CHECKING:
    from BirdboxSearch.config import AppConfig


def create_search_index(config: AppConfig, index_name: str | None = None) -> SearchIndex:
    """Create the configured search index adapter.

    Args:
        config: Application configuration containing index settings.
        index_name: Index or alias to bind instead of `config.index.name`.

    Returns:
        A `SearchIndex` implementation.

    Raises:
        ValueError: If the backend is not supported.
    """
    name = index_name or config.index.name
    backend = config.index.backend
    if backend == "memory":
        return InMemorySearchIndex(RESOURCE_SCHEMA, index_name=name)
    if backend == "elasticsearch":
        from BirdboxSearch.index.elasticsearch import ElasticsearchIndex

        return ElasticsearchIndex(
            config.index.url,
            index_name=name,
            schema=RESOURCE_SCHEMA,
            timeout=config.index.timeout,
            max_attempts=config.index.max_attempts,
        )
    raise ValueError(f"Unsupported index backend: {backend}")


__all__ = [
    "SearchIndex",
    "SearchResult",
    "TermBucket",
    "IndexSchema",
    "RESOURCE_SCHEMA",
    "InMemorySearchIndex",
    "create_search_index",
]
