"""Query service layer for BirdboxSearch."""

from __future__ import annotations

from typing import TYPE_CHECKING

from BirdboxSearch.services.fetch import PaginatedFetcher

if TYPE_CHECKING:
    from BirdboxSearch.config import AppConfig
    from BirdboxSearch.index.base import SearchIndex


def create_fetcher(config: AppConfig, index: SearchIndex) -> PaginatedFetcher:
    """Create a fetcher over `index` with the configured fetch defaults."""
    return PaginatedFetcher(index=index, config=config.fetch)


__all__ = [
    "PaginatedFetcher",
    "create_fetcher",
]
