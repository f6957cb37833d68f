from __future__ import annotations

"""Fetch domain configuration (paging and facet defaults)."""

from dataclasses import dataclass
from typing import Any, Mapping

from BirdboxSearch.config.common import expect_choice, expect_int, get_section
from BirdboxSearch.core.models import SORTABLE_FIELDS


@dataclass(frozen=True, slots=True)
class FetchConfig:
    """Default fetch options applied when a caller leaves them unset."""

    page_size: int = 10
    sort_by: str = "uploaded_at"
    sort_direction: str = "desc"
    facet_size: int = 100


def load_fetch(raw: Mapping[str, Any]) -> FetchConfig:
    """Load the optional `fetch` section.

    Raises:
        TypeError: If config types are invalid.
        ValueError: If sort settings are unknown.
    """
    section = get_section(raw, "fetch", required=False)
    defaults = FetchConfig()
    return FetchConfig(
        page_size=expect_int(section.get("page_size", defaults.page_size), "fetch.page_size"),
        sort_by=expect_choice(section.get("sort_by", defaults.sort_by), "fetch.sort_by", SORTABLE_FIELDS),
        sort_direction=expect_choice(
            section.get("sort_direction", defaults.sort_direction), "fetch.sort_direction", ("asc", "desc")
        ),
        facet_size=expect_int(section.get("facet_size", defaults.facet_size), "fetch.facet_size"),
    )


def check_fetch(config: FetchConfig) -> None:
    """Validate fetch domain constraints."""
    if config.page_size <= 0:
        raise ValueError("fetch.page_size must be positive")
    if config.facet_size <= 0:
        raise ValueError("fetch.facet_size must be positive")
