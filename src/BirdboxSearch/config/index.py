from __future__ import annotations

"""Search index domain configuration (backend selection and transport)."""

from dataclasses import dataclass
from typing import Any, Mapping

from BirdboxSearch.config.common import (
    expect_choice,
    expect_float,
    expect_int,
    expect_str,
    get_required_value,
    get_section,
)

_ALLOWED_BACKENDS = ("memory", "elasticsearch")


@dataclass(frozen=True, slots=True)
class IndexConfig:
    """Store validated search index settings.

    Attributes:
        backend: `memory` or `elasticsearch`.
        url: Cluster URL (elasticsearch backend only).
        name: Index or alias holding resource documents.
        timeout: Per-request timeout in seconds.
        max_attempts: Attempts per request before failing.
    """

    backend: str
    url: str
    name: str
    timeout: float
    max_attempts: int


def load_index(raw: Mapping[str, Any]) -> IndexConfig:
    """Load index domain config from raw mapping.

    Raises:
        TypeError: If config types are invalid.
        ValueError: If required keys are missing or the backend is unknown.
    """
    section = get_section(raw, "index", required=True)
    return IndexConfig(
        backend=expect_choice(
            get_required_value(section, "backend", "index.backend"), "index.backend", _ALLOWED_BACKENDS
        ),
        url=expect_str(section.get("url", ""), "index.url").strip(),
        name=expect_str(get_required_value(section, "name", "index.name"), "index.name").strip(),
        timeout=expect_float(section.get("timeout", 30), "index.timeout"),
        max_attempts=expect_int(section.get("max_attempts", 4), "index.max_attempts"),
    )


def check_index(config: IndexConfig) -> None:
    """Validate index domain constraints.

    Raises:
        ValueError: If values violate index constraints.
    """
    if not config.name:
        raise ValueError("index.name must not be empty")
    if config.backend == "elasticsearch" and not config.url:
        raise ValueError("index.url is required when index.backend=elasticsearch")
    if config.timeout <= 0:
        raise ValueError("index.timeout must be positive")
    if config.max_attempts <= 0:
        raise ValueError("index.max_attempts must be positive")
