from __future__ import annotations

"""Public configuration API for BirdboxSearch."""

from BirdboxSearch.config.app import (
    AppConfig,
    load_config,
    load_config_with_defaults,
    parse_config_dict,
)
from BirdboxSearch.config.fetch import FetchConfig
from BirdboxSearch.config.index import IndexConfig
from BirdboxSearch.config.runtime import RuntimeConfig

__all__ = [
    "RuntimeConfig",
    "IndexConfig",
    "FetchConfig",
    "AppConfig",
    "load_config",
    "load_config_with_defaults",
    "parse_config_dict",
]
