from __future__ import annotations

"""Application config orchestration and YAML loading entrypoints."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from BirdboxSearch.config.fetch import FetchConfig, check_fetch, load_fetch
from BirdboxSearch.config.index import IndexConfig, check_index, load_index
from BirdboxSearch.config.runtime import RuntimeConfig, check_runtime, load_runtime

INDEX_URL_ENV = "BIRDBOX_INDEX_URL"


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application root configuration."""

    index: IndexConfig
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)


def parse_config_dict(raw: Mapping[str, Any], *, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Parse normalized mapping into AppConfig.

    Args:
        raw: Merged configuration mapping.
        environ: Environment used for overrides; defaults to `os.environ`.
    """
    runtime = load_runtime(raw)
    index = _apply_env_overrides(load_index(raw), os.environ if environ is None else environ)
    fetch = load_fetch(raw)

    check_runtime(runtime)
    check_index(index)
    check_fetch(fetch)

    return AppConfig(index=index, runtime=runtime, fetch=fetch)


def load_config(path: Path) -> AppConfig:
    """Load YAML config file without default merge."""
    return load_config_with_defaults(path, default_path=path)


def load_config_with_defaults(
    config_path: Path, default_path: Path = Path("config/default.yml")
) -> AppConfig:
    """Load config by merging defaults and optional override."""
    base = parse_yaml(default_path.read_text(encoding="utf-8"))
    if config_path == default_path:
        return parse_config_dict(base)
    override = parse_yaml(config_path.read_text(encoding="utf-8"))
    return parse_config_dict(merge_config_dicts(base, override))


def parse_yaml(text: str) -> dict[str, Any]:
    """Parse raw YAML text into a mapping."""
    data = yaml.safe_load(text) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Config root must be a mapping/object")
    return dict(data)


def merge_config_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge two config mappings."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(config: IndexConfig, environ: Mapping[str, str]) -> IndexConfig:
    url = environ.get(INDEX_URL_ENV, "").strip()
    if url:
        return replace(config, url=url)
    return config
