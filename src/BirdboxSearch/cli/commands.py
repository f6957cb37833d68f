"""Command implementations for BirdboxSearch CLI.

Each command holds its collaborators and writes its result to stdout as JSON;
logging goes to stderr.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, TextIO

import click
import yaml

from BirdboxSearch.core.models import FetchOptions, Page, Resource
from BirdboxSearch.index.base import SearchIndex
from BirdboxSearch.services.fetch import PaginatedFetcher
from BirdboxSearch.storage.merge import ResourceMerger
from BirdboxSearch.storage.migrate import migrate_index
from BirdboxSearch.utils.log import log
from BirdboxSearch.utils.timeutil import format_datetime


def load_sources(path: Path) -> dict[str, Any]:
    """Read a source description (`{provider: {albums, tags}}`) from YAML or JSON."""
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{path}: sources must be a mapping of provider to filter")
    return dict(data)


def read_resources(stream: TextIO) -> list[Resource]:
    """Parse JSON-lines resource records; blank lines are skipped."""
    resources: list[Resource] = []
    for lineno, line in enumerate(stream, start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"line {lineno}: invalid JSON ({e.msg})") from e
        if not isinstance(record, Mapping):
            raise ValueError(f"line {lineno}: expected a JSON object")
        resources.append(Resource.from_document(record).with_hashtags())
    return resources


def page_to_dict(page: Page) -> dict[str, Any]:
    next_options = page.next_options()
    cursor = None
    if next_options is not None:
        cursor = {
            "page": next_options.page,
            "since": _jsonable(next_options.since),
            "until": _jsonable(next_options.until),
            "external_id_cursor": next_options.external_id_cursor,
        }
    return {
        "total": page.total,
        "page": page.options.page,
        "hits": [resource.to_document() for resource in page.hits],
        "next": cursor,
    }


def _jsonable(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return format_datetime(value)
    return value


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@dataclass(slots=True)
class FetchCommand:
    """Print one page of a nest."""

    fetcher: PaginatedFetcher
    sources: Mapping[str, Any]
    options: FetchOptions

    def execute(self) -> None:
        log.debug("Fetching page %d (size=%d)", self.options.page, self.options.page_size)
        _echo_json(page_to_dict(self.fetcher.fetch(self.sources, self.options)))


@dataclass(slots=True)
class CountCommand:
    """Print the number of resources in a nest."""

    fetcher: PaginatedFetcher
    sources: Mapping[str, Any]
    options: FetchOptions

    def execute(self) -> None:
        click.echo(str(self.fetcher.count(self.sources, self.options)))


@dataclass(slots=True)
class PeopleCommand:
    """Print the people tagged in a nest with their counts."""

    fetcher: PaginatedFetcher
    sources: Mapping[str, Any]
    options: FetchOptions

    def execute(self) -> None:
        people = self.fetcher.find_tagged_people(self.sources, self.options)
        _echo_json([{"id": person_id, "count": count} for person_id, count in people])


@dataclass(slots=True)
class IngestCommand:
    """Reconcile and persist JSON-lines resources."""

    merger: ResourceMerger
    stream: TextIO

    def execute(self) -> None:
        resources = read_resources(self.stream)
        log.info("Read %d resources", len(resources))
        written = self.merger.persist_many(resources)
        self.merger.index.refresh()
        click.echo(f"{written}/{len(resources)}")


@dataclass(slots=True)
class MigrateCommand:
    """Copy every document from one index into another."""

    source: SearchIndex
    target: SearchIndex

    def execute(self) -> None:
        copied = migrate_index(self.source, self.target)
        log.info("Migrated %d documents", copied)
        click.echo(str(copied))
