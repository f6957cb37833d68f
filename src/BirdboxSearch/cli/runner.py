"""Command runner for coordinating CLI execution.

Manages index lifecycle, logging configuration, and error handling for
command execution.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, TextIO

import click

from BirdboxSearch.cli.commands import (
    CountCommand,
    FetchCommand,
    IngestCommand,
    MigrateCommand,
    PeopleCommand,
    load_sources,
)
from BirdboxSearch.config import AppConfig
from BirdboxSearch.index import SearchIndex, create_search_index
from BirdboxSearch.services import create_fetcher
from BirdboxSearch.storage import create_merger
from BirdboxSearch.utils.log import configure_logging, log


class CommandRunner:
    """Orchestrates command execution with proper resource management.

    Every command gets freshly built collaborators; indexes are closed when the
    command finishes, and failures are logged and turned into `click.Abort`.
    """

    def __init__(self, config: AppConfig) -> None:
        """Initialize command runner.

        Args:
            config: Application configuration.
        """
        self.config = config

    def run_fetch(self, action: str, sources_path: Path, options: dict[str, Any]) -> None:
        """Print one page of the nest described in `sources_path`."""

        def build(index: SearchIndex) -> FetchCommand:
            fetcher = create_fetcher(self.config, index)
            return FetchCommand(fetcher, load_sources(sources_path), fetcher.default_options(**options))

        self._run(action, build)

    def run_count(self, action: str, sources_path: Path, options: dict[str, Any]) -> None:
        def build(index: SearchIndex) -> CountCommand:
            fetcher = create_fetcher(self.config, index)
            return CountCommand(fetcher, load_sources(sources_path), fetcher.default_options(**options))

        self._run(action, build)

    def run_people(self, action: str, sources_path: Path, options: dict[str, Any]) -> None:
        def build(index: SearchIndex) -> PeopleCommand:
            fetcher = create_fetcher(self.config, index)
            return PeopleCommand(fetcher, load_sources(sources_path), fetcher.default_options(**options))

        self._run(action, build)

    def run_ingest(self, action: str, stream: TextIO) -> None:
        self._run(action, lambda index: IngestCommand(create_merger(index), stream))

    def run_migrate(self, action: str, source_name: str, target_name: str) -> None:
        """Copy index `source_name` into `target_name`.

        Raises:
            click.Abort: When the migration fails.
        """
        self._configure_logging(action)
        indexes: list[SearchIndex] = []
        try:
            source = create_search_index(self.config, index_name=source_name)
            indexes.append(source)
            target = create_search_index(self.config, index_name=target_name)
            indexes.append(target)
            MigrateCommand(source=source, target=target).execute()
        except Exception as e:  # noqa: BLE001 - cli boundary
            log.error("%s failed: %s", action, e)
            raise click.Abort from e
        finally:
            for index in indexes:
                _close(index)

    def _run(self, action: str, build: Callable[[SearchIndex], Any]) -> None:
        """Build the index and the command, execute it, and clean up.

        Raises:
            click.Abort: When the command fails.
        """
        self._configure_logging(action)
        index = None
        try:
            index = create_search_index(self.config)
            build(index).execute()
        except Exception as e:  # noqa: BLE001 - cli boundary
            log.error("%s failed: %s", action, e)
            raise click.Abort from e
        finally:
            if index is not None:
                _close(index)

    def _configure_logging(self, action: str) -> None:
        configure_logging(
            level=self.config.runtime.level,
            action=action,
            log_to_file=self.config.runtime.to_file,
            log_dir=self.config.runtime.dir,
        )


def _close(index: SearchIndex) -> None:
    close_func = getattr(index, "close", None)
    if callable(close_func):
        close_func()
