"""Click CLI interface definitions.

Defines the command-line interface structure and routes commands
to their respective runners.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import click
from dotenv import load_dotenv

from BirdboxSearch.cli.runner import CommandRunner
from BirdboxSearch.config import load_config_with_defaults

DEFAULT_CONFIG = Path("config/default.yml")


@click.group(help="BirdboxSearch: query and maintain the resources index.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=DEFAULT_CONFIG,
    show_default=True,
    help="Path to YAML config file (merged over the defaults).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path) -> None:
    """CLI entry group.

    Loads environment variables from .env file before processing config.

    Args:
        ctx: Click context.
        config_path: Path to YAML config file.
    """
    load_dotenv()

    default_path = DEFAULT_CONFIG if DEFAULT_CONFIG.exists() else config_path
    ctx.obj = load_config_with_defaults(config_path, default_path=default_path)


def _nest_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the source file and fetch option flags shared by nest queries."""
    decorators = [
        click.option(
            "--sources",
            "sources_path",
            required=True,
            type=click.Path(path_type=Path, dir_okay=False, exists=True),
            help="YAML/JSON file mapping providers to {albums, tags}.",
        ),
        click.option("--page", type=click.IntRange(min=1), default=None, help="1-based page number."),
        click.option("--page-size", type=click.IntRange(min=1), default=None, help="Results per page."),
        click.option("--since", default=None, help="Exclusive lower bound on uploaded_at."),
        click.option("--until", default=None, help="Exclusive upper bound on uploaded_at."),
        click.option("--sort-direction", type=click.Choice(["asc", "desc"]), default=None),
        click.option("--exclude", multiple=True, help="Resource id to leave out (repeatable)."),
        click.option("--cursor", "external_id_cursor", default=None, help="external_id of the last row already seen."),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def _fetch_overrides(**params: Any) -> dict[str, Any]:
    overrides = {key: value for key, value in params.items() if value is not None}
    exclude = overrides.pop("exclude", ())
    if exclude:
        overrides["exclude"] = frozenset(exclude)
    return overrides


@cli.command("fetch")
@_nest_options
@click.pass_context
def fetch_cmd(ctx: click.Context, sources_path: Path, **params: Any) -> None:
    """Print one page of a nest as JSON.

    Raises:
        click.Abort: When the query fails.
    """
    CommandRunner(ctx.obj).run_fetch(ctx.command.name, sources_path, _fetch_overrides(**params))


@cli.command("count")
@_nest_options
@click.pass_context
def count_cmd(ctx: click.Context, sources_path: Path, **params: Any) -> None:
    """Print how many resources a nest holds."""
    CommandRunner(ctx.obj).run_count(ctx.command.name, sources_path, _fetch_overrides(**params))


@cli.command("people")
@_nest_options
@click.pass_context
def people_cmd(ctx: click.Context, sources_path: Path, **params: Any) -> None:
    """Print the people tagged in a nest, most tagged first."""
    CommandRunner(ctx.obj).run_people(ctx.command.name, sources_path, _fetch_overrides(**params))


@cli.command("ingest")
@click.argument("resources_file", type=click.File("r", encoding="utf-8"))
@click.pass_context
def ingest_cmd(ctx: click.Context, resources_file) -> None:
    """Reconcile and persist JSON-lines resources (use - for stdin).

    Prints `<written>/<read>`.
    """
    CommandRunner(ctx.obj).run_ingest(ctx.command.name, resources_file)


@cli.command("migrate")
@click.option("--from", "source_name", required=True, help="Index to copy from.")
@click.option("--to", "target_name", required=True, help="Index to create and copy into.")
@click.pass_context
def migrate_cmd(ctx: click.Context, source_name: str, target_name: str) -> None:
    """Copy every document into a new index, upgrading legacy album fields."""
    CommandRunner(ctx.obj).run_migrate(ctx.command.name, source_name, target_name)
