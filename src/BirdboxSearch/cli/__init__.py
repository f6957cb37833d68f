"""CLI package for BirdboxSearch command orchestration.

This package contains the click interface, the runner that owns index
lifecycle and error handling, and the command implementations.
"""

from __future__ import annotations

__all__ = ["CommandRunner", "main"]

from BirdboxSearch.cli.runner import CommandRunner
from BirdboxSearch.cli.ui import cli


def main() -> None:
    """Run BirdboxSearch CLI.

    Entry point referenced by console script in pyproject.toml.
    """
    cli()
