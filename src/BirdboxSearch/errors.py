"""Error taxonomy for BirdboxSearch.

Validation errors are raised before any index round trip. Index errors are
raised by the adapters and propagate unchanged through the core.
"""

from __future__ import annotations


class BirdboxSearchError(Exception):
    """Base class for every error raised by BirdboxSearch."""


class InvalidSpecification(BirdboxSearchError, ValueError):
    """A source description violates a provider's minimum-filter rule."""


class InvalidArgument(BirdboxSearchError, ValueError):
    """A fetch option (bound, page, sort) is malformed."""


class SearchIndexError(BirdboxSearchError, RuntimeError):
    """The search index rejected or failed a request."""


class IndexUnavailable(SearchIndexError):
    """The search index could not be reached."""
