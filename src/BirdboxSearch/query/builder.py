"""Nest query filter builder.

Compiles a source description plus `FetchOptions` into a single top-level
`And` filter:

    And(
        <provider fragments>,
        Term(_id)                       # membership mode only
        Range(uploaded_at)              # since/until, exclusive when given
        <external_id cursor bound>      # next-page requests
        Not(Terms(_id, exclude)),
        Term(removed, False),
    )

All option validation happens here so a malformed request never reaches the
index.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from BirdboxSearch.core.filters import And, FilterTree, Not, Or, Range, SortField, Term, Terms
from BirdboxSearch.core.models import FetchOptions
from BirdboxSearch.query.providers import build_provider_statements
from BirdboxSearch.utils.timeutil import parse_timestamp

PRIMARY_TIME_FIELD = "uploaded_at"
TIE_BREAK_FIELD = "external_id"


def build_filter(sources: Mapping[Any, Any] | None, opts: FetchOptions | None = None) -> FilterTree | None:
    """Build the filter selecting a nest's visible resources.

    Args:
        sources: Mapping of provider name to `{albums, tags}` filter.
        opts: Fetch options; defaults are used when omitted.

    Returns:
        The filter tree, or None when `sources` names no provider (an empty
        nest matches nothing).

    Raises:
        InvalidSpecification: If a provider filter is invalid.
        InvalidArgument: If `since`/`until` cannot be parsed.
    """
    if not sources:
        return None
    opts = opts or FetchOptions()

    conjuncts: list[FilterTree] = [build_provider_statements(sources)]

    if opts.id is not None:
        conjuncts.append(Term("_id", str(opts.id)))
    else:
        since = parse_timestamp(opts.since, "since") if opts.since is not None else None
        until = parse_timestamp(opts.until, "until") if opts.until is not None else None
        conjuncts.extend(_time_and_cursor_filters(opts, since, until))
        if opts.exclude:
            conjuncts.append(Not(Terms("_id", sorted(opts.exclude))))

    conjuncts.append(Term("removed", False))
    return And(conjuncts)


def build_sort(opts: FetchOptions) -> tuple[SortField, ...]:
    """Return the sort clauses: primary field, then the `external_id` tie-break.

    Both clauses share one direction, so ascending and descending traversals
    are mirror images.
    """
    if opts.sort_by == TIE_BREAK_FIELD:
        return (SortField(TIE_BREAK_FIELD, opts.sort_direction),)
    return (
        SortField(opts.sort_by, opts.sort_direction),
        SortField(TIE_BREAK_FIELD, opts.sort_direction),
    )


def _time_and_cursor_filters(
    opts: FetchOptions,
    since: datetime | None,
    until: datetime | None,
) -> list[FilterTree]:
    cursor = opts.external_id_cursor
    travel_bound = until if opts.descending else since

    if cursor is None or travel_bound is None or opts.sort_by != PRIMARY_TIME_FIELD:
        filters: list[FilterTree] = []
        if since is not None or until is not None:
            filters.append(
                Range(
                    PRIMARY_TIME_FIELD,
                    start=since,
                    end=until,
                    include_lower=since is None,
                    include_upper=until is None,
                )
            )
        if cursor is not None:
            filters.append(_cursor_range(cursor, descending=opts.descending))
        return filters

    # Keyset: strictly past the last row in (uploaded_at, external_id) order.
    filters = []
    if opts.descending:
        if since is not None:
            filters.append(Range(PRIMARY_TIME_FIELD, start=since, include_lower=False))
        beyond = Range(PRIMARY_TIME_FIELD, end=until, include_upper=False)
    else:
        if until is not None:
            filters.append(Range(PRIMARY_TIME_FIELD, end=until, include_upper=False))
        beyond = Range(PRIMARY_TIME_FIELD, start=since, include_lower=False)
    tied = And([Term(PRIMARY_TIME_FIELD, travel_bound), _cursor_range(cursor, descending=opts.descending)])
    filters.append(Or([beyond, tied]))
    return filters


def _cursor_range(cursor: str, *, descending: bool) -> Range:
    if descending:
        return Range(TIE_BREAK_FIELD, end=cursor, include_upper=False)
    return Range(TIE_BREAK_FIELD, start=cursor, include_lower=False)
