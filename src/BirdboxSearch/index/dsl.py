"""Elasticsearch query DSL compiler.

Translates the engine-agnostic filter tree into a `bool` query.

Mapping
- And   -> bool.filter
- Or    -> bool.should + minimum_should_match=1
- Not   -> bool.must_not
- Term  -> term
- Terms -> terms
- Range -> range (gt/gte/lt/lte)
- _id   -> ids (the document `_id` is the resource id)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from BirdboxSearch.core.filters import And, FilterTree, Not, Or, Range, SortField, Term, Terms, TermsAggregation
from BirdboxSearch.utils.timeutil import format_datetime

MATCH_ALL: dict[str, Any] = {"match_all": {}}


def compile_filter(tree: FilterTree | None) -> dict[str, Any]:
    """Compile a filter tree into a query clause (match_all for None)."""
    if tree is None:
        return dict(MATCH_ALL)
    return _compile(tree)


def compile_sort(sort: Sequence[SortField]) -> list[dict[str, Any]]:
    return [{clause.field: {"order": clause.direction, "missing": "_last"}} for clause in sort]


def compile_aggregation(aggregation: TermsAggregation, name: str = "terms") -> dict[str, Any]:
    return {
        name: {
            "terms": {
                "field": aggregation.field,
                "size": aggregation.size,
                "order": [{"_count": "desc"}, {"_key": "asc"}],
            }
        }
    }


def _compile(node: FilterTree) -> dict[str, Any]:
    if isinstance(node, And):
        return {"bool": {"filter": [_compile(child) for child in node.children]}}
    if isinstance(node, Or):
        return {
            "bool": {
                "should": [_compile(child) for child in node.children],
                "minimum_should_match": 1,
            }
        }
    if isinstance(node, Not):
        return {"bool": {"must_not": [_compile(node.node)]}}
    if isinstance(node, Term):
        if node.field == "_id":
            return {"ids": {"values": [_value(node.value)]}}
        return {"term": {node.field: _value(node.value)}}
    if isinstance(node, Terms):
        if node.field == "_id":
            return {"ids": {"values": [_value(v) for v in node.values]}}
        return {"terms": {node.field: [_value(v) for v in node.values]}}
    if isinstance(node, Range):
        bounds: dict[str, Any] = {}
        if node.start is not None:
            bounds["gte" if node.include_lower else "gt"] = _value(node.start)
        if node.end is not None:
            bounds["lte" if node.include_upper else "lt"] = _value(node.end)
        return {"range": {node.field: bounds}}
    raise ValueError(f"Unsupported filter node: {type(node).__name__}")


def _value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_datetime(value)
    return value
