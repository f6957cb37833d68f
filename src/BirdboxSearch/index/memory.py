"""In-process `SearchIndex` that evaluates filter trees over stored documents.

Matches Elasticsearch semantics where the core depends on them:
- multi-valued fields match when any value matches;
- documents missing a sort value sort last in either direction;
- aggregation buckets are ordered by count desc, then term asc.
"""

from __future__ import annotations

import copy
import threading
from typing import Any, Iterable, Mapping, Sequence

from BirdboxSearch.core.filters import And, FilterTree, Not, Or, Range, SortField, Term, Terms, TermsAggregation
from BirdboxSearch.errors import SearchIndexError
from BirdboxSearch.index.base import SearchResult, TermBucket
from BirdboxSearch.index.schema import RESOURCE_SCHEMA, IndexSchema
from BirdboxSearch.utils.log import log
from BirdboxSearch.utils.timeutil import parse_optional_datetime


class InMemorySearchIndex:
    """Dictionary-backed index, safe to share between threads."""

    def __init__(self, schema: IndexSchema = RESOURCE_SCHEMA, index_name: str | None = None) -> None:
        self.schema = schema
        self.index_name = index_name or schema.name
        self._date_fields = schema.date_fields
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = threading.RLock()

    def execute(
        self,
        filter_tree: FilterTree | None,
        sort: Sequence[SortField],
        start: int,
        size: int,
    ) -> SearchResult:
        if start < 0 or size < 0:
            raise SearchIndexError(f"Invalid result window: start={start} size={size}")
        with self._lock:
            matches = self._matching(filter_tree)
        ordered = self._sorted(matches, sort)
        window = ordered[start : start + size]
        return SearchResult(documents=[copy.deepcopy(d) for d in window], total=len(ordered))

    def aggregate(self, filter_tree: FilterTree | None, aggregation: TermsAggregation) -> list[TermBucket]:
        with self._lock:
            matches = self._matching(filter_tree)
        counts: dict[str, int] = {}
        for doc in matches:
            for term in {str(v) for v in self._values(doc, aggregation.field)}:
                counts[term] = counts.get(term, 0) + 1
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [TermBucket(term=term, count=count) for term, count in ranked[: aggregation.size]]

    def count(self, filter_tree: FilterTree | None) -> int:
        with self._lock:
            return len(self._matching(filter_tree))

    def get_by_ids(self, ids: Sequence[str]) -> list[dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(self._documents[i]) for i in ids if i in self._documents]

    def upsert(self, document: Mapping[str, Any]) -> None:
        doc_id = document.get("id")
        if not doc_id:
            raise SearchIndexError("Document has no id")
        with self._lock:
            self._documents[str(doc_id)] = copy.deepcopy(dict(document))

    def delete(self, index_name: str | None = None) -> None:
        if index_name not in (None, self.index_name):
            log.debug("In-memory index %s: ignoring delete of %s", self.index_name, index_name)
            return
        with self._lock:
            self._documents.clear()

    def refresh(self, index_name: str | None = None) -> None:
        # Writes are visible immediately.
        del index_name

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    def _matching(self, filter_tree: FilterTree | None) -> list[dict[str, Any]]:
        if filter_tree is None:
            return list(self._documents.values())
        return [doc for doc in self._documents.values() if self._evaluate(filter_tree, doc)]

    def _evaluate(self, node: FilterTree, doc: Mapping[str, Any]) -> bool:
        if isinstance(node, And):
            return all(self._evaluate(child, doc) for child in node.children)
        if isinstance(node, Or):
            return any(self._evaluate(child, doc) for child in node.children)
        if isinstance(node, Not):
            return not self._evaluate(node.node, doc)
        if isinstance(node, Term):
            expected = self._coerce(node.field, node.value)
            return any(v == expected for v in self._coerced_values(doc, node.field))
        if isinstance(node, Terms):
            wanted = {self._coerce(node.field, v) for v in node.values}
            return any(v in wanted for v in self._coerced_values(doc, node.field))
        if isinstance(node, Range):
            return any(self._in_range(node, v) for v in self._coerced_values(doc, node.field))
        raise SearchIndexError(f"Unsupported filter node: {type(node).__name__}")

    def _in_range(self, node: Range, value: Any) -> bool:
        try:
            if node.start is not None:
                low = self._coerce(node.field, node.start)
                if value < low or (value == low and not node.include_lower):
                    return False
            if node.end is not None:
                high = self._coerce(node.field, node.end)
                if value > high or (value == high and not node.include_upper):
                    return False
        except TypeError:
            return False
        return True

    def _sorted(self, docs: list[dict[str, Any]], sort: Sequence[SortField]) -> list[dict[str, Any]]:
        ordered = list(docs)
        # Stable multi-key sort: apply the least significant key first.
        for clause in reversed(tuple(sort)):
            present: list[tuple[Any, dict[str, Any]]] = []
            missing: list[dict[str, Any]] = []
            for doc in ordered:
                values = self._coerced_values(doc, clause.field)
                if values:
                    key = max(values) if clause.direction == "desc" else min(values)
                    present.append((key, doc))
                else:
                    missing.append(doc)
            present.sort(key=lambda item: item[0], reverse=clause.direction == "desc")
            ordered = [doc for _, doc in present] + missing
        return ordered

    def _coerced_values(self, doc: Mapping[str, Any], field: str) -> list[Any]:
        return [self._coerce(field, v) for v in self._values(doc, field) if v is not None]

    def _values(self, doc: Mapping[str, Any], field: str) -> list[Any]:
        if field == "_id":
            return [doc.get("id")]
        if "." in field:
            parent, child = field.split(".", 1)
            return [item.get(child) for item in _as_list(doc.get(parent)) if isinstance(item, Mapping)]
        return _as_list(doc.get(field))

    def _coerce(self, field: str, value: Any) -> Any:
        if field in self._date_fields:
            return parse_optional_datetime(value)
        if isinstance(value, bool):
            return value
        return str(value)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def load_documents(index: InMemorySearchIndex, documents: Iterable[Mapping[str, Any]]) -> int:
    """Bulk-load documents into an in-memory index; returns how many were loaded."""
    loaded = 0
    for document in documents:
        index.upsert(document)
        loaded += 1
    return loaded
