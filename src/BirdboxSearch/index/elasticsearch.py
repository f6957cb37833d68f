"""Elasticsearch adapter.

Implements `SearchIndex` over the official Elasticsearch client. Retries on
throttling, server errors and dropped connections are left to the client's
transport; whatever still fails surfaces as `SearchIndexError`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional, Sequence

import elasticsearch8

from BirdboxSearch.core.filters import FilterTree, SortField, TermsAggregation
from BirdboxSearch.errors import IndexUnavailable, SearchIndexError
from BirdboxSearch.index.base import SearchResult, TermBucket
from BirdboxSearch.index.dsl import compile_aggregation, compile_filter, compile_sort
from BirdboxSearch.index.schema import RESOURCE_SCHEMA, IndexSchema
from BirdboxSearch.utils.log import log

DEFAULT_TIMEOUT = 30.0
MAX_ATTEMPTS = 4

RETRYABLE_STATUS = (429, 502, 503, 504)
UNAVAILABLE_STATUS = frozenset({502, 503, 504})

_AGGREGATION_NAME = "terms"


class ElasticsearchIndex:
    """`SearchIndex` backed by one Elasticsearch index (or alias).

    Responsible only for transport and response decoding; queries arrive as
    engine-agnostic filter trees and are compiled by `BirdboxSearch.index.dsl`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        index_name: str | None = None,
        schema: IndexSchema = RESOURCE_SCHEMA,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        client: Optional[elasticsearch8.Elasticsearch] = None,
    ) -> None:
        """Initialize the adapter and its client.

        Args:
            base_url: Cluster URL, e.g. ``http://localhost:9200``.
            index_name: Index or alias to query; defaults to the schema name.
            schema: Mapping applied by `create`.
            timeout: Per-request timeout in seconds.
            max_attempts: Attempts per request before giving up.
            client: Optional preconfigured client (tests, auth).
        """
        self.base_url = base_url.rstrip("/")
        self.schema = schema
        self.index_name = index_name or schema.name
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        if client is None:
            client = elasticsearch8.Elasticsearch(
                self.base_url,
                request_timeout=timeout,
                max_retries=self.max_attempts - 1,
                retry_on_timeout=True,
                retry_on_status=RETRYABLE_STATUS,
            )
        self._client = client

    def close(self) -> None:
        """Close the client and release pooled connections."""
        self._client.close()

    def __enter__(self) -> ElasticsearchIndex:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def execute(
        self,
        filter_tree: FilterTree | None,
        sort: Sequence[SortField],
        start: int,
        size: int,
    ) -> SearchResult:
        with _translate_errors("search", self.index_name):
            response = self._client.search(
                index=self.index_name,
                query=compile_filter(filter_tree),
                sort=compile_sort(sort),
                from_=start,
                size=size,
                track_total_hits=True,
            )
        hits = _body(response).get("hits", {})
        documents = [_hit_document(hit) for hit in hits.get("hits", [])]
        return SearchResult(documents=documents, total=_total(hits.get("total")))

    def aggregate(self, filter_tree: FilterTree | None, aggregation: TermsAggregation) -> list[TermBucket]:
        with _translate_errors("aggregate", self.index_name):
            response = self._client.search(
                index=self.index_name,
                query=compile_filter(filter_tree),
                aggs=compile_aggregation(aggregation, _AGGREGATION_NAME),
                size=0,
            )
        buckets = _body(response).get("aggregations", {}).get(_AGGREGATION_NAME, {}).get("buckets", [])
        return [TermBucket(term=str(b["key"]), count=int(b["doc_count"])) for b in buckets]

    def count(self, filter_tree: FilterTree | None) -> int:
        with _translate_errors("count", self.index_name):
            response = self._client.count(index=self.index_name, query=compile_filter(filter_tree))
        return int(_body(response).get("count", 0))

    def get_by_ids(self, ids: Sequence[str]) -> list[dict[str, Any]]:
        if not ids:
            return []
        with _translate_errors("mget", self.index_name):
            response = self._client.mget(index=self.index_name, ids=list(ids))
        return [_hit_document(doc) for doc in _body(response).get("docs", []) if doc.get("found")]

    def upsert(self, document: Mapping[str, Any]) -> None:
        doc_id = document.get("id")
        if not doc_id:
            raise SearchIndexError("Document has no id")
        with _translate_errors("index", self.index_name):
            self._client.index(index=self.index_name, id=str(doc_id), document=dict(document))

    def delete(self, index_name: str | None = None) -> None:
        name = index_name or self.index_name
        with _translate_errors("delete", name):
            try:
                self._client.indices.delete(index=name)
            except elasticsearch8.NotFoundError:
                log.info("Index %s does not exist; nothing to delete", name)
                return
        log.info("Deleted index %s", name)

    def refresh(self, index_name: str | None = None) -> None:
        name = index_name or self.index_name
        with _translate_errors("refresh", name):
            self._client.indices.refresh(index=name)

    def create(self, index_name: str | None = None) -> None:
        """Create an index with the schema mapping applied."""
        name = index_name or self.index_name
        with _translate_errors("create", name):
            self._client.indices.create(index=name, mappings=self.schema.to_mapping()["mappings"])
        log.info("Created index %s", name)

    def put_alias(self, index_name: str, alias: str) -> None:
        """Point `alias` at `index_name`."""
        with _translate_errors("put_alias", index_name):
            self._client.indices.put_alias(index=index_name, name=alias)


@contextmanager
def _translate_errors(action: str, index_name: str) -> Iterator[None]:
    """Re-raise client errors as `IndexUnavailable` or `SearchIndexError`.

    Connection failures, timeouts and 502/503/504 replies mean the cluster
    is unreachable; any other API or transport error is a failed request.
    """
    where = f"{action} {index_name}"
    try:
        yield
    except (elasticsearch8.ConnectionError, elasticsearch8.ConnectionTimeout) as e:
        raise IndexUnavailable(f"{where}: index unavailable ({e})") from e
    except elasticsearch8.ApiError as e:
        status = getattr(e.meta, "status", None)
        if status in UNAVAILABLE_STATUS:
            raise IndexUnavailable(f"{where}: index unavailable (HTTP {status})") from e
        raise SearchIndexError(f"{where} failed: HTTP {status} {e}") from e
    except elasticsearch8.TransportError as e:
        raise SearchIndexError(f"{where} failed: {e}") from e


def _body(response: Any) -> Mapping[str, Any]:
    # Client calls return ObjectApiResponse; the decoded JSON is on `.body`.
    body = getattr(response, "body", response)
    if not isinstance(body, Mapping):
        raise SearchIndexError("Elasticsearch returned an unexpected payload")
    return body


def _hit_document(hit: Mapping[str, Any]) -> dict[str, Any]:
    document = dict(hit.get("_source") or {})
    document["id"] = hit.get("_id", document.get("id"))
    return document


def _total(value: Any) -> int:
    # ES 7+ reports {"value": n, "relation": "eq"}; older releases a bare int.
    if isinstance(value, Mapping):
        return int(value.get("value", 0))
    return int(value or 0)
