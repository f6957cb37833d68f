"""Copy resource documents between indexes, upgrading legacy documents.

Early documents carried a single `album` object and none of the `removed`,
`tags`, `people` or `nests` fields; current documents list every album under
`albums` and always carry the full field set, since nest queries filter on
`removed` being false.
"""

from __future__ import annotations

from typing import Any, Mapping

from BirdboxSearch.core.filters import SortField
from BirdboxSearch.core.models import Resource
from BirdboxSearch.index.base import SearchIndex
from BirdboxSearch.utils.log import log

DEFAULT_BATCH_SIZE = 500
_COPY_ORDER = (SortField("uploaded_at", "asc"), SortField("external_id", "asc"))


def upgrade_document(document: Mapping[str, Any]) -> dict[str, Any]:
    """Return `document` in the current layout.

    A legacy `album` moves into `albums` and the document is re-serialized
    through `Resource`, which fills in missing fields and recomputes the id.

    Raises:
        ValueError: If `document` has no `provider` or `external_id`.
    """
    upgraded = dict(document)
    album = upgraded.pop("album", None)
    if album and not upgraded.get("albums"):
        upgraded["albums"] = [album]
    upgraded.setdefault("albums", [])
    return Resource.from_document(upgraded).to_document()


def migrate_index(source: SearchIndex, target: SearchIndex, *, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
    """Copy every document of `source` into `target`.

    Args:
        source: Index to read from.
        target: Index to write to; created first when the adapter supports it.
        batch_size: Documents read per request.

    Returns:
        Number of documents copied.

    Raises:
        ValueError: If `batch_size` is not positive.
        SearchIndexError: Propagated from either index.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    create = getattr(target, "create", None)
    if callable(create):
        create()

    copied = 0
    start = 0
    while True:
        result = source.execute(None, _COPY_ORDER, start, batch_size)
        if not result.documents:
            break
        for document in result.documents:
            target.upsert(upgrade_document(document))
        copied += len(result.documents)
        start += len(result.documents)
        log.info("Copied %d/%d documents %s -> %s", copied, result.total, source.index_name, target.index_name)
        if start >= result.total:
            break

    target.refresh()
    return copied
