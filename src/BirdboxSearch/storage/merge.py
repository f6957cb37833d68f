"""Reconcile incoming resource observations with stored documents.

Ingestion rescans the same resources over and over, so a write is only issued
when a field that matters to nest queries actually changed.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Optional

from BirdboxSearch.core.models import Album, ReconcileResult, Resource
from BirdboxSearch.index.base import SearchIndex
from BirdboxSearch.utils.log import log
from BirdboxSearch.utils.timeutil import utcnow

Clock = Callable[[], datetime]


def reconcile(incoming: Resource, existing: Optional[Resource], *, now: Optional[datetime] = None) -> ReconcileResult:
    """Merge an observation into the stored version of the same resource.

    Args:
        incoming: Resource as just observed at the provider. When its
            `remove_albums` flag is set, `incoming.albums` lists the albums the
            resource left instead of the albums it is in.
        existing: Stored resource with the same id, or None.
        now: Timestamp used for `updated_at` (and `created_at` on first write).

    Returns:
        ReconcileResult with the merged resource, whether it differs from
        `existing`, and the albums that were not stored before.
    """
    now = now or utcnow()

    if existing is None:
        merged = replace(
            incoming,
            created_at=incoming.created_at or now,
            updated_at=incoming.updated_at or now,
            remove_albums=False,
        )
        return ReconcileResult(resource=merged, changed=True, new_albums=incoming.albums)

    removed = incoming.removed
    new_albums: tuple[Album, ...] = ()
    if incoming.remove_albums:
        leaving = {album.id for album in incoming.albums}
        albums = tuple(album for album in existing.albums if album.id not in leaving)
        if not albums:
            removed = True
    else:
        stored = {album.id for album in existing.albums}
        new_albums = tuple(album for album in incoming.albums if album.id not in stored)
        albums = tuple(existing.albums) + new_albums
        if new_albums:
            removed = False

    merged = replace(
        incoming,
        albums=albums,
        nests=existing.nests | incoming.nests,
        removed=removed,
        created_at=_sticky(existing.created_at, incoming.created_at),
        uploaded_at=_sticky(existing.uploaded_at, incoming.uploaded_at),
        taken_at=_sticky(existing.taken_at, incoming.taken_at),
        updated_at=now,
        remove_albums=False,
        extra={**existing.extra, **incoming.extra},
    )
    return ReconcileResult(resource=merged, changed=_differs(existing, merged), new_albums=new_albums)


class ResourceMerger:
    """Persist resources through `reconcile`, skipping writes that change nothing.

    Reads and writes are not atomic: two ingesters racing on the same id may
    both write, and the later write wins. Callers that need stronger guarantees
    should route each id through a single writer.
    """

    def __init__(self, index: SearchIndex, clock: Clock = utcnow) -> None:
        self.index = index
        self.clock = clock

    def reconcile_and_persist(self, incoming: Resource) -> ReconcileResult:
        """Reconcile `incoming` with its stored version and write it if changed.

        Raises:
            SearchIndexError: Propagated from the index.
        """
        existing = self._load(incoming.id)
        result = reconcile(incoming, existing, now=self.clock())
        if result.changed:
            self.index.upsert(result.resource.to_document())
            log.debug("Persisted resource %s (%s:%s)", incoming.id, incoming.provider, incoming.external_id)
        else:
            log.debug("Resource %s unchanged; write skipped", incoming.id)
        return result

    def persist_many(self, resources: Iterable[Resource]) -> int:
        """Reconcile and persist each resource; returns how many were written."""
        written = 0
        total = 0
        for resource in resources:
            total += 1
            if self.reconcile_and_persist(resource).changed:
                written += 1
        log.info("Persisted %d/%d resources", written, total)
        return written

    def _load(self, resource_id: str) -> Optional[Resource]:
        documents = self.index.get_by_ids([resource_id])
        if not documents:
            return None
        return Resource.from_document(documents[0])


def _sticky(stored: Optional[datetime], observed: Optional[datetime]) -> Optional[datetime]:
    return stored if stored is not None else observed


def _differs(existing: Resource, merged: Resource) -> bool:
    return (
        set(existing.tags) != set(merged.tags)
        or existing.nests != merged.nests
        or tuple(existing.people) != tuple(merged.people)
        or [a.id for a in existing.albums] != [a.id for a in merged.albums]
        or existing.removed != merged.removed
    )
