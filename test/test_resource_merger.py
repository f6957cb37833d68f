"""Tests for resource reconciliation, persistence and index migration."""

from __future__ import annotations

import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from BirdboxSearch.core.models import Resource
from BirdboxSearch.index.memory import InMemorySearchIndex
from BirdboxSearch.services.fetch import PaginatedFetcher
from BirdboxSearch.storage.merge import ResourceMerger, reconcile
from BirdboxSearch.storage.migrate import migrate_index, upgrade_document

NOW = datetime(2013, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
UPLOADED = datetime(2013, 1, 1, 0, 2, 14, tzinfo=timezone.utc)


def _incoming(**overrides) -> Resource:
    values = dict(
        provider="facebook",
        external_id="1",
        owner_uid="123456",
        title="Purple #hashtag1 #hashtag2 sunset",
        tags=["birdbox", "one"],
        albums=[{"id": "2", "name": "two"}],
        uploaded_at=UPLOADED,
        taken_at=UPLOADED,
        extra={"url": "http://www.example.com/foo.jpg", "type": "photo"},
    )
    values.update(overrides)
    return Resource(**values)


class _RecordingIndex(InMemorySearchIndex):
    def __init__(self) -> None:
        super().__init__()
        self.writes = 0

    def upsert(self, document) -> None:
        self.writes += 1
        super().upsert(document)


class TestReconcile(unittest.TestCase):
    def test_first_observation(self) -> None:
        result = reconcile(_incoming(), None, now=NOW)
        self.assertTrue(result.changed)
        self.assertEqual([a.id for a in result.new_albums], ["2"])
        self.assertEqual(result.resource.created_at, NOW)
        self.assertEqual(result.resource.updated_at, NOW)
        self.assertEqual(result.resource.uploaded_at, UPLOADED)

    def test_idempotent(self) -> None:
        first = reconcile(_incoming(), None, now=NOW)
        second = reconcile(_incoming(), first.resource, now=NOW + timedelta(days=1))
        self.assertFalse(second.changed)
        self.assertEqual(second.new_albums, ())

    def test_sticky_timestamps(self) -> None:
        stored = reconcile(_incoming(), None, now=NOW).resource
        later = NOW + timedelta(days=2)
        observed = _incoming(created_at=later, uploaded_at=later, taken_at=later, tags=["changed"])
        merged = reconcile(observed, stored, now=later).resource
        self.assertEqual(merged.created_at, NOW)
        self.assertEqual(merged.uploaded_at, UPLOADED)
        self.assertEqual(merged.taken_at, UPLOADED)
        self.assertEqual(merged.updated_at, later)

    def test_id_is_recomputed(self) -> None:
        result = reconcile(_incoming(external_id="1234-44"), None, now=NOW)
        self.assertEqual(result.resource.id, _incoming(external_id="1234-44").id)
        self.assertNotEqual(result.resource.id, _incoming().id)

    def test_title_only_change_is_not_dirty(self) -> None:
        stored = reconcile(_incoming(), None, now=NOW).resource
        result = reconcile(_incoming(title="booya!"), stored, now=NOW)
        self.assertFalse(result.changed)
        self.assertEqual(result.resource.title, "booya!")

    def test_tag_order_is_not_dirty(self) -> None:
        stored = reconcile(_incoming(), None, now=NOW).resource
        self.assertFalse(reconcile(_incoming(tags=["one", "birdbox"]), stored, now=NOW).changed)
        self.assertTrue(reconcile(_incoming(tags=["one", "birdbox", "danger"]), stored, now=NOW).changed)

    def test_nests_union(self) -> None:
        stored = reconcile(_incoming(nests={1, 2}), None, now=NOW).resource
        result = reconcile(_incoming(nests={3}), stored, now=NOW)
        self.assertTrue(result.changed)
        self.assertEqual(result.resource.nests, frozenset({1, 2, 3}))
        self.assertFalse(reconcile(_incoming(nests={1}), result.resource, now=NOW).changed)

    def test_people_change_is_dirty(self) -> None:
        stored = reconcile(_incoming(), None, now=NOW).resource
        result = reconcile(_incoming(people=[{"id": "22", "name": "Rickey"}]), stored, now=NOW)
        self.assertTrue(result.changed)

    def test_album_add_and_remove(self) -> None:
        stored = reconcile(_incoming(albums=[{"id": "1", "name": "one"}]), None, now=NOW).resource

        added = reconcile(_incoming(), stored, now=NOW)
        self.assertTrue(added.changed)
        self.assertEqual([a.id for a in added.new_albums], ["2"])
        self.assertEqual([a.id for a in added.resource.albums], ["1", "2"])

        left_two = reconcile(_incoming(remove_albums=True), added.resource, now=NOW)
        self.assertEqual([a.id for a in left_two.resource.albums], ["1"])
        self.assertFalse(left_two.resource.removed)

        left_all = reconcile(
            _incoming(remove_albums=True, albums=[{"id": "1", "name": "one"}]), left_two.resource, now=NOW
        )
        self.assertEqual(left_all.resource.albums, ())
        self.assertTrue(left_all.resource.removed)
        self.assertTrue(left_all.changed)

        back = reconcile(_incoming(albums=[{"id": "1", "name": "one"}]), left_all.resource, now=NOW)
        self.assertEqual([a.id for a in back.resource.albums], ["1"])
        self.assertFalse(back.resource.removed)
        self.assertEqual([a.id for a in back.new_albums], ["1"])

    def test_remove_flag_is_not_carried(self) -> None:
        stored = reconcile(_incoming(), None, now=NOW).resource
        result = reconcile(_incoming(remove_albums=True, albums=[]), stored, now=NOW)
        self.assertFalse(result.resource.remove_albums)
        self.assertNotIn("remove_albums", result.resource.to_document())


class TestResourceMerger(unittest.TestCase):
    def setUp(self) -> None:
        self.index = _RecordingIndex()
        self.merger = ResourceMerger(self.index, clock=lambda: NOW)

    def test_skips_unchanged_writes(self) -> None:
        self.assertTrue(self.merger.reconcile_and_persist(_incoming()).changed)
        self.assertFalse(self.merger.reconcile_and_persist(_incoming()).changed)
        self.assertEqual(self.index.writes, 1)

    def test_persist_changes(self) -> None:
        self.merger.reconcile_and_persist(_incoming())
        result = self.merger.reconcile_and_persist(_incoming(title="booya!", tags=["danger"], removed=True))
        self.assertTrue(result.changed)
        stored = Resource.from_document(self.index.get_by_ids([result.resource.id])[0])
        self.assertEqual(stored.title, "booya!")
        self.assertTrue(stored.removed)
        self.assertEqual(stored.created_at, NOW)

    def test_new_album_count(self) -> None:
        self.merger.reconcile_and_persist(_incoming())
        result = self.merger.reconcile_and_persist(_incoming(external_id="1234-44"))
        self.assertEqual(len(result.new_albums), 1)

    def test_persist_many_counts_writes(self) -> None:
        batch = [_incoming(), _incoming(external_id="2"), _incoming()]
        self.assertEqual(self.merger.persist_many(batch), 2)
        self.assertEqual(len(self.index), 2)

    def test_extra_fields_survive(self) -> None:
        self.merger.reconcile_and_persist(_incoming())
        doc = self.index.get_by_ids([_incoming().id])[0]
        self.assertEqual(doc["url"], "http://www.example.com/foo.jpg")
        self.assertEqual(doc["uploaded_at"], UPLOADED.isoformat())


class TestMigrateIndex(unittest.TestCase):
    def test_upgrade_legacy_album(self) -> None:
        doc = upgrade_document({"provider": "facebook", "external_id": "1", "album": {"id": "7", "name": "seven"}})
        self.assertEqual(doc["albums"], [{"id": "7", "name": "seven"}])
        self.assertNotIn("album", doc)
        self.assertEqual(upgrade_document({"provider": "facebook", "external_id": "2"})["albums"], [])

    def test_upgrade_keeps_existing_albums(self) -> None:
        doc = upgrade_document(
            {"provider": "facebook", "external_id": "1", "album": {"id": "7"}, "albums": [{"id": "1"}]}
        )
        self.assertEqual([a["id"] for a in doc["albums"]], ["1"])

    def test_upgrade_fills_missing_fields(self) -> None:
        doc = upgrade_document(
            {
                "id": "facebook:1",
                "provider": "facebook",
                "external_id": 1,
                "album": {"id": "1"},
                "uploaded_at": "2013-01-01T00:02:14Z",
                "url": "http://www.example.com/foo.jpg",
            }
        )
        self.assertEqual(doc["id"], _incoming().id)
        self.assertEqual(doc["external_id"], "1")
        self.assertIs(doc["removed"], False)
        self.assertEqual(doc["tags"], [])
        self.assertEqual(doc["people"], [])
        self.assertEqual(doc["nests"], [])
        self.assertEqual(doc["url"], "http://www.example.com/foo.jpg")

    def test_upgrade_requires_provider_and_external_id(self) -> None:
        with self.assertRaises(ValueError):
            upgrade_document({"id": "x", "album": {"id": "7"}})

    def test_migrated_legacy_document_is_visible_to_nests(self) -> None:
        source = InMemorySearchIndex(index_name="resources")
        target = InMemorySearchIndex(index_name="resources_v1")
        source.upsert(
            {
                "id": "facebook:1",
                "provider": "facebook",
                "external_id": 1,
                "album": {"id": "1"},
                "uploaded_at": "2013-01-01T00:02:14Z",
            }
        )
        # Legacy documents lack `removed`, so nests cannot see them before migration.
        self.assertEqual(PaginatedFetcher(source).count({"facebook": {"albums": ["1"]}}), 0)

        self.assertEqual(migrate_index(source, target), 1)
        fetcher = PaginatedFetcher(target)
        self.assertEqual(fetcher.count({"facebook": {"albums": ["1"]}}), 1)
        self.assertEqual(fetcher.fetch({"facebook": {"albums": ["1"]}}).hits[0].uploaded_at, UPLOADED)

    def test_copies_every_document(self) -> None:
        source = InMemorySearchIndex(index_name="resources")
        target = InMemorySearchIndex(index_name="resources_v1")
        for n in range(7):
            doc = _incoming(external_id=str(n)).to_document()
            doc.pop("albums")
            doc["album"] = {"id": str(n), "name": f"album {n}"}
            source.upsert(doc)

        self.assertEqual(migrate_index(source, target, batch_size=3), 7)
        self.assertEqual(len(target), 7)
        copied = target.get_by_ids([_incoming(external_id="4").id])[0]
        self.assertEqual(copied["albums"], [{"id": "4", "name": "album 4"}])

    def test_rejects_bad_batch_size(self) -> None:
        with self.assertRaises(ValueError):
            migrate_index(InMemorySearchIndex(), InMemorySearchIndex(), batch_size=0)


if __name__ == "__main__":
    unittest.main()
