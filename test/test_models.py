"""Tests for resource documents, identifiers, hashtags and timestamps."""

from __future__ import annotations

import hashlib
import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from BirdboxSearch.core.filters import Range, SortField, Term, TermsAggregation
from BirdboxSearch.core.models import FetchOptions, Page, Resource
from BirdboxSearch.errors import InvalidArgument
from BirdboxSearch.index.memory import InMemorySearchIndex
from BirdboxSearch.utils.hashtags import parse_hashtags
from BirdboxSearch.utils.ids import resource_id
from BirdboxSearch.utils.timeutil import parse_timestamp


class TestResource(unittest.TestCase):
    def test_id_is_md5_of_provider_and_external_id(self) -> None:
        expected = hashlib.md5(b"facebook:1").hexdigest()
        self.assertEqual(resource_id("Facebook", "1"), expected)
        self.assertEqual(Resource(provider="FACEBOOK", external_id=1).id, expected)

    def test_collections_default_empty(self) -> None:
        r = Resource(provider="email", external_id="9", tags=None, albums=None, people=None, nests=None)
        self.assertEqual(r.tags, ())
        self.assertEqual(r.albums, ())
        self.assertEqual(r.people, ())
        self.assertEqual(r.nests, frozenset())

    def test_normalization(self) -> None:
        naive = datetime(2013, 1, 1, 12, 0, 0)
        r = Resource(
            provider="instagram",
            external_id="1",
            tags=["a", "a", " ", "b"],
            albums=[{"id": 1, "name": "one"}, {"id": "1", "name": "dupe"}],
            uploaded_at=naive,
        )
        self.assertEqual(r.tags, ("a", "b"))
        self.assertEqual(len(r.albums), 1)
        self.assertEqual(r.albums[0].id, "1")
        self.assertEqual(r.uploaded_at.tzinfo, timezone.utc)

    def test_document_round_trip(self) -> None:
        when = datetime(2013, 1, 1, 0, 2, 14, tzinfo=timezone.utc)
        r = Resource(
            provider="facebook",
            external_id="1",
            owner_uid="100001",
            albums=[{"id": "1", "name": "one"}],
            people=[{"id": "22", "name": "Rickey Henderson"}],
            nests={3, 1},
            uploaded_at=when,
            extra={"url": "http://www.example.com/isla_vista.jpg", "height": 640},
        )
        doc = r.to_document()
        self.assertEqual(doc["id"], r.id)
        self.assertEqual(doc["nests"], [1, 3])
        self.assertEqual(doc["uploaded_at"], "2013-01-01T00:02:14+00:00")
        self.assertIsNone(doc["taken_at"])
        self.assertEqual(doc["height"], 640)
        self.assertEqual(Resource.from_document(doc), r)

    def test_from_document_requires_identity(self) -> None:
        with self.assertRaises(ValueError):
            Resource.from_document({"provider": "facebook"})

    def test_with_hashtags(self) -> None:
        r = Resource(
            provider="facebook",
            external_id="1",
            title="Purple #hashtag1 #hashtag2 sunset",
            description="A purple sunset #hashtag1 off the coast of Isla Vista, CA",
            tags=["birdbox", "one"],
        )
        self.assertEqual(r.with_hashtags().tags, ("birdbox", "one", "hashtag1", "hashtag2"))


class TestHashtags(unittest.TestCase):
    def test_parse(self) -> None:
        self.assertEqual(parse_hashtags("#California dreaming", "more #norcal and #california"), ("california", "norcal"))

    def test_ignores_anchors_inside_words(self) -> None:
        self.assertEqual(parse_hashtags("issue#12 and c#", None), ())

    def test_empty(self) -> None:
        self.assertEqual(parse_hashtags(None, None, ["x"]), ("x",))


class TestParseTimestamp(unittest.TestCase):
    def test_accepted_forms(self) -> None:
        expected = datetime(2013, 1, 1, tzinfo=timezone.utc)
        self.assertEqual(parse_timestamp(expected), expected)
        self.assertEqual(parse_timestamp(datetime(2013, 1, 1)), expected)
        self.assertEqual(parse_timestamp(expected.timestamp()), expected)
        self.assertEqual(parse_timestamp(int(expected.timestamp())), expected)
        self.assertEqual(parse_timestamp("2013-01-01"), expected)
        self.assertEqual(parse_timestamp("20130101T000000Z"), expected)
        self.assertEqual(parse_timestamp("2013-01-01T01:00:00+01:00"), expected)

    def test_rejected_forms(self) -> None:
        for value in ("1234", "", "soon", None, [], True):
            with self.subTest(value=value):
                with self.assertRaisesRegex(InvalidArgument, "since"):
                    parse_timestamp(value, "since")


class TestPagingOptions(unittest.TestCase):
    def _page(self, direction: str) -> Page:
        when = datetime(2013, 1, 1, tzinfo=timezone.utc)
        hits = [
            Resource(provider="facebook", external_id="2", uploaded_at=when + timedelta(hours=1)),
            Resource(provider="facebook", external_id="1", uploaded_at=when),
        ]
        return Page(hits=hits, total=10, options=FetchOptions(sort_direction=direction, page=3, page_size=2))

    def test_after_descending(self) -> None:
        nxt = self._page("desc").next_options()
        self.assertEqual(nxt.until, datetime(2013, 1, 1, tzinfo=timezone.utc))
        self.assertIsNone(nxt.since)
        self.assertEqual(nxt.external_id_cursor, "1")
        self.assertEqual(nxt.page, 1)

    def test_after_ascending(self) -> None:
        nxt = self._page("asc").next_options()
        self.assertEqual(nxt.since, datetime(2013, 1, 1, tzinfo=timezone.utc))
        self.assertIsNone(nxt.until)

    def test_empty_page_has_no_successor(self) -> None:
        self.assertIsNone(Page(hits=(), total=0).next_options())


class TestInMemorySearchIndex(unittest.TestCase):
    def setUp(self) -> None:
        self.index = InMemorySearchIndex()
        self.index.upsert({"id": "a", "external_id": "1", "uploaded_at": "2013-01-01T00:00:00Z", "tags": ["x", "y"]})
        self.index.upsert({"id": "b", "external_id": "2", "uploaded_at": "2013-01-02T00:00:00Z", "tags": ["x"]})
        self.index.upsert({"id": "c", "external_id": "3", "tags": ["y"]})

    def test_missing_sort_values_last(self) -> None:
        for direction in ("asc", "desc"):
            with self.subTest(direction=direction):
                result = self.index.execute(None, [SortField("uploaded_at", direction)], 0, 10)
                self.assertEqual(result.documents[-1]["id"], "c")

    def test_range_compares_dates(self) -> None:
        tree = Range("uploaded_at", start=datetime(2013, 1, 1, 12, tzinfo=timezone.utc))
        self.assertEqual(self.index.count(tree), 1)

    def test_aggregation_order(self) -> None:
        buckets = self.index.aggregate(None, TermsAggregation("tags"))
        self.assertEqual([(b.term, b.count) for b in buckets], [("x", 2), ("y", 2)])

    def test_window_and_copies(self) -> None:
        result = self.index.execute(Term("tags", "x"), [SortField("external_id", "asc")], 1, 1)
        self.assertEqual(result.total, 2)
        self.assertEqual([d["id"] for d in result.documents], ["b"])
        result.documents[0]["tags"].append("mutated")
        self.assertEqual(self.index.get_by_ids(["b"])[0]["tags"], ["x"])

    def test_delete_clears_documents(self) -> None:
        self.index.delete()
        self.assertEqual(len(self.index), 0)


if __name__ == "__main__":
    unittest.main()
