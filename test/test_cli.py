"""Smoke tests for the click CLI with the in-memory backend."""

from __future__ import annotations

import json
import logging
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from BirdboxSearch.cli.ui import cli
from BirdboxSearch.index.memory import InMemorySearchIndex
from BirdboxSearch.utils.log import log

_CONFIG_YAML = """
log:
  level: WARNING
index:
  backend: memory
  name: resources
fetch:
  page_size: 2
"""

_RESOURCES = [
    {
        "provider": "facebook",
        "external_id": "1",
        "owner_uid": "100001",
        "title": "Purple #Sunset",
        "albums": [{"id": "1", "name": "one"}],
        "people": [{"id": "22", "name": "Rickey Henderson"}],
        "uploaded_at": "2013-01-01T00:02:14Z",
    },
    {
        "provider": "facebook",
        "external_id": "2",
        "owner_uid": "100001",
        "albums": [{"id": "1", "name": "one"}],
        "people": [{"id": "22", "name": "Rickey Henderson"}],
        "uploaded_at": "2013-01-18T15:26:42Z",
    },
    {
        "provider": "facebook",
        "external_id": "3",
        "owner_uid": "100002",
        "albums": [{"id": "1", "name": "one"}],
        "uploaded_at": "2013-01-10T22:34:07Z",
    },
]


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()
        self.shared_index = InMemorySearchIndex()
        # Every command would otherwise build a fresh, empty in-memory index.
        patcher = patch("BirdboxSearch.cli.runner.create_search_index", return_value=self.shared_index)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self._reset_logging)

    @staticmethod
    def _reset_logging() -> None:
        log.handlers.clear()
        log.addHandler(logging.NullHandler())

    def _write_files(self) -> None:
        Path("config.yml").write_text(_CONFIG_YAML, encoding="utf-8")
        Path("sources.yml").write_text("facebook:\n  albums: ['1']\n", encoding="utf-8")
        Path("resources.jsonl").write_text(
            "\n".join(json.dumps(r) for r in _RESOURCES) + "\n\n", encoding="utf-8"
        )

    def _invoke(self, *args: str):
        return self.runner.invoke(cli, ["--config", "config.yml", *args])

    def test_ingest_then_query(self) -> None:
        with self.runner.isolated_filesystem():
            self._write_files()

            result = self._invoke("ingest", "resources.jsonl")
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertEqual(result.output.strip(), "3/3")

            result = self._invoke("ingest", "resources.jsonl")
            self.assertEqual(result.output.strip(), "0/3")

            result = self._invoke("count", "--sources", "sources.yml")
            self.assertEqual(result.output.strip(), "3")

            result = self._invoke("fetch", "--sources", "sources.yml")
            self.assertEqual(result.exit_code, 0, result.output)
            page = json.loads(result.output)
            self.assertEqual(page["total"], 3)
            self.assertEqual([h["external_id"] for h in page["hits"]], ["2", "3"])
            self.assertEqual(page["next"]["external_id_cursor"], "3")
            self.assertEqual(page["next"]["page"], 1)

            result = self._invoke(
                "fetch",
                "--sources",
                "sources.yml",
                "--until",
                page["next"]["until"],
                "--cursor",
                page["next"]["external_id_cursor"],
            )
            self.assertEqual([h["external_id"] for h in json.loads(result.output)["hits"]], ["1"])

            result = self._invoke("people", "--sources", "sources.yml")
            self.assertEqual(json.loads(result.output), [{"id": "22", "count": 2}])

    def test_ingest_extracts_hashtags(self) -> None:
        with self.runner.isolated_filesystem():
            self._write_files()
            self._invoke("ingest", "resources.jsonl")
            stored = self.shared_index.get_by_ids(
                [doc["id"] for doc in self.shared_index.execute(None, [], 0, 10).documents]
            )
            tags = {tag for doc in stored for tag in doc["tags"]}
            self.assertEqual(tags, {"sunset"})

    def test_invalid_sources_abort(self) -> None:
        with self.runner.isolated_filesystem():
            self._write_files()
            Path("bad.yml").write_text("instagram:\n  albums: ['1']\n", encoding="utf-8")
            result = self._invoke("fetch", "--sources", "bad.yml")
            self.assertEqual(result.exit_code, 1)
            self.assertIn("Aborted", result.output)

    def test_invalid_bound_aborts(self) -> None:
        with self.runner.isolated_filesystem():
            self._write_files()
            result = self._invoke("count", "--sources", "sources.yml", "--since", "1234")
            self.assertEqual(result.exit_code, 1)

    def test_cursor_with_later_page_aborts(self) -> None:
        with self.runner.isolated_filesystem():
            self._write_files()
            self._invoke("ingest", "resources.jsonl")
            result = self._invoke("fetch", "--sources", "sources.yml", "--page", "2", "--cursor", "3")
            self.assertEqual(result.exit_code, 1)
            self.assertIn("Aborted", result.output)

    def test_migrate(self) -> None:
        with self.runner.isolated_filesystem():
            self._write_files()
            self._invoke("ingest", "resources.jsonl")
            result = self._invoke("migrate", "--from", "resources", "--to", "resources_v1")
            self.assertEqual(result.exit_code, 0, result.output)
            self.assertEqual(result.output.strip(), "3")


if __name__ == "__main__":
    unittest.main()
