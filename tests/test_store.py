"""Tests for the file-based content store."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from memex.errors import EntryNotFoundError, InvalidIdError, PersistError
from memex.memory.format import MemoryEntry
from memex.memory.store import ContentStore, ListFilter, id_from_filename


@pytest.fixture
def store(tmp_path: Path) -> ContentStore:
    return ContentStore(tmp_path / "memory")


def _entry(entry_id: str, title: str, body: str = "body", tags=None, org: str = "default"):
    return MemoryEntry(id=entry_id, title=title, body=body, tags=list(tags or []), org=org)


class TestWriteRead:
    def test_round_trip(self, store: ContentStore):
        path = store.write(_entry("id__aaaaaa", "First Note", "hello", ["x"]))
        assert path == store.root / "default" / "archive" / "first-note-id__aaaaaa.md"
        entry = store.read("id__aaaaaa")
        assert entry.title == "First Note"
        assert entry.body == "hello"
        assert entry.tags == ["x"]
        assert entry.org == "default"

    def test_retitle_removes_old_file(self, store: ContentStore):
        store.write(_entry("id__aaaaaa", "Old Title"))
        store.write(_entry("id__aaaaaa", "New Title"))
        files = sorted(p.name for p in store.archive_dir("default").iterdir())
        assert files == ["new-title-id__aaaaaa.md"]
        assert store.read("id__aaaaaa").title == "New Title"

    def test_invalid_id(self, store: ContentStore):
        with pytest.raises(InvalidIdError) as exc:
            store.read("nope")
        assert exc.value.tag == "memory.persist.read"
        with pytest.raises(InvalidIdError):
            store.write(_entry("id__bad0id", "x"))

    def test_not_found(self, store: ContentStore):
        with pytest.raises(EntryNotFoundError):
            store.read("id__zzzzzz")

    def test_lookup_ignores_stale_slug(self, store: ContentStore):
        store.write(_entry("id__aaaaaa", "Title"))
        directory = store.archive_dir("default")
        (directory / "title-id__aaaaaa.md").rename(directory / "something-else-id__aaaaaa.md")
        assert store.read("id__aaaaaa").title == "Title"

    def test_write_failure_cleans_temp_file(self, store: ContentStore):
        with patch("memex.memory.store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistError) as exc:
                store.write(_entry("id__aaaaaa", "T"))
        assert exc.value.tag == "memory.persist.write"
        assert list(store.archive_dir("default").iterdir()) == []

    def test_stored_entry_reads_back_equal(self, store: ContentStore):
        entry = _entry("id__aaaaaa", "  Spaced title ", "\n\nindented body", ["x"])
        store.write(entry)
        assert store.read("id__aaaaaa") == entry

    def test_read_many_keeps_order(self, store: ContentStore):
        store.write(_entry("id__aaaaaa", "A"))
        store.write(_entry("id__bbbbbb", "B", org="work"))
        entries = store.read_many(["id__bbbbbb", "id__aaaaaa", "id__bbbbbb"])
        assert [(e.id, e.org) for e in entries] == [("id__bbbbbb", "work"), ("id__aaaaaa", "default")]

    def test_read_many_missing(self, store: ContentStore):
        store.write(_entry("id__aaaaaa", "A"))
        with pytest.raises(EntryNotFoundError):
            store.read_many(["id__aaaaaa", "id__zzzzzz"])


class TestDelete:
    def test_delete(self, store: ContentStore):
        store.write(_entry("id__aaaaaa", "T"))
        store.delete("id__aaaaaa")
        with pytest.raises(EntryNotFoundError):
            store.read("id__aaaaaa")

    def test_delete_missing_is_noop(self, store: ContentStore):
        store.delete("id__aaaaaa")


class TestList:
    @pytest.fixture(autouse=True)
    def populate(self, store: ContentStore):
        store.write(_entry("id__cccccc", "charlie", tags=["x", "y"]))
        store.write(_entry("id__aaaaaa", "Alpha", tags=["x"]))
        store.write(_entry("id__bbbbbb", "bravo", tags=["y"], org="work"))

    def test_sorted_by_title_case_insensitive(self, store: ContentStore):
        assert [m.title for m in store.list()] == ["Alpha", "bravo", "charlie"]

    def test_org_filter(self, store: ContentStore):
        assert [m.id for m in store.list(ListFilter(org="work"))] == ["id__bbbbbb"]

    def test_tags_must_all_match(self, store: ContentStore):
        assert [m.id for m in store.list(ListFilter(tags=["x", "y"]))] == ["id__cccccc"]

    def test_query_matches_title_or_tag(self, store: ContentStore):
        assert [m.id for m in store.list(ListFilter(query="ALPH"))] == ["id__aaaaaa"]
        assert {m.id for m in store.list(ListFilter(query="y"))} == {"id__bbbbbb", "id__cccccc"}

    def test_limit(self, store: ContentStore):
        assert len(store.list(ListFilter(limit=2))) == 2

    def test_unparseable_file_skipped(self, store: ContentStore):
        (store.archive_dir("default") / "broken-id__dddddd.md").write_text("no heading")
        assert "id__dddddd" not in [m.id for m in store.list()]

    def test_scan_returns_bodies(self, store: ContentStore):
        assert {e.body for e in store.scan()} == {"body"}


class TestIdFromFilename:
    def test_extracts(self):
        assert id_from_filename("some-slug-id__aaaaaa.md") == "id__aaaaaa"

    def test_none(self):
        assert id_from_filename("notes.md") is None
