"""Tests for legacy memory tree migration."""

from __future__ import annotations

from pathlib import Path

import pytest

from memex.memory.migrate import Migrator, convert_legacy, parse_legacy_header
from memex.memory.store import ContentStore

LEGACY = """<!-- agent-memory:meta
{
  "id": "id__abc123",
  "title": "Test Entry",
  "tags": ["topic__testing", "area__work"],
  "status": "consolidated",
  "used": 5
}
-->

This is the body content.

With multiple paragraphs."""

FRONTMATTER = """---
title: Frontmatter Entry
tags:
  - yaml
---

Body from yaml note.
"""


class TestConvert:
    def test_legacy_header(self):
        text = convert_legacy(LEGACY, "fallback")
        assert text == (
            "# Test Entry\n\n#topic__testing #area__work\n\n"
            "This is the body content.\n\nWith multiple paragraphs.\n"
        )
        assert "used" not in text

    def test_old_header_spelling(self):
        meta, body = parse_legacy_header('<!-- axi-agent:memory-meta {"title": "x"} -->\nbody')
        assert meta == {"title": "x"}
        assert body == "body"

    def test_frontmatter(self):
        assert convert_legacy(FRONTMATTER, "fallback") == "# Frontmatter Entry\n\n#yaml\n\nBody from yaml note.\n"

    def test_fallback_title(self):
        text = convert_legacy('<!-- agent-memory:meta {"tags": []} -->\nbody', "from-filename")
        assert text.startswith("# from-filename\n")

    def test_current_format_untouched(self):
        assert convert_legacy("# Title\n\nbody\n", "x") is None


class TestMigrator:
    @pytest.fixture
    def root(self, tmp_path: Path) -> Path:
        root = tmp_path / "memory"
        (root / "topics").mkdir(parents=True)
        (root / "topics" / "_top-of-mind-test entry id__abc123.md").write_text(LEGACY)
        (root / "work" / "topics").mkdir(parents=True)
        (root / "work" / "topics" / "y-id__yyyyyy.md").write_text(FRONTMATTER)
        (root / "default" / "archive").mkdir(parents=True)
        (root / "default" / "archive" / "current-id__cccccc.md").write_text("# Current\n\nok\n")
        (root / "inbox").mkdir()
        (root / "inbox" / "note.md").write_text("not a note")
        return root

    def test_full_run(self, root: Path):
        report = Migrator(root).run()
        assert report.errors == []
        assert len(report.migrated) == 2
        assert len(report.relocated) == 2

        store = ContentStore(root)
        assert store.read("id__abc123").title == "Test Entry"
        assert store.read("id__abc123").org == "default"
        assert (root / "default" / "archive" / "test-entry-id__abc123.md").exists()
        assert store.read("id__yyyyyy").org == "work"
        assert store.read("id__cccccc").body == "ok"
        assert not (root / "topics").exists()
        assert not (root / "work" / "topics").exists()
        assert (root / "inbox" / "note.md").read_text() == "not a note"

    def test_dry_run_changes_nothing(self, root: Path):
        before = sorted(str(p) for p in root.rglob("*"))
        report = Migrator(root, dry_run=True).run()
        assert len(report.migrated) == 2
        assert sorted(str(p) for p in root.rglob("*")) == before
        assert (root / "topics" / "_top-of-mind-test entry id__abc123.md").read_text() == LEGACY

    def test_duplicate_is_dropped(self, root: Path):
        (root / "default" / "archive" / "test-entry-id__abc123.md").write_text("# Test Entry\n\nkept\n")
        report = Migrator(root).run()
        assert len(report.deduplicated) == 1
        assert ContentStore(root).read("id__abc123").body == "kept"

    def test_missing_root(self, tmp_path: Path):
        report = Migrator(tmp_path / "nope").run()
        assert report.errors
