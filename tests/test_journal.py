"""Tests for the intake journal queue."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from memex.errors import JournalError
from memex.memory.journal import JournalEntry, JournalQueue, Retrieval, SessionContext


@pytest.fixture
def queue(tmp_path: Path) -> JournalQueue:
    return JournalQueue(tmp_path / "inbox")


def _entry(ts: str = "2026-01-01T10:00:00+00:00", harness: str = "amp") -> JournalEntry:
    return JournalEntry(
        harness=harness,
        retrieval=Retrieval(method="amp-thread", thread_id="T-123"),
        context=SessionContext(cwd="/work", repo="git@example.com:x.git"),
        timestamp=ts,
    )


class TestWrite:
    def test_writes_json_record(self, queue: JournalQueue):
        path = queue.write(_entry())
        assert path.parent == queue.inbox_dir
        assert path.name.startswith("2026-01-01T10-00-00_amp_")
        data = json.loads(path.read_text())
        assert data["version"] == "1"
        assert data["retrieval"] == {"method": "amp-thread", "thread_id": "T-123"}
        assert data["context"]["cwd"] == "/work"

    def test_rejects_invalid_harness(self, queue: JournalQueue):
        bad = _entry(harness="vim")
        with pytest.raises(JournalError) as exc:
            queue.write(bad)
        assert exc.value.tag == "journal.validate"


class TestPending:
    def test_oldest_first_with_limit(self, queue: JournalQueue):
        queue.write(_entry("2026-01-02T00:00:00+00:00"))
        queue.write(_entry("2026-01-01T00:00:00+00:00"))
        queue.write(_entry("2026-01-03T00:00:00+00:00"))
        pending = queue.enumerate_pending(limit=2)
        assert [p.entry.timestamp[:10] for p in pending] == ["2026-01-01", "2026-01-02"]

    def test_skips_invalid_records(self, queue: JournalQueue):
        queue.write(_entry())
        (queue.inbox_dir / "garbage.json").write_text("{not json")
        (queue.inbox_dir / "wrong.json").write_text(json.dumps({"version": "2"}))
        assert len(queue.enumerate_pending()) == 1

    def test_missing_inbox(self, queue: JournalQueue):
        assert queue.enumerate_pending() == []
        assert queue.count_pending() == 0


class TestMarkProcessed:
    def test_moves_record(self, queue: JournalQueue):
        queue.write(_entry())
        (record,) = queue.enumerate_pending()
        queue.mark_processed(record.id)
        assert queue.enumerate_pending() == []
        assert (queue.processed_dir / f"{record.id}.json").exists()

    def test_missing_record(self, queue: JournalQueue):
        with pytest.raises(JournalError) as exc:
            queue.mark_processed("does-not-exist")
        assert exc.value.tag == "journal.write"


class TestFromDict:
    def test_round_trip(self):
        entry = _entry()
        assert JournalEntry.from_dict(entry.to_dict()) == entry

    def test_requires_cwd(self):
        data = _entry().to_dict()
        del data["context"]["cwd"]
        with pytest.raises(JournalError):
            JournalEntry.from_dict(data)

    def test_camel_case_pointers(self):
        data = {
            "version": "1",
            "timestamp": "2026-01-01T10:00:00+00:00",
            "harness": "cursor",
            "retrieval": {"method": "cursor-session", "sessionPath": "/s/chat.md"},
            "context": {"cwd": "/work"},
        }
        assert JournalEntry.from_dict(data).retrieval.session_path == "/s/chat.md"

        data["retrieval"] = {"method": "amp-thread", "threadId": "T-9"}
        assert JournalEntry.from_dict(data).retrieval.thread_id == "T-9"

        data["retrieval"] = {"method": "file", "filePath": "/tmp/x.md"}
        assert JournalEntry.from_dict(data).retrieval.file_path == "/tmp/x.md"
