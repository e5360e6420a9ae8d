"""Intake queue: one JSON record per captured agent session.

Records are written to ``<root>/inbox/`` by ``memex capture`` (or a harness
hook) and consumed exactly once by the consolidation pipeline, which moves
them into ``inbox/.processed/``. Records are never modified in place.
"""

from __future__ import annotations

import json
import logging
import secrets
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from memex.errors import JournalError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"
HARNESSES = ("amp", "cursor", "codex", "claude", "manual")
RETRIEVAL_METHODS = ("amp-thread", "cursor-session", "file", "inline")
PROCESSED_DIR = ".processed"


@dataclass
class Retrieval:
    """Where the session content lives."""

    method: str
    thread_id: str | None = None
    session_path: str | None = None
    file_path: str | None = None
    content: str | None = None


@dataclass
class SessionContext:
    cwd: str
    repo: str | None = None


@dataclass
class JournalEntry:
    harness: str
    retrieval: Retrieval
    context: SessionContext
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds")
    )
    version: str = SCHEMA_VERSION

    def to_dict(self) -> dict:
        data = asdict(self)
        data["retrieval"] = {k: v for k, v in data["retrieval"].items() if v is not None}
        data["context"] = {k: v for k, v in data["context"].items() if v is not None}
        return data

    @classmethod
    def from_dict(cls, data: object, source: str = "") -> JournalEntry:
        """Validate a decoded record. Raises JournalError(validate)."""

        def fail(msg: str) -> JournalError:
            return JournalError("validate", source, f"schema validation failed: {msg}")

        if not isinstance(data, dict):
            raise fail("record must be an object")
        if data.get("version") != SCHEMA_VERSION:
            raise fail(f"unsupported version {data.get('version')!r}")
        if not isinstance(data.get("timestamp"), str):
            raise fail("timestamp must be a string")
        if data.get("harness") not in HARNESSES:
            raise fail(f"harness must be one of {', '.join(HARNESSES)}")

        retrieval = data.get("retrieval")
        if not isinstance(retrieval, dict) or retrieval.get("method") not in RETRIEVAL_METHODS:
            raise fail(f"retrieval.method must be one of {', '.join(RETRIEVAL_METHODS)}")
        context = data.get("context")
        if not isinstance(context, dict) or not isinstance(context.get("cwd"), str):
            raise fail("context.cwd must be a string")

        def opt(d: dict, *keys: str) -> str | None:
            for key in keys:
                value = d.get(key)
                if isinstance(value, str):
                    return value
            return None

        return cls(
            version=SCHEMA_VERSION,
            timestamp=data["timestamp"],
            harness=data["harness"],
            retrieval=Retrieval(
                method=retrieval["method"],
                thread_id=opt(retrieval, "thread_id", "threadId"),
                session_path=opt(retrieval, "session_path", "sessionPath"),
                file_path=opt(retrieval, "file_path", "filePath"),
                content=opt(retrieval, "content"),
            ),
            context=SessionContext(cwd=context["cwd"], repo=opt(context, "repo")),
        )


@dataclass
class PendingRecord:
    id: str
    path: Path
    entry: JournalEntry


def _filename_timestamp(iso: str) -> str:
    return iso.replace(":", "-").replace(".", "-")[:19]


class JournalQueue:
    """Append-only inbox of intake records."""

    def __init__(self, inbox_dir: Path) -> None:
        self.inbox_dir = inbox_dir

    @property
    def processed_dir(self) -> Path:
        return self.inbox_dir / PROCESSED_DIR

    def write(self, entry: JournalEntry) -> Path:
        JournalEntry.from_dict(entry.to_dict())
        name = f"{_filename_timestamp(entry.timestamp)}_{entry.harness}_{secrets.token_hex(3)}.json"
        path = self.inbox_dir / name
        try:
            self.inbox_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(
                json.dumps(entry.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8"
            )
        except OSError as e:
            raise JournalError("write", str(path), str(e)) from e
        logger.info("Captured journal record %s", path.name)
        return path

    def enumerate_pending(self, limit: int | None = None) -> list[PendingRecord]:
        """Valid pending records, oldest first. Invalid files are skipped."""
        if not self.inbox_dir.is_dir():
            return []
        results: list[PendingRecord] = []
        try:
            candidates = sorted(self.inbox_dir.glob("*.json"))
        except OSError as e:
            raise JournalError("read", str(self.inbox_dir), str(e)) from e

        for path in candidates:
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                entry = JournalEntry.from_dict(data, str(path))
            except (OSError, json.JSONDecodeError, JournalError) as e:
                logger.warning("Skipping invalid journal record %s: %s", path.name, e)
                continue
            results.append(PendingRecord(id=path.stem, path=path, entry=entry))

        results.sort(key=lambda r: (r.entry.timestamp, r.id))
        if limit is not None and limit > 0:
            results = results[:limit]
        return results

    def count_pending(self) -> int:
        if not self.inbox_dir.is_dir():
            return 0
        return sum(1 for _ in self.inbox_dir.glob("*.json"))

    def mark_processed(self, record_id: str) -> None:
        source = self.inbox_dir / f"{record_id}.json"
        dest = self.processed_dir / source.name
        try:
            self.processed_dir.mkdir(parents=True, exist_ok=True)
            source.rename(dest)
        except OSError as e:
            raise JournalError("write", str(source), str(e)) from e
        logger.debug("Moved %s to %s/", source.name, PROCESSED_DIR)
