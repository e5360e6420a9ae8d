"""File-based content store for memory notes.

Layout::

    <root>/<org>/archive/<slug>-<id>.md

Only the id in the filename is authoritative. The slug is cosmetic and may go
stale after a rename, so lookups match files by id substring, never by full
filename. Titles and tags are parsed from the file on every read.
"""

from __future__ import annotations

import logging
import os
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from memex.errors import EntryNotFoundError, FormatError, InvalidIdError, PersistError
from memex.ids import ID_BODY, is_valid_id
from memex.memory.format import EntryMeta, MemoryEntry, parse_note, slugify

logger = logging.getLogger(__name__)

ARCHIVE_DIR = "archive"
NOTE_SUFFIX = ".md"

_FILENAME_ID = re.compile(rf"({ID_BODY}){re.escape(NOTE_SUFFIX)}$")


@dataclass
class ListFilter:
    """Optional narrowing for ``ContentStore.list``."""

    org: str | None = None
    tags: list[str] = field(default_factory=list)
    query: str | None = None
    limit: int | None = None


def id_from_filename(name: str) -> str | None:
    match = _FILENAME_ID.search(name)
    return match.group(1) if match else None


class ContentStore:
    """list/read/write/delete over a directory tree of markdown notes."""

    def __init__(self, root: Path) -> None:
        self.root = root

    # ── Paths ─────────────────────────────────────────────────

    def archive_dir(self, org: str) -> Path:
        return self.root / org / ARCHIVE_DIR

    def namespaces(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            d.name for d in self.root.iterdir() if d.is_dir() and (d / ARCHIVE_DIR).is_dir()
        )

    def filename_for(self, entry: MemoryEntry) -> str:
        return f"{slugify(entry.title)}-{entry.id}{NOTE_SUFFIX}"

    def find_file(self, entry_id: str) -> Path | None:
        """Locate the file carrying ``entry_id`` in any namespace."""
        for org in self.namespaces():
            for path in sorted(self.archive_dir(org).iterdir()):
                name = path.name
                if name.startswith(".") or not name.endswith(NOTE_SUFFIX):
                    continue
                if entry_id in name:
                    return path
        return None

    # ── Reading ───────────────────────────────────────────────

    def _load(self, path: Path, entry_id: str, org: str) -> MemoryEntry:
        parsed = parse_note(path.read_text(encoding="utf-8"), str(path))
        return MemoryEntry(
            id=entry_id, title=parsed.title, body=parsed.body, tags=parsed.tags, org=org
        )

    def _entries_in(self, org: str) -> list[tuple[MemoryEntry, Path]]:
        directory = self.archive_dir(org)
        if not directory.is_dir():
            return []
        found = []
        for path in directory.iterdir():
            if path.name.startswith(".") or not path.name.endswith(NOTE_SUFFIX):
                continue
            entry_id = id_from_filename(path.name)
            if not entry_id:
                continue
            try:
                found.append((self._load(path, entry_id, org), path))
            except (FormatError, OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping unreadable note %s: %s", path, e)
        return found

    def _collect(self, filter: ListFilter | None) -> list[tuple[MemoryEntry, Path]]:
        filter = filter or ListFilter()
        orgs = [filter.org] if filter.org else self.namespaces()
        try:
            items = [item for org in orgs for item in self._entries_in(org)]
        except OSError as e:
            raise PersistError("read", str(self.root), str(e)) from e

        if filter.tags:
            wanted = set(filter.tags)
            items = [(e, p) for e, p in items if wanted.issubset(e.tags)]
        if filter.query:
            q = filter.query.lower()
            items = [
                (e, p)
                for e, p in items
                if q in e.title.lower() or any(q in t.lower() for t in e.tags)
            ]

        items.sort(key=lambda item: (item[0].title.casefold(), item[0].id))
        if filter.limit and filter.limit > 0:
            items = items[: filter.limit]
        return items

    def list(self, filter: ListFilter | None = None) -> list[EntryMeta]:
        """Metadata for every matching note, sorted by title."""
        return [
            EntryMeta(id=e.id, title=e.title, tags=e.tags, org=e.org, path=p)
            for e, p in self._collect(filter)
        ]

    def scan(self, filter: ListFilter | None = None) -> list[MemoryEntry]:
        """Like ``list`` but returns full entries with bodies."""
        return [e for e, _ in self._collect(filter)]

    def read(self, entry_id: str) -> MemoryEntry:
        if not is_valid_id(entry_id):
            raise InvalidIdError("read", entry_id, f"invalid memory ID format: {entry_id}")
        try:
            path = self.find_file(entry_id)
        except OSError as e:
            raise PersistError("read", str(self.root), str(e)) from e
        if path is None:
            raise EntryNotFoundError("read", entry_id, f"memory entry not found: {entry_id}")
        try:
            return self._load(path, entry_id, path.parent.parent.name)
        except FormatError as e:
            raise PersistError("parse", str(path), e.message) from e
        except (OSError, UnicodeDecodeError) as e:
            raise PersistError("read", str(path), str(e)) from e

    def read_many(self, entry_ids: list[str]) -> list[MemoryEntry]:
        """Read several entries in order. Fails on the first id that cannot be read."""
        return [self.read(entry_id) for entry_id in dict.fromkeys(entry_ids)]

    # ── Writing ───────────────────────────────────────────────

    def write(self, entry: MemoryEntry) -> Path:
        """Atomically write ``entry``; returns the final path."""
        if not is_valid_id(entry.id):
            raise InvalidIdError("write", entry.id, f"invalid memory ID format: {entry.id}")

        target_dir = self.archive_dir(entry.org)
        path = target_dir / self.filename_for(entry)
        tmp_path = target_dir / f".{entry.id}{NOTE_SUFFIX}.tmp.{os.getpid()}.{uuid.uuid4().hex[:8]}"

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            existing = self.find_file(entry.id)
            if existing is not None and existing != path:
                existing.unlink()
                logger.debug("Removed stale filename %s", existing.name)

            with open(tmp_path, "w", encoding="utf-8", newline="") as handle:
                handle.write(entry.render())
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_path)
            raise PersistError("write", str(path), str(e)) from e

        logger.debug("Wrote %s (%s)", entry.id, path.name)
        return path

    def delete(self, entry_id: str) -> None:
        if not is_valid_id(entry_id):
            raise InvalidIdError("delete", entry_id, f"invalid memory ID format: {entry_id}")
        try:
            path = self.find_file(entry_id)
            if path is not None:
                path.unlink()
                logger.debug("Deleted %s (%s)", entry_id, path.name)
        except OSError as e:
            raise PersistError("delete", entry_id, str(e)) from e
