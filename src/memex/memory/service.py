"""High-level memory API: capture, CRUD and link-graph operations.

Every graph query re-reads bodies from the store and re-extracts links; there
is no link index to keep in sync. Rename propagation is a full sequential
read-modify-write pass over the store and is not safe against concurrent
writers.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from memex.ids import generate_id
from memex.memory.format import DEFAULT_ORG, EntryMeta, MemoryEntry
from memex.memory.links import LinkRef, extract_links, replace_link, rewrite_alias
from memex.memory.store import ContentStore, ListFilter

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RenameResult:
    updated_inbound_links: int


@dataclass(frozen=True)
class BrokenLink:
    source_id: str
    target_id: str


@dataclass
class LinkReport:
    inbound: list[tuple[str, str]]
    outbound: list[LinkRef]


class MemoryService:
    """Operations over a ContentStore that need ids, clocks or the link graph."""

    def __init__(self, store: ContentStore, clock: Callable[[], int] = _now_ms) -> None:
        self.store = store
        self._clock = clock

    # ── CRUD ──────────────────────────────────────────────────

    def new_id(self, title: str) -> str:
        """Generate an id for ``title`` that no stored file carries yet."""
        ts = self._clock()
        entry_id = generate_id(title, ts)
        while self.store.find_file(entry_id) is not None:
            ts += 1
            entry_id = generate_id(title, ts)
        return entry_id

    def capture(
        self,
        title: str,
        body: str,
        tags: list[str] | None = None,
        org: str = DEFAULT_ORG,
    ) -> MemoryEntry:
        entry = MemoryEntry(
            id=self.new_id(title), title=title, body=body, tags=list(tags or []), org=org
        )
        self.store.write(entry)
        logger.info("Captured %s: %s", entry.id, title)
        return entry

    def list(self, filter: ListFilter | None = None) -> list[EntryMeta]:
        return self.store.list(filter)

    def read(self, entry_id: str) -> MemoryEntry:
        return self.store.read(entry_id)

    def remove(self, entry_id: str) -> None:
        self.store.delete(entry_id)

    def update_body(self, entry_id: str, body: str) -> MemoryEntry:
        entry = self.store.read(entry_id)
        entry.body = body
        self.store.write(entry)
        return entry

    def update_tags(self, entry_id: str, tags: list[str]) -> MemoryEntry:
        """Replace the tag line. Tags written inline in the body are kept."""
        entry = self.store.read(entry_id)
        entry.tags = list(tags)
        self.store.write(entry)
        return entry

    # ── Link graph ────────────────────────────────────────────

    def rename(self, entry_id: str, new_title: str) -> RenameResult:
        """Retitle an entry and update inbound aliases that showed the old title."""
        new_title = new_title.strip()
        entry = self.store.read(entry_id)
        old_title = entry.title
        entry.title = new_title
        self.store.write(entry)

        updated = 0
        for other in self.store.scan():
            if other.id == entry_id:
                continue
            new_body = rewrite_alias(other.body, entry_id, old_title, new_title)
            if new_body == other.body:
                continue
            other.body = new_body
            self.store.write(other)
            updated += 1

        logger.info(
            "Renamed %s %r -> %r (%d inbound updated)", entry_id, old_title, new_title, updated
        )
        return RenameResult(updated_inbound_links=updated)

    def retarget_links(self, old_id: str, new_id: str) -> int:
        """Point every link at ``old_id`` to ``new_id``. Returns entries changed."""
        changed = 0
        for entry in self.store.scan():
            if entry.id == old_id:
                continue
            new_body = replace_link(entry.body, old_id, new_id)
            if new_body != entry.body:
                entry.body = new_body
                self.store.write(entry)
                changed += 1
        return changed

    def links(self, entry_id: str) -> LinkReport:
        outbound = extract_links(self.store.read(entry_id).body)
        inbound = [
            (other.id, other.title)
            for other in self.store.scan()
            if other.id != entry_id and any(l.id == entry_id for l in extract_links(other.body))
        ]
        return LinkReport(inbound=inbound, outbound=outbound)

    def orphans(self) -> list[str]:
        """Ids of entries that no other entry links to."""
        entries = self.store.scan()
        linked: set[str] = set()
        for entry in entries:
            linked.update(l.id for l in extract_links(entry.body) if l.id != entry.id)
        return [e.id for e in entries if e.id not in linked]

    def broken_links(self) -> list[BrokenLink]:
        entries = self.store.scan()
        existing = {e.id for e in entries}
        return [
            BrokenLink(source_id=e.id, target_id=l.id)
            for e in entries
            for l in extract_links(e.body)
            if l.id not in existing
        ]
