"""Index note: an ordinary entry linking to every top-of-mind entry.

It uses the fixed id ``id__indexx`` so each defrag run overwrites it in place,
and its wiki links make the selection part of the normal link graph.
"""

from __future__ import annotations

from memex.ids import INDEX_NOTE_ID
from memex.memory.format import DEFAULT_ORG, MemoryEntry

INDEX_NOTE_TITLE = "top of mind"


def build_index_note(top_of_mind: list[tuple[str, str]], org: str = DEFAULT_ORG) -> MemoryEntry:
    """``top_of_mind`` is a list of ``(id, title)`` pairs."""
    links = [f"- [[{entry_id}|{title}]]" for entry_id, title in top_of_mind]
    body = "\n".join(links) if links else "_no top-of-mind entries yet._"
    return MemoryEntry(id=INDEX_NOTE_ID, title=INDEX_NOTE_TITLE, body=body, tags=[], org=org)
