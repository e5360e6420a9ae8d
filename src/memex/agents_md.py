"""AGENTS.md managed section.

Top-of-mind entries are inlined in full; every other entry is listed as a
``[title](id)`` line. The section sits between two sentinel comments so it can
be regenerated without touching the rest of the file.
"""

from __future__ import annotations

import logging
from pathlib import Path

from memex.memory.format import EntryMeta, MemoryEntry

logger = logging.getLogger(__name__)

SECTION_START = "<!-- agent-memory:start -->"
SECTION_END = "<!-- agent-memory:end -->"


def generate_section(top_of_mind: list[MemoryEntry], archive: list[EntryMeta]) -> str:
    lines: list[str] = []

    for entry in top_of_mind:
        lines.append(f"## {entry.title} - {entry.id}")
        lines.append("")
        lines.append(entry.body.strip())
        lines.append("")

    if archive:
        if top_of_mind:
            lines.append("---")
            lines.append("")
        for meta in archive:
            lines.append(f"- [{meta.title}]({meta.id})")
        lines.append("")

    if not top_of_mind and not archive:
        lines.append("_no memory entries yet._")
        lines.append("")

    return "\n".join(lines)


def wrap_section(content: str) -> str:
    return f"{SECTION_START}\n{content}\n{SECTION_END}"


def replace_section(target: Path, content: str) -> None:
    """Write ``content`` into the managed section of ``target``.

    Creates the file if missing and appends the section when no sentinels are
    present. Text outside the sentinels is preserved byte for byte.
    """
    wrapped = wrap_section(content)

    if not target.exists():
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(wrapped, encoding="utf-8")
        logger.info("Created %s", target)
        return

    existing = target.read_text(encoding="utf-8")
    start = existing.find(SECTION_START)
    end = existing.find(SECTION_END, start + len(SECTION_START)) if start != -1 else -1

    if start == -1 or end == -1:
        updated = existing.rstrip() + "\n\n" + wrapped + "\n"
    else:
        updated = existing[:start] + wrapped + existing[end + len(SECTION_END):]

    target.write_text(updated, encoding="utf-8")
    logger.info("Updated memory section in %s", target)
