"""Prompt for turning journal records into atomic knowledge-base notes."""

from __future__ import annotations

import re

PENDING_LINK_PATTERN = re.compile(r"\[\[pending:([^\]]+)\]\]")

_INSTRUCTIONS = """\
## Instructions

Decompose the journal entries above into atomic knowledge-base notes. Each note should:

1. Cover a SINGLE concept, pattern, gotcha, or fact
2. Include relevant #tags inline in the body for retrieval (e.g., topic__asyncio, area__testing)
3. Cross-reference related entries using [[id__XXXXXX]] syntax:
   - To existing entries: [[id__XXXXXX]]
   - To other new entries you're creating: [[pending:their-title]]
4. Be self-contained, readable without the source journal
5. Omit session-specific context (timestamps, "I was debugging...")

If a journal entry contains multiple distinct learnings, split them into separate notes.
If two journal entries describe the same concept, merge them into one note.
If a journal entry contains no durable knowledge (e.g., "started working on X"), skip it.

CRITICAL: Your entire response must be ONLY a raw JSON array. No prose, no explanation, \
no markdown fencing. Start your response with [ and end with ].

[
  {
    "title": "concise descriptive title",
    "body": "the atomic note content with #tags and [[id__XXXXXX]] links",
    "tags": ["topic__foo", "area__bar"]
  }
]

If there is nothing worth extracting, respond with: []"""


def build_consolidation_prompt(
    journals: list[dict],
    existing_entries: list[dict],
    history_content: str = "",
) -> str:
    """Build the consolidation prompt.

    ``journals`` items carry ``id``, ``title``, ``body`` and ``tags``;
    ``existing_entries`` items carry ``id``, ``title`` and ``tags``.
    """
    if existing_entries:
        existing = "\n".join(
            f'- {e["id"]}: "{e["title"]}" ({", ".join(e.get("tags", []))})'
            for e in existing_entries
        )
    else:
        existing = "(none yet)"

    blocks = []
    for j in journals:
        tags = j.get("tags", [])
        suffix = f" (tags: {', '.join(tags)})" if tags else ""
        blocks.append(f'### {j["id"]}: "{j["title"]}"{suffix}\n\n{j["body"]}')
    journal_section = "\n\n---\n\n".join(blocks)

    sections = [
        "You are consolidating raw journal entries into a curated knowledge base.",
        "The knowledge base follows the zettelkasten method:\n"
        "- Each entry explains a SINGLE idea, fact, pattern, or gotcha\n"
        "- Entries cross-reference each other using [[id__XXXXXX]] syntax\n"
        "- Entries use #tags for retrieval (format: topic__name, area__name)\n"
        "- Entries are concise: one concept per note, not a summary of everything",
        f"## Existing knowledge-base entries (for cross-referencing)\n\n{existing}",
        f"## Journal entries to consolidate\n\n{journal_section}",
    ]
    if history_content.strip():
        sections.append(f"## Thread history (full conversation content)\n\n{history_content}")
    sections.append(_INSTRUCTIONS)
    return "\n\n".join(sections)


def resolve_intra_batch_links(entries: list[dict]) -> list[dict]:
    """Replace ``[[pending:<title>]]`` with ``[[<id>]]`` for titles in the batch.

    ``entries`` items carry ``id``, ``title`` and ``body``. Title matching is
    case-insensitive; unknown titles are left untouched. Returns
    ``[{"id", "body"}]`` in input order.
    """
    title_to_id = {e["title"].lower(): e["id"] for e in entries}

    def substitute(match: re.Match) -> str:
        entry_id = title_to_id.get(match.group(1).lower())
        return f"[[{entry_id}]]" if entry_id else match.group(0)

    return [
        {"id": e["id"], "body": PENDING_LINK_PATTERN.sub(substitute, e["body"])} for e in entries
    ]
