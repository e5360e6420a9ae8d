"""Prompt for the reorganization pass over the whole store."""

from __future__ import annotations

BODY_PREVIEW_LENGTH = 500

_HEADER = """\
You are reorganizing a memory filesystem for an AI coding agent.

## Goals

1. **Target 15-25 focused files**
2. **Max ~40 lines per file**: split if larger
3. **Detect duplicates/overlaps**: merge related content
4. **Decide top-of-mind entries** for AGENTS.md generation

## Top-of-mind criteria

Entries marked top-of-mind are inlined fully in AGENTS.md. They're what the agent \
sees every session without any retrieval.

Mark an entry top-of-mind when it's:
- actively relevant RIGHT NOW (current project context, active patterns)
- foundational (always needed regardless of task)

Everything else is listed by title + id in AGENTS.md and retrievable via `memex read <id>`."""

_INSTRUCTIONS = """\
## Instructions

1. Review entries for duplicates, overlaps, or overgrown files
2. Decide what to merge, split, rename, archive or retag
3. Decide which entries are top-of-mind

Respond with ONLY a JSON object. No markdown fencing:

{
  "actions": [
    { "type": "merge", "sources": ["id__abc123", "id__def456"], "title": "merged title", "body": "merged body", "tags": ["topic__x"] },
    { "type": "split", "source": "id__big1", "entries": [{ "title": "part 1", "body": "...", "tags": [] }] },
    { "type": "rename", "id": "id__old", "newTitle": "better title" },
    { "type": "archive", "id": "id__old", "reason": "superseded by id__new" },
    { "type": "retag", "id": "id__x", "tags": ["topic__y", "area__z"] }
  ],
  "topOfMind": ["id__abc123", "id__ghi789"]
}

If no changes are needed, respond with:
{ "actions": [], "topOfMind": [...] }"""


def _preview(body: str) -> str:
    if len(body) > BODY_PREVIEW_LENGTH:
        return body[:BODY_PREVIEW_LENGTH] + "..."
    return body


def build_defrag_prompt(entries: list[dict]) -> str:
    """``entries`` items carry ``id``, ``title``, ``body`` and ``tags``."""
    blocks = []
    for e in entries:
        tags = e.get("tags", [])
        suffix = f" [{', '.join(tags)}]" if tags else ""
        blocks.append(f'### {e["id"]}: "{e["title"]}"{suffix}\n\n{_preview(e["body"])}')
    listing = "\n\n---\n\n".join(blocks)
    return f"{_HEADER}\n\n## Current entries\n\n{listing}\n\n{_INSTRUCTIONS}"
