"""Wiki-style links between notes.

Two forms:
    [[id__XXXXXX|display text]]   alias shown to readers
    [[id__XXXXXX]]                display text is the id itself

The id stays stable across renames; the alias is cosmetic. Links are never
stored anywhere else: every query re-scans the body text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from memex.ids import ID_BODY
from memex.memory.tags import is_fence

LINK_PATTERN = re.compile(rf"\[\[({ID_BODY})(?:\|([^\]]*?))?\]\]")


@dataclass(frozen=True)
class LinkRef:
    """A link found in a body. ``start``/``end`` index into the scanned text."""

    id: str
    display_text: str
    start: int
    end: int


def extract_links(body: str) -> list[LinkRef]:
    """Find every link outside fenced code blocks, with exact spans."""
    links: list[LinkRef] = []
    in_code = False
    offset = 0

    for line in body.split("\n"):
        if is_fence(line):
            in_code = not in_code
        elif not in_code:
            for match in LINK_PATTERN.finditer(line):
                alias = match.group(2)
                links.append(
                    LinkRef(
                        id=match.group(1),
                        display_text=match.group(1) if alias is None else alias,
                        start=offset + match.start(),
                        end=offset + match.end(),
                    )
                )
        offset += len(line) + 1  # newline

    return links


def replace_link(body: str, old_id: str, new_id: str) -> str:
    """Point every link at ``old_id`` to ``new_id``, keeping aliases."""
    pattern = re.compile(rf"\[\[{re.escape(old_id)}(\|[^\]]*?)?\]\]")
    return pattern.sub(lambda m: f"[[{new_id}{m.group(1) or ''}]]", body)


def rewrite_alias(body: str, target_id: str, old_alias: str, new_alias: str) -> str:
    """Rewrite aliases of links to ``target_id`` that equal ``old_alias`` exactly.

    Works span by span so links inside code fences and links with any other
    alias are left alone.
    """
    out: list[str] = []
    cursor = 0
    for link in extract_links(body):
        if link.id != target_id or link.display_text != old_alias:
            continue
        # short-form links display the id; only aliased links are rewritten
        if body[link.start : link.end] != f"[[{target_id}|{old_alias}]]":
            continue
        out.append(body[cursor : link.start])
        out.append(f"[[{target_id}|{new_alias}]]")
        cursor = link.end
    out.append(body[cursor:])
    return "".join(out)
