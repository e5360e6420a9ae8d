"""Inline ``#tag`` extraction from markdown bodies.

Rules:
- a tag is ``#`` followed by a word that starts with a letter or underscore,
  optionally namespaced with ``__`` (``#area__work``)
- the ``#`` must not follow a word character (URL fragments, ``foo#bar``)
- heading lines (``#`` run followed by whitespace) are skipped
- fenced code blocks are skipped
- hex colors (``#ff0000``, ``#ff0000aa``) are not tags
"""

from __future__ import annotations

import re

TAG_PATTERN = re.compile(r"(?<!\w)#([a-zA-Z_][a-zA-Z0-9_]*(?:__[a-zA-Z0-9_]+)*)\b")
HEX_COLOR_PATTERN = re.compile(r"^[0-9a-fA-F]{6}(?:[0-9a-fA-F]{2})?$")
HEADING_PATTERN = re.compile(r"^#+\s")
FENCE = "```"


def is_fence(line: str) -> bool:
    return line.lstrip().startswith(FENCE)


def extract_tags(body: str) -> list[str]:
    """Return tag names (without ``#``) in first-seen order, deduplicated."""
    tags: list[str] = []
    in_code = False

    for line in body.split("\n"):
        if is_fence(line):
            in_code = not in_code
            continue
        if in_code or HEADING_PATTERN.match(line):
            continue

        for match in TAG_PATTERN.finditer(line):
            tag = match.group(1)
            if HEX_COLOR_PATTERN.match(tag):
                continue
            if tag not in tags:
                tags.append(tag)

    return tags


def is_tag_line(line: str) -> bool:
    """True when a line holds nothing but tag markers (``#a #b__c``)."""
    words = line.split()
    if not words:
        return False
    return all(
        w.startswith("#") and TAG_PATTERN.fullmatch(w) and not HEX_COLOR_PATTERN.match(w[1:])
        for w in words
    )


def render_tag_line(tags: list[str]) -> str:
    return " ".join(f"#{t}" for t in tags)
