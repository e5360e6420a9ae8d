"""Note serialization: pure markdown, metadata derived from content.

    # Title

    #tag_one #area__two

    free body text, may contain [[id__XXXXXX|links]] and more #tags

The id lives in the filename, the title is the first ``# `` heading, tags are
every inline marker after it. Nothing else is stored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from memex.errors import FormatError
from memex.memory.tags import extract_tags, is_tag_line, render_tag_line

DEFAULT_ORG = "default"
SLUG_MAX_LENGTH = 50

_TITLE_PATTERN = re.compile(r"^#\s+(.+?)\s*$")


@dataclass
class MemoryEntry:
    """A note as read from or written to the store."""

    id: str
    title: str
    body: str
    tags: list[str] = field(default_factory=list)
    org: str = DEFAULT_ORG

    def __post_init__(self) -> None:
        self.title = self.title.strip()

    def render(self) -> str:
        return serialize_note(self.title, self.tags, self.body)


@dataclass
class EntryMeta:
    """Listing view of a note: everything but the body."""

    id: str
    title: str
    tags: list[str]
    org: str
    path: Path

    def to_ref(self) -> dict:
        return {"id": self.id, "title": self.title, "tags": list(self.tags)}


@dataclass
class ParsedNote:
    title: str
    tags: list[str]
    body: str


def serialize_note(title: str, tags: list[str], body: str) -> str:
    body = body.rstrip()
    parts = [f"# {title.strip()}"]
    # tags already written inline in the body stay there only
    inline = set(extract_tags(body))
    line_tags = [t for t in tags if t not in inline]
    if line_tags:
        parts.append(render_tag_line(line_tags))
    if body:
        parts.append(body)
    return "\n\n".join(parts) + "\n"


def parse_note(text: str, source: str = "") -> ParsedNote:
    """Parse note text. Raises FormatError when there is no leading heading."""
    lines = text.split("\n")
    i = 0
    while i < len(lines) and not lines[i].strip():
        i += 1
    if i == len(lines):
        raise FormatError(source, "empty note: no # heading found")

    match = _TITLE_PATTERN.match(lines[i])
    if not match:
        raise FormatError(source, f"no # heading found (first line: {lines[i][:80]!r})")
    title = match.group(1)

    rest = lines[i + 1 :]
    # serialize_note puts exactly one blank line after the heading and after the tag line
    j = _skip_separator(rest, 0)
    tag_line = ""
    if j < len(rest) and is_tag_line(rest[j]):
        tag_line = rest[j]
        j = _skip_separator(rest, j + 1)

    body = "\n".join(rest[j:]).rstrip()
    tags = extract_tags(f"{tag_line}\n{body}")
    return ParsedNote(title=title, tags=tags, body=body)


def _skip_separator(lines: list[str], j: int) -> int:
    if j < len(lines) and not lines[j].strip():
        return j + 1
    return j


def slugify(title: str) -> str:
    """Lowercase, non-alphanumeric runs become ``-``, capped length."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    slug = slug[:SLUG_MAX_LENGTH].rstrip("-")
    return slug or "untitled"
