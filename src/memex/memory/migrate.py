"""One-shot migration of older memory trees to the current layout.

Handles two legacy note formats:

- an HTML comment header ``<!-- agent-memory:meta {json} -->`` (or the older
  ``<!-- axi-agent:memory-meta`` spelling) followed by the body;
- YAML frontmatter with ``title`` / ``tags`` keys.

Both are rewritten as plain ``# Title`` / tag line / body notes and renamed to
``<slug>-<id>.md``. Notes found under ``topics/`` (top level, per org, or
under the old ``orgs/<org>/`` tree) are moved into ``<org>/archive/``; a note
whose id already exists in the destination is dropped as a duplicate.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

import frontmatter

from memex.errors import FormatError
from memex.memory.format import DEFAULT_ORG, parse_note, serialize_note, slugify
from memex.memory.store import ARCHIVE_DIR, NOTE_SUFFIX, id_from_filename

logger = logging.getLogger(__name__)

LEGACY_HEADERS = ("<!-- agent-memory:meta", "<!-- axi-agent:memory-meta")
LEGACY_TOPICS_DIR = "topics"
LEGACY_ORGS_DIR = "orgs"
_SKIP_DIRS = {"inbox"}


@dataclass
class MigrationReport:
    migrated: list[str] = field(default_factory=list)
    renamed: list[str] = field(default_factory=list)
    relocated: list[str] = field(default_factory=list)
    deduplicated: list[str] = field(default_factory=list)
    skipped: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{len(self.migrated)} migrated, {len(self.renamed)} renamed, "
            f"{len(self.relocated)} relocated, {len(self.deduplicated)} deduplicated, "
            f"{self.skipped} skipped, {len(self.errors)} errors"
        )


# ── Format conversion ─────────────────────────────────────────


def parse_legacy_header(text: str) -> tuple[dict, str] | None:
    """Split a legacy comment-header note into ``(meta, body)``."""
    for header in LEGACY_HEADERS:
        start = text.find(header)
        if start != -1:
            break
    else:
        return None

    json_start = start + len(header)
    end = text.find("-->", json_start)
    if end == -1:
        return None
    raw = text[json_start:end].strip().replace("--\\u003E", "-->")
    try:
        meta = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(meta, dict):
        return None
    return meta, text[end + 3 :].strip()


def parse_frontmatter_note(text: str) -> tuple[dict, str] | None:
    """Split a YAML-frontmatter note into ``(meta, body)``."""
    if not text.lstrip().startswith("---"):
        return None
    try:
        post = frontmatter.loads(text)
    except Exception as e:
        logger.debug("Unparseable frontmatter: %s", e)
        return None
    if not post.metadata:
        return None
    return dict(post.metadata), post.content.strip()


def convert_legacy(text: str, fallback_title: str) -> str | None:
    """Return the note rewritten in the current format, or None if already current."""
    parsed = parse_legacy_header(text) or parse_frontmatter_note(text)
    if parsed is None:
        return None
    meta, body = parsed

    tags = [t for t in meta.get("tags") or [] if isinstance(t, str)]
    title = meta.get("title") if isinstance(meta.get("title"), str) else None

    # a body that already starts with a heading keeps it as the title
    if body.lstrip().startswith("# "):
        try:
            note = parse_note(body)
        except FormatError:
            note = None
        if note is not None:
            title = title or note.title
            body = note.body
            tags = list(dict.fromkeys(tags + note.tags))

    return serialize_note(title or fallback_title, tags, body)


def _fallback_title(path: Path) -> str:
    stem = path.stem
    entry_id = id_from_filename(path.name)
    if entry_id:
        stem = stem[: -len(entry_id)]
    stem = stem.replace("_top-of-mind", "").split(" -- ")[0]
    return stem.strip(" -_") or "untitled"


# ── Migration run ─────────────────────────────────────────────


class Migrator:
    """Walks a memory root and brings every note up to date."""

    def __init__(self, root: Path, default_org: str = DEFAULT_ORG, dry_run: bool = False) -> None:
        self.root = root
        self.default_org = default_org
        self.dry_run = dry_run

    def run(self) -> MigrationReport:
        report = MigrationReport()
        if not self.root.is_dir():
            report.errors.append((str(self.root), "root directory does not exist"))
            return report

        for path in self._walk():
            try:
                self._migrate_file(path, report)
            except OSError as e:
                logger.error("Migration failed for %s: %s", path, e)
                report.errors.append((self._rel(path), str(e)))

        # re-walk: pass one may have renamed files
        for path in self._walk():
            try:
                self._relocate(path, report)
            except OSError as e:
                logger.error("Relocation failed for %s: %s", path, e)
                report.errors.append((self._rel(path), str(e)))

        if not self.dry_run:
            self._cleanup()
        logger.info("Migration%s: %s", " (dry run)" if self.dry_run else "", report.summary())
        return report

    def _rel(self, path: Path) -> str:
        return str(path.relative_to(self.root))

    def _walk(self) -> list[Path]:
        found: list[Path] = []

        def visit(directory: Path) -> None:
            for child in sorted(directory.iterdir()):
                if child.name.startswith("."):
                    continue
                if child.is_dir():
                    if directory == self.root and child.name in _SKIP_DIRS:
                        continue
                    visit(child)
                elif child.suffix == NOTE_SUFFIX:
                    found.append(child)

        visit(self.root)
        return found

    def _migrate_file(self, path: Path, report: MigrationReport) -> None:
        text = path.read_text(encoding="utf-8")
        converted = convert_legacy(text, _fallback_title(path))
        if converted is not None:
            if not self.dry_run:
                path.write_text(converted, encoding="utf-8")
            report.migrated.append(self._rel(path))
            text = converted
        else:
            report.skipped += 1

        entry_id = id_from_filename(path.name)
        if entry_id is None:
            return
        try:
            title = parse_note(text, str(path)).title
        except FormatError:
            return
        canonical = f"{slugify(title)}-{entry_id}{NOTE_SUFFIX}"
        if canonical != path.name:
            if not self.dry_run:
                path.rename(path.with_name(canonical))
            report.renamed.append(self._rel(path))

    def _target_dir(self, path: Path) -> Path | None:
        parts = path.relative_to(self.root).parts
        if len(parts) == 2 and parts[0] == LEGACY_TOPICS_DIR:
            return self.root / self.default_org / ARCHIVE_DIR
        if (
            len(parts) == 4
            and parts[0] == LEGACY_ORGS_DIR
            and parts[2] in (LEGACY_TOPICS_DIR, ARCHIVE_DIR)
        ):
            return self.root / parts[1] / ARCHIVE_DIR
        if len(parts) == 3 and parts[1] == LEGACY_TOPICS_DIR:
            return self.root / parts[0] / ARCHIVE_DIR
        return None

    def _relocate(self, path: Path, report: MigrationReport) -> None:
        target = self._target_dir(path)
        entry_id = id_from_filename(path.name)
        if target is None or entry_id is None:
            return

        if target.is_dir() and any(entry_id in f.name for f in target.iterdir()):
            if not self.dry_run:
                path.unlink()
            report.deduplicated.append(self._rel(path))
            return

        if not self.dry_run:
            target.mkdir(parents=True, exist_ok=True)
            path.rename(target / path.name)
        report.relocated.append(self._rel(path))

    def _cleanup(self) -> None:
        candidates = [self.root / LEGACY_TOPICS_DIR]
        candidates += [d / LEGACY_TOPICS_DIR for d in self.root.iterdir() if d.is_dir()]
        orgs = self.root / LEGACY_ORGS_DIR
        if orgs.is_dir():
            for org in orgs.iterdir():
                candidates += [org / LEGACY_TOPICS_DIR, org / ARCHIVE_DIR, org]
            candidates.append(orgs)
        for directory in candidates:
            if directory.is_dir() and not any(directory.iterdir()):
                directory.rmdir()
