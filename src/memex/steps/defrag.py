"""Real step implementations for the reorganization pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

from memex.agents_md import generate_section, replace_section
from memex.decisions import (
    Action,
    ArchiveAction,
    MergeAction,
    RenameAction,
    RetagAction,
    SplitAction,
    validate_action,
)
from memex.errors import EntryNotFoundError, InvalidIdError, MemexError, PersistError
from memex.generation.base import Generator
from memex.git import commit_all_async
from memex.ids import INDEX_NOTE_ID
from memex.memory.format import DEFAULT_ORG
from memex.memory.index_note import build_index_note
from memex.memory.service import MemoryService
from memex.prompts.defrag import build_defrag_prompt

logger = logging.getLogger(__name__)

SUPERSEDED_TAG = "superseded"


def is_store_failure(error: MemexError) -> bool:
    """True for I/O failures of the store itself, as opposed to a bad action."""
    if not isinstance(error, PersistError):
        return False
    if isinstance(error, (EntryNotFoundError, InvalidIdError)):
        return False
    return error.op in ("read", "write", "delete")


class DefragSteps:
    """Binds the reorganization steps to a store, a generator and AGENTS.md targets."""

    def __init__(
        self,
        service: MemoryService,
        generator: Generator,
        *,
        agents_md_targets: list[Path] | None = None,
        auto_commit: bool = True,
        org: str = DEFAULT_ORG,
    ) -> None:
        self.service = service
        self.generator = generator
        self.agents_md_targets = list(agents_md_targets or [])
        self.auto_commit = auto_commit
        self.org = org

    def as_steps(self) -> dict:
        return {
            "scanEntries": self.scan_entries,
            "runAgent": self.run_agent,
            "applyChanges": self.apply_changes,
            "generateOutput": self.generate_output,
            "commitChanges": self.commit_changes,
        }

    # ── Steps ─────────────────────────────────────────────────

    def scan_entries(self, input: None) -> list[dict]:
        return [
            {"id": e.id, "title": e.title, "body": e.body, "tags": list(e.tags), "org": e.org}
            for e in self.service.store.scan()
            if e.id != INDEX_NOTE_ID
        ]

    async def run_agent(self, input: dict) -> str:
        prompt = build_defrag_prompt(input["entries"])
        logger.info("Running %s generator over %d entries", self.generator.name, len(input["entries"]))
        return await self.generator.generate(prompt)

    def apply_changes(self, input: dict) -> int:
        """Apply each action in order.

        An action that names a missing note or is otherwise invalid is logged and
        skipped. Store I/O failures propagate and fail the step.
        """
        applied = 0
        for i, raw in enumerate(input["actions"]):
            try:
                action = validate_action(raw, i)
                self.apply(action)
            except MemexError as e:
                if is_store_failure(e):
                    raise
                logger.warning("Skipping %s action %d: [%s] %s", raw.get("type"), i, e.tag, e)
                continue
            applied += 1
        logger.info("Applied %d of %d actions", applied, len(input["actions"]))
        return applied

    def generate_output(self, input: dict) -> dict:
        """Rewrite the index note and every AGENTS.md managed section."""
        current = [e for e in self.service.store.scan() if e.id != INDEX_NOTE_ID]
        by_id = {e.id: e for e in current}

        selected = []
        for entry_id in dict.fromkeys(input["top_of_mind"]):
            if entry_id in by_id:
                selected.append(by_id[entry_id])
            elif any(e["id"] == entry_id for e in input["entries"]):
                logger.info("Top-of-mind entry %s no longer exists after defrag", entry_id)
            else:
                logger.warning("Top-of-mind selection names unknown id %s", entry_id)

        self.service.store.write(
            build_index_note([(e.id, e.title) for e in selected], org=self.org)
        )

        chosen = {e.id for e in selected}
        rest = [m for m in self.service.list() if m.id != INDEX_NOTE_ID and m.id not in chosen]
        section = generate_section(selected, rest)
        for target in self.agents_md_targets:
            replace_section(target, section)

        return {"top_of_mind": [e.id for e in selected], "targets": [str(t) for t in self.agents_md_targets]}

    async def commit_changes(self, input: dict) -> str | None:
        if not self.auto_commit:
            return None
        message = f"memex: defrag ({input['applied_actions']} actions applied)"
        return await commit_all_async(self.service.store.root, message)

    # ── Actions ───────────────────────────────────────────────

    def apply(self, action: Action) -> None:
        if isinstance(action, MergeAction):
            self._merge(action)
        elif isinstance(action, SplitAction):
            self._split(action)
        elif isinstance(action, RenameAction):
            self.service.rename(action.id, action.new_title)
        elif isinstance(action, ArchiveAction):
            self._archive(action)
        elif isinstance(action, RetagAction):
            self.service.update_tags(action.id, action.tags)

    def _merge(self, action: MergeAction) -> None:
        if not action.sources:
            raise MemexError("merge action has no sources")
        # every source must exist before anything is written
        sources = self.service.store.read_many(action.sources)
        merged = self.service.capture(action.title, action.body, action.tags, org=sources[0].org)
        for source in sources:
            self.service.retarget_links(source.id, merged.id)
            self.service.remove(source.id)
        logger.info("Merged %s into %s", ", ".join(action.sources), merged.id)

    def _split(self, action: SplitAction) -> None:
        if not action.entries:
            raise MemexError(f"split action for {action.source} has no entries")
        source = self.service.read(action.source)
        created = [
            self.service.capture(d.title, d.body, d.tags, org=source.org) for d in action.entries
        ]
        self.service.retarget_links(source.id, created[0].id)
        self.service.remove(source.id)
        logger.info("Split %s into %s", source.id, ", ".join(e.id for e in created))

    def _archive(self, action: ArchiveAction) -> None:
        entry = self.service.read(action.id)
        if SUPERSEDED_TAG not in entry.tags:
            entry.tags.append(SUPERSEDED_TAG)
        entry.body = f"{entry.body.rstrip()}\n\narchived: {action.reason}".lstrip()
        self.service.store.write(entry)
        logger.info("Archived %s: %s", entry.id, action.reason)
