"""Memex orchestrator: wires store, queue and generator into pipeline runs.

Responsibilities:
1. Build the content store, link-graph service and intake queue from config
2. Create the text-generation backend on first use
3. Drive consolidate / defrag runs with real step implementations
4. Health check of the memory root ("doctor")
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from memex.config import MemexConfig
from memex.errors import FormatError, PersistError
from memex.generation import build_generator
from memex.generation.base import Generator
from memex.memory.format import parse_note
from memex.memory.journal import JournalQueue
from memex.memory.service import MemoryService
from memex.memory.store import NOTE_SUFFIX, ContentStore, id_from_filename
from memex.steps import ConsolidateSteps, DefragSteps
from memex.workflow import CONSOLIDATE, DEFRAG, WorkflowRun
from memex.workflow.consolidate import DEFAULT_LIMIT

logger = logging.getLogger(__name__)

# the generator enforces its own timeout; this is the outer bound
_STEP_TIMEOUT_SLACK = 30


@dataclass
class HealthIssue:
    severity: str  # "error" | "warning"
    message: str
    location: str = ""


@dataclass
class DoctorReport:
    root: str
    exists: bool
    entries: int = 0
    pending: int = 0
    issues: list[HealthIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[HealthIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[HealthIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def ok(self) -> bool:
        return self.exists and not self.errors


class Memex:
    """Entry point for everything that touches a memory root."""

    def __init__(self, config: MemexConfig, generator: Generator | None = None) -> None:
        self.config = config
        self.store = ContentStore(config.storage.root)
        self.service = MemoryService(self.store)
        self.queue = JournalQueue(config.storage.inbox_dir)
        self._generator = generator

    @property
    def generator(self) -> Generator:
        if self._generator is None:
            self._generator = build_generator(self.config.llm)
            logger.info("Using %s generator", self._generator.name)
        return self._generator

    def _timeouts(self) -> dict[str, float]:
        return {"runAgent": float(self.config.llm.timeout + _STEP_TIMEOUT_SLACK)}

    # ── Pipelines ─────────────────────────────────────────────

    async def consolidate(
        self,
        limit: int = DEFAULT_LIMIT,
        listener: Callable[[dict], None] | None = None,
    ) -> WorkflowRun:
        steps = ConsolidateSteps(
            self.service,
            self.queue,
            self.generator,
            auto_commit=self.config.storage.auto_commit,
        )
        run = CONSOLIDATE.create(steps.as_steps(), {"limit": limit}, timeouts=self._timeouts())
        if listener:
            run.subscribe(listener)
        return await run.start()

    async def defrag(self, listener: Callable[[dict], None] | None = None) -> WorkflowRun:
        steps = DefragSteps(
            self.service,
            self.generator,
            agents_md_targets=self.config.agents_md.targets,
            auto_commit=self.config.storage.auto_commit,
        )
        run = DEFRAG.create(steps.as_steps(), timeouts=self._timeouts())
        if listener:
            run.subscribe(listener)
        return await run.start()

    # ── Health check ──────────────────────────────────────────

    def doctor(self) -> DoctorReport:
        root = self.store.root
        report = DoctorReport(root=str(root), exists=root.is_dir())
        if not report.exists:
            return report

        for org in self.store.namespaces():
            directory = self.store.archive_dir(org)
            for path in sorted(directory.iterdir()):
                if path.name.startswith(".") or path.suffix != NOTE_SUFFIX:
                    continue
                if id_from_filename(path.name) is None:
                    report.issues.append(
                        HealthIssue("warning", f"file missing id in filename: {path.name}", str(directory))
                    )
                    continue
                try:
                    parse_note(path.read_text(encoding="utf-8"), str(path))
                except (OSError, UnicodeDecodeError, FormatError) as e:
                    report.issues.append(HealthIssue("error", f"unreadable note: {e}", str(path)))
                    continue
                report.entries += 1

        report.pending = self.queue.count_pending()

        try:
            for broken in self.service.broken_links():
                report.issues.append(
                    HealthIssue(
                        "warning", f"broken link {broken.source_id} -> {broken.target_id}"
                    )
                )
        except PersistError as e:
            report.issues.append(HealthIssue("error", f"failed to list entries: {e}"))

        return report
