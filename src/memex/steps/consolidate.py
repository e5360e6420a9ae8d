"""Real step implementations for the consolidation pipeline."""

from __future__ import annotations

import asyncio
import logging
import subprocess
from pathlib import Path

from memex.errors import JournalError
from memex.generation.base import Generator
from memex.git import commit_all_async
from memex.ids import INDEX_NOTE_ID
from memex.memory.format import DEFAULT_ORG
from memex.memory.journal import JournalEntry, JournalQueue, PendingRecord
from memex.memory.service import MemoryService
from memex.prompts.consolidate import build_consolidation_prompt, resolve_intra_batch_links

logger = logging.getLogger(__name__)

HISTORY_TIMEOUT = 60


async def read_amp_thread(thread_id: str, timeout: int = HISTORY_TIMEOUT) -> str:
    """Fetch a thread transcript with ``amp thread read <id>``."""
    try:
        result = await asyncio.to_thread(
            subprocess.run,
            ["amp", "thread", "read", thread_id],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise RuntimeError("amp CLI not found") from None
    except subprocess.TimeoutExpired:
        raise RuntimeError(f"amp thread read timed out after {timeout}s") from None
    if result.returncode != 0:
        raise RuntimeError(f"amp thread read failed: {result.stderr.strip()}")
    return result.stdout


def _journal_for_prompt(record: PendingRecord) -> dict:
    entry = record.entry
    lines = [f"harness: {entry.harness}", f"context: {entry.context.cwd}"]
    if entry.context.repo:
        lines.append(f"repo: {entry.context.repo}")
    lines.append(f"captured: {entry.timestamp}")
    return {
        "id": record.id,
        "title": f"session {entry.harness}",
        "body": "\n".join(lines),
        "tags": [],
    }


class ConsolidateSteps:
    """Binds the consolidation steps to a store, a queue and a generator."""

    def __init__(
        self,
        service: MemoryService,
        queue: JournalQueue,
        generator: Generator,
        *,
        auto_commit: bool = True,
        org: str = DEFAULT_ORG,
    ) -> None:
        self.service = service
        self.queue = queue
        self.generator = generator
        self.auto_commit = auto_commit
        self.org = org

    def as_steps(self) -> dict:
        return {
            "loadQueue": self.load_queue,
            "fetchHistory": self.fetch_history,
            "listExisting": self.list_existing,
            "runAgent": self.run_agent,
            "writeEntries": self.write_entries,
            "markProcessed": self.mark_processed,
            "commitChanges": self.commit_changes,
        }

    # ── Steps ─────────────────────────────────────────────────

    def load_queue(self, input: dict) -> dict:
        records = self.queue.enumerate_pending(input.get("limit"))
        logger.info("Loaded %d pending journal records", len(records))
        return {
            "entries": [{"id": r.id, "entry": r.entry.to_dict()} for r in records],
            "journals": [_journal_for_prompt(r) for r in records],
        }

    async def fetch_history(self, input: dict) -> str:
        """Collect session content for every record. Unreachable sources are skipped."""
        blocks = []
        for item in input["entries"]:
            entry = JournalEntry.from_dict(item["entry"], item["id"])
            try:
                content = await self._retrieve(entry)
            except (OSError, RuntimeError) as e:
                logger.warning("No history for %s: %s", item["id"], e)
                continue
            if content and content.strip():
                blocks.append(f"### {item['id']}\n\n{content.strip()}")
        return "\n\n---\n\n".join(blocks)

    async def _retrieve(self, entry: JournalEntry) -> str:
        r = entry.retrieval
        if r.method == "amp-thread" and r.thread_id:
            return await read_amp_thread(r.thread_id)
        if r.method == "cursor-session" and r.session_path:
            return Path(r.session_path).expanduser().read_text(encoding="utf-8")
        if r.method == "file" and r.file_path:
            return Path(r.file_path).expanduser().read_text(encoding="utf-8")
        if r.method != "inline":
            logger.warning("%s record has no source pointer", r.method)
        return r.content or ""

    def list_existing(self, input: None) -> list[dict]:
        return [m.to_ref() for m in self.service.list() if m.id != INDEX_NOTE_ID]

    async def run_agent(self, input: dict) -> str:
        prompt = build_consolidation_prompt(
            input["journals"], input["existing_entries"], input["history_content"]
        )
        logger.info("Running %s generator (%d prompt chars)", self.generator.name, len(prompt))
        return await self.generator.generate(prompt)

    def write_entries(self, input: dict) -> list[dict]:
        written = []
        for draft in input["entries"]:
            entry = self.service.capture(
                draft["title"], draft["body"], draft.get("tags", []), org=self.org
            )
            written.append({"id": entry.id, "title": entry.title, "body": entry.body})

        resolved = {r["id"]: r["body"] for r in resolve_intra_batch_links(written)}
        for item in written:
            body = resolved[item["id"]]
            if body != item["body"]:
                self.service.update_body(item["id"], body)
                item["body"] = body
        return written

    def mark_processed(self, input: dict) -> dict:
        count = 0
        failed: list[str] = []
        for queue_id in input["queue_ids"]:
            try:
                self.queue.mark_processed(queue_id)
                count += 1
            except JournalError as e:
                logger.warning("Could not mark %s processed: %s", queue_id, e)
                failed.append(queue_id)
        logger.info(
            "Processed %d journal records into %d notes", count, len(input["kb_ids"])
        )
        return {"count": count, "failed_ids": failed}

    async def commit_changes(self, input: dict) -> str | None:
        if not self.auto_commit:
            return None
        message = (
            f"memex: consolidate {input['queue_count']} sessions "
            f"into {input['entry_count']} notes"
        )
        return await commit_all_async(self.service.store.root, message)
