"""Ingestion-consolidation pipeline: journal queue -> knowledge-base notes.

loadQueue -> fetchHistory -> listExisting -> runAgent -> parseOutput
    -> writeEntries -> markProcessed -> commitChanges -> completed | failed

Step contract (each step takes one argument and returns JSON data):

    loadQueue({"limit"})                    -> {"entries": [{id, entry}], "journals": [...]}
    fetchHistory({"entries"})               -> str
    listExisting(None)                      -> [{id, title, tags}]
    runAgent({"journals", "existing_entries", "history_content"}) -> str
    writeEntries({"entries": [draft]})      -> [{id, title, body}]
    markProcessed({"queue_ids", "kb_ids"})  -> {"count", "failed_ids"}
    commitChanges({"entry_count", "queue_count"}) -> anything
"""

from __future__ import annotations

from memex.decisions import parse_drafts
from memex.workflow.engine import COMPLETED, FAILED, Final, Invoke, Pure, Transition, Workflow

DEFAULT_LIMIT = 10


def _initial_context(input: dict) -> dict:
    return {
        "limit": int(input.get("limit", DEFAULT_LIMIT)),
        "queue_entries": [],
        "journals": [],
        "history_content": "",
        "existing_entries": [],
        "agent_output": "",
        "drafts": [],
        "written_entries": [],
        "processed_count": 0,
        "failed_queue_ids": [],
    }


def has_queue_entries(ctx: dict) -> bool:
    return len(ctx["queue_entries"]) > 0


def has_drafts(ctx: dict) -> bool:
    return len(ctx["drafts"]) > 0


def parse_output(ctx: dict) -> dict:
    return {"drafts": [d.to_dict() for d in parse_drafts(ctx["agent_output"])]}


CONSOLIDATE = Workflow(
    id="consolidate",
    initial="loadQueue",
    context=_initial_context,
    states={
        "loadQueue": Invoke(
            step="loadQueue",
            input=lambda ctx: {"limit": ctx["limit"]},
            assign=lambda ctx, out: {
                "queue_entries": out["entries"],
                "journals": out["journals"],
            },
            on_done=[
                Transition("fetchHistory", guard=has_queue_entries),
                Transition(COMPLETED),
            ],
        ),
        "fetchHistory": Invoke(
            step="fetchHistory",
            input=lambda ctx: {"entries": ctx["queue_entries"]},
            assign=lambda ctx, out: {"history_content": out or ""},
            on_done=[Transition("listExisting")],
        ),
        "listExisting": Invoke(
            step="listExisting",
            assign=lambda ctx, out: {"existing_entries": out},
            on_done=[Transition("runAgent")],
        ),
        "runAgent": Invoke(
            step="runAgent",
            input=lambda ctx: {
                "journals": ctx["journals"],
                "existing_entries": ctx["existing_entries"],
                "history_content": ctx["history_content"],
            },
            assign=lambda ctx, out: {"agent_output": out},
            on_done=[Transition("parseOutput")],
        ),
        "parseOutput": Pure(
            compute=parse_output,
            transitions=[
                Transition("writeEntries", guard=has_drafts),
                Transition("markProcessed"),
            ],
        ),
        "writeEntries": Invoke(
            step="writeEntries",
            input=lambda ctx: {"entries": ctx["drafts"]},
            assign=lambda ctx, out: {"written_entries": out},
            on_done=[Transition("markProcessed")],
        ),
        "markProcessed": Invoke(
            step="markProcessed",
            input=lambda ctx: {
                "queue_ids": [e["id"] for e in ctx["queue_entries"]],
                "kb_ids": [e["id"] for e in ctx["written_entries"]],
            },
            assign=lambda ctx, out: {
                "processed_count": out["count"],
                "failed_queue_ids": out["failed_ids"],
            },
            on_done=[Transition("commitChanges")],
        ),
        "commitChanges": Invoke(
            step="commitChanges",
            input=lambda ctx: {
                "entry_count": len(ctx["written_entries"]),
                "queue_count": len(ctx["queue_entries"]),
            },
            on_done=[Transition(COMPLETED)],
        ),
        COMPLETED: Final(),
        FAILED: Final(),
    },
)
