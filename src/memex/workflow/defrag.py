"""Reorganization ("defrag") pipeline.

scanEntries -> runAgent -> parseOutput -> applyChanges -> generateOutput
    -> commitChanges -> completed | failed

Step contract:

    scanEntries(None)                          -> [{id, title, body, tags, org}]
    runAgent({"entries"})                      -> str
    applyChanges({"actions": [action dict]})   -> int (actions applied)
    generateOutput({"top_of_mind", "entries"}) -> anything
    commitChanges({"applied_actions"})         -> anything
"""

from __future__ import annotations

from memex.decisions import parse_decision
from memex.workflow.engine import COMPLETED, FAILED, Final, Invoke, Pure, Transition, Workflow


def _initial_context(input: dict) -> dict:
    return {
        "entries": [],
        "agent_output": "",
        "decision": None,
        "applied_actions": 0,
    }


def has_entries(ctx: dict) -> bool:
    return len(ctx["entries"]) > 0


def parse_output(ctx: dict) -> dict:
    return {"decision": parse_decision(ctx["agent_output"]).to_dict()}


DEFRAG = Workflow(
    id="defrag",
    initial="scanEntries",
    context=_initial_context,
    states={
        "scanEntries": Invoke(
            step="scanEntries",
            assign=lambda ctx, out: {"entries": out},
            on_done=[
                Transition("runAgent", guard=has_entries),
                Transition(COMPLETED),
            ],
        ),
        "runAgent": Invoke(
            step="runAgent",
            input=lambda ctx: {"entries": ctx["entries"]},
            assign=lambda ctx, out: {"agent_output": out},
            on_done=[Transition("parseOutput")],
        ),
        "parseOutput": Pure(
            compute=parse_output,
            transitions=[Transition("applyChanges")],
        ),
        "applyChanges": Invoke(
            step="applyChanges",
            input=lambda ctx: {"actions": ctx["decision"]["actions"]},
            assign=lambda ctx, out: {"applied_actions": int(out)},
            on_done=[Transition("generateOutput")],
        ),
        "generateOutput": Invoke(
            step="generateOutput",
            input=lambda ctx: {
                "top_of_mind": ctx["decision"]["topOfMind"],
                "entries": ctx["entries"],
            },
            on_done=[Transition("commitChanges")],
        ),
        "commitChanges": Invoke(
            step="commitChanges",
            input=lambda ctx: {"applied_actions": ctx["applied_actions"]},
            on_done=[Transition(COMPLETED)],
        ),
        COMPLETED: Final(),
        FAILED: Final(),
    },
)
