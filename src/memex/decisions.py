"""Turn free-form generation output into typed drafts and decisions.

Models rarely return bare JSON. Three shapes are accepted, tried in order:

1. the whole text is JSON
2. JSON inside a fenced block (with or without a language tag)
3. JSON embedded in prose: scan from the end for a closing bracket of the
   expected shape, walk back to its matching opener and try that span; the
   first span that parses wins. Starting from the end skips the
   ``[[id__XXXXXX]]`` link markers that usually appear earlier in the text.

After extraction each action is validated per kind. Unknown kinds and missing
required fields are hard errors; optional list fields are filtered to strings.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Literal, Union

from memex.errors import DecisionParseError

ERROR_PREFIX_LENGTH = 200

_FENCE_PATTERN = re.compile(r"```[\w-]*[ \t]*\n?(.*?)\n?\s*```", re.DOTALL)
_BRACKETS = {"array": ("[", "]"), "object": ("{", "}")}


def extract_structured(text: str, shape: Literal["array", "object"] = "array") -> object:
    trimmed = text.strip()

    try:
        return json.loads(trimmed)
    except json.JSONDecodeError:
        pass

    fence = _FENCE_PATTERN.search(trimmed)
    if fence:
        try:
            return json.loads(fence.group(1))
        except json.JSONDecodeError:
            pass

    opener, closer = _BRACKETS[shape]
    for end in range(len(trimmed) - 1, -1, -1):
        if trimmed[end] != closer:
            continue
        start = _matching_open(trimmed, end, opener, closer)
        if start is None:
            continue
        try:
            return json.loads(trimmed[start : end + 1])
        except json.JSONDecodeError:
            continue  # balanced but not JSON; try an earlier closer

    raise DecisionParseError(
        f"agent output is not valid JSON: {trimmed[:ERROR_PREFIX_LENGTH]}"
    )


def _matching_open(text: str, end: int, opener: str, closer: str) -> int | None:
    """Walk back from ``text[end]`` to its opener. Brackets inside JSON strings don't count."""
    depth = 0
    in_string = False
    for i in range(end, -1, -1):
        ch = text[i]
        if ch == '"' and not _is_escaped(text, i):
            in_string = not in_string
        elif in_string:
            continue
        elif ch == closer:
            depth += 1
        elif ch == opener:
            depth -= 1
            if depth == 0:
                return i
    return None


def _is_escaped(text: str, i: int) -> bool:
    backslashes = 0
    while i - backslashes - 1 >= 0 and text[i - backslashes - 1] == "\\":
        backslashes += 1
    return backslashes % 2 == 1


# ── Types ─────────────────────────────────────────────────────


@dataclass
class Draft:
    """A proposed note: title, body and tags."""

    title: str
    body: str
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"title": self.title, "body": self.body, "tags": list(self.tags)}


@dataclass
class MergeAction:
    sources: list[str]
    title: str
    body: str
    tags: list[str] = field(default_factory=list)
    type: Literal["merge"] = "merge"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "sources": list(self.sources),
            "title": self.title,
            "body": self.body,
            "tags": list(self.tags),
        }


@dataclass
class SplitAction:
    source: str
    entries: list[Draft]
    type: Literal["split"] = "split"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "source": self.source,
            "entries": [d.to_dict() for d in self.entries],
        }


@dataclass
class RenameAction:
    id: str
    new_title: str
    type: Literal["rename"] = "rename"

    def to_dict(self) -> dict:
        return {"type": self.type, "id": self.id, "newTitle": self.new_title}


@dataclass
class ArchiveAction:
    id: str
    reason: str
    type: Literal["archive"] = "archive"

    def to_dict(self) -> dict:
        return {"type": self.type, "id": self.id, "reason": self.reason}


@dataclass
class RetagAction:
    id: str
    tags: list[str]
    type: Literal["retag"] = "retag"

    def to_dict(self) -> dict:
        return {"type": self.type, "id": self.id, "tags": list(self.tags)}


Action = Union[MergeAction, SplitAction, RenameAction, ArchiveAction, RetagAction]


@dataclass
class Decision:
    """Reorganization actions plus the top-of-mind selection."""

    actions: list[Action] = field(default_factory=list)
    top_of_mind: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "actions": [a.to_dict() for a in self.actions],
            "topOfMind": list(self.top_of_mind),
        }


# ── Validation ────────────────────────────────────────────────


def _strings(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def _require_str(obj: dict, key: str, where: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise DecisionParseError(f"{where} missing required field '{key}'")
    return value


def _require_list(obj: dict, key: str, where: str) -> list:
    value = obj.get(key)
    if not isinstance(value, list):
        raise DecisionParseError(f"{where} missing required field '{key}'")
    return value


def validate_draft(item: object, where: str) -> Draft:
    if not isinstance(item, dict):
        raise DecisionParseError(f"{where} must be an object")
    return Draft(
        title=_require_str(item, "title", where),
        body=_require_str(item, "body", where),
        tags=_strings(item.get("tags")),
    )


def validate_action(item: object, index: int) -> Action:
    if not isinstance(item, dict):
        raise DecisionParseError(f"action {index} must be an object")
    kind = item.get("type")
    if not isinstance(kind, str):
        raise DecisionParseError(f"action {index} missing required field 'type'")
    where = f"{kind} action {index}"

    if kind == "merge":
        return MergeAction(
            sources=_strings(_require_list(item, "sources", where)),
            title=_require_str(item, "title", where),
            body=_require_str(item, "body", where),
            tags=_strings(item.get("tags")),
        )
    if kind == "split":
        entries = _require_list(item, "entries", where)
        return SplitAction(
            source=_require_str(item, "source", where),
            entries=[validate_draft(e, f"{where} entries[{j}]") for j, e in enumerate(entries)],
        )
    if kind == "rename":
        return RenameAction(
            id=_require_str(item, "id", where),
            new_title=_require_str(item, "newTitle", where),
        )
    if kind == "archive":
        return ArchiveAction(
            id=_require_str(item, "id", where),
            reason=_require_str(item, "reason", where),
        )
    if kind in ("retag", "update-tags"):
        return RetagAction(
            id=_require_str(item, "id", where),
            tags=_strings(_require_list(item, "tags", where)),
        )
    raise DecisionParseError(f"unknown action type: {kind}")


def validate_decision(obj: object) -> Decision:
    if not isinstance(obj, dict):
        raise DecisionParseError(f"decision must be an object, got {type(obj).__name__}")
    actions = obj.get("actions")
    if not isinstance(actions, list):
        raise DecisionParseError("decision missing required field 'actions'")

    selection = obj.get("topOfMind", obj.get("top_of_mind", []))
    if not isinstance(selection, list):
        raise DecisionParseError("decision field 'topOfMind' must be a list")

    return Decision(
        actions=[validate_action(a, i) for i, a in enumerate(actions)],
        top_of_mind=_strings(selection),
    )


# ── Entry points ──────────────────────────────────────────────


def parse_drafts(text: str) -> list[Draft]:
    """Parse consolidation output: a JSON array of ``{title, body, tags}``."""
    parsed = extract_structured(text, "array")
    if not isinstance(parsed, list):
        raise DecisionParseError(f"agent output is not an array: {type(parsed).__name__}")
    return [validate_draft(item, f"entry {i}") for i, item in enumerate(parsed)]


def parse_decision(text: str) -> Decision:
    """Parse defrag output: ``{"actions": [...], "topOfMind": [...]}``."""
    return validate_decision(extract_structured(text, "object"))
