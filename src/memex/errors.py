"""Error types shared across memex.

Every error carries a ``tag`` so callers can report failures as values
(``{"tag": ..., "message": ...}``) instead of letting exceptions escape.
"""

from __future__ import annotations

from typing import Literal

PersistOp = Literal["read", "write", "delete", "parse"]


class MemexError(Exception):
    """Base class for all memex errors."""

    tag = "memex"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"tag": self.tag, "message": self.message}


class PersistError(MemexError):
    """A content store operation failed."""

    def __init__(self, op: PersistOp, path: str, message: str) -> None:
        super().__init__(message)
        self.op = op
        self.path = path

    @property
    def tag(self) -> str:  # type: ignore[override]
        return f"memory.persist.{self.op}"


class InvalidIdError(PersistError):
    """An id does not match the fixed id pattern."""


class EntryNotFoundError(PersistError):
    """No stored file carries the requested id."""


class FormatError(MemexError):
    """A stored note could not be parsed."""

    tag = "format.parse"

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path


class JournalError(MemexError):
    """Reading, writing or validating an intake record failed."""

    def __init__(self, op: Literal["read", "write", "validate"], path: str, message: str) -> None:
        super().__init__(message)
        self.op = op
        self.path = path

    @property
    def tag(self) -> str:  # type: ignore[override]
        return f"journal.{self.op}"


class DecisionParseError(MemexError):
    """Generation output could not be turned into a Decision."""

    tag = "decision.parse"


class GenerationError(MemexError):
    """The text-generation backend failed or timed out."""

    tag = "generation"


class WorkflowError(MemexError):
    """A workflow table or snapshot is inconsistent."""

    tag = "workflow"
