"""Generator protocol: prompt in, text out."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Generator(Protocol):
    """Protocol that all text-generation backends implement.

    ``generate`` raises ``GenerationError`` on failure or timeout; there is no
    partial result.
    """

    @property
    def name(self) -> str: ...

    async def generate(self, prompt: str) -> str:
        """Return the model's answer to ``prompt``."""
        ...

    async def health_check(self) -> bool:
        """Check if the backend is available. Returns True if healthy."""
        ...
