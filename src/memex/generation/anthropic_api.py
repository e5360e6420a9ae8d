"""Anthropic API generator: direct Messages API call, no tools."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from memex.errors import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


@dataclass
class AnthropicGenerator:
    """Generation via the `anthropic` SDK."""

    model: str = DEFAULT_MODEL
    max_tokens: int = 8192
    timeout: int = 300

    def __post_init__(self) -> None:
        try:
            import anthropic

            self._client = anthropic.Anthropic()
        except ImportError:
            raise ImportError(
                "anthropic package required. Install with: uv pip install 'memex[api]'"
            )

    @property
    def name(self) -> str:
        return "anthropic"

    async def generate(self, prompt: str) -> str:
        try:
            response = await asyncio.to_thread(
                self._client.messages.create,
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error("Anthropic API error: %s", e)
            raise GenerationError(f"Anthropic API error: {e}") from e

        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()

    async def health_check(self) -> bool:
        try:
            response = await asyncio.to_thread(
                self._client.messages.create,
                model=self.model,
                max_tokens=10,
                messages=[{"role": "user", "content": "ping"}],
            )
            return bool(response.content)
        except Exception:
            return False
