"""Shell generator: pipes the prompt to a configured command.

The command is run with ``sh -c``, reads the prompt on stdin and writes the
answer to stdout, e.g. ``amp agent run``, ``claude -p`` or ``ollama run llama3``.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from dataclasses import dataclass

from memex.errors import GenerationError

logger = logging.getLogger(__name__)


@dataclass
class ShellGenerator:
    """Subprocess wrapper around an arbitrary stdin/stdout LLM command."""

    command: str
    timeout: int = 300

    @property
    def name(self) -> str:
        return "shell"

    async def generate(self, prompt: str) -> str:
        cmd = ["sh", "-c", self.command]
        logger.debug("Running: %s (%d prompt chars)", self.command, len(prompt))

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                input=prompt,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise GenerationError(
                f"LLM command timed out after {self.timeout}s: {self.command}"
            ) from None
        except FileNotFoundError:
            raise GenerationError("`sh` not found; cannot run LLM command") from None

        if result.returncode != 0:
            stderr = result.stderr.strip()
            logger.error("LLM command error (rc=%d): %s", result.returncode, stderr)
            raise GenerationError(
                f"LLM command failed with exit code {result.returncode}: {stderr or 'unknown error'}"
            )

        return result.stdout.strip()

    async def health_check(self) -> bool:
        executable = self.command.split()[0] if self.command.split() else ""
        if not executable:
            return False
        try:
            result = await asyncio.to_thread(
                subprocess.run,
                ["sh", "-c", f"command -v {executable}"],
                capture_output=True,
                text=True,
                timeout=10,
            )
            return result.returncode == 0
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return False
