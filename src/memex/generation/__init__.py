"""Text-generation backends used by the runAgent steps."""

from __future__ import annotations

from memex.config import LLMConfig
from memex.errors import GenerationError
from memex.generation.base import Generator
from memex.generation.shell import ShellGenerator


def build_generator(config: LLMConfig) -> Generator:
    """Instantiate the backend named by ``config.backend``."""
    if config.backend == "shell":
        return ShellGenerator(command=config.resolved_command(), timeout=config.timeout)
    if config.backend == "anthropic":
        from memex.generation.anthropic_api import DEFAULT_MODEL, AnthropicGenerator

        return AnthropicGenerator(model=config.model or DEFAULT_MODEL, timeout=config.timeout)
    raise GenerationError(f"Unknown LLM backend: {config.backend}")


__all__ = ["Generator", "ShellGenerator", "build_generator"]
