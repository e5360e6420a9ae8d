"""Prompt builders for the generation steps."""

from memex.prompts.consolidate import build_consolidation_prompt, resolve_intra_batch_links
from memex.prompts.defrag import build_defrag_prompt

__all__ = ["build_consolidation_prompt", "build_defrag_prompt", "resolve_intra_batch_links"]
