"""Step implementations injected into the workflow runs."""

from memex.steps.consolidate import ConsolidateSteps
from memex.steps.defrag import DefragSteps

__all__ = ["ConsolidateSteps", "DefragSteps"]
