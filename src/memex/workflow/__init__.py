"""Workflow engine and the two memory pipelines built on it."""

from memex.workflow.consolidate import CONSOLIDATE
from memex.workflow.defrag import DEFRAG
from memex.workflow.engine import COMPLETED, FAILED, Workflow, WorkflowRun

__all__ = ["CONSOLIDATE", "COMPLETED", "DEFRAG", "FAILED", "Workflow", "WorkflowRun"]
