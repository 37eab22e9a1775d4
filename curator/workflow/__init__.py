"""Workflow pauses: operator kill switches, global or per tenant."""

from curator.workflow.config import WorkflowConfig
from curator.workflow.repository import WorkflowPauseRepository
from curator.workflow.schemas import INGESTION_TYPES, WorkflowPause, WorkflowType
from curator.workflow.service import WorkflowPauseRegistry

__all__ = [
    "INGESTION_TYPES",
    "WorkflowConfig",
    "WorkflowPause",
    "WorkflowPauseRegistry",
    "WorkflowPauseRepository",
    "WorkflowType",
]
