"""Workflow orchestration for single and batch migrations."""
from .migration_agent import (
    EventKind,
    InvalidTransitionError,
    MigrationAgent,
    MigrationJob,
    MigrationState,
    WorkflowEvent,
    WorkflowPhase,
    migrate_batch,
)

__all__ = [
    "EventKind",
    "InvalidTransitionError",
    "MigrationAgent",
    "MigrationJob",
    "MigrationState",
    "WorkflowEvent",
    "WorkflowPhase",
    "migrate_batch",
]
