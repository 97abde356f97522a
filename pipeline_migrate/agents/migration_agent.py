"""
migration_agent.py
==================
Migration Workflow Orchestration Agent.

This module is the single coordinator between the command-line surface and
the engine subsystems (front ends, converter, downgrader, serializer).

Responsibilities:
    - Own and enforce the migration workflow as a finite state machine.
    - Provide a typed public API (`parse`, `convert`, `downgrade`, `render`,
      `run`) that the CLI delegates to.
    - Turn fatal engine errors into an ERROR phase with a readable message
      instead of a traceback.
    - Emit structured workflow events that callers can subscribe to.
    - Run batches of independent migrations where one failed job never
      stops the others.

Author: Transpiler Architect
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Iterable

from ..config import ConvertOptions, DowngradeOptions
from ..core import serializer
from ..core.converter import ConversionResult, Converter
from ..core.dialect import DialectTree
from ..core.downgrader import Downgrader
from ..core.errors import MigrationError
from ..core.legacy import LegacyPipeline
from ..frontends import parse as parse_source

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Workflow state machine
# ---------------------------------------------------------------------------


class WorkflowPhase(Enum):
    """Ordered phases of one migration. DOWNGRADING is optional."""
    IDLE = auto()
    PARSING = auto()
    PARSED = auto()
    CONVERTING = auto()
    CONVERTED = auto()
    DOWNGRADING = auto()
    DONE = auto()
    ERROR = auto()


_VALID_TRANSITIONS: dict[WorkflowPhase, set[WorkflowPhase]] = {
    WorkflowPhase.IDLE:        {WorkflowPhase.PARSING, WorkflowPhase.ERROR},
    WorkflowPhase.PARSING:     {WorkflowPhase.PARSED, WorkflowPhase.ERROR},
    WorkflowPhase.PARSED:      {WorkflowPhase.CONVERTING, WorkflowPhase.PARSING, WorkflowPhase.ERROR},
    WorkflowPhase.CONVERTING:  {WorkflowPhase.CONVERTED, WorkflowPhase.ERROR},
    WorkflowPhase.CONVERTED:   {WorkflowPhase.DOWNGRADING, WorkflowPhase.DONE, WorkflowPhase.ERROR},
    WorkflowPhase.DOWNGRADING: {WorkflowPhase.DONE, WorkflowPhase.ERROR},
    WorkflowPhase.DONE:        {WorkflowPhase.IDLE, WorkflowPhase.PARSING},
    WorkflowPhase.ERROR:       {WorkflowPhase.IDLE, WorkflowPhase.PARSING},
}


class InvalidTransitionError(RuntimeError):
    """Raised when a caller drives the workflow out of order."""


# ---------------------------------------------------------------------------
# Event system
# ---------------------------------------------------------------------------


class EventKind(Enum):
    PHASE_CHANGED = "phase_changed"
    STEP_DEGRADED = "step_degraded"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class WorkflowEvent:
    """Immutable event emitted by the agent."""
    kind: EventKind
    message: str
    payload: dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.monotonic)


EventCallback = Callable[[WorkflowEvent], None]


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass
class MigrationState:
    """Typed container for everything one migration produces."""
    phase: WorkflowPhase = WorkflowPhase.IDLE
    source: str = ""
    dialect: str | None = None
    source_text: str | None = None
    tree: DialectTree | None = None
    conversion: ConversionResult | None = None
    legacy: LegacyPipeline | None = None
    output: bytes | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.phase == WorkflowPhase.DONE

    @property
    def can_convert(self) -> bool:
        return self.phase == WorkflowPhase.PARSED and self.tree is not None

    @property
    def can_downgrade(self) -> bool:
        return self.phase == WorkflowPhase.CONVERTED and self.conversion is not None


@dataclass(frozen=True)
class MigrationJob:
    """One unit of work for `migrate_batch`."""
    dialect: str
    text: str
    source: str = ""
    downgrade: bool = False
    fmt: str = "yaml"


# ---------------------------------------------------------------------------
# Main agent
# ---------------------------------------------------------------------------


class MigrationAgent:
    """
    Workflow orchestration agent for one migration.

    Example
    -------
    ::

        agent = MigrationAgent(ConvertOptions(), DowngradeOptions(project="web"))
        state = agent.run("gitlab", text, downgrade=True)
        if state.succeeded:
            sys.stdout.buffer.write(state.output)
    """

    def __init__(
        self,
        convert_options: ConvertOptions | None = None,
        downgrade_options: DowngradeOptions | None = None,
        state: MigrationState | None = None,
    ) -> None:
        self._convert_options = convert_options or ConvertOptions()
        self._downgrade_options = downgrade_options or DowngradeOptions()
        self._state = state or MigrationState()
        self._callbacks: list[EventCallback] = []

    @property
    def state(self) -> MigrationState:
        return self._state

    # ------------------------------------------------------------------
    # Event subscription
    # ------------------------------------------------------------------

    def subscribe(self, callback: EventCallback) -> None:
        self._callbacks.append(callback)

    def _emit(self, kind: EventKind, message: str, **payload) -> None:
        event = WorkflowEvent(kind=kind, message=message, payload=payload)
        logger.debug("MigrationAgent event: %s: %s", kind.value, message)
        for cb in self._callbacks:
            try:
                cb(event)
            except Exception as exc:
                logger.warning("Event callback raised: %s", exc)

    # ------------------------------------------------------------------
    # Phase 1: Parse
    # ------------------------------------------------------------------

    def parse(self, dialect: str, text: str) -> bool:
        """
        Reduce *text* written in *dialect* to a dialect tree.

        Returns
        -------
        bool
            True on success; False on failure (error stored in state.error_message).
        """
        self._transition(WorkflowPhase.PARSING)
        self._state.dialect = dialect
        self._state.source_text = text
        self._state.tree = None
        self._state.conversion = None
        self._state.legacy = None
        self._state.output = None
        self._state.error_message = None

        try:
            tree = parse_source(dialect, text)
        except MigrationError as exc:
            return self._fail(f"Failed to parse {dialect} pipeline: {exc}")
        except Exception as exc:
            logger.exception("Unexpected parse error")
            return self._fail(f"Unexpected error while parsing {dialect} pipeline: {exc}")

        self._state.tree = tree
        self._transition(WorkflowPhase.PARSED)
        self._emit(
            EventKind.INFO,
            f"Parsed {dialect} pipeline '{tree.name}': "
            f"{len(tree.stages)} stages, {tree.node_count} constructs.",
            stage_count=len(tree.stages),
            node_count=tree.node_count,
        )
        return True

    # ------------------------------------------------------------------
    # Phase 2: Convert
    # ------------------------------------------------------------------

    def convert(self) -> bool:
        """Build the canonical pipeline. Must follow a successful `parse()`."""
        if not self._state.can_convert:
            raise InvalidTransitionError("Cannot convert: no pipeline has been parsed.")

        self._transition(WorkflowPhase.CONVERTING)
        try:
            result = Converter(self._convert_options).convert(self._state.tree)  # type: ignore[arg-type]
        except MigrationError as exc:
            return self._fail(f"Conversion failed: {exc}")
        except Exception as exc:
            logger.exception("Conversion raised unexpectedly")
            return self._fail(f"Conversion engine error: {exc}")

        self._state.conversion = result
        for degraded in result.degraded_steps:
            self._emit(
                EventKind.STEP_DEGRADED,
                degraded.reason,
                construct_kind=degraded.construct_kind,
            )
        self._transition(WorkflowPhase.CONVERTED)
        return True

    # ------------------------------------------------------------------
    # Phase 3 (optional): Downgrade
    # ------------------------------------------------------------------

    def downgrade(self) -> bool:
        if not self._state.can_downgrade:
            raise InvalidTransitionError("Cannot downgrade: no canonical pipeline is available.")

        self._transition(WorkflowPhase.DOWNGRADING)
        self._state.legacy = Downgrader(self._downgrade_options).downgrade(
            self._state.conversion.config  # type: ignore[union-attr]
        )
        return True

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def render(self, fmt: str = "yaml") -> bool:
        """Serialize the latest tree (legacy if downgraded) and finish."""
        root = self._state.legacy if self._state.legacy is not None else self._state.conversion
        if root is None:
            raise InvalidTransitionError("Nothing to render: the pipeline has not been converted.")
        if isinstance(root, ConversionResult):
            root = root.config

        try:
            self._state.output = serializer.dump(root, fmt)
        except MigrationError as exc:
            return self._fail(f"Failed to write output: {exc}")

        self._transition(WorkflowPhase.DONE)
        return True

    def run(self, dialect: str, text: str, *, downgrade: bool = False, fmt: str = "yaml") -> MigrationState:
        """Parse, convert, optionally downgrade, and render in one call."""
        if not self.parse(dialect, text):
            return self._state
        if not self.convert():
            return self._state
        if downgrade:
            self.downgrade()
        self.render(fmt)
        return self._state

    # ------------------------------------------------------------------
    # Internal: state machine
    # ------------------------------------------------------------------

    def _transition(self, target: WorkflowPhase) -> None:
        current = self._state.phase
        allowed = _VALID_TRANSITIONS.get(current, set())

        if target not in allowed:
            raise InvalidTransitionError(
                f"Invalid workflow transition: {current.name} → {target.name}. "
                f"Allowed targets: {sorted(p.name for p in allowed)}"
            )

        logger.info("Workflow: %s → %s", current.name, target.name)
        self._state.phase = target
        self._emit(
            EventKind.PHASE_CHANGED,
            f"Phase: {target.name}",
            previous=current.name,
            current=target.name,
        )

    def _fail(self, message: str) -> bool:
        logger.error("Migration failed: %s", message)
        self._state.error_message = message
        self._transition(WorkflowPhase.ERROR)
        self._emit(EventKind.ERROR, message)
        return False


# ---------------------------------------------------------------------------
# Batch runs
# ---------------------------------------------------------------------------


def migrate_batch(
    jobs: Iterable[MigrationJob],
    convert_options: ConvertOptions | None = None,
    downgrade_options: DowngradeOptions | None = None,
) -> list[MigrationState]:
    """
    Run every job with its own agent, and so its own identifier allocator.

    A failing job ends in the ERROR phase; the remaining jobs still run.
    """
    states: list[MigrationState] = []
    for job in jobs:
        agent = MigrationAgent(convert_options, downgrade_options, MigrationState(source=job.source))
        state = agent.run(job.dialect, job.text, downgrade=job.downgrade, fmt=job.fmt)
        if state.succeeded:
            logger.info("Migrated %s.", job.source or job.dialect)
        else:
            logger.warning("Skipped %s: %s", job.source or job.dialect, state.error_message)
        states.append(state)

    done = sum(1 for s in states if s.succeeded)
    logger.info("Batch complete: %d/%d migrated.", done, len(states))
    return states
