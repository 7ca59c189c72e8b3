"""Progress events consumed by the execution state machine.

Events arrive asynchronously from an external orchestration source,
possibly out of order across parallel branches and possibly more than
once. Each event names one stage; applying it yields a TransitionResult.
"""

from dataclasses import dataclass, field
from typing import Any

from missionflow.contracts.enums import LogEntryType, LogSeverity, StageStatus


@dataclass(frozen=True, slots=True)
class StageActivated:
    """Agents started (or resumed) work on a stage.

    Moves pending -> active or blocked -> active. On an already-active
    stage, new agent ids are merged into activeAgentIds.
    """

    stage_id: str
    agent_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class StageCompleted:
    """Work on a stage finished.

    Attributes:
        stage_id: Stage that completed
        commits: Commit SHAs produced during the stage
        cost: Cost incurred by the stage
        agent_id: Agent reporting completion, if known
    """

    stage_id: str
    commits: tuple[str, ...] = ()
    cost: float = 0.0
    agent_id: str | None = None


@dataclass(frozen=True, slots=True)
class StageBlocked:
    """An active stage cannot proceed until resolved."""

    stage_id: str
    reason: str = ""


@dataclass(frozen=True, slots=True)
class StageSkipped:
    """A pending, non-required stage is bypassed."""

    stage_id: str
    reason: str = ""


@dataclass(frozen=True, slots=True)
class BranchDecided:
    """External decision selecting the successor of a conditional stage."""

    stage_id: str
    chosen_stage_id: str


@dataclass(frozen=True, slots=True)
class StageLogged:
    """Free-form activity to append to a stage's execution log.

    When entry_id is set, redelivery of the same entry is a no-op.
    """

    stage_id: str
    message: str
    entry_id: str | None = None
    entry_type: LogEntryType = LogEntryType.AGENT_ACTIVITY
    severity: LogSeverity = LogSeverity.INFO
    agent_id: str | None = None
    details: dict[str, Any] | None = None


type ExecutionEvent = StageActivated | StageCompleted | StageBlocked | StageSkipped | BranchDecided | StageLogged


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """Outcome of applying one event.

    Attributes:
        stage_id: Stage the event named
        previous: Status before the event
        current: Status after the event
        changed: False when the event was a duplicate (no-op)
        activated: Successor stages promoted to active as a consequence
        skipped: Successor stages bypassed as a consequence
    """

    stage_id: str
    previous: StageStatus
    current: StageStatus
    changed: bool
    activated: tuple[str, ...] = field(default_factory=tuple)
    skipped: tuple[str, ...] = field(default_factory=tuple)
