# src/missionflow/engine/execution.py
"""Per-mission runtime tracking of stage progress.

Stage lifecycle:

    pending -> active -> completed
                 |  ^
                 v  |
               blocked

    pending -> skipped   (non-required stages only)

completed and skipped are terminal. blocked -> completed must pass back
through active.

Events arrive from an external orchestration source, possibly out of order
across parallel branches and possibly more than once. Every transition is
idempotent: re-applying an event whose effect is already recorded is a
no-op that changes nothing and logs nothing. Events are applied one at a
time under a lock.

Branch selection for conditional stages and join-wait policy are inputs,
not computed here: BranchDecided names the chosen successor and each
stage's join_policy says whether it waits for all required predecessors
or for any one.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

import structlog

from missionflow.contracts.enums import (
    BranchType,
    JoinPolicy,
    LogEntryType,
    LogSeverity,
    StageStatus,
)
from missionflow.contracts.errors import (
    BranchDecisionError,
    IllegalTransitionError,
    UnknownStageError,
)
from missionflow.contracts.events import (
    BranchDecided,
    ExecutionEvent,
    StageActivated,
    StageBlocked,
    StageCompleted,
    StageLogged,
    StageSkipped,
    TransitionResult,
)
from missionflow.contracts.execution import (
    PipelineExecution,
    PipelineLogEntry,
    PipelineStageExecution,
    StageExecutionLog,
)
from missionflow.contracts.pipeline import PipelineConfiguration, Stage
from missionflow.core.config import ExecutionSettings
from missionflow.core.pipeline.entry_points import find_entry_stages

logger = structlog.get_logger(__name__)

type Now = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _log_entry(
    now: Now,
    message: str,
    *,
    entry_type: LogEntryType = LogEntryType.SYSTEM,
    severity: LogSeverity = LogSeverity.INFO,
    agent_id: str | None = None,
    details: dict[str, Any] | None = None,
    entry_id: str | None = None,
) -> PipelineLogEntry:
    return PipelineLogEntry(
        id=entry_id or uuid.uuid4().hex,
        timestamp=now(),
        type=entry_type,
        severity=severity,
        agent_id=agent_id,
        message=message,
        details=details,
    )


def create_pipeline_execution(
    config: PipelineConfiguration,
    settings: ExecutionSettings | None = None,
    *,
    now: Now = _utc_now,
) -> PipelineExecution:
    """Build the execution record for a mission assigned to a pipeline.

    One pending record per configured stage. Entry stages start active
    (with their assigned agents) when settings.activate_entry_stages.
    """
    settings = settings or ExecutionSettings()
    started_at = now()
    entry_ids = set(find_entry_stages(config.stages))

    records: list[PipelineStageExecution] = []
    for stage in config.stages:
        record = PipelineStageExecution(
            stage_id=stage.id,
            logs=StageExecutionLog(id=uuid.uuid4().hex, stage_id=stage.id),
        )
        if settings.activate_entry_stages and stage.id in entry_ids:
            record.status = StageStatus.ACTIVE
            record.started_at = started_at
            record.active_agent_ids = list(stage.assigned_agent_ids)
            record.logs.entries.append(_log_entry(now, "Stage activated as pipeline entry"))
        records.append(record)

    return PipelineExecution(pipeline_id=config.id, stages=records, started_at=started_at)


class ExecutionStateMachine:
    """Applies progress events to one mission's PipelineExecution.

    Static structure (successors, requiredForCompletion, branch types, join
    policies) comes from the pipeline configuration; runtime state lives in
    the execution record, which is updated in place.

    Usage::

        machine = ExecutionStateMachine(config, create_pipeline_execution(config))
        machine.apply(StageCompleted("design", commits=("a1b2c3",), cost=1.25))
        machine.execution.total_cost
    """

    def __init__(
        self,
        config: PipelineConfiguration,
        execution: PipelineExecution,
        settings: ExecutionSettings | None = None,
        *,
        now: Now = _utc_now,
    ) -> None:
        self._config = config
        self._execution = execution
        self._settings = settings or ExecutionSettings()
        self._now = now
        self._stages: dict[str, Stage] = {stage.id: stage for stage in config.stages}
        self._entry_ids = set(find_entry_stages(config.stages))
        self._lock = threading.Lock()
        self._log = logger.bind(pipeline_id=config.id)

    @property
    def execution(self) -> PipelineExecution:
        return self._execution

    def status_of(self, stage_id: str) -> StageStatus:
        """Current status of a stage."""
        return self._record(stage_id).status

    def can_activate(self, stage_id: str) -> bool:
        """Whether a pending stage may move to active right now."""
        with self._lock:
            return self._activation_block_reason(self._stage(stage_id)) is None

    def active_agent_ids(self) -> set[str]:
        """Union of agents working on stages that are active."""
        return self._execution.current_agent_ids()

    def apply(self, event: ExecutionEvent) -> TransitionResult:
        """Apply one progress event.

        Raises:
            UnknownStageError: If the event names a stage that is not configured
            IllegalTransitionError: If the transition is not permitted
            BranchDecisionError: If a branch decision is inconsistent
        """
        with self._lock:
            match event:
                case StageActivated():
                    result = self._activate(event.stage_id, event.agent_ids)
                case StageCompleted():
                    result = self._complete(event)
                case StageBlocked():
                    result = self._block(event)
                case StageSkipped():
                    result = self._skip(event)
                case BranchDecided():
                    result = self._decide(event)
                case StageLogged():
                    result = self._append_log(event)
                case _:
                    raise TypeError(f"Unsupported execution event: {type(event).__name__}")

            if result.changed:
                self._mark_finished()
            return result

    # -- lookups ------------------------------------------------------------

    def _stage(self, stage_id: str) -> Stage:
        try:
            return self._stages[stage_id]
        except KeyError:
            raise UnknownStageError(stage_id) from None

    def _record(self, stage_id: str) -> PipelineStageExecution:
        self._stage(stage_id)
        return self._execution.get_stage(stage_id)

    def _predecessor_satisfied(self, predecessor: Stage, stage_id: str) -> bool:
        """A predecessor lets stage_id through once it is completed.

        Conditional predecessors additionally need a decision choosing
        stage_id.
        """
        if self._execution.get_stage(predecessor.id).status != StageStatus.COMPLETED:
            return False
        if predecessor.branch_type == BranchType.CONDITIONAL:
            return self._execution.branch_decisions.get(predecessor.id) == stage_id
        return True

    def _activation_block_reason(self, stage: Stage) -> str | None:
        """Why a stage may not activate yet, or None if it may.

        A conditional predecessor closes the path to every successor it has
        not chosen, whether or not it is required and under either join
        policy.
        """
        if stage.id in self._entry_ids:
            return None
        predecessors = self._config.predecessors(stage.id)
        closed = [
            p.id for p in predecessors if p.branch_type == BranchType.CONDITIONAL and not self._predecessor_satisfied(p, stage.id)
        ]
        if closed:
            return f"not chosen by conditional predecessor(s): {', '.join(closed)}"
        if stage.join_policy == JoinPolicy.ANY:
            if any(self._predecessor_satisfied(p, stage.id) for p in predecessors):
                return None
            return "no predecessor has completed"
        waiting = [p.id for p in predecessors if p.required_for_completion and not self._predecessor_satisfied(p, stage.id)]
        if waiting:
            return f"waiting on required predecessor(s): {', '.join(waiting)}"
        return None

    # -- record mutation helpers ---------------------------------------------

    def _append_system_log(self, record: PipelineStageExecution, message: str, **kwargs: Any) -> None:
        record.logs.entries.append(_log_entry(self._now, message, **kwargs))

    def _promote(self, record: PipelineStageExecution, agent_ids: Iterable[str]) -> None:
        """pending -> active, caller has checked the activation rule."""
        stage = self._stages[record.stage_id]
        record.status = StageStatus.ACTIVE
        record.started_at = record.started_at or self._now()
        record.active_agent_ids = list(dict.fromkeys(agent_ids)) or list(stage.assigned_agent_ids)
        self._append_system_log(record, "Stage activated")
        self._log.debug("Stage activated", stage_id=record.stage_id)

    def _advance_from(self, stage: Stage) -> list[str]:
        """Activate successors unlocked by stage completing.

        Only successors with at least one satisfied predecessor are
        considered, so a stage is never started just because all of its
        predecessors are optional.
        """
        if not self._settings.auto_advance:
            return []

        candidates = list(dict.fromkeys(stage.next_stage_ids))
        if stage.branch_type == BranchType.CONDITIONAL:
            chosen = self._execution.branch_decisions.get(stage.id)
            candidates = [chosen] if chosen is not None else []

        activated: list[str] = []
        for successor_id in candidates:
            successor = self._stages.get(successor_id)
            if successor is None:
                continue
            record = self._execution.get_stage(successor_id)
            if record.status != StageStatus.PENDING:
                continue
            if not self._predecessor_satisfied(stage, successor_id):
                continue
            if self._activation_block_reason(successor) is None:
                self._promote(record, ())
                activated.append(successor_id)
        return activated

    def _mark_finished(self) -> None:
        if self._execution.completed_at is None and self._execution.is_finished:
            self._execution.completed_at = self._now()
            self._log.info("Pipeline execution finished", total_cost=self._execution.total_cost)

    # -- transitions ------------------------------------------------------------

    def _activate(self, stage_id: str, agent_ids: Iterable[str]) -> TransitionResult:
        stage = self._stage(stage_id)
        record = self._record(stage_id)
        previous = record.status
        agent_ids = tuple(agent_ids)

        if previous == StageStatus.ACTIVE:
            new_agents = [a for a in dict.fromkeys(agent_ids) if a not in record.active_agent_ids]
            if new_agents:
                record.active_agent_ids.extend(new_agents)
                self._append_system_log(record, f"Agents joined: {', '.join(new_agents)}", entry_type=LogEntryType.AGENT_ACTIVITY)
            return TransitionResult(stage_id, previous, previous, changed=bool(new_agents))

        if previous.is_terminal:
            # Late redelivery of a start event
            self._log.debug("Ignoring activation of finished stage", stage_id=stage_id, status=str(previous))
            return TransitionResult(stage_id, previous, previous, changed=False)

        if previous == StageStatus.BLOCKED:
            record.status = StageStatus.ACTIVE
            if agent_ids:
                record.active_agent_ids = list(dict.fromkeys(agent_ids))
            self._append_system_log(record, "Stage resumed")
            self._log.debug("Stage resumed", stage_id=stage_id)
            return TransitionResult(stage_id, previous, StageStatus.ACTIVE, changed=True)

        reason = self._activation_block_reason(stage)
        if reason is not None:
            raise IllegalTransitionError(stage_id, previous, StageStatus.ACTIVE, reason)
        self._promote(record, agent_ids)
        return TransitionResult(stage_id, previous, StageStatus.ACTIVE, changed=True)

    def _complete(self, event: StageCompleted) -> TransitionResult:
        stage = self._stage(event.stage_id)
        record = self._record(event.stage_id)
        previous = record.status

        if previous == StageStatus.COMPLETED:
            return TransitionResult(event.stage_id, previous, previous, changed=False)
        if previous in (StageStatus.SKIPPED, StageStatus.BLOCKED):
            reason = "stage was skipped" if previous == StageStatus.SKIPPED else "blocked stages must be resumed first"
            raise IllegalTransitionError(event.stage_id, previous, StageStatus.COMPLETED, reason)

        if previous == StageStatus.PENDING:
            reason = self._activation_block_reason(stage)
            if reason is not None:
                raise IllegalTransitionError(event.stage_id, previous, StageStatus.COMPLETED, reason)
            self._promote(record, (event.agent_id,) if event.agent_id else ())

        record.status = StageStatus.COMPLETED
        record.completed_at = self._now()
        record.active_agent_ids = []
        record.cost += event.cost
        for sha in dict.fromkeys(event.commits):
            if sha in record.commits:
                continue
            record.commits.append(sha)
            self._append_system_log(
                record,
                f"Commit {sha}",
                entry_type=LogEntryType.COMMIT,
                severity=LogSeverity.SUCCESS,
                agent_id=event.agent_id,
                details={"commitSha": sha},
            )
        self._append_system_log(record, "Stage completed", severity=LogSeverity.SUCCESS, agent_id=event.agent_id)
        self._log.debug("Stage completed", stage_id=event.stage_id, cost=event.cost, commits=len(event.commits))

        activated = self._advance_from(stage)
        return TransitionResult(event.stage_id, previous, StageStatus.COMPLETED, changed=True, activated=tuple(activated))

    def _block(self, event: StageBlocked) -> TransitionResult:
        record = self._record(event.stage_id)
        previous = record.status

        if previous == StageStatus.BLOCKED:
            return TransitionResult(event.stage_id, previous, previous, changed=False)
        if previous != StageStatus.ACTIVE:
            raise IllegalTransitionError(event.stage_id, previous, StageStatus.BLOCKED, "only active stages can block")

        record.status = StageStatus.BLOCKED
        if event.reason:
            record.notes = event.reason
        self._append_system_log(
            record,
            f"Stage blocked: {event.reason}" if event.reason else "Stage blocked",
            severity=LogSeverity.WARNING,
        )
        self._log.debug("Stage blocked", stage_id=event.stage_id, reason=event.reason)
        return TransitionResult(event.stage_id, previous, StageStatus.BLOCKED, changed=True)

    def _skip_record(self, record: PipelineStageExecution, reason: str) -> None:
        record.status = StageStatus.SKIPPED
        if reason:
            record.notes = reason
        self._append_system_log(record, f"Stage skipped: {reason}" if reason else "Stage skipped")
        self._log.debug("Stage skipped", stage_id=record.stage_id, reason=reason)

    def _skip(self, event: StageSkipped) -> TransitionResult:
        stage = self._stage(event.stage_id)
        record = self._record(event.stage_id)
        previous = record.status

        if previous == StageStatus.SKIPPED:
            return TransitionResult(event.stage_id, previous, previous, changed=False)
        if previous != StageStatus.PENDING:
            raise IllegalTransitionError(event.stage_id, previous, StageStatus.SKIPPED, "only pending stages can be skipped")
        if stage.required_for_completion:
            raise IllegalTransitionError(event.stage_id, previous, StageStatus.SKIPPED, "stage is required for completion")

        self._skip_record(record, event.reason)
        return TransitionResult(event.stage_id, previous, StageStatus.SKIPPED, changed=True)

    def _decide(self, event: BranchDecided) -> TransitionResult:
        stage = self._stage(event.stage_id)
        record = self._record(event.stage_id)
        status = record.status

        if stage.branch_type != BranchType.CONDITIONAL:
            raise BranchDecisionError(f"Stage {event.stage_id!r} is {stage.branch_type}, not conditional")
        if event.chosen_stage_id not in stage.next_stage_ids or event.chosen_stage_id not in self._stages:
            raise BranchDecisionError(f"Stage {event.chosen_stage_id!r} is not a successor of {event.stage_id!r}")

        existing = self._execution.branch_decisions.get(event.stage_id)
        if existing == event.chosen_stage_id:
            return TransitionResult(event.stage_id, status, status, changed=False)
        if existing is not None:
            raise BranchDecisionError(f"Stage {event.stage_id!r} already chose {existing!r}; cannot choose {event.chosen_stage_id!r}")

        self._execution.branch_decisions[event.stage_id] = event.chosen_stage_id
        self._append_system_log(
            record,
            f"Branch decision: {event.chosen_stage_id}",
            entry_type=LogEntryType.DECISION,
            details={"decision": event.chosen_stage_id},
        )
        self._log.debug("Branch decided", stage_id=event.stage_id, chosen=event.chosen_stage_id)

        skipped: list[str] = []
        for successor_id in dict.fromkeys(stage.next_stage_ids):
            if successor_id == event.chosen_stage_id or successor_id not in self._stages:
                continue
            successor_record = self._execution.get_stage(successor_id)
            if successor_record.status == StageStatus.PENDING and not self._stages[successor_id].required_for_completion:
                self._skip_record(successor_record, f"Not selected by branch decision at {event.stage_id}")
                skipped.append(successor_id)

        activated: list[str] = []
        if status == StageStatus.COMPLETED:
            activated = self._advance_from(stage)

        return TransitionResult(
            event.stage_id,
            status,
            status,
            changed=True,
            activated=tuple(activated),
            skipped=tuple(skipped),
        )

    def _append_log(self, event: StageLogged) -> TransitionResult:
        record = self._record(event.stage_id)
        status = record.status

        if event.entry_id is not None and any(entry.id == event.entry_id for entry in record.logs.entries):
            return TransitionResult(event.stage_id, status, status, changed=False)

        record.logs.entries.append(
            _log_entry(
                self._now,
                event.message,
                entry_type=event.entry_type,
                severity=event.severity,
                agent_id=event.agent_id,
                details=event.details,
                entry_id=event.entry_id,
            )
        )
        return TransitionResult(event.stage_id, status, status, changed=True)
