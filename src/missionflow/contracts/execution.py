"""Runtime execution records for a mission's pipeline run.

One PipelineExecution per mission, holding one PipelineStageExecution per
configured stage. These records are written only by ExecutionStateMachine,
never by the editor. Same camelCase JSON shape as the configuration models,
but mutable: the state machine updates them in place under its lock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from missionflow.contracts.enums import LogEntryType, LogSeverity, StageStatus
from missionflow.contracts.errors import UnknownStageError


class _RecordModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=False,  # Updated in place by the state machine
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Dump to the persisted JSON shape (camelCase keys, enums as strings)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PipelineLogEntry(_RecordModel):
    """Individual log entry with timestamp and context."""

    id: str
    timestamp: datetime
    type: LogEntryType
    severity: LogSeverity = LogSeverity.INFO
    agent_id: str | None = None
    message: str
    details: dict[str, Any] | None = None


class StageExecutionLog(_RecordModel):
    """Detailed execution log for one stage."""

    id: str
    stage_id: str
    entries: list[PipelineLogEntry] = Field(default_factory=list)


class PipelineStageExecution(_RecordModel):
    """Runtime tracking for a single stage within a mission run."""

    stage_id: str
    status: StageStatus = StageStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    active_agent_ids: list[str] = Field(default_factory=list)
    commits: list[str] = Field(default_factory=list)
    cost: float = 0.0
    logs: StageExecutionLog
    notes: str | None = None


class PipelineExecution(_RecordModel):
    """Runtime progression of one mission through its team pipeline.

    branch_decisions records the external decision for each conditional
    stage (stage id -> chosen successor id).
    """

    pipeline_id: str
    stages: list[PipelineStageExecution] = Field(default_factory=list)
    branch_decisions: dict[str, str] = Field(default_factory=dict)
    started_at: datetime
    completed_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_cost(self) -> float:
        """Sum of cost over all stage records."""
        return sum(stage.cost for stage in self.stages)

    def get_stage(self, stage_id: str) -> PipelineStageExecution:
        """Look up the record for a stage.

        Raises:
            UnknownStageError: If the execution has no record for stage_id
        """
        for stage in self.stages:
            if stage.stage_id == stage_id:
                return stage
        raise UnknownStageError(stage_id)

    def stages_with_status(self, status: StageStatus) -> list[str]:
        """Ids of stages currently in the given status, in record order."""
        return [stage.stage_id for stage in self.stages if stage.status == status]

    def current_agent_ids(self) -> set[str]:
        """Union of active agents across all stages that are active."""
        agents: set[str] = set()
        for stage in self.stages:
            if stage.status == StageStatus.ACTIVE:
                agents.update(stage.active_agent_ids)
        return agents

    @property
    def is_finished(self) -> bool:
        """Whether every stage has reached a terminal status."""
        return all(stage.status.is_terminal for stage in self.stages)
