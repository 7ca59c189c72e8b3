"""Persisted pipeline configuration models.

A PipelineConfiguration is the stage graph a team runs its missions
through: an ordered list of stages with explicit successor links.

Persistence shape is JSON with camelCase keys (nextStageIds, branchType,
requiredForCompletion, ...). Python attributes are snake_case; pydantic
aliases translate between the two. Models are frozen - edits produce new
instances via model_copy(update=...).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from missionflow.contracts.enums import BranchType, ConditionType, JoinPolicy
from missionflow.contracts.errors import UnknownStageError


class CamelModel(BaseModel):
    """Base for models persisted with camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",  # Stored JSON may carry UI-only keys
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Dump to the persisted JSON shape (camelCase keys, enums as strings)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Position(CamelModel):
    """Canvas coordinates of a stage node."""

    x: float = 0.0
    y: float = 0.0


class ConditionBranches(CamelModel):
    """Successor ids taken when a condition passes or fails."""

    on_success: tuple[str, ...] = ()
    on_failure: tuple[str, ...] = ()

    def all_targets(self) -> tuple[str, ...]:
        return (*self.on_success, *self.on_failure)


class StageCondition(CamelModel):
    """Branch condition attached to a conditional stage.

    Data only: which branch is taken at runtime is supplied by an external
    decision (see BranchDecided), never evaluated here.
    """

    condition_type: ConditionType = Field(alias="type")
    branches: ConditionBranches = Field(default_factory=ConditionBranches)


class Stage(CamelModel):
    """One node of a pipeline's workflow graph.

    next_stage_ids holds the outgoing edges. order is a display hint only;
    graph structure is defined by the edges alone.
    """

    id: str = Field(min_length=1)
    name: str
    description: str = ""
    assigned_agent_ids: tuple[str, ...] = ()
    order: int = 0
    next_stage_ids: tuple[str, ...] = ()
    position: Position = Field(default_factory=Position)
    branch_type: BranchType = BranchType.SEQUENTIAL
    condition: StageCondition | None = None
    join_policy: JoinPolicy = JoinPolicy.ALL
    color: str | None = None
    required_for_completion: bool = True
    estimated_duration: str | None = None

    @property
    def is_exit(self) -> bool:
        """Whether the stage has no outgoing edges."""
        return len(self.next_stage_ids) == 0


class CanvasState(CamelModel):
    """Viewport of the visual editor, persisted alongside the stages."""

    zoom: float = 1.0
    center_x: float = 0.0
    center_y: float = 0.0


def _utc_now() -> datetime:
    return datetime.now(UTC)


class PipelineConfiguration(CamelModel):
    """Persisted stage graph for a team.

    entry_stage_ids, is_valid and validation_errors are derived fields.
    They are recomputed by refresh_pipeline() whenever the stages change and
    must never be edited by hand.
    """

    id: str = Field(min_length=1)
    name: str
    description: str = ""
    stages: tuple[Stage, ...] = ()
    entry_stage_ids: tuple[str, ...] = ()
    canvas_state: CanvasState | None = None
    is_valid: bool = False
    validation_errors: tuple[str, ...] = ()
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime | None = None

    def stage_ids(self) -> list[str]:
        """Stage ids in list order."""
        return [stage.id for stage in self.stages]

    def get_stage(self, stage_id: str) -> Stage:
        """Look up a stage by id.

        Raises:
            UnknownStageError: If no stage has this id
        """
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        raise UnknownStageError(stage_id)

    def predecessors(self, stage_id: str) -> list[Stage]:
        """Stages with an edge into stage_id, in list order."""
        return [stage for stage in self.stages if stage_id in stage.next_stage_ids]


class Agent(CamelModel):
    """Display metadata for an agent, as resolved by the agent directory."""

    id: str
    name: str
    role: str | None = None
    emoji: str = ""
    color: str = ""
    team_id: str | None = None


class Team(CamelModel):
    """A team of agents and the pipeline its missions run through."""

    id: str
    name: str
    description: str = ""
    color: str = ""
    agent_ids: tuple[str, ...] = ()
    pipeline: PipelineConfiguration | None = None
    active_pipeline_id: str | None = None
