"""Exception types raised across subsystem boundaries.

Validation problems in a stage graph are NOT exceptions - they are returned
as data by validate_pipeline_graph(). The exceptions here signal contract
violations by callers: illegal runtime transitions, unknown ids, or an
attempt to activate an invalid pipeline.
"""

from __future__ import annotations


class MissionflowError(Exception):
    """Base class for all missionflow errors."""

    pass


class UnknownStageError(MissionflowError, KeyError):
    """Raised when an event or edit names a stage id that does not exist."""

    def __init__(self, stage_id: str) -> None:
        super().__init__(stage_id)
        self.stage_id = stage_id

    def __str__(self) -> str:
        return f"Unknown stage: {self.stage_id!r}"


class IllegalTransitionError(MissionflowError, ValueError):
    """Raised when a stage status change is not permitted.

    Attributes:
        stage_id: Stage the transition was attempted on
        current: Status the stage is in
        requested: Status the event asked for
        reason: Human-readable explanation
    """

    def __init__(self, stage_id: str, current: str, requested: str, reason: str = "") -> None:
        self.stage_id = stage_id
        self.current = current
        self.requested = requested
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Stage {stage_id!r} cannot move from {current} to {requested}{detail}")


class BranchDecisionError(MissionflowError, ValueError):
    """Raised when a branch decision is inconsistent with the pipeline.

    Covers decisions for non-conditional stages, choices that are not a
    successor of the deciding stage, and a second decision that disagrees
    with one already recorded.
    """

    pass


class PipelineActivationError(MissionflowError):
    """Raised when an invalid pipeline is marked as a team's active pipeline.

    Attributes:
        pipeline_id: Configuration that was refused
        errors: Blocking validation errors at the time of the attempt
    """

    def __init__(self, pipeline_id: str, errors: list[str]) -> None:
        self.pipeline_id = pipeline_id
        self.errors = list(errors)
        summary = "; ".join(errors) if errors else "pipeline is not valid"
        super().__init__(f"Pipeline {pipeline_id!r} cannot be activated: {summary}")
