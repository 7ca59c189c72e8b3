"""Shared contracts for cross-boundary data types.

All models, dataclasses, enums and exceptions that cross subsystem
boundaries are defined here. This package is a LEAF MODULE with no
outbound dependencies to core/engine/editor.

Import patterns:
    # Contracts (lightweight)
    from missionflow.contracts import Stage, PipelineConfiguration, StageStatus

    # Settings classes live in core
    from missionflow.core.config import MissionflowSettings
"""

from missionflow.contracts.enums import (
    BranchType,
    ConditionType,
    FindingCode,
    FindingSeverity,
    JoinPolicy,
    LayoutDirection,
    LogEntryType,
    LogSeverity,
    StageStatus,
)
from missionflow.contracts.errors import (
    BranchDecisionError,
    IllegalTransitionError,
    MissionflowError,
    PipelineActivationError,
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
from missionflow.contracts.graph import (
    BoundingBox,
    EdgeData,
    GraphEdge,
    GraphNode,
    PipelineNodeData,
    StageGraph,
)
from missionflow.contracts.pipeline import (
    Agent,
    CanvasState,
    ConditionBranches,
    PipelineConfiguration,
    Position,
    Stage,
    StageCondition,
    Team,
)
from missionflow.contracts.types import AgentLookup

__all__ = [
    "Agent",
    "AgentLookup",
    "BoundingBox",
    "BranchDecided",
    "BranchDecisionError",
    "BranchType",
    "CanvasState",
    "ConditionBranches",
    "ConditionType",
    "EdgeData",
    "ExecutionEvent",
    "FindingCode",
    "FindingSeverity",
    "GraphEdge",
    "GraphNode",
    "IllegalTransitionError",
    "JoinPolicy",
    "LayoutDirection",
    "LogEntryType",
    "LogSeverity",
    "MissionflowError",
    "PipelineActivationError",
    "PipelineConfiguration",
    "PipelineExecution",
    "PipelineLogEntry",
    "PipelineNodeData",
    "PipelineStageExecution",
    "Position",
    "Stage",
    "StageActivated",
    "StageBlocked",
    "StageCompleted",
    "StageCondition",
    "StageExecutionLog",
    "StageGraph",
    "StageLogged",
    "StageSkipped",
    "StageStatus",
    "Team",
    "TransitionResult",
    "UnknownStageError",
]
