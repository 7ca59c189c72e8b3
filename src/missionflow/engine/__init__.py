"""Runtime execution of team pipelines for missions."""

from missionflow.engine.execution import ExecutionStateMachine, create_pipeline_execution

__all__ = [
    "ExecutionStateMachine",
    "create_pipeline_execution",
]
