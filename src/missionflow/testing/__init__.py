# src/missionflow/testing/__init__.py
"""Test infrastructure for missionflow pipelines.

Factories for constructing production types with sensible defaults.
When a model's constructor changes, update the factory here.
Tests that use factories need ZERO changes.

Usage:
    from missionflow.testing import make_stage, make_pipeline, chain_stages
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from missionflow.contracts import (
    Agent,
    BranchType,
    PipelineConfiguration,
    Position,
    Stage,
)
from missionflow.core.config import ValidationSettings
from missionflow.core.pipeline.store import refresh_pipeline


def make_stage(
    stage_id: str = "stage-1",
    next_stage_ids: Iterable[str] = (),
    *,
    name: str | None = None,
    order: int = 0,
    assigned_agent_ids: Iterable[str] = ("agent-1",),
    branch_type: BranchType = BranchType.SEQUENTIAL,
    position: tuple[float, float] = (0.0, 0.0),
    **fields: Any,
) -> Stage:
    """Create a Stage with test defaults.

    Stages get one assigned agent by default so validation stays free of
    unassigned-agent warnings unless a test asks for them.
    """
    return Stage(
        id=stage_id,
        name=name if name is not None else stage_id.replace("-", " ").title(),
        order=order,
        assigned_agent_ids=tuple(assigned_agent_ids),
        next_stage_ids=tuple(next_stage_ids),
        branch_type=branch_type,
        position=Position(x=position[0], y=position[1]),
        **fields,
    )


def make_stages(edges: Mapping[str, Sequence[str]], **fields: Any) -> list[Stage]:
    """Create one stage per key of an adjacency mapping, in key order.

    Example:
        make_stages({"s1": ["s2"], "s2": ["s3", "s4"], "s3": [], "s4": []})
    """
    return [make_stage(stage_id, targets, order=index, **fields) for index, (stage_id, targets) in enumerate(edges.items())]


def chain_stages(*stage_ids: str, **fields: Any) -> list[Stage]:
    """Create a linear pipeline stage_ids[0] -> stage_ids[1] -> ..."""
    return [
        make_stage(stage_id, stage_ids[index + 1 : index + 2], order=index, **fields)
        for index, stage_id in enumerate(stage_ids)
    ]


def make_pipeline(
    stages: Iterable[Stage] | None = None,
    *,
    pipeline_id: str = "pipeline-1",
    name: str = "Test Pipeline",
    refresh: bool = True,
    settings: ValidationSettings | None = None,
    **fields: Any,
) -> PipelineConfiguration:
    """Create a PipelineConfiguration with derived fields computed.

    Args:
        stages: Stages (defaults to a three-stage chain)
        refresh: Recompute entry ids and validity (the normal state of a
            stored configuration); pass False to get raw defaults
    """
    config = PipelineConfiguration(
        id=pipeline_id,
        name=name,
        stages=tuple(stages) if stages is not None else tuple(chain_stages("design", "implement", "review")),
        **fields,
    )
    if refresh:
        return refresh_pipeline(config, settings, touch=False)
    return config


def make_agent(
    agent_id: str = "agent-1",
    *,
    name: str | None = None,
    role: str | None = "engineer",
    emoji: str = "🤖",
    color: str = "#388bfd",
    team_id: str | None = None,
) -> Agent:
    """Create an Agent with test defaults."""
    return Agent(
        id=agent_id,
        name=name if name is not None else agent_id.replace("-", " ").title(),
        role=role,
        emoji=emoji,
        color=color,
        team_id=team_id,
    )


__all__ = [
    "chain_stages",
    "make_agent",
    "make_pipeline",
    "make_stage",
    "make_stages",
]
