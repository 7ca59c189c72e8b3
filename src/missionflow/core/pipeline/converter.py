# src/missionflow/core/pipeline/converter.py
"""Bidirectional mapping between a stage list and the visual graph.

stages_to_graph() builds one node per stage and one edge per
(stage.id -> successor id). graph_to_stages() is the inverse: successor
lists are recomputed from edges, node positions are written back, every
other stage field is read from the node's attached stage.

The converter never rejects or repairs input. Cyclic, disconnected and
dangling stage lists round-trip unchanged; validation is a separate phase.
Dangling references left by deleting a stage are healed by the editor,
which removes every edge touching the deleted node before the next sync.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog

from missionflow.contracts.enums import BranchType
from missionflow.contracts.graph import (
    EdgeData,
    GraphEdge,
    GraphNode,
    PipelineNodeData,
    StageGraph,
)
from missionflow.contracts.pipeline import Agent, Stage
from missionflow.contracts.types import AgentLookup

logger = structlog.get_logger(__name__)

ON_SUCCESS_LABEL = "On Success"
ON_FAILURE_LABEL = "On Failure"


def agent_lookup_from(agents: Iterable[Agent]) -> AgentLookup:
    """Build a read-only agent lookup from a directory listing.

    Later entries win when ids repeat.
    """
    by_id = {agent.id: agent for agent in agents}
    return by_id.get


def _unique(ids: Iterable[str]) -> list[str]:
    """De-duplicate while keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def edge_for(stage: Stage, target_id: str) -> GraphEdge:
    """Build the edge stage -> target_id, labelled for conditional branches."""
    label: str | None = None
    if stage.branch_type == BranchType.CONDITIONAL and stage.condition is not None:
        branches = stage.condition.branches
        if target_id in branches.on_success:
            label = ON_SUCCESS_LABEL
        elif target_id in branches.on_failure:
            label = ON_FAILURE_LABEL
    return GraphEdge(
        source=stage.id,
        target=target_id,
        label=label,
        data=EdgeData(branch_type=stage.branch_type, condition=label),
    )


def stages_to_graph(stages: Sequence[Stage], agent_lookup: AgentLookup) -> StageGraph:
    """Convert a stage list to visual nodes and edges.

    Args:
        stages: Stages in persisted order (may be cyclic or disconnected)
        agent_lookup: Resolves assigned agent ids to display metadata;
            ids it does not know are left off the node

    Returns:
        StageGraph with one node per stage and one edge per successor link,
        including links to ids that name no stage
    """
    edges: list[GraphEdge] = []
    has_incoming: set[str] = set()
    for stage in stages:
        for target_id in _unique(stage.next_stage_ids):
            edges.append(edge_for(stage, target_id))
            has_incoming.add(target_id)

    nodes: list[GraphNode] = []
    for stage in stages:
        agents = tuple(agent for agent in (agent_lookup(agent_id) for agent_id in stage.assigned_agent_ids) if agent is not None)
        nodes.append(
            GraphNode(
                id=stage.id,
                position=stage.position,
                data=PipelineNodeData(
                    stage=stage,
                    agents=agents,
                    is_entry_point=stage.id not in has_incoming,
                    is_exit_point=not stage.next_stage_ids,
                ),
            )
        )

    return StageGraph(nodes=tuple(nodes), edges=tuple(edges))


def graph_to_stages(nodes: Sequence[GraphNode], edges: Iterable[GraphEdge]) -> list[Stage]:
    """Convert visual nodes and edges back to a stage list.

    For each node, next_stage_ids becomes the targets of the edges whose
    source is that node (edge order, duplicates collapsed). position comes
    from the node's current coordinates. Edges whose source node no
    longer exists are dropped; edges to unknown targets are kept as
    successor ids for validation to report.

    Args:
        nodes: Current editor nodes
        edges: Current editor edges

    Returns:
        One stage per node, in node order
    """
    node_ids = {node.id for node in nodes}

    outgoing: dict[str, list[str]] = {node_id: [] for node_id in node_ids}
    for edge in edges:
        if edge.source not in node_ids:
            logger.debug("Dropping edge from missing stage", source=edge.source, target=edge.target)
            continue
        outgoing[edge.source].append(edge.target)

    stages: list[Stage] = []
    for node in nodes:
        stages.append(
            node.data.stage.model_copy(
                update={
                    "id": node.id,
                    "position": node.position,
                    "next_stage_ids": tuple(_unique(outgoing[node.id])),
                }
            )
        )
    return stages
