"""Visual graph shapes exchanged with the pipeline editor.

A generic directed graph of {id, data} nodes and {source, target} edges,
independent of any particular UI graph library. Nodes carry the stage they
render plus the resolved agents; edges carry the branch semantics of their
source stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from missionflow.contracts.enums import BranchType
from missionflow.contracts.pipeline import Agent, Position, Stage

STAGE_NODE_TYPE = "stage"


@dataclass(frozen=True, slots=True)
class PipelineNodeData:
    """Payload attached to a stage node.

    Attributes:
        stage: The stage this node renders (fields other than edges and
            position are read back from here by graph_to_stages)
        agents: Agents resolved from stage.assigned_agent_ids
        is_entry_point: No incoming edge
        is_exit_point: Empty successor list
    """

    stage: Stage
    agents: tuple[Agent, ...] = ()
    is_entry_point: bool = False
    is_exit_point: bool = False


@dataclass(frozen=True, slots=True)
class GraphNode:
    """A node in the visual graph."""

    id: str
    data: PipelineNodeData
    position: Position = field(default_factory=Position)
    type: str = STAGE_NODE_TYPE

    def with_position(self, x: float, y: float) -> GraphNode:
        """Return a copy placed at (x, y)."""
        return replace(self, position=Position(x=x, y=y))


@dataclass(frozen=True, slots=True)
class EdgeData:
    """Branch semantics carried on an edge.

    Attributes:
        branch_type: branchType of the source stage
        condition: "On Success"/"On Failure" for conditional branches
    """

    branch_type: BranchType = BranchType.SEQUENTIAL
    condition: str | None = None


@dataclass(frozen=True, slots=True)
class GraphEdge:
    """A directed edge source -> target in the visual graph."""

    source: str
    target: str
    label: str | None = None
    data: EdgeData = field(default_factory=EdgeData)

    @property
    def id(self) -> str:
        return edge_id(self.source, self.target)


def edge_id(source: str, target: str) -> str:
    """Stable edge identifier for a (source, target) pair."""
    return f"{source}-{target}"


@dataclass(frozen=True, slots=True)
class StageGraph:
    """Nodes and edges of one pipeline, as rendered by the editor."""

    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned extent of a set of laid-out nodes."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y
