# src/missionflow/editor/session.py
"""Single-writer editing session over one pipeline configuration.

The session owns the visual graph (nodes and edges) while a user edits it.
Edit operations change the graph in memory and mark the session dirty;
a CoalescingScheduler flushes a burst of edits to the stage list once,
after the debounce window, so conversion, validation and entry-point
recomputation run once per burst rather than once per micro-event.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

import structlog

from missionflow.contracts.errors import UnknownStageError
from missionflow.contracts.graph import GraphEdge, GraphNode, StageGraph
from missionflow.contracts.pipeline import Agent, PipelineConfiguration, Position, Stage
from missionflow.core.config import MissionflowSettings
from missionflow.core.logging import pipeline_context
from missionflow.core.pipeline.converter import (
    agent_lookup_from,
    edge_for,
    graph_to_stages,
    stages_to_graph,
)
from missionflow.core.pipeline.layout import auto_layout_graph
from missionflow.core.pipeline.store import refresh_pipeline
from missionflow.editor.scheduler import CoalescingScheduler

logger = structlog.get_logger(__name__)

NEW_STAGE_NAME = "New Stage"
NEW_STAGE_COLOR = "#388bfd"
NEW_STAGE_X = 400.0
NEW_STAGE_Y_STEP = 150.0

# Fields owned by the graph itself; change them with move_node/connect/disconnect
_GRAPH_OWNED_FIELDS = frozenset({"id", "next_stage_ids", "position"})

type ChangeCallback = Callable[[PipelineConfiguration], None]


class PipelineEditorSession:
    """Visual editing session for one team pipeline.

    Usage::

        session = PipelineEditorSession(config, agents, on_change=save)
        stage = session.add_stage("Review")
        session.connect("implement", stage.id)
        session.flush()  # or wait for the debounce window

    Args:
        config: Configuration being edited
        agents: Agent directory used to resolve assigned agent ids
        settings: Layout, validation and debounce settings
        on_change: Receives each refreshed configuration after a sync
    """

    def __init__(
        self,
        config: PipelineConfiguration,
        agents: Iterable[Agent] = (),
        settings: MissionflowSettings | None = None,
        on_change: ChangeCallback | None = None,
    ) -> None:
        self._settings = settings or MissionflowSettings()
        self._agent_lookup = agent_lookup_from(agents)
        self._on_change = on_change
        self._lock = threading.RLock()
        self._config = config
        self._nodes: list[GraphNode] = []
        self._edges: list[GraphEdge] = []
        self._scheduler = CoalescingScheduler(self._settings.editor.sync_debounce_seconds, self.sync)
        self.load(config)

    @property
    def config(self) -> PipelineConfiguration:
        """Configuration as of the last sync (or load)."""
        with self._lock:
            return self._config

    @property
    def graph(self) -> StageGraph:
        """Snapshot of the current visual graph."""
        with self._lock:
            return StageGraph(nodes=tuple(self._nodes), edges=tuple(self._edges))

    @property
    def dirty(self) -> bool:
        return self._scheduler.dirty

    def load(self, config: PipelineConfiguration) -> None:
        """Rebuild the graph from a configuration changed outside the editor.

        Pending edits are discarded.
        """
        self._scheduler.cancel()
        with self._lock:
            graph = stages_to_graph(config.stages, self._agent_lookup)
            self._config = config
            self._nodes = list(graph.nodes)
            self._edges = list(graph.edges)
        logger.debug("Loaded pipeline into editor", pipeline_id=config.id, stages=len(config.stages))

    # -- edits ------------------------------------------------------------

    def add_stage(self, name: str = NEW_STAGE_NAME, *, stage_id: str | None = None, **fields: Any) -> Stage:
        """Append a new unconnected stage.

        Args:
            name: Display name
            stage_id: Explicit id (generated when omitted)
            **fields: Any other Stage field (description, branch_type, ...)

        Returns:
            The stage as created
        """
        with self._lock:
            stage = Stage.model_validate(
                {
                    "id": stage_id or f"stage-{uuid.uuid4().hex[:12]}",
                    "name": name,
                    "order": len(self._nodes),
                    "position": Position(x=NEW_STAGE_X, y=len(self._nodes) * NEW_STAGE_Y_STEP),
                    "color": NEW_STAGE_COLOR,
                    **fields,
                }
            )
            if any(node.id == stage.id for node in self._nodes):
                raise ValueError(f"Stage id {stage.id!r} already exists")
            self._nodes.append(self._node_for(stage))
        self._scheduler.mark_dirty()
        return stage

    def remove_stage(self, stage_id: str) -> None:
        """Delete a stage and every edge touching it."""
        with self._lock:
            self._index_of(stage_id)
            self._nodes = [node for node in self._nodes if node.id != stage_id]
            self._edges = [edge for edge in self._edges if stage_id not in (edge.source, edge.target)]
        self._scheduler.mark_dirty()

    def move_node(self, stage_id: str, x: float, y: float) -> None:
        """Place a node at new canvas coordinates."""
        with self._lock:
            index = self._index_of(stage_id)
            self._nodes[index] = self._nodes[index].with_position(x, y)
        self._scheduler.mark_dirty()

    def connect(self, source_id: str, target_id: str) -> GraphEdge:
        """Add the edge source -> target; connecting twice is a no-op.

        Cycles and self-loops are accepted here and reported by validation.
        """
        with self._lock:
            source = self._nodes[self._index_of(source_id)].data.stage
            self._index_of(target_id)
            for edge in self._edges:
                if edge.source == source_id and edge.target == target_id:
                    return edge
            edge = edge_for(source, target_id)
            self._edges.append(edge)
        self._scheduler.mark_dirty()
        return edge

    def disconnect(self, source_id: str, target_id: str) -> bool:
        """Remove the edge source -> target.

        Returns:
            True if an edge was removed
        """
        with self._lock:
            kept = [edge for edge in self._edges if not (edge.source == source_id and edge.target == target_id)]
            removed = len(kept) != len(self._edges)
            self._edges = kept
        if removed:
            self._scheduler.mark_dirty()
        return removed

    def update_stage(self, stage_id: str, **changes: Any) -> Stage:
        """Change stage properties from the properties panel.

        Args:
            stage_id: Stage to update
            **changes: Stage fields to replace (not id, next_stage_ids or
                position, which the graph owns)

        Returns:
            The updated stage
        """
        owned = _GRAPH_OWNED_FIELDS & changes.keys()
        if owned:
            raise ValueError(f"Cannot update graph-owned field(s) {sorted(owned)}; edit the graph instead")

        with self._lock:
            index = self._index_of(stage_id)
            node = self._nodes[index]
            stage = Stage.model_validate({**node.data.stage.model_dump(), **changes})
            self._nodes[index] = replace(node, data=replace(node.data, stage=stage, agents=self._resolve_agents(stage)))
            # Edge labels depend on the source stage's branch settings
            self._edges = [edge_for(stage, edge.target) if edge.source == stage_id else edge for edge in self._edges]
        self._scheduler.mark_dirty()
        return stage

    def auto_layout(self) -> None:
        """Reposition every node with the layered layout."""
        with self._lock:
            self._nodes = auto_layout_graph(self._nodes, self._edges, self._settings.layout)
        self._scheduler.mark_dirty()

    # -- sync -------------------------------------------------------------

    def sync(self) -> PipelineConfiguration:
        """Write the graph back to the configuration now.

        Runs graph -> stages conversion, validation and entry-point
        recomputation, rebuilds the graph from the result (so entry/exit
        flags and healed edges are current) and hands the refreshed
        configuration to on_change.
        """
        with self._lock:
            pipeline_id = self._config.id
        with pipeline_context(pipeline_id):
            with self._lock:
                stages = graph_to_stages(self._nodes, self._edges)
                config = refresh_pipeline(
                    self._config.model_copy(update={"stages": tuple(stages)}),
                    self._settings.validation,
                )
                graph = stages_to_graph(config.stages, self._agent_lookup)
                self._nodes = list(graph.nodes)
                self._edges = list(graph.edges)
                self._config = config

            logger.info(
                "Synced pipeline",
                stages=len(config.stages),
                is_valid=config.is_valid,
                errors=len(config.validation_errors),
            )
            if self._on_change is not None:
                self._on_change(config)
        return config

    def flush(self) -> bool:
        """Sync now if edits are pending.

        Returns:
            True if a sync ran
        """
        return self._scheduler.flush()

    def close(self) -> None:
        """Drop pending edits and stop the debounce timer."""
        self._scheduler.cancel()

    # -- helpers ------------------------------------------------------------

    def _index_of(self, stage_id: str) -> int:
        for index, node in enumerate(self._nodes):
            if node.id == stage_id:
                return index
        raise UnknownStageError(stage_id)

    def _resolve_agents(self, stage: Stage) -> tuple[Agent, ...]:
        return tuple(agent for agent in map(self._agent_lookup, stage.assigned_agent_ids) if agent is not None)

    def _node_for(self, stage: Stage) -> GraphNode:
        graph = stages_to_graph([stage], self._agent_lookup)
        return graph.nodes[0]
