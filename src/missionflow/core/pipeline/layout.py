# src/missionflow/core/pipeline/layout.py
"""Layered auto-layout for the pipeline editor.

Each node gets a rank equal to the length of the longest path from an
entry node to it; nodes of equal rank share one row (or column, for
left-to-right layouts) and are evenly spaced along it. Rows are ordered
top-down with a barycenter heuristic so children sit near their parents.

The editor calls this on in-progress graphs, so layout has no error
outcomes. Ranks come from a bounded relaxation; nodes still changing when
the bound is hit (they sit on or after a cycle) and nodes no entry reaches
are given a fallback rank one past the highest stable rank.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import networkx as nx
import structlog

from missionflow.contracts.enums import LayoutDirection
from missionflow.contracts.graph import BoundingBox, GraphEdge, GraphNode
from missionflow.core.config import LayoutSettings

logger = structlog.get_logger(__name__)


def _node_order(nodes: Iterable[GraphNode]) -> list[str]:
    """Unique node ids in first-seen order."""
    return list(dict.fromkeys(node.id for node in nodes))


def _layout_edges(node_ids: set[str], edges: Iterable[GraphEdge]) -> list[tuple[str, str]]:
    """Edges between known nodes. Self-loops carry no layering information."""
    return [
        (edge.source, edge.target)
        for edge in edges
        if edge.source in node_ids and edge.target in node_ids and edge.source != edge.target
    ]


def compute_ranks(
    nodes: Sequence[GraphNode],
    edges: Iterable[GraphEdge],
    max_rounds: int | None = None,
) -> dict[str, int]:
    """Assign every node its longest-path distance from an entry node.

    Args:
        nodes: Graph nodes (any shape, including cyclic)
        edges: Graph edges; edges to unknown nodes are ignored
        max_rounds: Relaxation bound (default: number of nodes, enough for
            any acyclic graph to converge)

    Returns:
        Mapping of every node id to a non-negative rank
    """
    order = _node_order(nodes)
    layout_edges = _layout_edges(set(order), edges)

    has_incoming = {target for _, target in layout_edges}
    ranks: dict[str, int] = {node_id: 0 for node_id in order if node_id not in has_incoming}

    rounds = max_rounds if max_rounds is not None else len(order)
    for _ in range(rounds):
        changed = False
        for source, target in layout_edges:
            if source in ranks and ranks[source] + 1 > ranks.get(target, -1):
                ranks[target] = ranks[source] + 1
                changed = True
        if not changed:
            break

    unsettled = {target for source, target in layout_edges if source in ranks and ranks[source] + 1 > ranks.get(target, -1)}
    if unsettled:
        # Still relaxing after the bound: these nodes (and everything below
        # them) have no finite longest path.
        graph: nx.DiGraph[str] = nx.DiGraph(layout_edges)
        unstable = set(unsettled)
        for node_id in unsettled:
            unstable |= nx.descendants(graph, node_id)
        for node_id in unstable:
            ranks.pop(node_id, None)

    unranked = [node_id for node_id in order if node_id not in ranks]
    if unranked:
        fallback = max(ranks.values(), default=-1) + 1
        logger.debug("Assigning fallback layout rank", node_ids=unranked, rank=fallback)
        for node_id in unranked:
            ranks[node_id] = fallback

    return ranks


def _order_rows(
    order: list[str],
    ranks: dict[str, int],
    layout_edges: list[tuple[str, str]],
) -> list[list[str]]:
    """Group nodes into rows by rank and order each row by barycenter.

    A node's barycenter is the mean slot (centred on 0) of its predecessors
    in earlier rows. Nodes without such predecessors keep their input slot.
    Sorting is stable, so ties keep input order.
    """
    max_rank = max(ranks.values(), default=-1)
    rows: list[list[str]] = [[] for _ in range(max_rank + 1)]
    for node_id in order:
        rows[ranks[node_id]].append(node_id)

    predecessors: dict[str, list[str]] = {node_id: [] for node_id in order}
    for source, target in layout_edges:
        predecessors[target].append(source)

    slot: dict[str, float] = {}
    ordered_rows: list[list[str]] = []
    for row in rows:
        centre = (len(row) - 1) / 2

        def barycenter(item: tuple[int, str], centre: float = centre) -> float:
            index, node_id = item
            placed = [slot[p] for p in predecessors[node_id] if p in slot and ranks[p] < ranks[node_id]]
            if placed:
                return sum(placed) / len(placed)
            return index - centre

        ordered = [node_id for _, node_id in sorted(enumerate(row), key=barycenter)]
        for index, node_id in enumerate(ordered):
            slot[node_id] = index - centre
        ordered_rows.append(ordered)
    return ordered_rows


def auto_layout_graph(
    nodes: Sequence[GraphNode],
    edges: Iterable[GraphEdge],
    settings: LayoutSettings | None = None,
) -> list[GraphNode]:
    """Assign new positions to every node.

    Args:
        nodes: Nodes to lay out (any shape, including cyclic)
        edges: Edges between them
        settings: Geometry and direction (defaults if None)

    Returns:
        The same nodes, in the same order, with new positions. Within an
        acyclic graph no two nodes share a position.
    """
    settings = settings or LayoutSettings()
    edges = list(edges)
    order = _node_order(nodes)
    ranks = compute_ranks(nodes, edges, max_rounds=settings.max_relaxation_rounds)
    rows = _order_rows(order, ranks, _layout_edges(set(order), edges))

    widest = max((len(row) for row in rows), default=0)
    if settings.direction == LayoutDirection.LEFT_RIGHT:
        rank_step = settings.node_width + settings.rank_spacing
        slot_step = settings.node_height + settings.node_spacing
    else:
        rank_step = settings.row_height
        slot_step = settings.column_width

    coordinates: dict[str, tuple[float, float]] = {}
    for rank, row in enumerate(rows):
        # Centre shorter rows under the widest one
        offset = (widest - len(row)) / 2
        for index, node_id in enumerate(row):
            along = (index + offset) * slot_step
            across = rank * rank_step
            if settings.direction == LayoutDirection.LEFT_RIGHT:
                coordinates[node_id] = (settings.margin_x + across, settings.margin_y + along)
            else:
                coordinates[node_id] = (settings.margin_x + along, settings.margin_y + across)

    return [node.with_position(*coordinates[node.id]) for node in nodes]


def calculate_bounding_box(
    nodes: Sequence[GraphNode],
    settings: LayoutSettings | None = None,
) -> BoundingBox:
    """Extent of the rendered nodes, for centring the canvas view.

    Returns:
        BoundingBox covering every node rectangle; all zeros when empty
    """
    if not nodes:
        return BoundingBox(min_x=0.0, min_y=0.0, max_x=0.0, max_y=0.0)

    settings = settings or LayoutSettings()
    return BoundingBox(
        min_x=min(node.position.x for node in nodes),
        min_y=min(node.position.y for node in nodes),
        max_x=max(node.position.x + settings.node_width for node in nodes),
        max_y=max(node.position.y + settings.node_height for node in nodes),
    )
