# tests/unit/core/pipeline/test_layout.py
"""Tests for layered auto-layout."""

import pytest

from missionflow.contracts import GraphEdge, LayoutDirection
from missionflow.core.config import LayoutSettings
from missionflow.core.pipeline import agent_lookup_from, stages_to_graph
from missionflow.core.pipeline.layout import auto_layout_graph, calculate_bounding_box, compute_ranks
from missionflow.testing import chain_stages, make_stage, make_stages


def _graph(edges: dict[str, list[str]]):
    return stages_to_graph(make_stages(edges), agent_lookup_from(()))


class TestComputeRanks:
    def test_fan_out_example(self) -> None:
        graph = _graph({"s1": ["s2"], "s2": ["s3", "s4"], "s3": [], "s4": []})

        assert compute_ranks(graph.nodes, graph.edges) == {"s1": 0, "s2": 1, "s3": 2, "s4": 2}

    def test_longest_path_wins(self) -> None:
        # a -> d directly and a -> b -> c -> d
        graph = _graph({"a": ["b", "d"], "b": ["c"], "c": ["d"], "d": []})

        assert compute_ranks(graph.nodes, graph.edges)["d"] == 3

    def test_independent_entries_share_rank_zero(self) -> None:
        graph = _graph({"a": ["c"], "b": ["c"], "c": []})

        assert compute_ranks(graph.nodes, graph.edges) == {"a": 0, "b": 0, "c": 1}

    def test_self_loop_ignored(self) -> None:
        graph = _graph({"a": ["a", "b"], "b": []})

        assert compute_ranks(graph.nodes, graph.edges) == {"a": 0, "b": 1}

    def test_cycle_gets_fallback_rank(self) -> None:
        graph = _graph({"entry": ["a"], "a": ["b"], "b": ["a"], "done": []})

        ranks = compute_ranks(graph.nodes, graph.edges)

        assert ranks["entry"] == 0
        assert ranks["done"] == 0
        assert ranks["a"] == ranks["b"] == 1

    def test_pure_cycle_gets_rank_zero(self) -> None:
        graph = _graph({"a": ["b"], "b": ["a"]})

        assert compute_ranks(graph.nodes, graph.edges) == {"a": 0, "b": 0}

    def test_edges_to_unknown_nodes_ignored(self) -> None:
        graph = _graph({"a": [], "b": []})
        edges = [GraphEdge(source="a", target="ghost"), GraphEdge(source="ghost", target="b")]

        assert compute_ranks(graph.nodes, edges) == {"a": 0, "b": 0}


class TestAutoLayoutGraph:
    def test_rows_follow_ranks_top_to_bottom(self) -> None:
        settings = LayoutSettings()
        graph = _graph({"s1": ["s2"], "s2": ["s3", "s4"], "s3": [], "s4": []})

        nodes = {node.id: node.position for node in auto_layout_graph(graph.nodes, graph.edges, settings)}

        assert nodes["s1"].y == 0
        assert nodes["s2"].y == settings.row_height
        assert nodes["s3"].y == nodes["s4"].y == 2 * settings.row_height
        assert nodes["s4"].x - nodes["s3"].x == settings.column_width

    def test_shorter_rows_centred_under_widest(self) -> None:
        settings = LayoutSettings()
        graph = _graph({"s1": ["s2", "s3"], "s2": [], "s3": []})

        nodes = {node.id: node.position for node in auto_layout_graph(graph.nodes, graph.edges, settings)}

        assert nodes["s1"].x == pytest.approx((nodes["s2"].x + nodes["s3"].x) / 2)

    def test_left_to_right_swaps_axes(self) -> None:
        settings = LayoutSettings(direction=LayoutDirection.LEFT_RIGHT)
        graph = _graph({"a": ["b"], "b": []})

        nodes = {node.id: node.position for node in auto_layout_graph(graph.nodes, graph.edges, settings)}

        assert nodes["a"].y == nodes["b"].y
        assert nodes["b"].x - nodes["a"].x == settings.node_width + settings.rank_spacing

    def test_margins_offset_everything(self) -> None:
        settings = LayoutSettings(margin_x=50, margin_y=25)
        graph = _graph({"a": []})

        (node,) = auto_layout_graph(graph.nodes, graph.edges, settings)

        assert (node.position.x, node.position.y) == (50, 25)

    def test_returns_nodes_in_input_order_with_data(self) -> None:
        graph = _graph({"z": [], "y": ["z"], "x": ["y"]})

        nodes = auto_layout_graph(graph.nodes, graph.edges)

        assert [node.id for node in nodes] == ["z", "y", "x"]
        assert [node.data for node in nodes] == [node.data for node in graph.nodes]

    def test_barycenter_keeps_children_under_parents(self) -> None:
        # Row 1 input order is (c, d) but c's parent is on the right
        graph = _graph({"a": ["d"], "b": ["c"], "c": [], "d": []})

        nodes = {node.id: node.position for node in auto_layout_graph(graph.nodes, graph.edges)}

        assert nodes["d"].x < nodes["c"].x

    def test_cyclic_graph_does_not_raise(self) -> None:
        graph = _graph({"a": ["b"], "b": ["c"], "c": ["a"]})

        nodes = auto_layout_graph(graph.nodes, graph.edges)

        assert len(nodes) == 3

    def test_empty_graph(self) -> None:
        assert auto_layout_graph([], []) == []

    def test_relaxation_bound_is_configurable(self) -> None:
        graph = stages_to_graph(chain_stages("a", "b", "c", "d"), agent_lookup_from(()))

        ranks = compute_ranks(graph.nodes, graph.edges, max_rounds=1)

        # Edges are relaxed in list order, so one round settles a whole chain
        assert ranks == {"a": 0, "b": 1, "c": 2, "d": 3}


class TestBoundingBox:
    def test_empty(self) -> None:
        box = calculate_bounding_box([])

        assert (box.min_x, box.min_y, box.max_x, box.max_y) == (0, 0, 0, 0)
        assert box.width == box.height == 0

    def test_covers_node_rectangles(self) -> None:
        settings = LayoutSettings()
        graph = stages_to_graph(
            [make_stage("a", position=(10.0, 20.0)), make_stage("b", position=(-30.0, 100.0))],
            agent_lookup_from(()),
        )

        box = calculate_bounding_box(graph.nodes, settings)

        assert (box.min_x, box.min_y) == (-30.0, 20.0)
        assert (box.max_x, box.max_y) == (10.0 + settings.node_width, 100.0 + settings.node_height)
        assert box.width == 40.0 + settings.node_width
