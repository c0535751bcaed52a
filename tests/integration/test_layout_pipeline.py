"""
Integration tests for the full layout pipeline.

These tests run graphs through LayoutEngine end to end and check the
properties every successful layout must have, plus the reference
scenarios for each diagram type.
"""

import math
import random

import pytest

from layoutflow import (
    DiagramType,
    Layout,
    LayoutEngine,
    Node,
    OverlapResolver,
    RankDirection,
    graph_from_text,
    layout_many,
)
from layoutflow.arranger import cycle_radius
from layoutflow.geometry import Point, distance, rects_overlap

ALL_TYPES = [t.value for t in DiagramType]


def _assert_no_overlaps(layout):
    rects = [n.rect for n in layout.nodes]
    for i in range(len(rects)):
        for j in range(i + 1, len(rects)):
            assert not rects_overlap(rects[i], rects[j]), (
                layout.nodes[i].id,
                layout.nodes[j].id,
            )


def _comparable(result):
    data = result.to_dict()
    data.pop("processingTimeMs")
    return data


def _dense_request(node_count=20, edge_count=45, seed=11, diagram_type="flow"):
    rng = random.Random(seed)
    ids = [f"n{i}" for i in range(node_count)]
    edges = set()
    while len(edges) < edge_count:
        source, target = rng.sample(ids, 2)
        edges.add((source, target))
    return {
        "diagramType": diagram_type,
        "nodes": [{"id": i, "label": f"Step {i}"} for i in ids],
        "edges": [{"from": s, "to": t} for s, t in sorted(edges)],
    }


class TestScenarios:
    """Reference scenarios."""

    def test_chain_flow(self, engine):
        """A -> B -> C: three ranks in one straight column, no overlaps or crossings."""
        result = engine.layout(graph_from_text("A -> B\nB -> C"), DiagramType.FLOW)
        nodes = result.layout.node_map()
        assert result.success
        assert [nodes[k].rank for k in "ABC"] == [0, 1, 2]
        assert nodes["A"].y < nodes["B"].y < nodes["C"].y
        assert nodes["A"].center.x == nodes["B"].center.x == nodes["C"].center.x
        assert result.metrics.overlap_count == 0
        assert result.metrics.edge_crossings == 0

    def test_five_node_cycle(self, engine, make_request):
        """Five unconnected nodes sit evenly spaced on the ring."""
        result = engine.layout_request(make_request("cycle", ["a", "b", "c", "d", "e"]))
        config = engine.config
        center = Point(config.width / 2, config.height / 2)
        assert result.success
        assert result.metrics.overlap_count == 0
        for node in result.layout.nodes:
            assert distance(node.center, center) == pytest.approx(cycle_radius(config))
        centers = [n.center for n in result.layout.nodes]
        angles = sorted(
            math.atan2(c.y - center.y, c.x - center.x) % (2 * math.pi) for c in centers
        )
        steps = [b - a for a, b in zip(angles, angles[1:])]
        assert steps == pytest.approx([2 * math.pi / 5] * 4)

    @pytest.mark.parametrize("direction", [RankDirection.TB, RankDirection.LR])
    @pytest.mark.parametrize("size", [(120, 60), (60, 150)])
    def test_coincident_pair(self, config, direction, size):
        """Two identical nodes forced onto one spot end far enough apart."""
        width, height = size
        layout = Layout(
            nodes=[
                Node("a", width=width, height=height, x=900, y=400),
                Node("b", width=width, height=height, x=900, y=400),
            ],
            direction=direction,
            canvas_width=config.width,
            canvas_height=config.height,
        )
        result = OverlapResolver().resolve(layout, config.replace(rank_direction=direction))
        a, b = result.layout.nodes
        assert result.converged
        required = config.node_separation + max(width, height)
        assert distance(a.center, b.center) >= required - 1e-6

    def test_unknown_node_reference(self, engine, make_request):
        payload = make_request("flow", ["A"], [("X", "A")])
        result = engine.layout_request(payload)
        assert result.success is False
        assert result.error

    def test_dense_random_graph(self, engine):
        """Twenty densely connected nodes end overlap free within the budget."""
        result = engine.layout_request(_dense_request())
        assert result.success
        assert result.converged
        assert result.metrics.overlap_count == 0
        assert result.iterations <= engine.config.max_iterations
        _assert_no_overlaps(result.layout)


@pytest.mark.parametrize("diagram_type", ALL_TYPES)
class TestProperties:
    """Properties that hold for every diagram type."""

    def test_zero_overlap(self, engine, complex_graph, diagram_type):
        result = engine.layout(complex_graph, diagram_type)
        assert result.success
        assert result.converged
        _assert_no_overlaps(result.layout)

    def test_bounds_containment(self, engine, complex_graph, diagram_type):
        result = engine.layout(complex_graph, diagram_type)
        bounds = result.bounds.rect
        for node in result.layout.nodes:
            assert bounds.contains_rect(node.rect)
        assert result.bounds.min_x >= 0
        assert result.bounds.min_y >= 0
        assert result.bounds.max_x <= result.layout.canvas_width
        assert result.bounds.max_y <= result.layout.canvas_height

    def test_determinism(self, complex_graph, diagram_type):
        first = LayoutEngine().layout(complex_graph, diagram_type)
        second = LayoutEngine().layout(complex_graph, diagram_type)
        assert _comparable(first) == _comparable(second)

    def test_idempotent_resolution(self, engine, complex_graph, diagram_type):
        result = engine.layout(complex_graph, diagram_type)
        again = OverlapResolver().resolve(result.layout, engine.config)
        assert again.iterations == 0
        assert again.layout.positions() == result.layout.positions()

    def test_edges_reference_nodes(self, engine, complex_graph, diagram_type):
        result = engine.layout(complex_graph, diagram_type)
        ids = {n.id for n in result.layout.nodes}
        assert len(result.layout.edges) == len(complex_graph.edges)
        for edge in result.layout.edges:
            assert edge.source in ids and edge.target in ids
            assert len(edge.points) >= 2


class TestTemplates:
    """End-to-end template checks."""

    def test_timeline_gap_is_constant(self, engine, complex_graph):
        result = engine.layout(complex_graph, DiagramType.TIMELINE)
        xs = sorted(n.center.x for n in result.layout.nodes)
        gaps = [b - a for a, b in zip(xs, xs[1:])]
        assert gaps == pytest.approx([gaps[0]] * len(gaps))
        ys = {round(n.center.y, 6) for n in result.layout.nodes}
        assert ys == {engine.config.height / 2}

    def test_tree_levels_reflect_depth(self, engine):
        """Tree layouts keep every root on the top level."""
        graph = graph_from_text("Root -> A\nA -> B\nOther -> B")
        result = engine.layout(graph, DiagramType.TREE)
        nodes = result.layout.node_map()
        assert nodes["Root"].y == nodes["Other"].y
        assert nodes["B"].rank == 2

    def test_crowded_cycle_recovers(self, engine, make_request):
        """A ring too small for its nodes is spread out by the resolver."""
        payload = make_request(
            "cycle",
            [f"step{i}" for i in range(6)],
            config={"width": 1920, "height": 300},
        )
        result = engine.layout_request(payload)
        assert result.success
        assert result.converged
        assert result.iterations > 0
        _assert_no_overlaps(result.layout)
        assert result.bounds.max_x <= result.layout.canvas_width


class TestLargeTemplates:
    """Templates with twenty nodes, more than the default canvas spaces comfortably."""

    @pytest.mark.parametrize("diagram_type", ["timeline", "cycle", "matrix"])
    def test_twenty_node_chain(self, engine, diagram_type):
        chain = "\n".join(f"e{i} -> e{i + 1}" for i in range(19))
        result = engine.layout(graph_from_text(chain), diagram_type)
        config = engine.config
        assert result.success
        assert result.converged
        assert len(result.layout.nodes) == 20
        _assert_no_overlaps(result.layout)
        # The canvas follows the drawing instead of growing without bound.
        assert result.layout.canvas_width <= max(
            config.width, result.bounds.max_x + config.margin_x + 1e-6
        )
        assert result.layout.canvas_height <= max(
            config.height, result.bounds.max_y + config.margin_y + 1e-6
        )

    def test_twenty_node_timeline_gap(self, engine):
        chain = "\n".join(f"e{i} -> e{i + 1}" for i in range(19))
        result = engine.layout(graph_from_text(chain), DiagramType.TIMELINE)
        xs = sorted(n.center.x for n in result.layout.nodes)
        gaps = [b - a for a, b in zip(xs, xs[1:])]
        assert result.iterations == 0
        assert gaps == pytest.approx([gaps[0]] * 19)
        assert gaps[0] >= 120 + engine.config.node_separation

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_dense_timeline(self, engine, seed):
        result = engine.layout_request(_dense_request(seed=seed, diagram_type="timeline"))
        assert result.success
        assert result.converged
        _assert_no_overlaps(result.layout)


class TestParallel:
    """Independent diagrams laid out in parallel."""

    def test_threads_match_sequential(self, make_request):
        payloads = [
            make_request("flow", "ABCD", [("A", "B"), ("B", "C"), ("A", "D")]),
            make_request("cycle", "ABCDEF"),
            make_request("timeline", "ABC", [("A", "B"), ("B", "C")]),
            _dense_request(seed=3),
        ]
        parallel = layout_many(payloads, max_workers=4)
        sequential = [LayoutEngine().layout_request(p) for p in payloads]
        assert [_comparable(r) for r in parallel] == [_comparable(r) for r in sequential]

    def test_processes(self, make_request):
        payloads = [make_request("matrix", "ABCD"), make_request("tree", "AB", [("A", "B")])]
        results = layout_many(payloads, max_workers=2, use_processes=True)
        assert all(r.success for r in results)
