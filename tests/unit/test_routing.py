"""Tests for edge routing."""

from layoutflow.geometry import Point, Rect
from layoutflow.models import Edge, Layout, Node, RankDirection
from layoutflow.routing import (
    SELF_LOOP_SIZE,
    reroute_edges,
    route_edge,
    self_loop,
    side_anchor,
    straighten_edges,
)


class TestSideAnchor:
    """Tests for side midpoint selection."""

    def test_top_to_bottom(self):
        rect = Rect(0, 0, 100, 50)
        assert side_anchor(rect, Point(50, 200), RankDirection.TB) == Point(50, 50)
        assert side_anchor(rect, Point(50, -200), RankDirection.TB) == Point(50, 0)

    def test_side_by_side_uses_cross_axis(self):
        """A target level with the node leaves through the left or right side."""
        rect = Rect(0, 0, 100, 50)
        assert side_anchor(rect, Point(300, 25), RankDirection.TB) == Point(100, 25)
        assert side_anchor(rect, Point(-300, 25), RankDirection.TB) == Point(0, 25)

    def test_left_to_right(self):
        rect = Rect(0, 0, 100, 50)
        assert side_anchor(rect, Point(300, 25), RankDirection.LR) == Point(100, 25)
        assert side_anchor(rect, Point(-300, 25), RankDirection.LR) == Point(0, 25)
        assert side_anchor(rect, Point(50, 300), RankDirection.LR) == Point(50, 50)


class TestRouteEdge:
    """Tests for single edge polylines."""

    def test_straight_edge(self):
        a = Node("a", width=100, height=50, x=0, y=0)
        b = Node("b", width=100, height=50, x=0, y=100)
        assert route_edge(a, b, [], RankDirection.TB) == [Point(50, 50), Point(50, 100)]

    def test_bends_are_kept(self):
        a = Node("a", width=100, height=50, x=0, y=0)
        b = Node("b", width=100, height=50, x=0, y=300)
        bends = [Point(200, 125), Point(200, 225)]
        points = route_edge(a, b, bends, RankDirection.TB)
        assert points[1:-1] == bends
        assert points[0] == Point(50, 50)
        assert points[-1] == Point(50, 300)

    def test_chord_without_direction(self):
        a = Node("a", width=100, height=50, x=0, y=0)
        b = Node("b", width=100, height=50, x=300, y=0)
        assert route_edge(a, b, [], None) == [Point(100, 25), Point(300, 25)]

    def test_self_loop(self):
        a = Node("a", width=100, height=40, x=0, y=0)
        points = route_edge(a, a, [], RankDirection.TB)
        assert points == self_loop(a.rect)
        assert points[0] == Point(75, 0)
        assert points[-1] == Point(100, 10)
        assert min(p.y for p in points) == -SELF_LOOP_SIZE


class TestReroute:
    """Tests for re-routing whole layouts."""

    def test_bend_inside_node_is_nudged_out(self):
        a = Node("a", width=100, height=50, x=0, y=0)
        blocker = Node("blocker", width=100, height=50, x=0, y=100)
        b = Node("b", width=100, height=50, x=0, y=200)
        edge = Edge("a", "b", bends=[Point(40, 125)])
        layout = Layout(nodes=[a, blocker, b], edges=[edge])
        reroute_edges(layout, clearance=10)
        bend = layout.edges[0].bends[0]
        assert bend == Point(-10, 125)
        assert layout.edges[0].points[1] == bend

    def test_straighten_drops_bends(self):
        a = Node("a", width=100, height=50, x=0, y=0)
        b = Node("b", width=100, height=50, x=300, y=0)
        layout = Layout(nodes=[a, b], edges=[Edge("a", "b", bends=[Point(150, 200)])])
        straighten_edges(layout)
        assert layout.direction is None
        assert layout.edges[0].bends == []
        assert layout.edges[0].points == [Point(100, 25), Point(300, 25)]
