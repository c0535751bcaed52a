"""
Edge routing for positioned layouts.

Every stage that moves nodes finishes by routing edges again with the same
rules:
- Layered layouts attach edges to the midpoint of the rectangle side that
  faces along the main axis (bottom/top for TB, right/left for LR).
- Edges that skip ranks pass through one bend point per skipped rank.
- Geometric templates (no rank direction) use straight chords clipped to
  the rectangle borders.
- Self loops get a small rectangular loop on the node's corner.
"""

from typing import Dict, List, Optional

from .geometry import EPSILON, Point, Rect, clip_to_border
from .models import Layout, Node, RankDirection

# Size of the loop drawn for an edge from a node to itself.
SELF_LOOP_SIZE = 20


def side_anchor(rect: Rect, toward: Point, direction: RankDirection) -> Point:
    """
    Midpoint of the rectangle side facing ``toward``.

    The main-axis sides are preferred; when ``toward`` lies within the
    rectangle's main-axis band (nodes moved side by side), the cross-axis
    side is used instead.
    """
    center = rect.center
    if direction == RankDirection.LR:
        if toward.x >= rect.right - EPSILON:
            return Point(rect.right, center.y)
        if toward.x <= rect.x + EPSILON:
            return Point(rect.x, center.y)
        if toward.y >= center.y:
            return Point(center.x, rect.bottom)
        return Point(center.x, rect.y)

    if toward.y >= rect.bottom - EPSILON:
        return Point(center.x, rect.bottom)
    if toward.y <= rect.y + EPSILON:
        return Point(center.x, rect.y)
    if toward.x >= center.x:
        return Point(rect.right, center.y)
    return Point(rect.x, center.y)


def self_loop(rect: Rect, size: float = SELF_LOOP_SIZE) -> List[Point]:
    """Polyline leaving the top side and re-entering the right side."""
    start_x = rect.right - rect.width / 4
    end_y = rect.y + rect.height / 4
    return [
        Point(start_x, rect.y),
        Point(start_x, rect.y - size),
        Point(rect.right + size, rect.y - size),
        Point(rect.right + size, end_y),
        Point(rect.right, end_y),
    ]


def route_edge(
    source: Node,
    target: Node,
    bends: List[Point],
    direction: Optional[RankDirection],
) -> List[Point]:
    """
    Compute the polyline for one edge.

    Args:
        source: Source node (already positioned).
        target: Target node (already positioned).
        bends: Interior waypoints, in source-to-target order.
        direction: Rank direction, or None for straight chords.

    Returns:
        Points from the source border to the target border.
    """
    if source.id == target.id:
        return self_loop(source.rect)

    first_toward = bends[0] if bends else target.center
    last_toward = bends[-1] if bends else source.center

    if direction is None:
        start = clip_to_border(source.rect, first_toward)
        end = clip_to_border(target.rect, last_toward)
    else:
        start = side_anchor(source.rect, first_toward, direction)
        end = side_anchor(target.rect, last_toward, direction)
    return [start] + list(bends) + [end]


def _nudge_out(
    point: Point,
    rects: List[Rect],
    clearance: float,
    direction: Optional[RankDirection],
) -> Point:
    """Push a bend point out of any node rectangle it now falls inside."""
    for rect in rects:
        padded = Rect(
            rect.x - clearance,
            rect.y - clearance,
            rect.width + 2 * clearance,
            rect.height + 2 * clearance,
        )
        if not padded.contains_point(point):
            continue
        if direction == RankDirection.LR:
            # Cross axis is vertical.
            if point.y - padded.y < padded.bottom - point.y:
                point = Point(point.x, padded.y)
            else:
                point = Point(point.x, padded.bottom)
        else:
            if point.x - padded.x < padded.right - point.x:
                point = Point(padded.x, point.y)
            else:
                point = Point(padded.right, point.y)
    return point


def reroute_edges(layout: Layout, clearance: float = 10.0) -> None:
    """
    Route all edges of a layout in place after its nodes moved.

    Bend points that now sit inside a node rectangle are moved sideways
    just outside it before the polyline is rebuilt.
    """
    nodes: Dict[str, Node] = layout.node_map()
    rects = [n.rect for n in layout.nodes]
    for edge in layout.edges:
        source = nodes[edge.source]
        target = nodes[edge.target]
        if edge.bends:
            edge.bends = [
                _nudge_out(p, rects, clearance, layout.direction) for p in edge.bends
            ]
        edge.points = route_edge(source, target, edge.bends, layout.direction)


def straighten_edges(layout: Layout) -> None:
    """Drop all bends and route every edge as a straight chord."""
    layout.direction = None
    for edge in layout.edges:
        edge.bends = []
    reroute_edges(layout)
