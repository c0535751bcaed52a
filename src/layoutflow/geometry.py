"""
Geometry primitives for diagram layout.

Axis-aligned rectangles, points and the small set of helpers the layout
stages share:
- Overlap tests and overlap depth between rectangles
- Centroid and distance helpers
- Segment intersection (used for edge crossing counts)
- Clipping a center-to-point line against a rectangle border

Everything here is a pure function or an immutable value.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

# Tolerance for floating point comparisons between coordinates.
EPSILON = 1e-6


@dataclass(frozen=True)
class Point:
    """A 2D point."""

    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned rectangle given by its top-left corner and size.

    Attributes:
        x: Left edge.
        y: Top edge.
        width: Horizontal extent (> 0 for real nodes).
        height: Vertical extent (> 0 for real nodes).
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    def contains_point(self, point: Point) -> bool:
        return (
            self.x < point.x < self.right and self.y < point.y < self.bottom
        )

    def contains_rect(self, other: "Rect") -> bool:
        return (
            other.x >= self.x - EPSILON
            and other.y >= self.y - EPSILON
            and other.right <= self.right + EPSILON
            and other.bottom <= self.bottom + EPSILON
        )


def rects_overlap(a: Rect, b: Rect) -> bool:
    """Return True if both axis projections of a and b intersect."""
    overlap_x, overlap_y = overlap_depth(a, b)
    return overlap_x > EPSILON and overlap_y > EPSILON


def overlap_depth(a: Rect, b: Rect, padding: float = 0.0) -> Tuple[float, float]:
    """
    Compute the penetration of two rectangles along each axis.

    Args:
        a: First rectangle.
        b: Second rectangle.
        padding: Extra clearance required between the rectangles.

    Returns:
        (overlap_x, overlap_y). Positive values mean the rectangles are
        closer than ``padding`` on that axis.
    """
    ca = a.center
    cb = b.center
    overlap_x = (a.width + b.width) / 2 + padding - abs(ca.x - cb.x)
    overlap_y = (a.height + b.height) / 2 + padding - abs(ca.y - cb.y)
    return overlap_x, overlap_y


def distance(a: Point, b: Point) -> float:
    """Euclidean distance between two points."""
    return math.hypot(a.x - b.x, a.y - b.y)


def centroid(points: Iterable[Point]) -> Optional[Point]:
    """Mean of the points, or None for an empty collection."""
    xs = []
    ys = []
    for point in points:
        xs.append(point.x)
        ys.append(point.y)
    if not xs:
        return None
    return Point(sum(xs) / len(xs), sum(ys) / len(ys))


def bounding_rect(rects: Iterable[Rect]) -> Optional[Rect]:
    """Tight bounding rectangle of all rects, or None when there are none."""
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    found = False
    for rect in rects:
        found = True
        min_x = min(min_x, rect.x)
        min_y = min(min_y, rect.y)
        max_x = max(max_x, rect.right)
        max_y = max(max_y, rect.bottom)
    if not found:
        return None
    return Rect(min_x, min_y, max_x - min_x, max_y - min_y)


def _orientation(a: Point, b: Point, c: Point) -> float:
    return (b.x - a.x) * (c.y - a.y) - (b.y - a.y) * (c.x - a.x)


def segments_intersect(p1: Point, p2: Point, q1: Point, q2: Point) -> bool:
    """
    Return True if segment p1-p2 properly crosses segment q1-q2.

    Touching at an endpoint or running collinear is not a crossing.
    """
    d1 = _orientation(q1, q2, p1)
    d2 = _orientation(q1, q2, p2)
    d3 = _orientation(p1, p2, q1)
    d4 = _orientation(p1, p2, q2)
    return d1 * d2 < -EPSILON and d3 * d4 < -EPSILON


def clip_to_border(rect: Rect, toward: Point) -> Point:
    """
    Intersect the ray from the rectangle center toward a point with the border.

    Used for straight chords between nodes that are not arranged in ranks.
    Falls back to the center when the point coincides with it.
    """
    center = rect.center
    dx = toward.x - center.x
    dy = toward.y - center.y
    if abs(dx) < EPSILON and abs(dy) < EPSILON:
        return center

    half_w = rect.width / 2
    half_h = rect.height / 2
    scale_x = half_w / abs(dx) if abs(dx) > EPSILON else math.inf
    scale_y = half_h / abs(dy) if abs(dy) > EPSILON else math.inf
    scale = min(scale_x, scale_y)
    return Point(center.x + dx * scale, center.y + dy * scale)
