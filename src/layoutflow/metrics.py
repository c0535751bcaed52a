"""
Layout quality metrics.

All metrics are pairwise scans, which is fine for diagram-sized graphs
(tens of nodes).
"""

from typing import List, Tuple

from .geometry import Point, distance, segments_intersect
from .models import Bounds, Edge, Layout, LayoutMetrics
from .resolver import count_overlaps


class MetricsEvaluator:
    """Computes LayoutMetrics for a finished layout."""

    def evaluate(self, layout: Layout) -> LayoutMetrics:
        """
        Evaluate a layout.

        Returns:
            LayoutMetrics with overlap count, edge crossings, average
            center-to-center distance and balance. An empty layout scores
            zero everywhere except balance, which is 1.
        """
        if not layout.nodes:
            return LayoutMetrics()
        return LayoutMetrics(
            overlap_count=count_overlaps(layout.nodes),
            edge_crossings=self.count_edge_crossings(layout.edges),
            average_node_spacing=self.average_node_spacing(layout),
            layout_balance=self.layout_balance(layout),
        )

    def count_edge_crossings(self, edges: List[Edge]) -> int:
        """
        Count proper crossings between edge polylines.

        Edges sharing an endpoint node are not compared, since they always
        meet at that node.
        """
        segments: List[List[Tuple[Point, Point]]] = [
            list(zip(edge.points, edge.points[1:])) for edge in edges
        ]
        crossings = 0
        for i in range(len(edges)):
            ends_i = {edges[i].source, edges[i].target}
            for j in range(i + 1, len(edges)):
                if ends_i & {edges[j].source, edges[j].target}:
                    continue
                for p1, p2 in segments[i]:
                    for q1, q2 in segments[j]:
                        if segments_intersect(p1, p2, q1, q2):
                            crossings += 1
        return crossings

    def average_node_spacing(self, layout: Layout) -> float:
        """Mean distance between the centers of all node pairs."""
        centers = [node.center for node in layout.nodes]
        pairs = 0
        total = 0.0
        for i in range(len(centers)):
            for j in range(i + 1, len(centers)):
                total += distance(centers[i], centers[j])
                pairs += 1
        return total / pairs if pairs else 0.0

    def layout_balance(self, layout: Layout) -> float:
        """
        How evenly the nodes are distributed around the bounds center.

        Each node center is expressed as an offset from the bounds center,
        normalized by the bounds half-extents. The score is
        ``max(0, 1 - |mean offset|^2)``: 1 when the node mass sits exactly in
        the middle, falling toward 0 as it drifts to one side.
        """
        bounds = Bounds.from_nodes(layout.nodes)
        cx = bounds.min_x + bounds.width / 2
        cy = bounds.min_y + bounds.height / 2
        half_w = bounds.width / 2
        half_h = bounds.height / 2

        sum_x = 0.0
        sum_y = 0.0
        for node in layout.nodes:
            center = node.center
            if half_w > 0:
                sum_x += (center.x - cx) / half_w
            if half_h > 0:
                sum_y += (center.y - cy) / half_h
        n = len(layout.nodes)
        mean_x = sum_x / n
        mean_y = sum_y / n
        return max(0.0, 1.0 - (mean_x * mean_x + mean_y * mean_y))
