"""
Diagram-type templates applied on top of the layered layout.

The layered result already suits flow and generic diagrams, and tree
diagrams only differ in how ranks are assigned. The remaining types are
replaced by a geometric template:

- cycle: nodes on a ring centered on the canvas
- timeline: nodes evenly spaced on one horizontal line
- matrix: nodes in a square grid of cells

Templates take their node order from the layered pass (component, rank,
order), so identical input always yields identical placement.
"""

import logging
import math
from typing import List

from .models import DiagramType, Layout, LayoutConfig, Node, RankDirection
from .routing import straighten_edges

logger = logging.getLogger(__name__)

# Ring radius as a fraction of the smaller canvas dimension.
CYCLE_RADIUS_FACTOR = 0.3

TEMPLATE_TYPES = (DiagramType.CYCLE, DiagramType.TIMELINE, DiagramType.MATRIX)


class TypeSpecificArranger:
    """Replaces or keeps a layered layout depending on the diagram type."""

    def adapt(
        self, layout: Layout, diagram_type: DiagramType, config: LayoutConfig
    ) -> Layout:
        """
        Adapt a layout to a diagram type.

        Args:
            layout: Layout from the layered engine. Not modified.
            diagram_type: Diagram type hint.
            config: Layout configuration (canvas size and margins).

        Returns:
            A new layout. For flow, tree and generic diagrams it is an
            unchanged copy.
        """
        adapted = layout.copy()
        if not adapted.nodes or diagram_type not in TEMPLATE_TYPES:
            return adapted

        # Templates are drawn inside the configured canvas.
        adapted.canvas_width = config.width
        adapted.canvas_height = config.height

        if diagram_type == DiagramType.CYCLE:
            self._arrange_cycle(adapted, config)
        elif diagram_type == DiagramType.TIMELINE:
            self._arrange_timeline(adapted, config)
        else:
            self._arrange_matrix(adapted, config)

        straighten_edges(adapted)
        logger.debug("Applied %s template to %d nodes", diagram_type.value, len(adapted.nodes))
        return adapted

    def _arrange_cycle(self, layout: Layout, config: LayoutConfig) -> None:
        nodes = layout.ordered_nodes()
        n = len(nodes)
        radius = cycle_radius(config)
        cx = config.width / 2
        cy = config.height / 2
        for i, node in enumerate(nodes):
            angle = 2 * math.pi * i / n
            node.move_center_to(cx + radius * math.cos(angle), cy + radius * math.sin(angle))

    def _arrange_timeline(self, layout: Layout, config: LayoutConfig) -> None:
        nodes = self._timeline_order(layout)
        n = len(nodes)
        cy = config.height / 2
        if n == 1:
            nodes[0].move_center_to(config.width / 2, cy)
            return

        widest = max(node.width for node in nodes)
        start = config.margin_x + widest / 2
        # Never closer than the resolver clearance; a long timeline widens the canvas.
        step = max(
            (config.width - 2 * config.margin_x - widest) / (n - 1),
            widest + config.clearance,
        )
        for i, node in enumerate(nodes):
            node.move_center_to(start + i * step, cy)
        layout.canvas_width = max(
            config.width, 2 * config.margin_x + widest + (n - 1) * step
        )

    def _timeline_order(self, layout: Layout) -> List[Node]:
        """Sort by main-axis coordinate, the temporal order set by the ranks."""
        horizontal = layout.direction == RankDirection.LR
        ordered = layout.ordered_nodes()
        position = {node.id: i for i, node in enumerate(ordered)}

        def key(node: Node):
            center = node.center
            if horizontal:
                return center.x, center.y, position[node.id]
            return center.y, center.x, position[node.id]

        return sorted(ordered, key=key)

    def _arrange_matrix(self, layout: Layout, config: LayoutConfig) -> None:
        nodes = layout.ordered_nodes()
        n = len(nodes)
        cols = math.ceil(math.sqrt(n))
        rows = math.ceil(n / cols)
        cell_w = (config.width - 2 * config.margin_x) / cols
        cell_h = (config.height - 2 * config.margin_y) / rows
        for i, node in enumerate(nodes):
            row, col = divmod(i, cols)
            node.move_center_to(
                config.margin_x + (col + 0.5) * cell_w,
                config.margin_y + (row + 0.5) * cell_h,
            )


def cycle_radius(config: LayoutConfig) -> float:
    """Radius of the cycle template ring for a config."""
    return min(config.width, config.height) * CYCLE_RADIUS_FACTOR
