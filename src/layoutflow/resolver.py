"""
Overlap resolution for positioned layouts.

Force-directed separation pass run after the layered engine and the type
templates. Overlapping node pairs repel each other along the line between
their centers until every pair is at least ``padding`` apart on one axis:

- Displacements from all pairs are accumulated and applied together, so the
  result does not depend on pair visiting order.
- A node's step per pass is capped at ``max_displacement``.
- Nodes are clamped inside the canvas margins. If overlaps persist after
  half of the pass budget, the canvas grows a little every pass, up to the
  size of a square grid that holds every node.
- Overlaps left when the pass budget runs out are removed by snapping
  nodes to the nearest free cell of that grid.
- A caller deadline ends the loop early; the result then reports whether
  the zero-overlap invariant holds.

Coincident centers are split along the axis of the larger node dimension,
with a seeded random sign, so identical input always gives identical
output.
"""

import logging
import math
import random
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .geometry import EPSILON, overlap_depth, rects_overlap
from .models import Bounds, Layout, LayoutConfig, Node, RankDirection
from .routing import reroute_edges

logger = logging.getLogger(__name__)

# Extra distance added to every push so separated pairs end strictly apart.
PUSH_EPSILON = 0.5

# A pass whose largest step is below this is considered stalled.
STALL_STEP = 0.5

# Bound on the perpendicular jitter used when two centers coincide.
COINCIDENT_JITTER = 0.25


@dataclass
class ResolutionProgress:
    """State after one resolver pass, handed to the progress hook."""

    iteration: int
    overlap_count: int
    conflict_count: int
    max_step: float
    canvas_width: float
    canvas_height: float


@dataclass
class ResolutionResult:
    """
    Outcome of an overlap resolution.

    Attributes:
        layout: The resolved layout (a new object).
        converged: True when no two node rectangles overlap.
        iterations: Number of passes that moved nodes.
        overlap_count: Overlapping pairs left in ``layout``.
        canvas_grown: Whether the canvas had to grow beyond its initial size.
        deadline_expired: Whether the caller's deadline ended the loop.
        grid_snapped: Whether leftover overlaps were removed by grid snapping.
        history: Progress record of every pass.
    """

    layout: Layout
    converged: bool
    iterations: int = 0
    overlap_count: int = 0
    canvas_grown: bool = False
    deadline_expired: bool = False
    grid_snapped: bool = False
    history: List[ResolutionProgress] = field(default_factory=list)


def grid_cell(nodes: List[Node], padding: float) -> Tuple[float, float]:
    """Grid cell size that fits the largest node plus padding."""
    return (
        max(n.width for n in nodes) + padding,
        max(n.height for n in nodes) + padding,
    )


def grid_extent(nodes: List[Node], padding: float, config: LayoutConfig) -> Tuple[float, float]:
    """Canvas size of a square grid with one cell per node, margins included."""
    cell_w, cell_h = grid_cell(nodes, padding)
    cols = math.ceil(math.sqrt(len(nodes)))
    rows = math.ceil(len(nodes) / cols)
    return 2 * config.margin_x + cols * cell_w, 2 * config.margin_y + rows * cell_h


def count_overlaps(nodes: List[Node]) -> int:
    """Number of node pairs whose rectangles overlap."""
    rects = [n.rect for n in nodes]
    count = 0
    for i in range(len(rects)):
        for j in range(i + 1, len(rects)):
            if rects_overlap(rects[i], rects[j]):
                count += 1
    return count


class OverlapResolver:
    """
    Separates overlapping nodes.

    Attributes:
        max_iterations: Pass budget; the config value is used when None.
        separation_distance: Clearance left between separated nodes; the
            config value is used when None.
        on_iteration: Optional callback receiving a ResolutionProgress after
            each pass.
    """

    def __init__(
        self,
        max_iterations: Optional[int] = None,
        separation_distance: Optional[float] = None,
        on_iteration: Optional[Callable[[ResolutionProgress], None]] = None,
    ):
        self.max_iterations = max_iterations
        self.separation_distance = separation_distance
        self.on_iteration = on_iteration

    def resolve(
        self,
        layout: Layout,
        config: LayoutConfig,
        deadline: Optional[float] = None,
    ) -> ResolutionResult:
        """
        Remove node overlaps.

        A layout without overlapping nodes is returned unchanged.

        Args:
            layout: Layout to resolve. Not modified.
            config: Layout configuration.
            deadline: Optional ``time.monotonic()`` value after which the
                loop stops. ``config.deadline_ms`` is applied as well.

        Returns:
            ResolutionResult with the new layout and convergence flags.
        """
        resolved = layout.copy()
        nodes = resolved.nodes
        overlaps = count_overlaps(nodes)
        if overlaps == 0:
            return ResolutionResult(layout=resolved, converged=True)

        max_iterations = self.max_iterations or config.max_iterations
        separation = (
            self.separation_distance
            if self.separation_distance is not None
            else config.separation_distance
        )
        padding = max(separation, config.node_separation)
        rng = random.Random(config.seed)

        if config.deadline_ms is not None:
            config_deadline = time.monotonic() + config.deadline_ms / 1000.0
            deadline = config_deadline if deadline is None else min(deadline, config_deadline)

        bounds = Bounds.from_nodes(nodes)
        canvas_w = max(resolved.canvas_width, config.width, bounds.width + 2 * config.margin_x)
        canvas_h = max(resolved.canvas_height, config.height, bounds.height + 2 * config.margin_y)
        initial_canvas = (canvas_w, canvas_h)
        grid_w, grid_h = grid_extent(nodes, padding, config)
        max_w = max(canvas_w, grid_w)
        max_h = max(canvas_h, grid_h)

        result = ResolutionResult(layout=resolved, converged=False)
        logger.debug(
            "Resolving %d overlapping pairs among %d nodes (padding %.1f)",
            overlaps,
            len(nodes),
            padding,
        )

        for iteration in range(1, max_iterations + 1):
            if deadline is not None and time.monotonic() >= deadline:
                result.deadline_expired = True
                logger.debug(
                    "Overlap resolution deadline expired after %d passes", result.iterations
                )
                break

            displacements, conflicts = self._repulsion(nodes, padding, rng, resolved.direction)
            if conflicts == 0:
                break

            max_step = self._apply(nodes, displacements, config.max_displacement)
            self._clamp(nodes, config, canvas_w, canvas_h)
            overlaps = count_overlaps(nodes)
            result.iterations = iteration

            if overlaps > 0 and iteration >= max_iterations // 2:
                canvas_w = min(canvas_w * config.canvas_growth, max_w)
                canvas_h = min(canvas_h * config.canvas_growth, max_h)

            progress = ResolutionProgress(
                iteration=iteration,
                overlap_count=overlaps,
                conflict_count=conflicts,
                max_step=max_step,
                canvas_width=canvas_w,
                canvas_height=canvas_h,
            )
            result.history.append(progress)
            if self.on_iteration is not None:
                self.on_iteration(progress)

            if overlaps == 0 and max_step < STALL_STEP:
                break

        overlaps = count_overlaps(nodes)
        if overlaps and config.grid_snap and not result.deadline_expired:
            logger.info(
                "Snapping %d nodes to a grid, %d overlapping pairs left after %d passes",
                len(nodes),
                overlaps,
                result.iterations,
            )
            canvas_w, canvas_h = self._snap_to_grid(nodes, padding, config, canvas_w, canvas_h)
            result.grid_snapped = True

        resolved.canvas_width = canvas_w
        resolved.canvas_height = canvas_h
        reroute_edges(resolved, config.edge_separation)

        result.overlap_count = count_overlaps(nodes)
        result.converged = result.overlap_count == 0
        result.canvas_grown = (canvas_w, canvas_h) != initial_canvas
        if result.converged:
            logger.debug("Overlaps resolved in %d passes", result.iterations)
        else:
            logger.warning(
                "Overlap resolution stopped after %d passes with %d overlapping pairs",
                result.iterations,
                result.overlap_count,
            )
        return result

    def _repulsion(
        self,
        nodes: List[Node],
        padding: float,
        rng: random.Random,
        direction: Optional[RankDirection],
    ) -> Tuple[List[List[float]], int]:
        """
        Accumulate the repulsion of every conflicting pair.

        A pair conflicts when it is closer than ``padding`` on both axes.
        The pair is pushed apart along the line between centers by the
        distance that clears the cheaper axis.

        Returns:
            (per-node [dx, dy] displacements, number of conflicting pairs)
        """
        displacements = [[0.0, 0.0] for _ in nodes]
        conflicts = 0
        rects = [n.rect for n in nodes]
        centers = [r.center for r in rects]

        for i in range(len(nodes)):
            for j in range(i + 1, len(nodes)):
                overlap_x, overlap_y = overlap_depth(rects[i], rects[j], padding)
                if overlap_x <= EPSILON or overlap_y <= EPSILON:
                    continue
                conflicts += 1

                dx = centers[j].x - centers[i].x
                dy = centers[j].y - centers[i].y
                length = math.hypot(dx, dy)
                if length < EPSILON:
                    ux, uy = self._split_direction(rng, direction, nodes[i], nodes[j])
                else:
                    ux, uy = dx / length, dy / length

                along_x = overlap_x / abs(ux) if abs(ux) > EPSILON else math.inf
                along_y = overlap_y / abs(uy) if abs(uy) > EPSILON else math.inf
                half = (min(along_x, along_y) + PUSH_EPSILON) / 2

                displacements[i][0] -= ux * half
                displacements[i][1] -= uy * half
                displacements[j][0] += ux * half
                displacements[j][1] += uy * half

        return displacements, conflicts

    def _split_direction(
        self,
        rng: random.Random,
        direction: Optional[RankDirection],
        a: Node,
        b: Node,
    ) -> Tuple[float, float]:
        """
        Unit vector for coincident centers.

        The pair is split along the axis of the larger node dimension, so
        the centers end at least the longer side plus padding apart. Square
        nodes split along the cross axis of the rank direction. The sign is
        random and a slight jitter is added on the other axis.
        """
        sign = rng.choice((-1.0, 1.0))
        jitter = rng.uniform(-COINCIDENT_JITTER, COINCIDENT_JITTER)
        longest_w = max(a.width, b.width)
        longest_h = max(a.height, b.height)
        if longest_w == longest_h:
            horizontal = direction != RankDirection.LR
        else:
            horizontal = longest_w > longest_h
        if horizontal:
            ux, uy = sign, jitter
        else:
            ux, uy = jitter, sign
        length = math.hypot(ux, uy)
        return ux / length, uy / length

    def _apply(
        self, nodes: List[Node], displacements: List[List[float]], max_step: float
    ) -> float:
        """Move every node by its capped displacement; return the largest step."""
        largest = 0.0
        for node, (dx, dy) in zip(nodes, displacements):
            step = math.hypot(dx, dy)
            if step > max_step:
                dx *= max_step / step
                dy *= max_step / step
                step = max_step
            node.x += dx
            node.y += dy
            largest = max(largest, step)
        return largest

    def _clamp(
        self, nodes: List[Node], config: LayoutConfig, canvas_w: float, canvas_h: float
    ) -> None:
        """Keep every node inside the canvas margins."""
        for node in nodes:
            max_x = canvas_w - config.margin_x - node.width
            max_y = canvas_h - config.margin_y - node.height
            node.x = max(config.margin_x, min(node.x, max_x))
            node.y = max(config.margin_y, min(node.y, max_y))

    def _snap_to_grid(
        self,
        nodes: List[Node],
        padding: float,
        config: LayoutConfig,
        canvas_w: float,
        canvas_h: float,
    ) -> Tuple[float, float]:
        """
        Move every node to the center of its nearest free grid cell.

        Cells are the largest node plus ``padding`` in size, so nodes in
        different cells never overlap. Nodes claim cells in layout order;
        ties go to the upper-left cell. The canvas grows when it holds
        fewer cells than nodes.

        Returns:
            (canvas width, canvas height) after snapping.
        """
        cell_w, cell_h = grid_cell(nodes, padding)
        cols = int((canvas_w - 2 * config.margin_x) // cell_w)
        rows = int((canvas_h - 2 * config.margin_y) // cell_h)
        if cols * rows < len(nodes):
            cols = max(cols, math.ceil(math.sqrt(len(nodes))))
            rows = max(rows, math.ceil(len(nodes) / cols))
        canvas_w = max(canvas_w, 2 * config.margin_x + cols * cell_w)
        canvas_h = max(canvas_h, 2 * config.margin_y + rows * cell_h)

        def cell_center(cell: Tuple[int, int]) -> Tuple[float, float]:
            row, col = cell
            return (
                config.margin_x + (col + 0.5) * cell_w,
                config.margin_y + (row + 0.5) * cell_h,
            )

        free = {(row, col) for row in range(rows) for col in range(cols)}
        for node in nodes:
            center = node.center

            def cost(cell: Tuple[int, int]) -> Tuple[float, int, int]:
                cx, cy = cell_center(cell)
                return (cx - center.x) ** 2 + (cy - center.y) ** 2, cell[0], cell[1]

            cell = min(free, key=cost)
            free.remove(cell)
            node.move_center_to(*cell_center(cell))
        return canvas_w, canvas_h
