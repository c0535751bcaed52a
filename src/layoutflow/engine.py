"""
Main layout engine module.

Combines the layered layout, the diagram-type templates, overlap
resolution and metrics into one call that turns a graph into a positioned,
overlap-free layout.
"""

import logging
import time
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .arranger import TypeSpecificArranger
from .geometry import Point
from .layout import LayeredLayoutEngine
from .metrics import MetricsEvaluator
from .models import (
    Bounds,
    DiagramType,
    Graph,
    Layout,
    LayoutConfig,
    LayoutMetrics,
    Ranker,
    ValidationError,
)
from .parser import ParseError, graph_from_text, parse_request
from .resolver import OverlapResolver, ResolutionProgress
from .tracer import LayoutTrace

logger = logging.getLogger(__name__)


class LayoutState(str, Enum):
    """Pipeline states of a single layout call."""

    IDLE = "idle"
    RANKING_ORDERING = "ranking_ordering"
    TYPE_ADAPTATION = "type_adaptation"
    OVERLAP_RESOLUTION = "overlap_resolution"
    METRICS_AND_BOUNDS = "metrics_and_bounds"
    DONE = "done"
    FAILED = "failed"


@dataclass
class LayoutResult:
    """
    Result of a layout call.

    Attributes:
        success: False only for invalid input.
        layout: Positioned nodes and routed edges.
        bounds: Bounding box of all node rectangles.
        metrics: Quality metrics of the layout.
        processing_time_ms: Wall-clock time spent in the call.
        error: Description of the input problem when success is False.
        converged: True when no two nodes overlap. A successful result may
            still report False when the resolver ran out of budget.
        iterations: Overlap resolver passes used.
        state: Final pipeline state (DONE or FAILED).
    """

    success: bool
    layout: Optional[Layout] = None
    bounds: Optional[Bounds] = None
    metrics: Optional[LayoutMetrics] = None
    processing_time_ms: float = 0.0
    error: Optional[str] = None
    converged: bool = False
    iterations: int = 0
    state: LayoutState = LayoutState.IDLE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the LayoutResult exchange schema."""
        result: Dict[str, Any] = {"success": self.success}
        if self.layout is not None:
            result["layout"] = self.layout.to_dict()
            result["canvas"] = {
                "width": self.layout.canvas_width,
                "height": self.layout.canvas_height,
            }
        if self.bounds is not None:
            result["bounds"] = self.bounds.to_dict()
        if self.metrics is not None:
            result["metrics"] = self.metrics.to_dict()
        result["processingTimeMs"] = self.processing_time_ms
        if self.error is not None:
            result["error"] = self.error
        result["converged"] = self.converged
        result["iterations"] = self.iterations
        return result


class LayoutEngine:
    """
    Lay out diagrams.

    Each call runs its own pipeline from IDLE and reports the final state on
    the LayoutResult. The engine only holds the default config, the hook and
    the trace of the most recent call, so a shared instance is safe for
    layouts but ``get_trace`` should be read from the calling thread only.
    ``layout_many`` lays out several diagrams in parallel.

    Example:
        >>> engine = LayoutEngine()
        >>> result = engine.layout(graph_from_text("A -> B\\nB -> C"), "flow")
        >>> result.metrics.overlap_count
        0
    """

    def __init__(
        self,
        config: Optional[LayoutConfig] = None,
        on_iteration: Optional[Callable[[ResolutionProgress], None]] = None,
        debug: bool = False,
    ):
        """
        Initialize the layout engine.

        Args:
            config: Default configuration for calls that do not pass one.
            on_iteration: Optional callback invoked after every overlap
                resolver pass.
            debug: Record a LayoutTrace of every call (see get_trace).
        """
        self.config = config or LayoutConfig()
        self.on_iteration = on_iteration
        self.debug = debug

        self.layered_engine = LayeredLayoutEngine()
        self.arranger = TypeSpecificArranger()
        self.evaluator = MetricsEvaluator()
        self._trace: Optional[LayoutTrace] = None

    def update_config(self, **changes: Any) -> LayoutConfig:
        """Replace the default configuration with a changed copy."""
        self.config = self.config.replace(**changes)
        logger.debug("Layout configuration updated: %s", sorted(changes))
        return self.config

    def get_trace(self) -> Optional[LayoutTrace]:
        """Trace of the last call, or None when debug mode is off."""
        return self._trace

    def layout_request(self, payload: Mapping[str, Any]) -> LayoutResult:
        """
        Lay out a LayoutRequest payload.

        Args:
            payload: Request dict with diagramType, nodes, edges and an
                optional config. Without a config the engine default is used.

        Returns:
            LayoutResult; success is False for malformed requests.
        """
        start = time.perf_counter()
        try:
            request = parse_request(payload, default_config=self.config)
        except (ValidationError, ValueError) as exc:
            return self._fail(str(exc), start)
        return self.layout(request.graph, request.diagram_type, request.config)

    def layout_text(
        self,
        input_text: str,
        diagram_type: Union[DiagramType, str] = DiagramType.FLOW,
        config: Optional[LayoutConfig] = None,
    ) -> LayoutResult:
        """Lay out a graph given in arrow notation ("A -> B" per line)."""
        start = time.perf_counter()
        try:
            graph = graph_from_text(input_text)
        except (ParseError, ValidationError) as exc:
            return self._fail(str(exc), start)
        return self.layout(graph, diagram_type, config)

    def layout(
        self,
        graph: Graph,
        diagram_type: Union[DiagramType, str] = DiagramType.GENERIC,
        config: Optional[LayoutConfig] = None,
    ) -> LayoutResult:
        """
        Lay out a graph.

        Args:
            graph: Nodes and edges. Not modified.
            diagram_type: Diagram type hint (enum member or its value).
            config: Configuration for this call; the engine default is used
                when None.

        Returns:
            LayoutResult. Invalid input (unknown node reference, bad config,
            unknown diagram type) gives success=False and state FAILED.
        """
        start = time.perf_counter()
        cfg = config or self.config
        trace = LayoutTrace(direction=cfg.rank_direction.value) if self.debug else None
        self._trace = trace

        try:
            diagram_type = DiagramType.from_value(diagram_type)
            cfg.validate()
            graph.validate()
        except (ValidationError, ValueError) as exc:
            return self._fail(str(exc), start)

        logger.debug(
            "Generating %s layout for %d nodes, %d edges",
            diagram_type.value,
            len(graph.nodes),
            len(graph.edges),
        )
        if trace is not None:
            trace.diagram_type = diagram_type.value
            trace.add_stage(
                "validated",
                {"nodes": len(graph.nodes), "edges": len(graph.edges), "config": cfg.to_dict()},
            )

        state = LayoutState.RANKING_ORDERING
        ranker = Ranker.LONGEST_PATH if diagram_type == DiagramType.TREE else Ranker.TIGHT
        layered = self.layered_engine.layout(graph, cfg, ranker)
        if trace is not None:
            trace.add_stage(
                state.value,
                {
                    "ranker": ranker.value,
                    "ranks": max((n.rank for n in layered.nodes), default=-1) + 1,
                    "reversed_edges": sum(1 for e in layered.edges if e.reversed),
                },
                layered,
            )

        state = LayoutState.TYPE_ADAPTATION
        adapted = self.arranger.adapt(layered, diagram_type, cfg)
        if trace is not None:
            trace.add_stage(state.value, {"diagram_type": diagram_type.value}, adapted)

        state = LayoutState.OVERLAP_RESOLUTION
        resolver = OverlapResolver(on_iteration=self._iteration_hook(trace))
        resolution = resolver.resolve(adapted, cfg)
        final = resolution.layout
        if trace is not None:
            trace.add_stage(
                state.value,
                {
                    "iterations": resolution.iterations,
                    "converged": resolution.converged,
                    "canvas_grown": resolution.canvas_grown,
                    "deadline_expired": resolution.deadline_expired,
                    "grid_snapped": resolution.grid_snapped,
                },
                final,
            )

        state = LayoutState.METRICS_AND_BOUNDS
        _contain(final)
        metrics = self.evaluator.evaluate(final)
        bounds = Bounds.from_nodes(final.nodes)
        if trace is not None:
            trace.add_stage(
                state.value,
                {"metrics": metrics.to_dict(), "bounds": bounds.to_dict()},
            )

        state = LayoutState.DONE
        elapsed = (time.perf_counter() - start) * 1000.0
        logger.debug(
            "Layout completed in %.1fms (overlaps=%d, crossings=%d)",
            elapsed,
            metrics.overlap_count,
            metrics.edge_crossings,
        )
        return LayoutResult(
            success=True,
            layout=final,
            bounds=bounds,
            metrics=metrics,
            processing_time_ms=elapsed,
            converged=resolution.converged,
            iterations=resolution.iterations,
            state=state,
        )

    def _iteration_hook(
        self, trace: Optional[LayoutTrace]
    ) -> Optional[Callable[[ResolutionProgress], None]]:
        if trace is None and self.on_iteration is None:
            return None

        def hook(progress: ResolutionProgress) -> None:
            if trace is not None:
                trace.add_iteration(progress)
            if self.on_iteration is not None:
                self.on_iteration(progress)

        return hook

    def _fail(self, message: str, start: float) -> LayoutResult:
        logger.info("Layout request rejected: %s", message)
        return LayoutResult(
            success=False,
            processing_time_ms=(time.perf_counter() - start) * 1000.0,
            error=message,
            state=LayoutState.FAILED,
        )


def _contain(layout: Layout) -> None:
    """
    Make the canvas cover every node rectangle.

    Nodes left of or above the origin shift the whole drawing into view; the
    canvas grows to the far edge of the drawing when needed.
    """
    if not layout.nodes:
        return
    bounds = Bounds.from_nodes(layout.nodes)
    dx = max(0.0, -bounds.min_x)
    dy = max(0.0, -bounds.min_y)
    if dx or dy:
        for node in layout.nodes:
            node.x += dx
            node.y += dy
        for edge in layout.edges:
            edge.points = [Point(p.x + dx, p.y + dy) for p in edge.points]
            edge.bends = [Point(p.x + dx, p.y + dy) for p in edge.bends]
    layout.canvas_width = max(layout.canvas_width, bounds.max_x + dx)
    layout.canvas_height = max(layout.canvas_height, bounds.max_y + dy)


def generate_layout(
    payload: Mapping[str, Any], config: Optional[LayoutConfig] = None
) -> LayoutResult:
    """
    Convenience function to lay out one LayoutRequest payload.

    Args:
        payload: Request dict.
        config: Default configuration when the payload carries none.

    Returns:
        LayoutResult
    """
    return LayoutEngine(config=config).layout_request(payload)


def layout_many(
    payloads: Iterable[Mapping[str, Any]],
    max_workers: Optional[int] = None,
    use_processes: bool = False,
    config: Optional[LayoutConfig] = None,
) -> List[LayoutResult]:
    """
    Lay out several independent diagrams in parallel.

    Each payload gets its own engine, so calls share no state. Results come
    back in input order.

    Args:
        payloads: Request dicts, e.g. one per video scene.
        max_workers: Pool size; the executor default when None.
        use_processes: Use a process pool instead of a thread pool.
        config: Default configuration for payloads without one.

    Returns:
        List of LayoutResult, one per payload.
    """
    payloads = list(payloads)
    if not payloads:
        return []
    executor_cls = ProcessPoolExecutor if use_processes else ThreadPoolExecutor
    with executor_cls(max_workers=max_workers) as executor:
        return list(executor.map(generate_layout, payloads, [config] * len(payloads)))
