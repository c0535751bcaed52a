"""
Debug tracing for the layout pipeline.

When debug mode is enabled, the engine records every pipeline stage with a
snapshot of the node positions at that point, plus the progress of every
overlap resolver pass.

This is primarily useful for:
1. Understanding why a node ended up where it did
2. Watching the resolver converge (or fail to)
3. Writing targeted tests against intermediate stages

Usage:
    >>> engine = LayoutEngine(debug=True)
    >>> result = engine.layout(graph, DiagramType.FLOW)
    >>> trace = engine.get_trace()
    >>> print(trace.summary())
    >>> trace.dump_to_file("layout_trace.txt")
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .models import Layout
from .resolver import ResolutionProgress


@dataclass
class PipelineStage:
    """
    Snapshot of state at a pipeline stage.

    The layout pipeline has these stages:
    1. validated - Input graph and config accepted
    2. ranking_ordering - Layered layout computed
    3. type_adaptation - Diagram-type template applied
    4. overlap_resolution - Overlaps removed
    5. metrics_and_bounds - Metrics and bounds computed

    Attributes:
        name: Name of this pipeline stage
        data: Dictionary of relevant data at this stage
        positions: Optional node id -> (x, y) snapshot
    """

    name: str
    data: Dict[str, Any]
    positions: Optional[Dict[str, Tuple[float, float]]] = None

    def __str__(self) -> str:
        lines = [f"=== Stage: {self.name} ==="]
        for key, value in self.data.items():
            # Truncate long values
            str_val = str(value)
            if len(str_val) > 100:
                str_val = str_val[:100] + "..."
            lines.append(f"  {key}: {str_val}")
        if self.positions:
            lines.append("  Node positions (first 15):")
            for node_id, (x, y) in list(self.positions.items())[:15]:
                lines.append(f"    {node_id}: ({x:.1f}, {y:.1f})")
        return "\n".join(lines)


@dataclass
class LayoutTrace:
    """
    Complete trace of one layout call.

    Attributes:
        stages: Pipeline stages in execution order
        iterations: Progress of every overlap resolver pass
        diagram_type: Diagram type of the request
        direction: Rank direction of the request
    """

    stages: List[PipelineStage] = field(default_factory=list)
    iterations: List[ResolutionProgress] = field(default_factory=list)
    diagram_type: str = ""
    direction: str = "TB"

    def add_stage(
        self,
        name: str,
        data: Dict[str, Any],
        layout: Optional[Layout] = None,
    ) -> None:
        """
        Add a pipeline stage snapshot.

        Args:
            name: Name of the stage (e.g., "ranking_ordering")
            data: Dictionary of relevant data at this stage
            layout: Optional layout whose node positions are captured
        """
        positions = layout.positions() if layout is not None else None
        self.stages.append(PipelineStage(name, data.copy(), positions))

    def add_iteration(self, progress: ResolutionProgress) -> None:
        """Record one resolver pass."""
        self.iterations.append(progress)

    def get_stage(self, name: str) -> Optional[PipelineStage]:
        """Get a specific pipeline stage by name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def get_positions_at_stage(
        self, name: str
    ) -> Optional[Dict[str, Tuple[float, float]]]:
        """Get the node positions captured at a specific stage."""
        stage = self.get_stage(name)
        if stage and stage.positions:
            return stage.positions
        return None

    def summary(self) -> str:
        """
        Generate a human-readable summary of the trace.

        Returns a string with:
        - Diagram type and direction
        - Pipeline stages overview
        - Resolver convergence overview
        """
        lines = [
            "=" * 60,
            "LAYOUT TRACE SUMMARY",
            "=" * 60,
            "",
            f"Diagram type: {self.diagram_type}",
            f"Direction: {self.direction}",
            "",
            f"Pipeline stages: {len(self.stages)}",
        ]

        for stage in self.stages:
            has_positions = "+" if stage.positions else "-"
            lines.append(f"  [{has_positions}] {stage.name}")

        lines.extend(["", f"Resolver passes: {len(self.iterations)}"])
        if self.iterations:
            first = self.iterations[0]
            last = self.iterations[-1]
            lines.append(
                f"Overlaps: {first.overlap_count} after pass 1, "
                f"{last.overlap_count} after pass {last.iteration}"
            )

        return "\n".join(lines)

    def dump(self) -> str:
        """
        Generate a complete human-readable dump of the trace.

        This includes all stages with their data and every resolver pass.
        """
        lines = [self.summary(), "", "=" * 60, "DETAILED TRACE", "=" * 60, ""]

        lines.append("PIPELINE STAGES:")
        lines.append("-" * 40)
        for stage in self.stages:
            lines.append(str(stage))
            lines.append("")

        lines.append("RESOLVER PASSES:")
        lines.append("-" * 40)
        for p in self.iterations:
            lines.append(
                f"pass {p.iteration}: overlaps={p.overlap_count} "
                f"conflicts={p.conflict_count} max_step={p.max_step:.2f} "
                f"canvas={p.canvas_width:.0f}x{p.canvas_height:.0f}"
            )

        return "\n".join(lines)

    def dump_to_file(self, filename: str) -> None:
        """Write the complete trace dump to a file."""
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.dump())
