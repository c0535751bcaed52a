"""
LayoutFlow - Overlap-free diagram layouts

A Python library that positions the nodes and edges of flow, tree,
timeline, matrix and cycle diagrams, using a layered (Sugiyama) layout for
hierarchical types and geometric templates for the rest.

Example:
    >>> from layoutflow import LayoutEngine, graph_from_text
    >>> engine = LayoutEngine()
    >>> result = engine.layout(graph_from_text('''
    ...     A -> B
    ...     B -> C
    ... '''), "flow")
    >>> result.metrics.overlap_count
    0

Debug Mode Example:
    >>> engine = LayoutEngine(debug=True)
    >>> result = engine.layout_request({"diagramType": "cycle", "nodes": [...]})
    >>> print(engine.get_trace().summary())
"""

import logging

from .arranger import TypeSpecificArranger
from .engine import LayoutEngine, LayoutResult, LayoutState, generate_layout, layout_many
from .export import LayoutExporter
from .geometry import Point, Rect
from .layout import LayeredLayoutEngine
from .metrics import MetricsEvaluator
from .models import (
    Bounds,
    DiagramType,
    Edge,
    Graph,
    Layout,
    LayoutConfig,
    LayoutMetrics,
    LayoutRequest,
    Node,
    RankDirection,
    Ranker,
    ValidationError,
)
from .parser import ParseError, Parser, graph_from_text, parse_flowchart, parse_request
from .resolver import OverlapResolver, ResolutionProgress, ResolutionResult
from .tracer import LayoutTrace, PipelineStage

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Main API
    "LayoutEngine",
    "LayoutResult",
    "LayoutState",
    "generate_layout",
    "layout_many",
    # Models
    "Graph",
    "Node",
    "Edge",
    "Layout",
    "LayoutConfig",
    "LayoutRequest",
    "LayoutMetrics",
    "Bounds",
    "DiagramType",
    "RankDirection",
    "Ranker",
    "Point",
    "Rect",
    # Parser
    "Parser",
    "ParseError",
    "ValidationError",
    "parse_flowchart",
    "parse_request",
    "graph_from_text",
    # Pipeline stages
    "LayeredLayoutEngine",
    "TypeSpecificArranger",
    "OverlapResolver",
    "ResolutionProgress",
    "ResolutionResult",
    "MetricsEvaluator",
    # Export
    "LayoutExporter",
    # Debug/Tracing
    "LayoutTrace",
    "PipelineStage",
]
