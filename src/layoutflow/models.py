"""
Data models for diagram layout.

This module contains the dataclasses exchanged between the layout stages
and with callers:

Classes:
    DiagramType: Closed set of diagram shapes that select a layout template.
    RankDirection: Main axis of a layered layout (TB or LR).
    Ranker: Rank assignment flavor used by the layered engine.
    LayoutConfig: Immutable layout parameters with documented defaults.
    Node: A diagram node with its size and (once laid out) position.
    Edge: A directed connection and its routed polyline.
    Graph: Ordered node set plus edge list, with integrity validation.
    Layout: Positioned nodes and routed edges on an effective canvas.
    Bounds: Tight bounding box of all node rectangles.
    LayoutMetrics: Quality figures of a finished layout.
    LayoutRequest: Graph, diagram type and config for a single layout call.
"""

import copy
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .geometry import Point, Rect, bounding_rect


class ValidationError(Exception):
    """Raised when a graph or layout request is structurally invalid."""

    pass


class DiagramType(str, Enum):
    """Diagram shapes understood by the layout pipeline."""

    FLOW = "flow"
    TREE = "tree"
    TIMELINE = "timeline"
    MATRIX = "matrix"
    CYCLE = "cycle"
    GENERIC = "generic"

    @classmethod
    def from_value(cls, value: Any) -> "DiagramType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(
                f"Unknown diagram type {value!r}; expected one of: {allowed}"
            ) from None


class RankDirection(str, Enum):
    """Main axis of a layered layout."""

    TB = "TB"  # ranks stacked top to bottom
    LR = "LR"  # ranks stacked left to right

    @classmethod
    def from_value(cls, value: Any) -> "RankDirection":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(
                "rank direction must be 'TB' (top-to-bottom) or "
                "'LR' (left-to-right)"
            ) from None


class Ranker(str, Enum):
    """
    Rank assignment flavor.

    LONGEST_PATH keeps every node at its longest distance from a source, so
    levels reflect depth from the roots. TIGHT starts from the same ranks and
    then pulls source nodes down next to their nearest successor, which keeps
    edges short in general flow diagrams.
    """

    LONGEST_PATH = "longest-path"
    TIGHT = "tight"


# Request-schema (camelCase) key -> LayoutConfig field name.
_CONFIG_KEYS = {
    "width": "width",
    "height": "height",
    "nodeWidth": "node_width",
    "nodeHeight": "node_height",
    "marginX": "margin_x",
    "marginY": "margin_y",
    "nodeSeparation": "node_separation",
    "edgeSeparation": "edge_separation",
    "rankSeparation": "rank_separation",
    "rankDirection": "rank_direction",
    "charWidth": "char_width",
    "labelPadding": "label_padding",
    "componentSeparation": "component_separation",
    "orderingPasses": "ordering_passes",
    "maxIterations": "max_iterations",
    "separationDistance": "separation_distance",
    "maxDisplacement": "max_displacement",
    "canvasGrowth": "canvas_growth",
    "seed": "seed",
    "deadlineMs": "deadline_ms",
    "gridSnap": "grid_snap",
}


@dataclass(frozen=True)
class LayoutConfig:
    """
    Layout parameters. Immutable; use ``replace`` to derive a changed copy.

    Attributes:
        width: Canvas width.
        height: Canvas height.
        node_width: Base node width; label-derived widths are clamped to
            [node_width, 2 * node_width].
        node_height: Node height.
        margin_x: Horizontal canvas margin kept free of nodes.
        margin_y: Vertical canvas margin kept free of nodes.
        node_separation: Minimum gap between nodes of the same rank.
        edge_separation: Slot width reserved for an edge passing a rank.
        rank_separation: Minimum gap between consecutive ranks.
        rank_direction: TB (top-to-bottom) or LR (left-to-right).
        char_width: Estimated width of one label character.
        label_padding: Horizontal padding added around the label text.
        component_separation: Gap between disconnected components.
        ordering_passes: Barycenter sweep pairs (down + up) for ordering.
        max_iterations: Overlap resolver pass budget.
        separation_distance: Minimum clearance the resolver leaves between
            nodes it had to separate.
        max_displacement: Largest step a node may take in one resolver pass.
        canvas_growth: Factor by which the resolver grows the canvas per
            pass once half of the budget is spent with overlaps remaining,
            up to the size of a grid with one cell per node.
        seed: Seed for tie-breaking randomness.
        deadline_ms: Optional wall-clock budget for the resolver.
        grid_snap: Snap nodes to a grid when the force passes leave
            overlaps behind.
    """

    width: float = 1920
    height: float = 1080
    node_width: float = 120
    node_height: float = 60
    margin_x: float = 50
    margin_y: float = 50
    node_separation: float = 50
    edge_separation: float = 10
    rank_separation: float = 50
    rank_direction: RankDirection = RankDirection.TB
    char_width: float = 8
    label_padding: float = 20
    component_separation: float = 80
    ordering_passes: int = 4
    max_iterations: int = 300
    separation_distance: float = 40
    max_displacement: float = 60
    canvas_growth: float = 1.05
    seed: int = 0
    deadline_ms: Optional[float] = None
    grid_snap: bool = True

    def __post_init__(self):
        # Accept plain strings for the direction, store the enum.
        object.__setattr__(
            self, "rank_direction", RankDirection.from_value(self.rank_direction)
        )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "LayoutConfig":
        """
        Build a config from request-schema keys.

        Both the camelCase request keys and the snake_case field names are
        accepted. Unknown keys are rejected rather than silently dropped.

        Raises:
            ValueError: If a key is unknown.
        """
        if not data:
            return cls()

        field_names = {f.name for f in dataclasses.fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _CONFIG_KEYS.get(key, key)
            if name not in field_names:
                raise ValueError(f"Unknown layout config option: {key!r}")
            kwargs[name] = _coerce(name, value)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for key, name in _CONFIG_KEYS.items():
            value = getattr(self, name)
            if isinstance(value, RankDirection):
                value = value.value
            result[key] = value
        return result

    @property
    def clearance(self) -> float:
        """Gap kept between nodes the resolver separates."""
        return max(self.separation_distance, self.node_separation)

    def replace(self, **changes: Any) -> "LayoutConfig":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def validate(self) -> None:
        """
        Check the config for values no layout can be computed with.

        Raises:
            ValueError: Describing the first offending field.
        """
        for name in ("width", "height", "node_width", "node_height"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in (
            "margin_x",
            "margin_y",
            "node_separation",
            "edge_separation",
            "rank_separation",
            "char_width",
            "label_padding",
            "component_separation",
            "separation_distance",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")
        if self.width - 2 * self.margin_x <= 0 or self.height - 2 * self.margin_y <= 0:
            raise ValueError("margins leave no drawable area on the canvas")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.ordering_passes < 0:
            raise ValueError("ordering_passes must not be negative")
        if self.max_displacement <= 0:
            raise ValueError("max_displacement must be positive")
        if self.canvas_growth < 1:
            raise ValueError("canvas_growth must be at least 1")
        if self.deadline_ms is not None and self.deadline_ms <= 0:
            raise ValueError("deadline_ms must be positive when given")


_INT_FIELDS = {"ordering_passes", "max_iterations", "seed"}


def _coerce(name: str, value: Any) -> Any:
    """Convert a request value to the config field's type."""
    if name == "rank_direction" or (name == "deadline_ms" and value is None):
        return value
    if name == "grid_snap":
        if not isinstance(value, bool):
            raise ValueError(f"Invalid value for {name}: {value!r}")
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid value for {name}: {value!r}")
    try:
        return int(value) if name in _INT_FIELDS else float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for {name}: {value!r}") from None


def node_size_for_label(label: str, config: LayoutConfig) -> Tuple[float, float]:
    """
    Estimate a node's size from its label.

    Width grows with the label length and is clamped to
    [node_width, 2 * node_width]; height is the configured node height.
    """
    base_width = config.node_width
    text_width = len(label or "") * config.char_width + config.label_padding
    width = max(base_width, min(text_width, base_width * 2))
    return width, config.node_height


@dataclass
class Node:
    """
    A diagram node.

    Attributes:
        id: Unique identifier.
        label: Display text.
        width: Rectangle width (> 0).
        height: Rectangle height (> 0).
        x: Left edge, set by the engine.
        y: Top edge, set by the engine.
        rank: Layer index assigned by the layered engine.
        order: Position within the rank after crossing reduction.
        component: Index of the connected component the node belongs to.
    """

    id: str
    label: str = ""
    width: float = 120
    height: float = 60
    x: float = 0.0
    y: float = 0.0
    rank: int = 0
    order: int = 0
    component: int = 0

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    def move_center_to(self, cx: float, cy: float) -> None:
        self.x = cx - self.width / 2
        self.y = cy - self.height / 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "x": self.x,
            "y": self.y,
            "w": self.width,
            "h": self.height,
        }


@dataclass
class Edge:
    """
    A directed edge.

    Attributes:
        source: Id of the source node.
        target: Id of the target node.
        label: Optional edge label.
        points: Polyline from source to target, set by the engine.
        bends: Interior waypoints the polyline must pass through.
        reversed: True if the edge was reversed to break a cycle.
    """

    source: str
    target: str
    label: Optional[str] = None
    points: List[Point] = field(default_factory=list)
    bends: List[Point] = field(default_factory=list)
    reversed: bool = False

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"from": self.source, "to": self.target}
        if self.label is not None:
            result["label"] = self.label
        result["points"] = [p.to_dict() for p in self.points]
        return result


class Graph:
    """Directed graph of diagram nodes, kept in insertion order."""

    def __init__(self, nodes: Iterable[Node] = (), edges: Iterable[Edge] = ()):
        self.nodes: List[Node] = []
        self.edges: List[Edge] = []
        self._ids: Dict[str, int] = {}
        for node in nodes:
            self.add_node(node)
        for edge in edges:
            self.edges.append(edge)

    def add_node(self, node: Node) -> Node:
        """Add a node; ids must be unique."""
        if node.id in self._ids:
            raise ValidationError(f"Duplicate node id: {node.id!r}")
        self._ids[node.id] = len(self.nodes)
        self.nodes.append(node)
        return node

    def add_edge(self, source: str, target: str, label: Optional[str] = None) -> Edge:
        """Add a directed edge from source to target."""
        edge = Edge(source=source, target=target, label=label)
        self.edges.append(edge)
        return edge

    def has_node(self, node_id: str) -> bool:
        return node_id in self._ids

    def get_node(self, node_id: str) -> Node:
        return self.nodes[self._ids[node_id]]

    def index_of(self, node_id: str) -> int:
        """Insertion index of a node, used for deterministic tie-breaks."""
        return self._ids[node_id]

    def validate(self) -> None:
        """
        Check id uniqueness and referential integrity.

        Raises:
            ValidationError: If a node id repeats or an edge names a node id
                that does not exist.
        """
        seen = set()
        for node in self.nodes:
            if node.id in seen:
                raise ValidationError(f"Duplicate node id: {node.id!r}")
            seen.add(node.id)
        for edge in self.edges:
            for end in (edge.source, edge.target):
                if end not in seen:
                    raise ValidationError(
                        f"Edge {edge.source!r} -> {edge.target!r} references "
                        f"unknown node id {end!r}"
                    )

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass
class Bounds:
    """Tight bounding box of all node rectangles."""

    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def from_nodes(cls, nodes: Iterable[Node]) -> "Bounds":
        rect = bounding_rect(n.rect for n in nodes)
        if rect is None:
            return cls()
        return cls(
            min_x=rect.x,
            min_y=rect.y,
            max_x=rect.right,
            max_y=rect.bottom,
            width=rect.width,
            height=rect.height,
        )

    @property
    def rect(self) -> Rect:
        return Rect(self.min_x, self.min_y, self.width, self.height)

    def to_dict(self) -> Dict[str, float]:
        return {
            "minX": self.min_x,
            "minY": self.min_y,
            "maxX": self.max_x,
            "maxY": self.max_y,
            "width": self.width,
            "height": self.height,
        }


@dataclass
class LayoutMetrics:
    """Quality figures of a layout."""

    overlap_count: int = 0
    edge_crossings: int = 0
    average_node_spacing: float = 0.0
    layout_balance: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overlapCount": self.overlap_count,
            "edgeCrossings": self.edge_crossings,
            "averageNodeSpacing": self.average_node_spacing,
            "layoutBalance": self.layout_balance,
        }


@dataclass
class Layout:
    """
    Positioned nodes and routed edges.

    Attributes:
        nodes: Nodes with their final rectangles.
        edges: Edges with polylines.
        direction: Rank direction the edges are routed for, or None for
            geometric templates whose edges are straight chords.
        canvas_width: Effective canvas width (may exceed the configured one
            when the resolver had to grow it).
        canvas_height: Effective canvas height.
    """

    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    direction: Optional[RankDirection] = RankDirection.TB
    canvas_width: float = 0.0
    canvas_height: float = 0.0

    def copy(self) -> "Layout":
        """Deep copy, so a stage can change positions without touching its input."""
        return copy.deepcopy(self)

    def node_map(self) -> Dict[str, Node]:
        return {node.id: node for node in self.nodes}

    def ordered_nodes(self) -> List[Node]:
        """Nodes in the stable (component, rank, order) order of the layered pass."""
        indexed = list(enumerate(self.nodes))
        indexed.sort(key=lambda item: (item[1].component, item[1].rank, item[1].order, item[0]))
        return [node for _, node in indexed]

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {node.id: (node.x, node.y) for node in self.nodes}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


@dataclass
class LayoutRequest:
    """A single layout call: what to lay out, as which diagram type, and how."""

    graph: Graph
    diagram_type: DiagramType = DiagramType.GENERIC
    config: LayoutConfig = field(default_factory=LayoutConfig)
