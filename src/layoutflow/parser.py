"""
Parser module for layout requests.

Handles two kinds of input:
- LayoutRequest payloads (dicts, e.g. decoded JSON) from the content
  analysis collaborator
- A compact arrow notation ("A -> B", "A -> B : label") used by tests,
  demos and quick experiments
"""

import re
from typing import Any, List, Mapping, Optional, Tuple

from .models import (
    DiagramType,
    Graph,
    LayoutConfig,
    LayoutRequest,
    Node,
    ValidationError,
)

__all__ = [
    "ParseError",
    "ValidationError",
    "Parser",
    "parse_flowchart",
    "graph_from_text",
    "parse_request",
]


class ParseError(Exception):
    """Raised when arrow notation input parsing fails."""

    pass


Connection = Tuple[str, str, Optional[str]]


class Parser:
    """Parses arrow notation into nodes and connections."""

    # "A -> B" with an optional ": label" suffix
    EDGE_PATTERN = re.compile(
        r"^(?P<source>.*?)\s*->\s*(?P<target>.*?)(?:\s*:\s*(?P<label>.*))?$"
    )

    def __init__(self):
        self.nodes: List[str] = []
        self.connections: List[Connection] = []

    def parse(self, input_text: str) -> List[Connection]:
        """
        Parse input text and return (source, target, label) connections.

        Lines without an arrow declare a standalone node. Empty lines and
        lines starting with '#' are ignored. Node names are collected in
        order of first appearance in ``self.nodes``.

        Args:
            input_text: Multi-line string with lines like "A -> B" or
                "A -> B : label"

        Returns:
            List of (source, target, label) tuples; label may be None

        Raises:
            ParseError: If input format is invalid
        """
        self.nodes = []
        self.connections = []
        seen = set()

        def remember(name: str) -> None:
            if name not in seen:
                seen.add(name)
                self.nodes.append(name)

        for line_num, line in enumerate(input_text.strip().split("\n"), 1):
            stripped = line.strip()

            # Skip empty lines and comments
            if not stripped or stripped.startswith("#"):
                continue

            if "->" not in stripped:
                remember(stripped)
                continue

            if stripped.count("->") > 1:
                raise ParseError(
                    f"Line {line_num}: Invalid connection format: {stripped}"
                )

            match = self.EDGE_PATTERN.match(stripped)
            if not match:
                raise ParseError(f"Line {line_num}: Invalid connection format: {stripped}")

            source = match.group("source").strip()
            target = match.group("target").strip()
            label = match.group("label")
            if not source:
                raise ParseError(f"Line {line_num}: Empty source node")
            if not target:
                raise ParseError(f"Line {line_num}: Empty target node")

            remember(source)
            remember(target)
            self.connections.append((source, target, label.strip() if label else None))

        if not self.nodes:
            raise ParseError("No nodes found in input")

        return self.connections


def parse_flowchart(input_text: str) -> List[Connection]:
    """
    Convenience function to parse arrow notation.

    Args:
        input_text: Multi-line string with connections

    Returns:
        List of (source, target, label) tuples
    """
    parser = Parser()
    return parser.parse(input_text)


def graph_from_text(input_text: str) -> Graph:
    """
    Build a Graph from arrow notation; node ids double as labels.

    Raises:
        ParseError: If input format is invalid
    """
    parser = Parser()
    connections = parser.parse(input_text)
    graph = Graph(Node(id=name, label=name) for name in parser.nodes)
    for source, target, label in connections:
        graph.add_edge(source, target, label)
    return graph


def _require_list(payload: Mapping[str, Any], key: str) -> List[Any]:
    value = payload.get(key, [])
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"'{key}' must be a list, got {type(value).__name__}")
    return list(value)


def _require_id(item: Mapping[str, Any], key: str, where: str) -> str:
    value = item.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{where}: '{key}' must be a non-empty string")
    return value


def parse_request(
    payload: Mapping[str, Any], default_config: Optional[LayoutConfig] = None
) -> LayoutRequest:
    """
    Validate a LayoutRequest payload and convert it to model objects.

    Expected shape::

        {
            "diagramType": "flow",
            "nodes": [{"id": "a", "label": "Start"}],
            "edges": [{"from": "a", "to": "b", "label": "next"}],
            "config": {"width": 1920, "rankDirection": "TB"}
        }

    Args:
        payload: Decoded request.
        default_config: Config used when the payload has none. Missing
            config keys otherwise take the LayoutConfig defaults.

    Returns:
        LayoutRequest with a validated graph and config.

    Raises:
        ValidationError: If the payload is malformed, a node id repeats or
            an edge references an unknown node.
        ValueError: If the config holds unknown keys or invalid values.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Layout request must be a mapping")

    diagram_type = DiagramType.from_value(payload.get("diagramType", DiagramType.GENERIC))

    graph = Graph()
    for i, item in enumerate(_require_list(payload, "nodes")):
        if not isinstance(item, Mapping):
            raise ValidationError(f"nodes[{i}] must be an object")
        node_id = _require_id(item, "id", f"nodes[{i}]")
        label = item.get("label")
        graph.add_node(Node(id=node_id, label=str(label) if label is not None else node_id))

    for i, item in enumerate(_require_list(payload, "edges")):
        if not isinstance(item, Mapping):
            raise ValidationError(f"edges[{i}] must be an object")
        source = _require_id(item, "from", f"edges[{i}]")
        target = _require_id(item, "to", f"edges[{i}]")
        label = item.get("label")
        graph.add_edge(source, target, str(label) if label is not None else None)

    graph.validate()

    raw_config = payload.get("config")
    if raw_config is None and default_config is not None:
        config = default_config
    else:
        config = LayoutConfig.from_dict(raw_config)
    config.validate()

    return LayoutRequest(graph=graph, diagram_type=diagram_type, config=config)
