"""Tests for the parser module."""

import pytest

from layoutflow.models import DiagramType, LayoutConfig, RankDirection
from layoutflow.parser import (
    ParseError,
    Parser,
    ValidationError,
    graph_from_text,
    parse_flowchart,
    parse_request,
)


class TestParser:
    """Tests for the arrow notation parser."""

    def test_simple_connections(self, simple_input):
        """Each line becomes a connection without label."""
        connections = parse_flowchart(simple_input)
        assert connections == [("A", "B", None), ("B", "C", None)]

    def test_edge_label(self):
        connections = parse_flowchart("A -> B : yes")
        assert connections == [("A", "B", "yes")]

    def test_node_order_is_first_appearance(self):
        parser = Parser()
        parser.parse("B -> C\nA -> B\nD")
        assert parser.nodes == ["B", "C", "A", "D"]

    def test_standalone_node(self):
        parser = Parser()
        assert parser.parse("Lonely") == []
        assert parser.nodes == ["Lonely"]

    def test_comments_and_blank_lines(self):
        connections = parse_flowchart("# heading\n\nA -> B\n   \n# done")
        assert connections == [("A", "B", None)]

    def test_names_with_spaces(self):
        connections = parse_flowchart("Load data -> Clean data")
        assert connections == [("Load data", "Clean data", None)]

    def test_chained_arrows_rejected(self):
        with pytest.raises(ParseError, match="Line 1"):
            parse_flowchart("A -> B -> C")

    def test_empty_target(self):
        with pytest.raises(ParseError, match="Empty target"):
            parse_flowchart("A ->")

    def test_empty_source(self):
        with pytest.raises(ParseError, match="Empty source"):
            parse_flowchart("-> B")

    def test_empty_input(self):
        with pytest.raises(ParseError, match="No nodes"):
            parse_flowchart("   \n# only a comment")

    def test_graph_from_text(self, branching_input):
        """Node ids double as labels."""
        graph = graph_from_text(branching_input)
        assert [n.id for n in graph.nodes] == ["Start", "Process1", "Process2", "End"]
        assert graph.get_node("End").label == "End"
        assert len(graph.edges) == 4


class TestParseRequest:
    """Tests for LayoutRequest payload parsing."""

    def test_full_request(self):
        request = parse_request(
            {
                "diagramType": "tree",
                "nodes": [{"id": "a", "label": "Root"}, {"id": "b"}],
                "edges": [{"from": "a", "to": "b", "label": "child"}],
                "config": {"width": 800, "rankDirection": "LR"},
            }
        )
        assert request.diagram_type == DiagramType.TREE
        assert request.graph.get_node("a").label == "Root"
        assert request.graph.get_node("b").label == "b"
        assert request.graph.edges[0].label == "child"
        assert request.config.width == 800
        assert request.config.rank_direction == RankDirection.LR

    def test_defaults(self):
        """Missing type and config fall back to generic and defaults."""
        request = parse_request({"nodes": [{"id": "a"}]})
        assert request.diagram_type == DiagramType.GENERIC
        assert request.config == LayoutConfig()

    def test_default_config_used_without_config(self):
        base = LayoutConfig(width=500, height=500)
        request = parse_request({"nodes": []}, default_config=base)
        assert request.config is base

    def test_unknown_node_reference(self):
        with pytest.raises(ValidationError, match="'X'"):
            parse_request({"nodes": [{"id": "a"}], "edges": [{"from": "X", "to": "a"}]})

    def test_duplicate_node_id(self):
        with pytest.raises(ValidationError, match="Duplicate"):
            parse_request({"nodes": [{"id": "a"}, {"id": "a"}]})

    def test_missing_node_id(self):
        with pytest.raises(ValidationError, match=r"nodes\[0\]"):
            parse_request({"nodes": [{"label": "no id"}]})

    def test_nodes_must_be_list(self):
        with pytest.raises(ValidationError, match="'nodes' must be a list"):
            parse_request({"nodes": "a,b"})

    def test_payload_must_be_mapping(self):
        with pytest.raises(ValidationError):
            parse_request(["a", "b"])

    def test_unknown_diagram_type(self):
        with pytest.raises(ValidationError, match="Unknown diagram type"):
            parse_request({"diagramType": "pie", "nodes": []})

    def test_invalid_config(self):
        """Config problems surface as ValueError."""
        with pytest.raises(ValueError, match="width"):
            parse_request({"nodes": [], "config": {"width": -5}})
