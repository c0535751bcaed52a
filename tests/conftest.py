"""Pytest configuration and shared fixtures for LayoutFlow tests."""

import pytest

from layoutflow import Graph, LayoutConfig, LayoutEngine, Node, graph_from_text


@pytest.fixture
def simple_input():
    """Simple linear chain input."""
    return """
    A -> B
    B -> C
    """


@pytest.fixture
def branching_input():
    """Branching flowchart input."""
    return """
    Start -> Process1
    Start -> Process2
    Process1 -> End
    Process2 -> End
    """


@pytest.fixture
def cyclic_input():
    """Flowchart with a cycle."""
    return """
    A -> B
    B -> C
    C -> A
    """


@pytest.fixture
def complex_input():
    """Complex flowchart with multiple paths and a loop back."""
    return """
    Init -> Validate
    Validate -> Process
    Validate -> Error
    Process -> Transform
    Transform -> Output
    Error -> Retry
    Retry -> Validate
    Output -> Done
    """


@pytest.fixture
def config():
    """Default layout configuration."""
    return LayoutConfig()


@pytest.fixture
def small_config():
    """Small canvas for tests that render or crowd nodes."""
    return LayoutConfig(width=400, height=300, margin_x=20, margin_y=20)


@pytest.fixture
def engine():
    """Default LayoutEngine instance."""
    return LayoutEngine()


@pytest.fixture
def simple_graph(simple_input):
    """Pre-built linear graph A -> B -> C."""
    return graph_from_text(simple_input)


@pytest.fixture
def branching_graph(branching_input):
    """Pre-built diamond graph."""
    return graph_from_text(branching_input)


@pytest.fixture
def cyclic_graph(cyclic_input):
    """Pre-built three-node cycle."""
    return graph_from_text(cyclic_input)


@pytest.fixture
def complex_graph(complex_input):
    """Pre-built graph with a loop back to Validate."""
    return graph_from_text(complex_input)


@pytest.fixture
def isolated_graph():
    """Five nodes without edges."""
    return Graph(Node(id=f"n{i}", label=f"Node {i}") for i in range(5))


@pytest.fixture
def make_request():
    """Factory for LayoutRequest payload dicts."""

    def build(diagram_type="flow", nodes=(), edges=(), config=None):
        payload = {
            "diagramType": diagram_type,
            "nodes": [{"id": n, "label": n} for n in nodes],
            "edges": [{"from": s, "to": t} for s, t in edges],
        }
        if config is not None:
            payload["config"] = config
        return payload

    return build
