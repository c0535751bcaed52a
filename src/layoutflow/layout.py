"""
Layered (Sugiyama-style) layout using networkx.

Uses networkx for:
- Graph representation
- Weakly connected components
- Deterministic topological ordering for rank assignment

Phases, per connected component:
1. Cycle breaking (DFS back edges are reversed)
2. Rank assignment (longest path, optionally tightened)
3. Virtual node insertion for edges spanning several ranks
4. Crossing reduction (barycenter heuristic, alternating sweeps)
5. Coordinate assignment along the main and cross axes

Components are then stacked along the cross axis and edges are routed.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Set, Tuple

import networkx as nx

from .geometry import Point
from .models import (
    Edge,
    Graph,
    Layout,
    LayoutConfig,
    Node,
    RankDirection,
    Ranker,
    node_size_for_label,
)
from .routing import route_edge

logger = logging.getLogger(__name__)

VIRTUAL_PREFIX = "__virtual_"


@dataclass
class LayerAssignment:
    """
    Result of ranking and ordering one connected component.

    Attributes:
        layers: Node ids per rank, in crossing-reduced order. Includes
            virtual nodes.
        ranks: Rank of every (real and virtual) node.
        back_edges: Original edges that were reversed to break cycles.
        chains: Virtual node ids for each long edge, keyed by the edge in
            its acyclic orientation.
        has_cycles: Whether the component contained a cycle.
    """

    layers: List[List[str]] = field(default_factory=list)
    ranks: Dict[str, int] = field(default_factory=dict)
    back_edges: Set[Tuple[str, str]] = field(default_factory=set)
    chains: Dict[Tuple[str, str], List[str]] = field(default_factory=dict)
    has_cycles: bool = False


def is_virtual(node_id: str) -> bool:
    return node_id.startswith(VIRTUAL_PREFIX)


class LayeredLayoutEngine:
    """
    Layered graph layout.

    For DAGs: longest-path layering from the sources.
    For cyclic graphs: finds DFS back edges, reverses them, then layers.

    The engine keeps no state between calls; one instance may serve
    several threads.
    """

    def layout(
        self,
        graph: Graph,
        config: LayoutConfig,
        ranker: Ranker = Ranker.TIGHT,
    ) -> Layout:
        """
        Compute a layered layout.

        Node sizes are derived from the labels; the caller's graph is not
        modified.

        Args:
            graph: Validated input graph.
            config: Layout configuration.
            ranker: Rank assignment flavor.

        Returns:
            Layout with positioned nodes and routed edges. Empty when the
            graph has no nodes.
        """
        direction = config.rank_direction
        result = Layout(
            direction=direction,
            canvas_width=config.width,
            canvas_height=config.height,
        )
        if not graph.nodes:
            return result

        index = {node.id: i for i, node in enumerate(graph.nodes)}
        nodes: Dict[str, Node] = {}
        for node in graph.nodes:
            width, height = node_size_for_label(node.label, config)
            nodes[node.id] = Node(id=node.id, label=node.label, width=width, height=height)

        digraph = nx.DiGraph()
        digraph.add_nodes_from(n.id for n in graph.nodes)
        digraph.add_edges_from(
            (e.source, e.target) for e in graph.edges if not e.is_self_loop
        )
        back_edges: Set[Tuple[str, str]] = set()
        virtual_ids = itertools.count()

        components = sorted(
            nx.weakly_connected_components(digraph),
            key=lambda comp: min(index[n] for n in comp),
        )

        # Component-local coordinates, then stacked along the cross axis.
        positions: Dict[str, Tuple[float, float]] = {}
        virtual_centers: Dict[str, Tuple[float, float]] = {}
        chains: Dict[Tuple[str, str], List[str]] = {}
        cross_offset = 0.0
        main_extent = 0.0

        for comp_idx, component in enumerate(components):
            subgraph = digraph.subgraph(component)
            assignment = self._rank_and_order(subgraph, index, config, ranker, virtual_ids)
            back_edges |= assignment.back_edges
            chains.update(assignment.chains)

            for layer in assignment.layers:
                for pos_idx, node_id in enumerate(layer):
                    if not is_virtual(node_id):
                        node = nodes[node_id]
                        node.rank = assignment.ranks[node_id]
                        node.order = pos_idx
                        node.component = comp_idx

            local, centers, cross_size, main_size = self._assign_coordinates(
                assignment, nodes, config
            )
            for node_id, (main_pos, cross_pos) in local.items():
                positions[node_id] = (main_pos, cross_pos + cross_offset)
            for node_id, (main_pos, cross_pos) in centers.items():
                virtual_centers[node_id] = (main_pos, cross_pos + cross_offset)

            cross_offset += cross_size + config.component_separation
            main_extent = max(main_extent, main_size)

        cross_extent = cross_offset - config.component_separation
        if direction == RankDirection.LR:
            total_w, total_h = main_extent, cross_extent
        else:
            total_w, total_h = cross_extent, main_extent

        # Offset by the margins, centered on the canvas when it fits.
        origin_x = config.margin_x + max(0.0, (config.width - 2 * config.margin_x - total_w) / 2)
        origin_y = config.margin_y + max(0.0, (config.height - 2 * config.margin_y - total_h) / 2)
        result.canvas_width = max(config.width, total_w + 2 * config.margin_x)
        result.canvas_height = max(config.height, total_h + 2 * config.margin_y)

        def to_xy(main_pos: float, cross_pos: float) -> Tuple[float, float]:
            if direction == RankDirection.LR:
                return origin_x + main_pos, origin_y + cross_pos
            return origin_x + cross_pos, origin_y + main_pos

        for node in graph.nodes:
            laid = nodes[node.id]
            laid.x, laid.y = to_xy(*positions[node.id])
            result.nodes.append(laid)

        bend_points = {vid: Point(*to_xy(*mc)) for vid, mc in virtual_centers.items()}
        for edge in graph.edges:
            result.edges.append(
                self._route(edge, nodes, chains, back_edges, bend_points, direction)
            )

        logger.debug(
            "Layered layout: %d nodes, %d edges, %d components, %d reversed edges",
            len(result.nodes),
            len(result.edges),
            len(components),
            len(back_edges),
        )
        return result

    def _route(
        self,
        edge: Edge,
        nodes: Dict[str, Node],
        chains: Dict[Tuple[str, str], List[str]],
        back_edges: Set[Tuple[str, str]],
        bend_points: Dict[str, Point],
        direction: RankDirection,
    ) -> Edge:
        """Build the routed copy of an input edge."""
        routed = Edge(source=edge.source, target=edge.target, label=edge.label)
        if edge.is_self_loop:
            routed.points = route_edge(nodes[edge.source], nodes[edge.source], [], direction)
            return routed

        key = (edge.source, edge.target)
        if key in back_edges:
            routed.reversed = True
            key = (edge.target, edge.source)
        bends = [bend_points[vid] for vid in chains.get(key, [])]
        if routed.reversed:
            bends.reverse()
        routed.bends = bends
        routed.points = route_edge(nodes[edge.source], nodes[edge.target], bends, direction)
        return routed

    def _rank_and_order(
        self,
        subgraph: nx.DiGraph,
        index: Dict[str, int],
        config: LayoutConfig,
        ranker: Ranker,
        virtual_ids: Iterator[int],
    ) -> LayerAssignment:
        """Break cycles, assign ranks, insert virtual nodes and order each rank."""
        assignment = LayerAssignment()
        assignment.back_edges = self._find_back_edges(subgraph, index)
        assignment.has_cycles = bool(assignment.back_edges)

        dag = nx.DiGraph()
        dag.add_nodes_from(sorted(subgraph.nodes(), key=index.get))
        for source, target in sorted(subgraph.edges(), key=lambda e: (index[e[0]], index[e[1]])):
            if (source, target) in assignment.back_edges:
                dag.add_edge(target, source)
            else:
                dag.add_edge(source, target)

        ranks = self._assign_ranks(dag, index, ranker)

        # Virtual nodes for edges spanning more than one rank.
        sort_keys: Dict[str, Tuple[int, int, int]] = {
            n: (index[n], 0, 0) for n in dag.nodes()
        }
        layered_edges: List[Tuple[str, str]] = []
        for source, target in dag.edges():
            span = ranks[target] - ranks[source]
            if span <= 1:
                layered_edges.append((source, target))
                continue
            chain = []
            prev = source
            for step, rank in enumerate(range(ranks[source] + 1, ranks[target])):
                vid = f"{VIRTUAL_PREFIX}{next(virtual_ids)}"
                ranks[vid] = rank
                sort_keys[vid] = (index[source], 1, step)
                chain.append(vid)
                layered_edges.append((prev, vid))
                prev = vid
            layered_edges.append((prev, target))
            assignment.chains[(source, target)] = chain

        layers: List[List[str]] = [[] for _ in range(max(ranks.values()) + 1)]
        for node_id in sorted(ranks, key=sort_keys.get):
            layers[ranks[node_id]].append(node_id)

        predecessors: Dict[str, List[str]] = {n: [] for n in ranks}
        successors: Dict[str, List[str]] = {n: [] for n in ranks}
        for source, target in layered_edges:
            successors[source].append(target)
            predecessors[target].append(source)

        assignment.layers = self._order_layers(
            layers, predecessors, successors, config.ordering_passes
        )
        assignment.ranks = ranks
        return assignment

    def _find_back_edges(
        self, subgraph: nx.DiGraph, index: Dict[str, int]
    ) -> Set[Tuple[str, str]]:
        """
        Identify back edges with a DFS.

        DFS starts from nodes without predecessors (in insertion order), then
        from any node still unvisited. Reversing the returned edges leaves an
        acyclic graph.
        """
        back_edges: Set[Tuple[str, str]] = set()
        visited: Set[str] = set()
        rec_stack: Set[str] = set()

        def dfs(node: str) -> None:
            visited.add(node)
            rec_stack.add(node)

            for successor in sorted(subgraph.successors(node), key=index.get):
                if successor not in visited:
                    dfs(successor)
                elif successor in rec_stack:
                    back_edges.add((node, successor))

            rec_stack.remove(node)

        ordered = sorted(subgraph.nodes(), key=index.get)
        roots = [n for n in ordered if subgraph.in_degree(n) == 0]
        for node in roots + ordered:
            if node not in visited:
                dfs(node)

        return back_edges

    def _assign_ranks(
        self, dag: nx.DiGraph, index: Dict[str, int], ranker: Ranker
    ) -> Dict[str, int]:
        """
        Assign ranks using the longest path from the sources.

        With the TIGHT ranker, sources are then moved down to sit one rank
        above their nearest successor.
        """
        topo_order = list(nx.lexicographical_topological_sort(dag, key=index.get))
        ranks: Dict[str, int] = {}
        for node in topo_order:
            predecessors = list(dag.predecessors(node))
            if not predecessors:
                ranks[node] = 0
            else:
                ranks[node] = max(ranks[p] for p in predecessors) + 1

        if ranker == Ranker.TIGHT:
            for node in reversed(topo_order):
                if dag.in_degree(node) == 0 and dag.out_degree(node) > 0:
                    ranks[node] = min(ranks[s] for s in dag.successors(node)) - 1

        lowest = min(ranks.values())
        return {node: rank - lowest for node, rank in ranks.items()}

    def _order_layers(
        self,
        layers: List[List[str]],
        predecessors: Dict[str, List[str]],
        successors: Dict[str, List[str]],
        passes: int,
    ) -> List[List[str]]:
        """
        Order nodes within each layer to minimize edge crossings.
        Uses barycenter heuristic with alternating sweeps.
        """
        if len(layers) <= 1:
            return layers

        for _ in range(passes):
            changed = False

            # Down sweep
            for i in range(1, len(layers)):
                ordered = self._order_layer_by_barycenter(layers[i], layers[i - 1], predecessors)
                if ordered != layers[i]:
                    layers[i] = ordered
                    changed = True

            # Up sweep
            for i in range(len(layers) - 2, -1, -1):
                ordered = self._order_layer_by_barycenter(layers[i], layers[i + 1], successors)
                if ordered != layers[i]:
                    layers[i] = ordered
                    changed = True

            if not changed:
                break

        return layers

    def _order_layer_by_barycenter(
        self,
        layer: List[str],
        ref_layer: List[str],
        neighbors: Dict[str, List[str]],
    ) -> List[str]:
        """
        Order nodes by barycenter (average position of connected nodes).

        Nodes without neighbors in the reference layer keep their current
        position; ties keep the current relative order.
        """
        ref_positions = {node: i for i, node in enumerate(ref_layer)}
        current = {node: i for i, node in enumerate(layer)}

        def barycenter(node: str) -> Tuple[float, int]:
            positions = [ref_positions[n] for n in neighbors[node] if n in ref_positions]
            if not positions:
                return float(current[node]), current[node]
            return sum(positions) / len(positions), current[node]

        return sorted(layer, key=barycenter)

    def _assign_coordinates(
        self,
        assignment: LayerAssignment,
        nodes: Dict[str, Node],
        config: LayoutConfig,
    ):
        """
        Place one component in (main, cross) coordinates.

        Ranks advance along the main axis separated by rank_separation; nodes
        of a rank are laid along the cross axis separated by node_separation
        and centered on the widest rank. Virtual nodes take an
        edge_separation-wide slot.

        Returns:
            (positions, virtual_centers, cross_size, main_size) where
            positions maps real node ids to their (main, cross) top-left
            offsets and virtual_centers maps virtual ids to their centers.
        """
        horizontal = config.rank_direction == RankDirection.LR

        def sizes(node_id: str) -> Tuple[float, float]:
            # (main, cross) extents
            if is_virtual(node_id):
                return 0.0, config.edge_separation
            node = nodes[node_id]
            if horizontal:
                return node.width, node.height
            return node.height, node.width

        def gap(a: str, b: str) -> float:
            if is_virtual(a) or is_virtual(b):
                return max(config.edge_separation, config.node_separation / 2)
            return config.node_separation

        thickness: List[float] = []
        layer_totals: List[float] = []
        for layer in assignment.layers:
            thickness.append(max((sizes(n)[0] for n in layer), default=0.0))
            total = sum(sizes(n)[1] for n in layer)
            total += sum(gap(a, b) for a, b in zip(layer, layer[1:]))
            layer_totals.append(total)

        main_offsets: List[float] = [0.0]
        for value in thickness[:-1]:
            main_offsets.append(main_offsets[-1] + value + config.rank_separation)
        main_size = main_offsets[-1] + thickness[-1] if thickness else 0.0
        cross_size = max(layer_totals) if layer_totals else 0.0

        positions: Dict[str, Tuple[float, float]] = {}
        virtual_centers: Dict[str, Tuple[float, float]] = {}
        for rank, layer in enumerate(assignment.layers):
            cross_pos = (cross_size - layer_totals[rank]) / 2
            for pos_idx, node_id in enumerate(layer):
                main_len, cross_len = sizes(node_id)
                main_pos = main_offsets[rank] + (thickness[rank] - main_len) / 2
                if is_virtual(node_id):
                    virtual_centers[node_id] = (main_pos, cross_pos + cross_len / 2)
                else:
                    positions[node_id] = (main_pos, cross_pos)
                cross_pos += cross_len
                if pos_idx + 1 < len(layer):
                    cross_pos += gap(node_id, layer[pos_idx + 1])

        return positions, virtual_centers, cross_size, main_size
