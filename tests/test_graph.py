"""
Tests para el grafo genérico (Graph / GraphBuilder).
"""

import pytest
import sys
from pathlib import Path

import numpy as np

# Agregar src al path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.network.graph import NO_EDGE, Edge, EdgeId, GraphBuilder, Vertex, VertexId


def _builder(node_ids, edges):
    builder = GraphBuilder()
    for node_id in node_ids:
        builder.add_vertex(Vertex(VertexId(node_id), f"n{node_id}"))
    for edge_id, source, target in edges:
        builder.add_edge(Edge(EdgeId(edge_id), VertexId(source), VertexId(target), f"e{edge_id}"))
    return builder


class TestGraphBuilder:
    """Tests para la construcción del grafo."""

    def test_dense_index_follows_ascending_ids(self):
        """Test de índice denso en orden ascendente de id."""
        graph = _builder([7, 3, 5], []).build()

        assert graph.index_of(VertexId(3)) == 0
        assert graph.index_of(VertexId(5)) == 1
        assert graph.index_of(VertexId(7)) == 2
        assert graph.id_at(2) == VertexId(7)
        assert list(graph.nodes) == [VertexId(3), VertexId(5), VertexId(7)]

    def test_adjacency_iff_edge(self):
        """Test: adjacency[i][j] != vacío ⇔ existe arista i → j."""
        graph = _builder([0, 1, 2, 3], [(0, 0, 1), (1, 1, 2), (2, 2, 0), (3, 3, 1)]).build()
        adjacency = graph.adjacency

        for edge in graph.edges.values():
            i = graph.index_of(edge.source)
            j = graph.index_of(edge.target)
            assert graph.edge_between(i, j) == edge.id

        pairs = {(graph.index_of(e.source), graph.index_of(e.target)) for e in graph.edges.values()}
        for i in range(len(graph)):
            for j in range(len(graph)):
                assert (adjacency[i, j] != NO_EDGE) == ((i, j) in pairs)

    def test_dangling_edge_is_dropped(self):
        """Test de descarte de aristas hacia vértices inexistentes."""
        graph = _builder([0, 1], [(0, 0, 1), (1, 1, 9)]).build()

        assert EdgeId(1) not in graph.edges
        assert len(graph.edges) == 1
        assert graph.successors(VertexId(1)) == []

    def test_duplicate_pair_keeps_highest_edge_id(self):
        """Test: entre el mismo par ordenado gana la arista de mayor id."""
        graph = _builder([0, 1], [(4, 0, 1), (2, 0, 1)]).build()

        assert graph.edge_between_nodes(VertexId(0), VertexId(1)) == EdgeId(4)
        assert list(graph.edges) == [EdgeId(4)]

    def test_adjacency_is_read_only(self):
        """Test: la matriz derivada no se modifica en sitio."""
        graph = _builder([0, 1], [(0, 0, 1)]).build()

        with pytest.raises(ValueError):
            graph.adjacency[0, 1] = NO_EDGE

    def test_rebuild_from_graph(self):
        """Test de reconstrucción tras un cambio de topología."""
        graph = _builder([0, 1, 2], [(0, 0, 1), (1, 1, 2)]).build()

        rebuilt = GraphBuilder.from_graph(graph).remove_vertex(VertexId(1)).build()

        assert len(rebuilt) == 2
        assert rebuilt.edges == {}
        assert np.all(rebuilt.adjacency == NO_EDGE)

    def test_empty_graph(self):
        """Test de grafo vacío."""
        graph = GraphBuilder().build()

        assert len(graph) == 0
        assert graph.adjacency.shape == (0, 0)


class TestGraphQueries:
    """Tests para las consultas sobre el grafo congelado."""

    def test_successors_and_predecessors(self):
        """Test de vecinos por matriz de adyacencia."""
        graph = _builder([0, 1, 2], [(0, 0, 1), (1, 0, 2), (2, 2, 1)]).build()

        assert graph.successors(VertexId(0)) == [VertexId(1), VertexId(2)]
        assert graph.predecessors(VertexId(1)) == [VertexId(0), VertexId(2)]

    def test_edges_in_discovery_order(self):
        """Test de aristas entrantes/salientes en orden de id."""
        graph = _builder([0, 1, 2], [(5, 0, 1), (1, 2, 1), (3, 1, 2)]).build()

        assert [e.id for e in graph.incoming_edges(VertexId(1))] == [EdgeId(1), EdgeId(5)]
        assert [e.id for e in graph.outgoing_edges(VertexId(1))] == [EdgeId(3)]

    def test_unknown_nodes_have_no_edge(self):
        """Test de búsqueda con vértices desconocidos."""
        graph = _builder([0], []).build()

        assert graph.edge_between_nodes(VertexId(0), VertexId(42)) is None
        assert VertexId(42) not in graph

    def test_to_networkx_weights(self):
        """Test de vista networkx con pesos."""
        graph = _builder([0, 1], [(0, 0, 1)]).build()

        digraph = graph.to_networkx(weight=lambda value: 10.0)

        assert digraph.number_of_nodes() == 2
        assert digraph[VertexId(0)][VertexId(1)]['weight'] == 10.0
        assert digraph[VertexId(0)][VertexId(1)]['edge_id'] == EdgeId(0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
