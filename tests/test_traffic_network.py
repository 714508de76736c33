"""
Tests para la red vial (build_graph y consultas de dominio).
"""

import pytest
import sys
from pathlib import Path

# Agregar src al path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.network.domain import (
    Drain, Emitter, Intersection, Lane, LaneNumber, Road, RoadType, Sink,
    StopSign, Uncontrolled, is_spawn_point, is_terminal, node_control,
    node_incoming_lanes, node_outgoing_lanes,
)
from src.network.graph import EdgeId, VertexId
from src.network.traffic_network import (
    NetworkConfig, build_graph, edge_for_road, find_node, incoming_roads,
    lanes_for_road, network_stats, outgoing_roads,
)
from src.network.units import kmh_to_ms, ms_to_kmh


class TestRoad:
    """Tests para vías y carriles."""

    def test_speed_limit_in_si_units(self, road_a):
        """Test de conversión km/h → m/s."""
        assert road_a.speed_limit == pytest.approx(13.889, abs=1e-3)
        assert ms_to_kmh(kmh_to_ms(40.0)) == pytest.approx(40.0)

    def test_lane_expansion(self, road_a):
        """Test: n carriles con ordinales 0..n-1 ascendentes."""
        lanes = lanes_for_road(road_a)

        assert len(lanes) == 2
        assert [lane.ordinal for lane in lanes] == [LaneNumber(0), LaneNumber(1)]
        assert all(lane.road == road_a for lane in lanes)
        assert lanes[0].length == 500.0

    def test_lane_expansion_without_lanes(self):
        """Test de vía sin carriles (o con cantidad negativa)."""
        assert lanes_for_road(Road("X", 100.0, 30.0, RoadType.STREET, 0)) == []
        assert lanes_for_road(Road("Y", 100.0, 30.0, RoadType.STREET, -3)) == []

    def test_road_priority(self):
        """Test de rango de prioridad por clase de vía."""
        assert RoadType.HIGHWAY.priority > RoadType.ARTERIAL.priority
        assert RoadType.STREET.priority > RoadType.RESIDENTIAL.priority


class TestBuildGraph:
    """Tests para la construcción del grafo vial."""

    def test_merge_scenario_adjacency(self, merge_graph, road_a, road_b):
        """Test de adyacencia del escenario merge."""
        e0 = merge_graph.edge_between_nodes(VertexId(0), VertexId(1))
        e1 = merge_graph.edge_between_nodes(VertexId(1), VertexId(2))

        assert e0 == EdgeId(0)
        assert e1 == EdgeId(1)
        assert merge_graph.edge(e0).value == road_a
        assert merge_graph.edge(e1).value == road_b

        assert merge_graph.edge_between_nodes(VertexId(1), VertexId(0)) is None
        assert merge_graph.edge_between_nodes(VertexId(0), VertexId(2)) is None

    def test_incoming_and_outgoing_roads(self, merge_graph, road_a, road_b):
        """Test de vías entrantes y salientes de un nodo."""
        assert incoming_roads(VertexId(1), merge_graph) == [road_a]
        assert outgoing_roads(VertexId(1), merge_graph) == [road_b]
        assert incoming_roads(VertexId(0), merge_graph) == []

    def test_connection_to_missing_node_is_dropped(self, road_a):
        """Test de conexión hacia un nodo inexistente."""
        config = NetworkConfig(
            nodes=((VertexId(0), Emitter("E")),),
            connections=((road_a, VertexId(0), VertexId(99)),),
        )

        graph = build_graph(config)

        assert len(graph) == 1
        assert graph.edges == {}

    def test_edge_for_road_index(self, merge_graph, road_b):
        """Test de índice vía → arista."""
        index = edge_for_road(merge_graph)

        assert index[road_b].source == VertexId(1)
        assert index[road_b].target == VertexId(2)

    def test_find_node(self, merge_graph):
        """Test de búsqueda por etiqueta."""
        assert find_node(merge_graph, "Merge") == VertexId(1)
        assert find_node(merge_graph, "Inexistente") is None

    def test_network_stats(self, merge_graph):
        """Test de estadísticas de la red."""
        stats = network_stats(merge_graph)

        assert stats['num_nodes'] == 3
        assert stats['num_roads'] == 2
        assert stats['num_lanes'] == 3
        assert stats['total_length_km'] == pytest.approx(0.8)
        assert stats['avg_road_length_m'] == pytest.approx(400.0)
        assert stats['is_connected']


class TestNodeQueries:
    """Tests para el despacho sobre variantes de nodo."""

    def test_lane_queries(self, merge_config, road_a, road_b):
        """Test de carriles entrantes y salientes por variante."""
        nodes = dict(merge_config.nodes)
        a0 = Lane(road_a, LaneNumber(0))
        b0 = Lane(road_b, LaneNumber(0))

        assert node_outgoing_lanes(nodes[VertexId(0)]) == (a0, Lane(road_a, LaneNumber(1)))
        assert node_incoming_lanes(nodes[VertexId(0)]) == ()
        assert node_incoming_lanes(nodes[VertexId(1)]) == (a0, Lane(road_a, LaneNumber(1)))
        assert node_outgoing_lanes(nodes[VertexId(1)]) == (b0,)
        assert node_incoming_lanes(nodes[VertexId(2)]) == (b0,)

    def test_spawn_and_terminal_flags(self):
        """Test de puntos de entrada y salida."""
        assert is_spawn_point(Emitter("E"))
        assert is_spawn_point(Sink("S"))
        assert not is_spawn_point(Drain("D"))
        assert is_terminal(Sink("S"))
        assert is_terminal(Drain("D"))
        assert not is_terminal(Intersection("I"))

    def test_control_query(self):
        """Test de control de intersección."""
        assert node_control(Intersection("I", StopSign())) == StopSign(all_way=True)
        assert node_control(Intersection("I")) == Uncontrolled()
        assert node_control(Drain("D")) is None

    def test_unknown_node_kind(self):
        """Test de variante desconocida."""
        with pytest.raises(TypeError):
            is_terminal("no es un nodo")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
