"""
Tests para la validación de topología.
"""

import pytest
import sys
from pathlib import Path

# Agregar src al path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.network.domain import (
    Drain, Emitter, FlowState, Junction, Lane, LaneNumber, SignalConfig, SignalPhase, TrafficSignal,
)
from src.network.graph import VertexId
from src.network.traffic_network import NetworkConfig, build_graph
from src.network.validation import (
    NetworkValidationError, ValidationErrorKind, ensure_routable, validate_boundary_node,
    validate_intersection, validate_network, validate_signal_plan,
)


class TestValidateIntersection:
    """Tests para validate_intersection."""

    def test_complete_intersection_has_no_errors(self, merge_graph):
        """Test: junctions que cubren todos los carriles ⇒ sin errores."""
        node = merge_graph.vertex(VertexId(1)).value

        assert validate_intersection(VertexId(1), node, merge_graph) == []

    def test_missing_junction_for_lane(self, make_merge_config, road_a, road_b):
        """Test: quitar una junction produce exactamente un error."""
        a0 = Lane(road_a, LaneNumber(0))
        b0 = Lane(road_b, LaneNumber(0))
        graph = build_graph(make_merge_config(junctions=(Junction(a0, b0),)))
        node = graph.vertex(VertexId(1)).value

        errors = validate_intersection(VertexId(1), node, graph)

        assert len(errors) == 1
        assert errors[0].kind == ValidationErrorKind.MISSING_JUNCTION_FOR_LANE
        assert errors[0].lane == Lane(road_a, LaneNumber(1))
        assert errors[0].node_id == VertexId(1)

    def test_unreachable_lane_after_missing_junctions(self, make_merge_config):
        """Test de orden: primero carriles sin salida, luego carriles sin alimentar."""
        graph = build_graph(make_merge_config(junctions=()))
        node = graph.vertex(VertexId(1)).value

        errors = validate_intersection(VertexId(1), node, graph)

        assert [error.kind for error in errors] == [
            ValidationErrorKind.MISSING_JUNCTION_FOR_LANE,
            ValidationErrorKind.MISSING_JUNCTION_FOR_LANE,
            ValidationErrorKind.UNREACHABLE_LANE,
        ]
        assert [error.lane.ordinal for error in errors[:2]] == [LaneNumber(0), LaneNumber(1)]

    def test_not_an_intersection(self, merge_graph):
        """Test de nodo que no es intersección."""
        node = merge_graph.vertex(VertexId(0)).value

        errors = validate_intersection(VertexId(0), node, merge_graph)

        assert len(errors) == 1
        assert errors[0].kind == ValidationErrorKind.NOT_AN_INTERSECTION


class TestBoundaryAndSignals:
    """Tests para nodos frontera y planes semafóricos."""

    def test_emitter_with_foreign_lane(self, merge_config, road_b):
        """Test de Emitter declarando un carril que no sale de él."""
        nodes = dict(merge_config.nodes)
        emitter = nodes[VertexId(0)]
        bad = Emitter(emitter.label, emitter.to_lanes + (Lane(road_b, LaneNumber(0)),),
                      emitter.spawn_rate, emitter.profile_distribution)
        graph = build_graph(NetworkConfig(
            nodes=((VertexId(0), bad),) + merge_config.nodes[1:],
            connections=merge_config.connections,
        ))

        errors = validate_boundary_node(VertexId(0), bad, graph)

        assert len(errors) == 1
        assert errors[0].kind == ValidationErrorKind.INVALID_EMITTER_LANE

    def test_drain_with_out_of_range_lane(self, merge_config, road_b):
        """Test de Drain con ordinal fuera de rango."""
        drain = dict(merge_config.nodes)[VertexId(2)]
        bad = Drain(drain.label, (Lane(road_b, LaneNumber(3)),))
        graph = build_graph(NetworkConfig(
            nodes=merge_config.nodes[:2] + ((VertexId(2), bad),),
            connections=merge_config.connections,
        ))

        errors = validate_boundary_node(VertexId(2), bad, graph)

        assert [error.kind for error in errors] == [ValidationErrorKind.INVALID_DRAIN_LANE]

    def test_missing_signal_state(self, make_merge_config, road_a, road_b):
        """Test de fase semafórica que no cubre todas las junctions."""
        a0 = Lane(road_a, LaneNumber(0))
        a1 = Lane(road_a, LaneNumber(1))
        b0 = Lane(road_b, LaneNumber(0))
        phase = SignalPhase(20.0, {Junction(a0, b0): FlowState.RIGHT_OF_WAY})
        control = TrafficSignal(SignalConfig((phase,)))
        graph = build_graph(make_merge_config(control=control))
        node = graph.vertex(VertexId(1)).value

        errors = validate_signal_plan(VertexId(1), node)

        assert len(errors) == 1
        assert errors[0].kind == ValidationErrorKind.MISSING_SIGNAL_STATE
        assert errors[0].junction == Junction(a1, b0)
        assert errors[0].phase_index == 0


class TestValidateNetwork:
    """Tests para la validación completa."""

    def test_valid_network(self, merge_graph):
        """Test de red válida."""
        assert validate_network(merge_graph) == []
        ensure_routable(merge_graph)

    def test_invalid_network_is_rejected(self, make_merge_config):
        """Test: una red con errores no es simulable."""
        graph = build_graph(make_merge_config(junctions=()))

        with pytest.raises(NetworkValidationError) as excinfo:
            ensure_routable(graph)

        assert len(excinfo.value.errors) == 3
        assert "missing_junction_for_lane" in str(excinfo.value)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
