"""
Validación de topología.

Una red sólo está lista para simular si ninguna intersección deja un carril
entrante sin salida (``MISSING_JUNCTION_FOR_LANE``) ni un carril saliente sin
alimentar (``UNREACHABLE_LANE``). Además se verifican los carriles declarados
por los nodos frontera (Emitter, Drain, Sink) y la cobertura de cada fase
semafórica.

Los errores se devuelven siempre como lista completa; nunca se corta en el
primero.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Set

from .domain import (
    Drain, Emitter, Intersection, Junction, Lane, Node, Sink, TrafficSignal,
)
from .graph import VertexId
from .traffic_network import RoadGraph, incoming_roads, lanes_for_road, outgoing_roads

logger = logging.getLogger(__name__)


class ValidationErrorKind(Enum):
    """Tipos de error de topología."""
    MISSING_JUNCTION_FOR_LANE = "missing_junction_for_lane"
    UNREACHABLE_LANE = "unreachable_lane"
    INVALID_EMITTER_LANE = "invalid_emitter_lane"
    INVALID_DRAIN_LANE = "invalid_drain_lane"
    MISSING_SIGNAL_STATE = "missing_signal_state"
    NOT_AN_INTERSECTION = "not_an_intersection"


@dataclass(frozen=True)
class ValidationError:
    """Error de topología asociado a un nodo (y opcionalmente a un carril o junction)."""
    kind: ValidationErrorKind
    node_id: VertexId
    lane: Optional[Lane] = None
    junction: Optional[Junction] = None
    phase_index: Optional[int] = None

    def __str__(self) -> str:
        detail = ""
        if self.lane is not None:
            detail = f" carril {self.lane}"
        if self.junction is not None:
            detail = f" junction {self.junction}"
        if self.phase_index is not None:
            detail += f" fase {self.phase_index}"
        return f"[{self.node_id}] {self.kind.value}{detail}"


class NetworkValidationError(Exception):
    """La red no es apta para simular; ``errors`` contiene la lista completa."""

    def __init__(self, errors: List[ValidationError]):
        self.errors = list(errors)
        summary = "; ".join(str(error) for error in self.errors[:5])
        if len(self.errors) > 5:
            summary += f"; ... ({len(self.errors) - 5} más)"
        super().__init__(f"Red inválida ({len(self.errors)} errores): {summary}")


def _lanes_of(roads) -> List[Lane]:
    lanes: List[Lane] = []
    for road in roads:
        lanes.extend(lanes_for_road(road))
    return lanes


def validate_intersection(node_id: VertexId, node: Node, graph: RoadGraph) -> List[ValidationError]:
    """
    Verifica que las junctions de una intersección cubran todos sus carriles.

    Args:
        node_id: Id del nodo
        node: Nodo a validar
        graph: Grafo de la red

    Returns:
        Primero un ``MISSING_JUNCTION_FOR_LANE`` por cada carril entrante que
        no es origen de ninguna junction, luego un ``UNREACHABLE_LANE`` por
        cada carril saliente que no es destino de ninguna. Cada sublista va
        en orden de descubrimiento de vía y ordinal ascendente. Un nodo que
        no es intersección produce un único ``NOT_AN_INTERSECTION``.
    """
    if not isinstance(node, Intersection):
        return [ValidationError(ValidationErrorKind.NOT_AN_INTERSECTION, node_id)]

    incoming_lanes = _lanes_of(incoming_roads(node_id, graph))
    outgoing_lanes = _lanes_of(outgoing_roads(node_id, graph))

    junction_froms = {junction.from_lane for junction in node.junctions}
    junction_tos = {junction.to_lane for junction in node.junctions}

    missing_froms = [
        ValidationError(ValidationErrorKind.MISSING_JUNCTION_FOR_LANE, node_id, lane=lane)
        for lane in incoming_lanes if lane not in junction_froms
    ]
    unreachable_tos = [
        ValidationError(ValidationErrorKind.UNREACHABLE_LANE, node_id, lane=lane)
        for lane in outgoing_lanes if lane not in junction_tos
    ]

    return missing_froms + unreachable_tos


def _foreign_lanes(declared: Iterable[Lane], valid: Set[Lane]) -> List[Lane]:
    return [lane for lane in declared if lane not in valid]


def validate_boundary_node(node_id: VertexId, node: Node, graph: RoadGraph) -> List[ValidationError]:
    """
    Verifica los carriles declarados por un nodo frontera.

    - ``INVALID_EMITTER_LANE``: un carril de ``to_lanes`` que no pertenece a
      una vía saliente del nodo (o cuyo ordinal está fuera de rango).
    - ``INVALID_DRAIN_LANE``: un carril de ``from_lanes`` que no pertenece a
      una vía entrante del nodo (o cuyo ordinal está fuera de rango).

    Las intersecciones no generan errores aquí.
    """
    errors: List[ValidationError] = []

    if isinstance(node, (Emitter, Sink)):
        valid = set(_lanes_of(outgoing_roads(node_id, graph)))
        errors.extend(
            ValidationError(ValidationErrorKind.INVALID_EMITTER_LANE, node_id, lane=lane)
            for lane in _foreign_lanes(node.to_lanes, valid)
        )

    if isinstance(node, (Drain, Sink)):
        valid = set(_lanes_of(incoming_roads(node_id, graph)))
        errors.extend(
            ValidationError(ValidationErrorKind.INVALID_DRAIN_LANE, node_id, lane=lane)
            for lane in _foreign_lanes(node.from_lanes, valid)
        )

    return errors


def validate_signal_plan(node_id: VertexId, node: Node) -> List[ValidationError]:
    """
    Verifica que cada fase semafórica asigne estado a todas las junctions.

    Un ``MISSING_SIGNAL_STATE`` por cada par (junction, fase) sin mapear,
    ordenado por fase y luego por orden de declaración de la junction.
    Sólo aplica a intersecciones con ``TrafficSignal``.
    """
    if not isinstance(node, Intersection) or not isinstance(node.control, TrafficSignal):
        return []

    errors: List[ValidationError] = []
    for phase_index, phase in enumerate(node.control.config.phases):
        for junction in node.junctions:
            if junction not in phase.junction_states:
                errors.append(ValidationError(
                    ValidationErrorKind.MISSING_SIGNAL_STATE, node_id,
                    junction=junction, phase_index=phase_index,
                ))
    return errors


def validate_network(graph: RoadGraph) -> List[ValidationError]:
    """
    Ejecuta todas las verificaciones sobre todos los nodos (id ascendente).

    Returns:
        Lista completa de errores (vacía si la red es simulable)
    """
    errors: List[ValidationError] = []
    for node_id, vertex in graph.nodes.items():
        node = vertex.value
        if isinstance(node, Intersection):
            errors.extend(validate_intersection(node_id, node, graph))
            errors.extend(validate_signal_plan(node_id, node))
        else:
            errors.extend(validate_boundary_node(node_id, node, graph))
    return errors


def ensure_routable(graph: RoadGraph) -> None:
    """
    Rechaza una red con errores de topología.

    Raises:
        NetworkValidationError: Con la lista completa de errores
    """
    errors = validate_network(graph)
    if errors:
        for error in errors:
            logger.error("Error de topología: %s", error)
        raise NetworkValidationError(errors)
    logger.info("Red validada: %d nodos sin errores", len(graph))
