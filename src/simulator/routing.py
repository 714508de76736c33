"""
Selección de junctions orientada a destino.

Las distancias restantes hasta cada Drain/Sink se precalculan una sola vez
con Dijkstra (networkx) sobre el grafo invertido, usando el largo de las vías
como peso. Durante la simulación la elección es una búsqueda O(k) sobre las
junctions candidatas.
"""

import logging
import math
from typing import Callable, Dict, List, Optional, Sequence

import networkx as nx

from src.network.domain import Junction, Lane, Road, is_terminal
from src.network.graph import VertexId
from src.network.traffic_network import RoadEdge, RoadGraph, edge_for_road

logger = logging.getLogger(__name__)


class RoutingTable:
    """
    Tabla de distancias mínimas hacia cada nodo terminal.

    Política de elección de junction (para un vehículo al final de su carril):
    1. Menor costo = largo de la vía destino de la junction + distancia
       restante desde el final de esa vía hasta el destino del vehículo.
    2. Empate: carril destino menos ocupado.
    3. Empate: orden de declaración de la junction.

    Si ninguna candidata alcanza el destino, el costo es infinito para todas
    y deciden los criterios 2 y 3.
    """

    def __init__(self, graph: RoadGraph):
        self._edges_by_road: Dict[Road, RoadEdge] = edge_for_road(graph)

        reverse = graph.to_networkx(weight=lambda road: road.length).reverse(copy=True)

        self._distances: Dict[VertexId, Dict[VertexId, float]] = {}
        for node_id, vertex in graph.nodes.items():
            if is_terminal(vertex.value):
                self._distances[node_id] = nx.single_source_dijkstra_path_length(
                    reverse, node_id, weight='weight'
                )

        logger.debug("Tabla de rutas: %d destinos", len(self._distances))

    @property
    def destinations(self) -> List[VertexId]:
        """Nodos terminales (Drain/Sink) en orden ascendente de id."""
        return sorted(self._distances)

    def end_node(self, road: Road) -> Optional[VertexId]:
        """Nodo donde termina la vía (None si la vía no está en el grafo)."""
        edge = self._edges_by_road.get(road)
        return edge.target if edge is not None else None

    def start_node(self, road: Road) -> Optional[VertexId]:
        edge = self._edges_by_road.get(road)
        return edge.source if edge is not None else None

    def remaining_distance(self, node_id: Optional[VertexId], destination: VertexId) -> float:
        """Distancia mínima (m) de ``node_id`` a ``destination``; inf si no hay ruta."""
        if node_id is None:
            return math.inf
        return self._distances.get(destination, {}).get(node_id, math.inf)

    def reachable_destinations(self, lane: Lane, exclude: Optional[VertexId] = None) -> List[VertexId]:
        """Destinos alcanzables desde el final del carril, en orden de id."""
        origin = self.end_node(lane.road)
        return [
            destination for destination in self.destinations
            if destination != exclude and math.isfinite(self.remaining_distance(origin, destination))
        ]

    def junction_cost(self, junction: Junction, destination: VertexId) -> float:
        road = junction.to_lane.road
        return road.length + self.remaining_distance(self.end_node(road), destination)

    def choose_junction(self, candidates: Sequence[Junction], destination: VertexId,
                        occupancy: Callable[[Lane], int]) -> Optional[Junction]:
        """
        Elige la junction que mejor acerca el vehículo a su destino.

        Args:
            candidates: Junctions cuyo origen es el carril actual
            destination: Nodo destino del vehículo
            occupancy: Vehículos en un carril según la foto previa al paso

        Returns:
            Junction elegida o None si no hay candidatas
        """
        if not candidates:
            return None

        ranked = min(
            range(len(candidates)),
            key=lambda i: (self.junction_cost(candidates[i], destination),
                           occupancy(candidates[i].to_lane), i),
        )
        return candidates[ranked]
