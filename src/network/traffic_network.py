"""
Red vial como grafo dirigido.

Este módulo define la descripción de red que entrega el subsistema de
configuración (nodos + conexiones + paso de tiempo) y la función pura
``build_graph`` que la convierte en un ``RoadGraph``: nodos de dominio en los
vértices y una vía (``Road``) por arista dirigida.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import networkx as nx

from .domain import Lane, LaneNumber, Node, Road, node_label
from .graph import Edge, EdgeId, Graph, GraphBuilder, Vertex, VertexId
from .units import Seconds, lane_range, m_to_km

logger = logging.getLogger(__name__)

RoadGraph = Graph[Node, Road]
RoadVertex = Vertex[Node]
RoadEdge = Edge[Road]


@dataclass(frozen=True)
class NetworkConfig:
    """
    Descripción de red producida por el subsistema de configuración.

    Attributes:
        nodes: Pares (id de nodo, nodo)
        connections: Ternas (vía, id origen, id destino); el id de arista es
                     la posición en esta lista
        time_step: Duración de un tick en segundos
    """
    nodes: Tuple[Tuple[VertexId, Node], ...] = ()
    connections: Tuple[Tuple[Road, VertexId, VertexId], ...] = ()
    time_step: Seconds = Seconds(1.0)
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "connections", tuple(self.connections))


def build_graph(config: NetworkConfig) -> RoadGraph:
    """
    Construye el ``RoadGraph`` a partir de una descripción de red.

    Función pura, sin I/O. Conexiones hacia nodos inexistentes se descartan
    según la política de ``GraphBuilder.build``.

    Args:
        config: Descripción de red

    Returns:
        RoadGraph: Grafo congelado
    """
    builder: GraphBuilder[Node, Road] = GraphBuilder()

    for node_id, node in config.nodes:
        builder.add_vertex(Vertex(node_id, node))

    for position, (road, source, target) in enumerate(config.connections):
        builder.add_edge(Edge(EdgeId(position), source, target, road))

    graph = builder.build()
    logger.info("Red construida%s: %d nodos, %d vías",
                f" '{config.name}'" if config.name else "", len(graph), len(graph.edges))
    return graph


def incoming_roads(node_id: VertexId, graph: RoadGraph) -> List[Road]:
    """Vías que terminan en el nodo, en orden de descubrimiento (id de arista)."""
    return [edge.value for edge in graph.incoming_edges(node_id)]


def outgoing_roads(node_id: VertexId, graph: RoadGraph) -> List[Road]:
    """Vías que nacen en el nodo, en orden de descubrimiento (id de arista)."""
    return [edge.value for edge in graph.outgoing_edges(node_id)]


def lanes_for_road(road: Road) -> List[Lane]:
    """
    Expande una vía en sus carriles.

    Returns:
        Exactamente ``lane_count`` carriles con ordinales 0..n-1 ascendentes
        (ninguno si ``lane_count <= 0``)
    """
    return [Lane(road, LaneNumber(n)) for n in lane_range(road.lane_count)]


def edge_for_road(graph: RoadGraph) -> Dict[Road, RoadEdge]:
    """
    Índice vía → arista.

    Las vías se identifican por valor; si dos aristas llevan vías idénticas
    se conserva la de menor id y se registra un warning.
    """
    index: Dict[Road, RoadEdge] = {}
    for edge in graph.iter_edges():
        if edge.value in index:
            logger.warning("Vía duplicada '%s' en %s; se usa %s",
                           edge.value.label, edge.id, index[edge.value].id)
            continue
        index[edge.value] = edge
    return index


def find_node(graph: RoadGraph, label: str) -> Optional[VertexId]:
    """Busca un nodo por etiqueta."""
    for node_id, vertex in graph.nodes.items():
        if node_label(vertex.value) == label:
            return node_id
    return None


def network_stats(graph: RoadGraph) -> Dict:
    """
    Calcula estadísticas de la red.

    Returns:
        dict: Diccionario con estadísticas de la red
    """
    roads = [edge.value for edge in graph.iter_edges()]
    total_length = sum(road.length for road in roads)
    avg_road_length = total_length / len(roads) if roads else 0

    digraph = graph.to_networkx()
    return {
        'num_nodes': len(graph),
        'num_roads': len(roads),
        'num_lanes': sum(max(0, road.lane_count) for road in roads),
        'total_length_km': m_to_km(total_length),
        'avg_road_length_m': avg_road_length,
        'is_connected': len(graph) > 0 and nx.is_weakly_connected(digraph),
    }
