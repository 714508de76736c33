"""
Grafo dirigido genérico con índice denso y matriz de adyacencia.

El grafo se construye en dos fases: un ``GraphBuilder`` mutable acumula
vértices y aristas, y ``build()`` produce un ``Graph`` congelado con un índice
denso por vértice y una matriz de adyacencia. La matriz es un artefacto
derivado: nunca se modifica en sitio, ante cualquier cambio de topología se
reconstruye el grafo completo.

Este módulo no tiene conocimiento del dominio vial.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterator, List, Optional, TypeVar

import networkx as nx
import numpy as np

logger = logging.getLogger(__name__)

N = TypeVar("N")
E = TypeVar("E")

# Valor de la matriz de adyacencia para "no hay arista"
NO_EDGE = -1


@dataclass(frozen=True, order=True)
class VertexId:
    """Identificador opaco de vértice (sólo igualdad y orden)."""
    value: int

    def __str__(self) -> str:
        return f"v{self.value}"


@dataclass(frozen=True, order=True)
class EdgeId:
    """Identificador opaco de arista (sólo igualdad y orden)."""
    value: int

    def __str__(self) -> str:
        return f"e{self.value}"


@dataclass(frozen=True)
class Vertex(Generic[N]):
    id: VertexId
    value: N


@dataclass(frozen=True)
class Edge(Generic[E]):
    id: EdgeId
    source: VertexId
    target: VertexId
    value: E


class Graph(Generic[N, E]):
    """
    Grafo dirigido congelado G = (V, E).

    Los índices densos se asignan en orden ascendente de ``VertexId``, por lo
    que son reproducibles entre ejecuciones. Entre cada par ordenado de
    vértices existe como máximo una arista.
    """

    def __init__(self, nodes: Dict[VertexId, Vertex[N]], edges: Dict[EdgeId, Edge[E]],
                 node_index: Dict[VertexId, int], adjacency: np.ndarray):
        self._nodes = nodes
        self._edges = edges
        self._node_index = node_index
        self._index_to_id = sorted(node_index, key=node_index.__getitem__)
        self._adjacency = adjacency

    @property
    def nodes(self) -> Dict[VertexId, Vertex[N]]:
        """Vértices en orden ascendente de id."""
        return dict(self._nodes)

    @property
    def edges(self) -> Dict[EdgeId, Edge[E]]:
        """Aristas en orden ascendente de id."""
        return dict(self._edges)

    @property
    def node_index(self) -> Dict[VertexId, int]:
        return dict(self._node_index)

    @property
    def adjacency(self) -> np.ndarray:
        """Matriz V×V de solo lectura con el id de arista o ``NO_EDGE``."""
        return self._adjacency

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: VertexId) -> bool:
        return node_id in self._nodes

    def vertex(self, node_id: VertexId) -> Vertex[N]:
        return self._nodes[node_id]

    def edge(self, edge_id: EdgeId) -> Edge[E]:
        return self._edges[edge_id]

    def iter_edges(self) -> Iterator[Edge[E]]:
        return iter(self._edges.values())

    def index_of(self, node_id: VertexId) -> int:
        return self._node_index[node_id]

    def id_at(self, index: int) -> VertexId:
        return self._index_to_id[index]

    def edge_between(self, source_index: int, target_index: int) -> Optional[EdgeId]:
        """
        Búsqueda O(1) en la matriz de adyacencia por índices densos.

        Returns:
            EdgeId de la arista ``i → j`` o None si no existe
        """
        value = int(self._adjacency[source_index, target_index])
        if value == NO_EDGE:
            return None
        return EdgeId(value)

    def edge_between_nodes(self, source: VertexId, target: VertexId) -> Optional[EdgeId]:
        if source not in self._node_index or target not in self._node_index:
            return None
        return self.edge_between(self._node_index[source], self._node_index[target])

    def successors(self, node_id: VertexId) -> List[VertexId]:
        row = self._adjacency[self._node_index[node_id], :]
        return [self._index_to_id[j] for j in np.flatnonzero(row != NO_EDGE)]

    def predecessors(self, node_id: VertexId) -> List[VertexId]:
        column = self._adjacency[:, self._node_index[node_id]]
        return [self._index_to_id[i] for i in np.flatnonzero(column != NO_EDGE)]

    def outgoing_edges(self, node_id: VertexId) -> List[Edge[E]]:
        """Aristas con origen en ``node_id``, en orden de id de arista."""
        return [edge for edge in self._edges.values() if edge.source == node_id]

    def incoming_edges(self, node_id: VertexId) -> List[Edge[E]]:
        """Aristas con destino en ``node_id``, en orden de id de arista."""
        return [edge for edge in self._edges.values() if edge.target == node_id]

    def to_networkx(self, weight: Optional[Callable[[E], float]] = None) -> nx.DiGraph:
        """
        Vista ``networkx.DiGraph`` del grafo para algoritmos de rutas.

        Args:
            weight: Función opcional que asigna el atributo ``weight`` a cada arista

        Returns:
            nx.DiGraph: Nuevo grafo (modificarlo no afecta a este)
        """
        digraph = nx.DiGraph()
        for node_id, vertex in self._nodes.items():
            digraph.add_node(node_id, value=vertex.value)
        for edge in self._edges.values():
            attributes = {"edge_id": edge.id, "value": edge.value}
            if weight is not None:
                attributes["weight"] = weight(edge.value)
            digraph.add_edge(edge.source, edge.target, **attributes)
        return digraph

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self._nodes)}, edges={len(self._edges)})"


class GraphBuilder(Generic[N, E]):
    """
    Acumulador mutable de vértices y aristas.

    Las operaciones devuelven el propio builder para poder encadenarlas. Un id
    duplicado reemplaza la entrada anterior (gana la última escritura).
    """

    def __init__(self):
        self._nodes: Dict[VertexId, Vertex[N]] = {}
        self._edges: Dict[EdgeId, Edge[E]] = {}

    def add_vertex(self, vertex: Vertex[N]) -> "GraphBuilder[N, E]":
        self._nodes[vertex.id] = vertex
        return self

    def add_edge(self, edge: Edge[E]) -> "GraphBuilder[N, E]":
        self._edges[edge.id] = edge
        return self

    def remove_vertex(self, node_id: VertexId) -> "GraphBuilder[N, E]":
        self._nodes.pop(node_id, None)
        return self

    def remove_edge(self, edge_id: EdgeId) -> "GraphBuilder[N, E]":
        self._edges.pop(edge_id, None)
        return self

    @classmethod
    def from_graph(cls, graph: Graph[N, E]) -> "GraphBuilder[N, E]":
        """Builder precargado con el contenido de un grafo ya construido."""
        builder = cls()
        for vertex in graph.nodes.values():
            builder.add_vertex(vertex)
        for edge in graph.edges.values():
            builder.add_edge(edge)
        return builder

    def build(self) -> Graph[N, E]:
        """
        Congela el contenido acumulado en un ``Graph``.

        Política de inconsistencias:
        - Una arista que referencia un vértice inexistente se descarta
          (con un warning) en lugar de abortar la construcción.
        - Si dos aristas unen el mismo par ordenado de vértices, se conserva
          la de mayor id y la otra se descarta.

        Complejidad: O(V + E + V²) por la matriz densa.
        """
        node_ids = sorted(self._nodes)
        node_index = {node_id: i for i, node_id in enumerate(node_ids)}
        n = len(node_ids)

        adjacency = np.full((n, n), NO_EDGE, dtype=np.int64)
        kept: Dict[EdgeId, Edge[E]] = {}

        for edge_id in sorted(self._edges):
            edge = self._edges[edge_id]
            i = node_index.get(edge.source)
            j = node_index.get(edge.target)
            if i is None or j is None:
                logger.warning("Arista %s descartada: referencia a vértice inexistente (%s → %s)",
                               edge_id, edge.source, edge.target)
                continue

            previous = int(adjacency[i, j])
            if previous != NO_EDGE:
                logger.warning("Arista %s reemplaza a e%d entre %s y %s",
                               edge_id, previous, edge.source, edge.target)
                kept.pop(EdgeId(previous))

            adjacency[i, j] = edge_id.value
            kept[edge_id] = edge

        adjacency.setflags(write=False)
        nodes = {node_id: self._nodes[node_id] for node_id in node_ids}

        return Graph(nodes, kept, node_index, adjacency)
