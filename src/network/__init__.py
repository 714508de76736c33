"""
Modelo de red vial.

Este módulo contiene:
- Grafo dirigido genérico con índice denso y matriz de adyacencia
- Tipos de dominio (vías, carriles, junctions, nodos, vehículos)
- Construcción del grafo vial a partir de una descripción de red
- Validación de topología previa a la simulación
"""

from .graph import Graph, GraphBuilder, Vertex, Edge, VertexId, EdgeId
from .domain import (
    Road, RoadType, Lane, LaneNumber, Junction, FlowState, SignalPhase, SignalConfig,
    Uncontrolled, YieldSign, StopSign, TrafficSignal,
    Emitter, Drain, Sink, Intersection,
    DriverParameters, DriverProfile, Commuter, ServiceWorker, Cruising,
    Vehicle, VehicleId, VehiclePosition,
)
from .traffic_network import NetworkConfig, RoadGraph, build_graph, lanes_for_road
from .validation import (
    ValidationError, ValidationErrorKind, NetworkValidationError,
    validate_intersection, validate_network, ensure_routable,
)

__all__ = [
    'Graph', 'GraphBuilder', 'Vertex', 'Edge', 'VertexId', 'EdgeId',
    'Road', 'RoadType', 'Lane', 'LaneNumber', 'Junction', 'FlowState',
    'SignalPhase', 'SignalConfig',
    'Uncontrolled', 'YieldSign', 'StopSign', 'TrafficSignal',
    'Emitter', 'Drain', 'Sink', 'Intersection',
    'DriverParameters', 'DriverProfile', 'Commuter', 'ServiceWorker', 'Cruising',
    'Vehicle', 'VehicleId', 'VehiclePosition',
    'NetworkConfig', 'RoadGraph', 'build_graph', 'lanes_for_road',
    'ValidationError', 'ValidationErrorKind', 'NetworkValidationError',
    'validate_intersection', 'validate_network', 'ensure_routable',
]
