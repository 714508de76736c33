"""
Simulador de tráfico vehicular.

Este módulo contiene el motor de simulación que modela:
- Estados de semáforos y derecho de paso efectivo
- Movimiento de vehículos (seguimiento vehicular IDM)
- Selección de junctions orientada a destino
- Generación de tráfico en los puntos de entrada
- Paso de simulación determinista sobre fotos inmutables
"""

from .traffic_light import SignalStage, SignalState, advance_signal, junction_flow_state
from .vehicle import LeadObstacle, advance_vehicle, idm_acceleration
from .routing import RoutingTable
from .traffic_generator import TrafficGenerator
from .traffic_simulator import (
    LaneOccupancy, SimState, SimulationConfig, TrafficSimulator,
    compute_occupancy, initial_state, step,
)

__all__ = [
    'SignalStage',
    'SignalState',
    'advance_signal',
    'junction_flow_state',
    'LeadObstacle',
    'advance_vehicle',
    'idm_acceleration',
    'RoutingTable',
    'TrafficGenerator',
    'LaneOccupancy',
    'SimState',
    'SimulationConfig',
    'TrafficSimulator',
    'compute_occupancy',
    'initial_state',
    'step',
]
