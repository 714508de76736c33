"""
Generación de vehículos en los puntos de entrada (Emitter y Sink).

Cada punto de entrada acumula llegadas fraccionarias:
``acumulado += tasa (veh/h) / 3600 × dt`` y genera un vehículo por cada
cruce de entero. El muestreo de perfiles y destinos usa un
``numpy.random.Generator`` derivado de (semilla, tick), de modo que una misma
semilla reproduce exactamente la misma secuencia.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from src.network.domain import (
    DriverProfile, Emitter, Lane, Sink, Vehicle, VehicleId, VehiclePosition,
)
from src.network.graph import VertexId
from src.network.units import Meters, MetersPerSecond, Seconds, vph_to_per_second
from src.utils.config import SimulatorConfig

from .routing import RoutingTable

logger = logging.getLogger(__name__)


def spawn_rng(seed: int, tick: int) -> np.random.Generator:
    """Generador aleatorio determinista para un tick."""
    return np.random.default_rng([seed, tick])


def normalized_weights(distribution: Sequence[Tuple[DriverProfile, float]]) -> Optional[np.ndarray]:
    """
    Normaliza los pesos de una distribución de perfiles.

    Returns:
        Array de probabilidades, o None si la distribución está vacía o no
        tiene peso positivo
    """
    if not distribution:
        return None
    weights = np.array([max(0.0, float(weight)) for _, weight in distribution], dtype=np.float64)
    total = weights.sum()
    if total <= 0:
        return None
    return weights / total


def sample_profile(distribution: Sequence[Tuple[DriverProfile, float]],
                   rng: np.random.Generator) -> Optional[DriverProfile]:
    """Muestrea un perfil de conductor; None si la distribución está vacía."""
    weights = normalized_weights(distribution)
    if weights is None:
        return None
    return distribution[int(rng.choice(len(distribution), p=weights))][0]


@dataclass(frozen=True)
class SpawnResult:
    vehicles: Tuple[Vehicle, ...]
    accumulators: Dict[VertexId, float]
    next_vehicle_id: int


class TrafficGenerator:
    """
    Genera vehículos según las tasas de los puntos de entrada.

    Decisiones:
    - Llegadas por acumulador fraccionario (sin sorteo por tick).
    - A lo sumo un vehículo por carril de entrada y por tick.
    - Carril: el menos congestionado; empate por orden de declaración.
    - Entrada bloqueada (vehículo trasero a menos de largo + hueco mínimo):
      la llegada queda pendiente, con tope ``MAX_PENDING_ARRIVALS``.
    - Destino: uniforme entre los Drain/Sink alcanzables, excluyendo el
      propio nodo.
    - Distribución de perfiles vacía o tasa nula: el punto no genera.
    """

    def __init__(self, spawn_points: Sequence[Tuple[VertexId, object]], routing: RoutingTable):
        self.spawn_points = [
            (node_id, node) for node_id, node in sorted(spawn_points, key=lambda item: item[0])
            if isinstance(node, (Emitter, Sink))
        ]
        self.routing = routing

    def initial_accumulators(self) -> Dict[VertexId, float]:
        return {node_id: 0.0 for node_id, _ in self.spawn_points}

    @staticmethod
    def expected_arrivals(node, dt: Seconds) -> float:
        """Llegadas esperadas por tick: tasa × dt."""
        return vph_to_per_second(max(0.0, node.spawn_rate)) * dt

    @staticmethod
    def _entry_is_free(rear_position: Optional[Meters]) -> bool:
        if rear_position is None:
            return True
        return rear_position - SimulatorConfig.VEHICLE_LENGTH >= SimulatorConfig.MIN_SAFE_DISTANCE

    def spawn(self, accumulators: Dict[VertexId, float], dt: Seconds, current_time: Seconds,
              rng: np.random.Generator, next_vehicle_id: int,
              lane_count: Callable[[Lane], int],
              rear_position: Callable[[Lane], Optional[Meters]]) -> SpawnResult:
        """
        Ejecuta la etapa de generación de un tick.

        Args:
            accumulators: Llegadas acumuladas por punto de entrada
            dt: Paso de tiempo
            current_time: Tiempo de simulación (momento de generación)
            rng: Generador aleatorio del tick
            next_vehicle_id: Próximo id libre
            lane_count: Ocupación de un carril en la foto previa al paso
            rear_position: Posición del vehículo más atrasado de un carril

        Returns:
            SpawnResult con los vehículos nuevos (ids ascendentes)
        """
        new_vehicles: List[Vehicle] = []
        new_accumulators = dict(accumulators)
        spawned_per_lane: Dict[Lane, int] = {}

        for node_id, node in self.spawn_points:
            accumulated = accumulators.get(node_id, 0.0)
            weights = normalized_weights(node.profile_distribution)
            if weights is None or node.spawn_rate <= 0 or not node.to_lanes:
                new_accumulators[node_id] = accumulated
                continue

            accumulated = min(accumulated + self.expected_arrivals(node, dt),
                              SimulatorConfig.MAX_PENDING_ARRIVALS)

            used: List[Lane] = []
            while accumulated >= 1.0:
                free_lanes = [
                    (lane_count(lane) + spawned_per_lane.get(lane, 0), index, lane)
                    for index, lane in enumerate(node.to_lanes)
                    if lane not in used and self._entry_is_free(rear_position(lane))
                ]
                if not free_lanes:
                    break
                lane = min(free_lanes, key=lambda item: (item[0], item[1]))[2]

                destinations = self.routing.reachable_destinations(lane, exclude=node_id)
                if not destinations:
                    logger.debug("Carril %s de '%s' no alcanza ningún destino", lane, node.label)
                    used.append(lane)
                    continue

                profile = sample_profile(node.profile_distribution, rng)
                destination = destinations[int(rng.integers(len(destinations)))]

                new_vehicles.append(Vehicle(
                    id=VehicleId(next_vehicle_id),
                    profile=profile,
                    position=VehiclePosition(lane, Meters(0.0)),
                    speed=MetersPerSecond(0.0),
                    destination=destination,
                    spawn_time=current_time,
                ))
                next_vehicle_id += 1
                accumulated -= 1.0
                used.append(lane)
                spawned_per_lane[lane] = spawned_per_lane.get(lane, 0) + 1

            new_accumulators[node_id] = accumulated

        if new_vehicles:
            logger.debug("Generados %d vehículos en t=%.1fs", len(new_vehicles), current_time)

        return SpawnResult(tuple(new_vehicles), new_accumulators, next_vehicle_id)
