"""
Cinemática de seguimiento vehicular.

Este módulo implementa el comportamiento longitudinal de un vehículo
individual con el Intelligent Driver Model (IDM): aceleración acotada que
cierra el hueco con el objeto de adelante (otro vehículo o la línea de
detención) sin violar la distancia mínima de seguridad.

Todas las funciones son puras: reciben el estado previo y devuelven los
valores nuevos, sin mutar nada.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from src.network.domain import DriverParameters, Vehicle
from src.network.units import Meters, MetersPerSecond, Seconds
from src.utils.config import SimulatorConfig


@dataclass(frozen=True)
class LeadObstacle:
    """
    Objeto de adelante en coordenadas del carril actual.

    Attributes:
        position: Posición de su parte trasera (m desde el inicio del carril)
        speed: Su velocidad (m/s); 0 para una línea de detención
        standstill_gap: Hueco mínimo a mantener detrás de él (m)
    """
    position: Meters
    speed: MetersPerSecond
    standstill_gap: Meters


def stop_line(lane_length: Meters) -> LeadObstacle:
    """Línea de detención tratada como obstáculo estacionario."""
    return LeadObstacle(lane_length, MetersPerSecond(0.0), Meters(0.0))


def vehicle_ahead(rear_position: Meters, speed: MetersPerSecond) -> LeadObstacle:
    return LeadObstacle(rear_position, speed, Meters(SimulatorConfig.MIN_SAFE_DISTANCE))


def speed_cap(speed_limit: MetersPerSecond, parameters: DriverParameters) -> MetersPerSecond:
    """Velocidad máxima del conductor: límite de la vía × agresividad."""
    return MetersPerSecond(max(0.0, speed_limit * parameters.aggression))


def idm_acceleration(speed: MetersPerSecond, desired_speed: MetersPerSecond,
                     parameters: DriverParameters, lead_gap: Optional[Meters] = None,
                     lead_speed: MetersPerSecond = MetersPerSecond(0.0),
                     standstill_gap: Meters = Meters(SimulatorConfig.MIN_SAFE_DISTANCE)) -> float:
    """
    Aceleración del Intelligent Driver Model.

    a = a_max · [1 - (v/v0)^δ - (s*/s)²],  s* = s0 + v·T + v·Δv / (2·√(a_max·b))

    El tiempo de reacción del conductor actúa como separación temporal T y
    la agresividad escala a_max. El resultado se acota a
    [-MAX_DECELERATION, a_max].

    Args:
        speed: Velocidad actual (m/s)
        desired_speed: Velocidad deseada v0 (m/s)
        parameters: Parámetros del conductor
        lead_gap: Hueco hasta el objeto de adelante (None = vía libre)
        lead_speed: Velocidad del objeto de adelante
        standstill_gap: Hueco mínimo s0

    Returns:
        float: Aceleración en m/s²
    """
    max_acceleration = SimulatorConfig.ACCELERATION * max(parameters.aggression, 0.0)
    comfortable = SimulatorConfig.COMFORTABLE_DECELERATION
    max_deceleration = SimulatorConfig.MAX_DECELERATION

    if desired_speed <= 0 or max_acceleration <= 0:
        return -max_deceleration

    free_term = 1.0 - (speed / desired_speed) ** SimulatorConfig.ACCELERATION_EXPONENT

    interaction = 0.0
    if lead_gap is not None:
        if lead_gap <= 0:
            return -max_deceleration
        approach_rate = speed - lead_speed
        dynamic = speed * parameters.reaction_time + \
            speed * approach_rate / (2 * math.sqrt(max_acceleration * comfortable))
        desired_gap = standstill_gap + max(0.0, dynamic)
        interaction = (desired_gap / lead_gap) ** 2

    acceleration = max_acceleration * (free_term - interaction)
    return max(-max_deceleration, min(acceleration, max_acceleration))


def advance_vehicle(vehicle: Vehicle, lead: Optional[LeadObstacle],
                    speed_limit: MetersPerSecond, dt: Seconds) -> Tuple[MetersPerSecond, Meters]:
    """
    Integra un paso de la cinemática de un vehículo.

    1. Calcula la aceleración IDM respecto del objeto de adelante.
    2. Integra la velocidad, acotada a [0, límite × agresividad].
    3. Integra la posición con velocidad × dt.
    4. Si la posición supera el objeto de adelante menos su hueco mínimo,
       se recorta (nunca hacia atrás) y la velocidad se ajusta al
       desplazamiento real.

    Args:
        vehicle: Vehículo en el estado previo
        lead: Objeto de adelante, o None si el camino está libre
        speed_limit: Límite de la vía actual (m/s)
        dt: Paso de tiempo

    Returns:
        (velocidad nueva, posición nueva en el carril actual). La posición
        puede exceder el largo del carril; la transición la resuelve el motor.
    """
    parameters = vehicle.profile.parameters
    cap = speed_cap(speed_limit, parameters)

    lead_gap = None
    lead_speed = MetersPerSecond(0.0)
    standstill = Meters(SimulatorConfig.MIN_SAFE_DISTANCE)
    if lead is not None:
        lead_gap = Meters(lead.position - vehicle.distance)
        lead_speed = lead.speed
        standstill = lead.standstill_gap

    acceleration = idm_acceleration(vehicle.speed, cap, parameters, lead_gap, lead_speed, standstill)
    speed = max(0.0, min(vehicle.speed + acceleration * dt, cap))
    position = vehicle.distance + speed * dt

    if lead is not None:
        limit = lead.position - lead.standstill_gap
        if position > limit:
            position = max(vehicle.distance, limit)
            speed = min(speed, (position - vehicle.distance) / dt) if dt > 0 else 0.0

    return MetersPerSecond(speed), Meters(position)


def is_halted(vehicle: Vehicle) -> bool:
    """True si el vehículo está prácticamente detenido."""
    return vehicle.speed <= SimulatorConfig.HALT_SPEED
