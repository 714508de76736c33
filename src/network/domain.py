"""
Modelo de dominio de la red vial.

Tipos de valor inmutables construidos sobre el grafo genérico: vías, carriles,
conexiones entre carriles (junctions), nodos (Emitter, Drain, Sink,
Intersection), control de intersecciones, perfiles de conductor y vehículos.

Los nodos forman un conjunto cerrado de variantes. Las consultas que
necesitan el validador y el motor (carriles entrantes, salientes, junctions,
control) se resuelven con un despacho exhaustivo sobre la variante.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from src.utils.config import TrafficLightConfig

from .graph import VertexId
from .units import Meters, MetersPerSecond, KilometersPerHour, Seconds, VehiclesPerHour, kmh_to_ms


class RoadType(Enum):
    """Clase funcional de una vía."""
    HIGHWAY = "highway"
    ARTERIAL = "arterial"
    STROAD = "stroad"
    STREET = "street"
    RESIDENTIAL = "residential"

    @property
    def priority(self) -> int:
        """Rango de prioridad (mayor = vía principal)."""
        return _ROAD_PRIORITY[self]


_ROAD_PRIORITY = {
    RoadType.HIGHWAY: 5,
    RoadType.ARTERIAL: 4,
    RoadType.STROAD: 3,
    RoadType.STREET: 2,
    RoadType.RESIDENTIAL: 1,
}


@dataclass(frozen=True)
class Road:
    """
    Tramo de vía dirigido. Inmutable una vez creado.

    La velocidad máxima se declara en km/h (como en la señalización) y se
    expone en m/s mediante ``speed_limit``.
    """
    label: str
    length: Meters
    speed_limit_kmh: KilometersPerHour
    road_type: RoadType
    lane_count: int

    @property
    def speed_limit(self) -> MetersPerSecond:
        return kmh_to_ms(self.speed_limit_kmh)

    def __str__(self) -> str:
        return f"Road({self.label}, {self.length}m, {self.lane_count} carriles)"


@dataclass(frozen=True, order=True)
class LaneNumber:
    """Ordinal de carril. Sólo admite comparación, no aritmética."""
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Lane:
    """Carril identificado por la clave compuesta (vía, ordinal)."""
    road: Road
    ordinal: LaneNumber

    @property
    def length(self) -> Meters:
        return self.road.length

    def __str__(self) -> str:
        return f"{self.road.label}[{self.ordinal}]"


@dataclass(frozen=True)
class Junction:
    """Camino permitido entre dos carriles a través de un nodo."""
    from_lane: Lane
    to_lane: Lane

    def __str__(self) -> str:
        return f"{self.from_lane} → {self.to_lane}"


class FlowState(Enum):
    """Derecho de paso sobre una junction."""
    RIGHT_OF_WAY = "right_of_way"
    YIELD = "yield"
    STOP = "stop"


@dataclass(frozen=True)
class SignalPhase:
    """Fase temporizada: asigna un FlowState a cada junction de la intersección."""
    duration: Seconds
    junction_states: Dict[Junction, FlowState] = field(default_factory=dict, hash=False)

    def state_for(self, junction: Junction) -> FlowState:
        """Estado configurado; una junction sin mapear se considera STOP."""
        return self.junction_states.get(junction, FlowState.STOP)


@dataclass(frozen=True)
class SignalConfig:
    """
    Plan semafórico: fases ordenadas más amarillo y todo-rojo compartidos.

    Raises:
        ValueError: Si no hay fases, alguna duración es negativa o el
                    ciclo completo dura cero segundos
    """
    phases: Tuple[SignalPhase, ...]
    yellow_duration: Seconds = Seconds(TrafficLightConfig.YELLOW_TIME)
    all_red_duration: Seconds = Seconds(TrafficLightConfig.ALL_RED_TIME)

    def __post_init__(self):
        object.__setattr__(self, "phases", tuple(self.phases))

        if not self.phases:
            raise ValueError("Debe configurarse al menos una fase")
        if self.yellow_duration < 0 or self.all_red_duration < 0:
            raise ValueError("Las duraciones de amarillo y todo-rojo no pueden ser negativas")
        for index, phase in enumerate(self.phases):
            if phase.duration < 0:
                raise ValueError(f"Duración de verde negativa en la fase {index}: {phase.duration}s")

        cycle = (sum(phase.duration for phase in self.phases)
                 + len(self.phases) * (self.yellow_duration + self.all_red_duration))
        if cycle <= 0:
            raise ValueError("El ciclo semafórico debe durar más de 0 segundos")


# Tipos de control de intersección

@dataclass(frozen=True)
class Uncontrolled:
    """Sin control: todas las junctions tienen paso."""


@dataclass(frozen=True)
class YieldSign:
    """Ceda el paso en los accesos secundarios."""


@dataclass(frozen=True)
class StopSign:
    """Pare; ``all_way`` indica pare en todos los accesos."""
    all_way: bool = True


@dataclass(frozen=True)
class TrafficSignal:
    """Semáforo con plan de fases."""
    config: SignalConfig


IntersectionControl = Union[Uncontrolled, YieldSign, StopSign, TrafficSignal]


# Conductores

@dataclass(frozen=True)
class DriverParameters:
    """
    Parámetros de comportamiento de un conductor.

    Attributes:
        reaction_time: Tiempo de reacción / separación temporal deseada (s)
        aggression: Factor sobre velocidad máxima y aceleración (1.0 = neutro)
        courtesy: 0..1, agranda la zona vigilada al ceder el paso
    """
    reaction_time: Seconds = Seconds(1.0)
    aggression: float = 1.0
    courtesy: float = 0.5


@dataclass(frozen=True)
class Commuter:
    """Rutina de viaje al trabajo. Se conserva sólo como dato de configuración; no afecta generación ni rutas."""
    work_start: float  # hora del día
    work_end: float
    lunch_break: bool = False


@dataclass(frozen=True)
class ServiceWorker:
    """Rutina por turnos. Se conserva sólo como dato de configuración; no afecta generación ni rutas."""
    shift_start: float  # hora del día
    shift_duration: float  # horas


@dataclass(frozen=True)
class Cruising:
    pass


DriverRoutine = Union[Commuter, ServiceWorker, Cruising]


@dataclass(frozen=True)
class DriverProfile:
    parameters: DriverParameters = DriverParameters()
    routine: DriverRoutine = Cruising()


# Nodos

@dataclass(frozen=True)
class Emitter:
    """Punto de entrada: carriles que nacen aquí, tasa de generación y perfiles."""
    label: str
    to_lanes: Tuple[Lane, ...] = ()
    spawn_rate: VehiclesPerHour = VehiclesPerHour(0.0)
    profile_distribution: Tuple[Tuple[DriverProfile, float], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "to_lanes", tuple(self.to_lanes))
        object.__setattr__(self, "profile_distribution", tuple(self.profile_distribution))


@dataclass(frozen=True)
class Drain:
    """Punto de salida: carriles que terminan aquí."""
    label: str
    from_lanes: Tuple[Lane, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "from_lanes", tuple(self.from_lanes))


@dataclass(frozen=True)
class Sink:
    """Extremo bidireccional: genera (como Emitter) y consume (como Drain)."""
    label: str
    to_lanes: Tuple[Lane, ...] = ()
    from_lanes: Tuple[Lane, ...] = ()
    spawn_rate: VehiclesPerHour = VehiclesPerHour(0.0)
    profile_distribution: Tuple[Tuple[DriverProfile, float], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "to_lanes", tuple(self.to_lanes))
        object.__setattr__(self, "from_lanes", tuple(self.from_lanes))
        object.__setattr__(self, "profile_distribution", tuple(self.profile_distribution))


@dataclass(frozen=True)
class Intersection:
    """Intersección: política de control y conjunto de junctions."""
    label: str
    control: IntersectionControl = Uncontrolled()
    junctions: Tuple[Junction, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "junctions", tuple(self.junctions))


Node = Union[Emitter, Drain, Sink, Intersection]


def _unknown_node(node) -> TypeError:
    return TypeError(f"Tipo de nodo desconocido: {type(node).__name__}")


def node_label(node: Node) -> str:
    if isinstance(node, (Emitter, Drain, Sink, Intersection)):
        return node.label
    raise _unknown_node(node)


def node_outgoing_lanes(node: Node) -> Tuple[Lane, ...]:
    """Carriles que el nodo declara como salientes."""
    if isinstance(node, Emitter):
        return node.to_lanes
    if isinstance(node, Drain):
        return ()
    if isinstance(node, Sink):
        return node.to_lanes
    if isinstance(node, Intersection):
        return tuple(dict.fromkeys(j.to_lane for j in node.junctions))
    raise _unknown_node(node)


def node_incoming_lanes(node: Node) -> Tuple[Lane, ...]:
    """Carriles que el nodo declara como entrantes."""
    if isinstance(node, Emitter):
        return ()
    if isinstance(node, Drain):
        return node.from_lanes
    if isinstance(node, Sink):
        return node.from_lanes
    if isinstance(node, Intersection):
        return tuple(dict.fromkeys(j.from_lane for j in node.junctions))
    raise _unknown_node(node)


def node_junctions(node: Node) -> Tuple[Junction, ...]:
    if isinstance(node, Intersection):
        return node.junctions
    if isinstance(node, (Emitter, Drain, Sink)):
        return ()
    raise _unknown_node(node)


def node_control(node: Node) -> Optional[IntersectionControl]:
    if isinstance(node, Intersection):
        return node.control
    if isinstance(node, (Emitter, Drain, Sink)):
        return None
    raise _unknown_node(node)


def is_spawn_point(node: Node) -> bool:
    """True para Emitter y Sink."""
    if isinstance(node, (Emitter, Sink)):
        return True
    if isinstance(node, (Drain, Intersection)):
        return False
    raise _unknown_node(node)


def is_terminal(node: Node) -> bool:
    """True para Drain y Sink (donde los vehículos abandonan la red)."""
    if isinstance(node, (Drain, Sink)):
        return True
    if isinstance(node, (Emitter, Intersection)):
        return False
    raise _unknown_node(node)


# Vehículos

@dataclass(frozen=True, order=True)
class VehicleId:
    """Identificador opaco de vehículo."""
    value: int

    def __str__(self) -> str:
        return f"veh{self.value}"


@dataclass(frozen=True)
class VehiclePosition:
    lane: Lane
    distance: Meters  # metros recorridos desde el inicio del carril


@dataclass(frozen=True)
class Vehicle:
    """
    Vehículo en la red. Cada paso produce una copia nueva, nunca se muta.

    Attributes:
        odometer: Distancia total recorrida desde su generación (m)
        waiting_time: Tiempo detenido en el acceso actual (s); se reinicia
                      al cruzar una junction
    """
    id: VehicleId
    profile: DriverProfile
    position: VehiclePosition
    speed: MetersPerSecond
    destination: VertexId
    spawn_time: Seconds = Seconds(0.0)
    odometer: Meters = Meters(0.0)
    waiting_time: Seconds = Seconds(0.0)

    @property
    def lane(self) -> Lane:
        return self.position.lane

    @property
    def distance(self) -> Meters:
        return self.position.distance

    def __str__(self) -> str:
        return f"Vehicle({self.id}, {self.lane} @ {self.distance:.1f}m, {self.speed:.1f}m/s)"
