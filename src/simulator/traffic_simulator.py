"""
Motor principal de simulación de tráfico.

Este módulo implementa el paso de simulación ``step(config, state)`` que,
a partir de una foto inmutable ``SimState``, produce la siguiente. El orden
de las etapas es fijo:

1. Avanzar la máquina de estados de cada semáforo.
2. Tomar la foto de ocupación de carriles previa al paso (y resolver con
   ella rutas y derecho de paso en los finales de carril).
3. Integrar la cinemática de cada vehículo en orden ascendente de id y
   resolver las transiciones por junctions.
4. Generar vehículos en los puntos de entrada.
5. Retirar los vehículos que alcanzaron un Drain/Sink.
6. Avanzar el tiempo y devolver un ``SimState`` nuevo.

Todas las lecturas de las etapas 3 y 4 usan la foto de la etapa 2, por lo
que el resultado no depende del orden interno de iteración.
"""

import logging
import math
import time as timer
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np

from src.network.domain import (
    FlowState, Intersection, Junction, Lane, Node, Road, StopSign, TrafficSignal, Vehicle,
    VehicleId, VehiclePosition, YieldSign,
)
from src.network.graph import VertexId
from src.network.traffic_network import NetworkConfig, RoadGraph, build_graph, lanes_for_road
from src.network.units import Meters, MetersPerSecond, Seconds, m_to_km
from src.network.validation import ensure_routable
from src.utils.config import SimulatorConfig

from .routing import RoutingTable
from .traffic_generator import TrafficGenerator, spawn_rng
from .traffic_light import (
    SignalStage, SignalState, advance_signal, initial_signal_state, junction_flow_state,
)
from .vehicle import (
    LeadObstacle, advance_vehicle, is_halted, stop_line, vehicle_ahead,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimState:
    """
    Foto inmutable de la simulación en un tick.

    Attributes:
        time: Tiempo simulado (s)
        tick: Número de pasos ejecutados
        vehicles: Vehículos activos, en orden ascendente de id
        signals: Estado de cada intersección con semáforo
        spawn_accumulators: Llegadas fraccionarias pendientes por punto de entrada
        next_vehicle_id: Próximo id de vehículo libre
        vehicles_spawned: Total de vehículos generados
        vehicles_exited: Total de vehículos que abandonaron la red
    """
    time: Seconds = Seconds(0.0)
    tick: int = 0
    vehicles: Tuple[Vehicle, ...] = ()
    signals: Dict[VertexId, SignalState] = field(default_factory=dict)
    spawn_accumulators: Dict[VertexId, float] = field(default_factory=dict)
    next_vehicle_id: int = 1
    vehicles_spawned: int = 0
    vehicles_exited: int = 0

    def __post_init__(self):
        object.__setattr__(self, "vehicles", tuple(self.vehicles))

    @property
    def vehicle_count(self) -> int:
        return len(self.vehicles)


@dataclass(frozen=True, eq=False)
class LaneOccupancy:
    """
    Ocupación de un carril en la foto previa al paso.

    Los arrays están ordenados por posición ascendente (empate por id), de
    modo que el último elemento es el vehículo de cabeza.
    """
    lane: Lane
    vehicle_ids: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    positions: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.float64))
    speeds: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.float64))

    def __post_init__(self):
        object.__setattr__(self, "_index", {int(vid): i for i, vid in enumerate(self.vehicle_ids)})

    @property
    def count(self) -> int:
        return int(self.vehicle_ids.size)

    @property
    def density_veh_per_km(self) -> float:
        """Densidad en veh/km (inf si el carril mide 0 y tiene vehículos)."""
        if self.count == 0:
            return 0.0
        length_km = m_to_km(self.lane.length)
        return self.count / length_km if length_km > 0 else math.inf

    @property
    def mean_speed(self) -> float:
        return float(self.speeds.mean()) if self.count else 0.0

    @property
    def rear_position(self) -> Optional[Meters]:
        return Meters(float(self.positions[0])) if self.count else None

    @property
    def front_id(self) -> Optional[VehicleId]:
        return VehicleId(int(self.vehicle_ids[-1])) if self.count else None

    def leader_index(self, vehicle_id: VehicleId) -> Optional[int]:
        """Índice del vehículo inmediatamente adelante, o None si va en cabeza."""
        index = self._index.get(vehicle_id.value)
        if index is None or index + 1 >= self.count:
            return None
        return index + 1


def compute_occupancy(vehicles: Iterable[Vehicle], lanes: Iterable[Lane] = ()) -> Dict[Lane, LaneOccupancy]:
    """
    Foto de ocupación por carril.

    Args:
        vehicles: Vehículos en la posición previa al paso
        lanes: Carriles a incluir aunque estén vacíos

    Returns:
        dict: {carril: LaneOccupancy}
    """
    grouped: Dict[Lane, List[Vehicle]] = {lane: [] for lane in lanes}
    for vehicle in vehicles:
        grouped.setdefault(vehicle.lane, []).append(vehicle)

    occupancy: Dict[Lane, LaneOccupancy] = {}
    for lane, members in grouped.items():
        if not members:
            occupancy[lane] = LaneOccupancy(lane)
            continue
        ids = np.array([v.id.value for v in members], dtype=np.int64)
        positions = np.array([v.distance for v in members], dtype=np.float64)
        speeds = np.array([v.speed for v in members], dtype=np.float64)
        order = np.lexsort((ids, positions))
        occupancy[lane] = LaneOccupancy(lane, ids[order], positions[order], speeds[order])
    return occupancy


class SimulationConfig:
    """
    Configuración de una corrida: grafo validado, paso de tiempo y semilla.

    La red se valida al construir; una red con errores de topología nunca
    llega a simularse. Todo lo que se precalcula aquí (índices de carriles,
    tabla de rutas, accesos principales) es de solo lectura durante la corrida.

    Raises:
        NetworkValidationError: Si la red tiene errores de topología
        ValueError: Si el paso de tiempo no es positivo
    """

    def __init__(self, graph: RoadGraph, time_step: Seconds = SimulatorConfig.TIME_STEP,
                 seed: int = SimulatorConfig.DEFAULT_SEED, max_workers: int = 1):
        if time_step <= 0:
            raise ValueError(f"El paso de tiempo debe ser positivo: {time_step}")

        ensure_routable(graph)

        self.graph = graph
        self.time_step = Seconds(time_step)
        self.seed = seed
        self.max_workers = max(1, max_workers)

        self.routing = RoutingTable(graph)
        self._nodes: Dict[VertexId, Node] = {node_id: v.value for node_id, v in graph.nodes.items()}

        self.lanes: List[Lane] = []
        for edge in graph.iter_edges():
            self.lanes.extend(lanes_for_road(edge.value))

        self._junctions_by_lane: Dict[Lane, Tuple[Junction, ...]] = {}
        self._major_roads: Dict[VertexId, Set[Road]] = {}
        self.signalized: List[VertexId] = []

        for node_id, node in self._nodes.items():
            if not isinstance(node, Intersection):
                continue
            by_lane: Dict[Lane, List[Junction]] = {}
            for junction in node.junctions:
                by_lane.setdefault(junction.from_lane, []).append(junction)
            for lane, junctions in by_lane.items():
                if self.routing.end_node(lane.road) == node_id:
                    self._junctions_by_lane[lane] = tuple(junctions)

            if isinstance(node.control, TrafficSignal):
                self.signalized.append(node_id)
            elif isinstance(node.control, (YieldSign, StopSign)):
                self._major_roads[node_id] = self._find_major_roads(node_id)

        self.generator = TrafficGenerator(list(self._nodes.items()), self.routing)

        logger.info("Simulación configurada: %d carriles, %d semáforos, dt=%.2fs, semilla=%d",
                    len(self.lanes), len(self.signalized), self.time_step, self.seed)

    @classmethod
    def from_network_config(cls, network_config: NetworkConfig, **kwargs) -> "SimulationConfig":
        """Construye el grafo y la configuración usando el ``time_step`` de la descripción."""
        kwargs.setdefault("time_step", network_config.time_step)
        return cls(build_graph(network_config), **kwargs)

    def _find_major_roads(self, node_id: VertexId) -> Set[Road]:
        """
        Accesos principales de un ceda el paso / pare de dos vías.

        Son las vías entrantes con la clase de mayor prioridad; si todas
        comparten la misma clase no hay accesos principales.
        """
        roads = [edge.value for edge in self.graph.incoming_edges(node_id)]
        ranks = {road.road_type.priority for road in roads}
        if len(ranks) < 2:
            return set()
        top = max(ranks)
        return {road for road in roads if road.road_type.priority == top}

    def node(self, node_id: VertexId) -> Node:
        return self._nodes[node_id]

    def lane_end(self, lane: Lane) -> Optional[VertexId]:
        return self.routing.end_node(lane.road)

    def junctions_from(self, lane: Lane) -> Tuple[Junction, ...]:
        return self._junctions_by_lane.get(lane, ())

    def is_major_approach(self, node_id: VertexId, road: Road) -> bool:
        return road in self._major_roads.get(node_id, ())

    def ends_at_boundary(self, lane: Lane) -> bool:
        """True si el carril termina fuera de una intersección (Drain/Sink)."""
        end = self.lane_end(lane)
        return end is None or not isinstance(self._nodes[end], Intersection)


def initial_state(config: SimulationConfig) -> SimState:
    """
    Estado inicial: sin vehículos, tiempo cero y un semáforo en (fase 0,
    verde, 0s) por cada intersección con ``TrafficSignal``.
    """
    return SimState(
        time=Seconds(0.0),
        tick=0,
        vehicles=(),
        signals={node_id: initial_signal_state() for node_id in config.signalized},
        spawn_accumulators=config.generator.initial_accumulators(),
    )


@dataclass(frozen=True)
class TickSnapshot:
    """Todo lo que leen las etapas 3 y 4, capturado antes de mover vehículos."""
    config: SimulationConfig
    signals: Dict[VertexId, SignalState]
    occupancy: Dict[Lane, LaneOccupancy]
    plans: Dict[VehicleId, Junction]
    permits: Set[VehicleId]

    def lane_count(self, lane: Lane) -> int:
        occupancy = self.occupancy.get(lane)
        return occupancy.count if occupancy is not None else 0

    def rear_position(self, lane: Lane) -> Optional[Meters]:
        occupancy = self.occupancy.get(lane)
        return occupancy.rear_position if occupancy is not None else None


def _advance_signals(config: SimulationConfig, state: SimState) -> Dict[VertexId, SignalState]:
    signals = {}
    for node_id in config.signalized:
        control = config.node(node_id).control
        previous = state.signals.get(node_id, initial_signal_state())
        signals[node_id] = advance_signal(control.config, previous, config.time_step)
    return signals


@dataclass(frozen=True)
class _Approach:
    vehicle: Vehicle
    junction: Junction
    flow: FlowState
    gap: Meters


def _degraded_by_yellow(node: Intersection, signal: Optional[SignalState], junction: Junction) -> bool:
    """True si la junction cede sólo porque el semáforo está en amarillo."""
    if not isinstance(node.control, TrafficSignal) or signal is None:
        return False
    if signal.stage != SignalStage.YELLOW:
        return False
    phase = node.control.config.phases[signal.phase_index]
    return phase.state_for(junction) == FlowState.RIGHT_OF_WAY


def _resolve_lane_ends(config: SimulationConfig, signals: Dict[VertexId, SignalState],
                       occupancy: Dict[Lane, LaneOccupancy],
                       vehicles: Dict[VehicleId, Vehicle]) -> Tuple[Dict[VehicleId, Junction], Set[VehicleId]]:
    """
    Elige la junction del vehículo de cabeza de cada carril y decide si puede cruzar.

    Reglas de derecho de paso:
    - RIGHT_OF_WAY: cruza.
    - YIELD por amarillo: no cruza; el final del carril es una línea de detención.
    - YIELD: cruza si ningún acceso con RIGHT_OF_WAY tiene un vehículo dentro
      de la zona de conflicto (``CONFLICT_ZONE × (1 + cortesía)``).
    - STOP con semáforo: no cruza.
    - STOP con señal de pare: por tick cruza a lo sumo un vehículo por
      intersección, el detenido en la línea con más espera (empate: menor
      id), y sólo si ningún acceso principal está ocupado en la zona de conflicto.

    Entre los habilitados que apuntan al mismo carril destino sólo conserva
    el permiso el más cercano a la línea (empate: menor id).

    Returns:
        (junction elegida por vehículo, conjunto de vehículos habilitados)
    """
    plans: Dict[VehicleId, Junction] = {}
    by_node: Dict[VertexId, List[_Approach]] = {}

    def lane_count(lane: Lane) -> int:
        lane_occupancy = occupancy.get(lane)
        return lane_occupancy.count if lane_occupancy is not None else 0

    for lane, lane_occupancy in occupancy.items():
        front_id = lane_occupancy.front_id
        if front_id is None or config.ends_at_boundary(lane):
            continue
        node_id = config.lane_end(lane)
        node = config.node(node_id)
        front = vehicles[front_id]

        junction = config.routing.choose_junction(config.junctions_from(lane), front.destination, lane_count)
        if junction is None:
            logger.debug("%s sin junction en %s", front.id, node_id)
            continue

        plans[front_id] = junction
        flow = junction_flow_state(node.control, signals.get(node_id), junction,
                                   config.is_major_approach(node_id, lane.road))
        gap = Meters(lane.length - front.distance)
        by_node.setdefault(node_id, []).append(_Approach(front, junction, flow, gap))

    permits: Set[VehicleId] = set()
    conflict_zone = SimulatorConfig.CONFLICT_ZONE

    for node_id in sorted(by_node):
        approaches = by_node[node_id]
        node = config.node(node_id)
        signal = signals.get(node_id)
        nearest_priority = min((a.gap for a in approaches if a.flow == FlowState.RIGHT_OF_WAY),
                               default=math.inf)
        waiting_at_stop: List[_Approach] = []

        for approach in approaches:
            vehicle = approach.vehicle
            if approach.flow == FlowState.RIGHT_OF_WAY:
                permits.add(vehicle.id)
            elif approach.flow == FlowState.YIELD:
                if _degraded_by_yellow(node, signal, approach.junction):
                    continue
                zone = conflict_zone * (1.0 + vehicle.profile.parameters.courtesy)
                if nearest_priority > zone:
                    permits.add(vehicle.id)
            elif isinstance(node.control, StopSign):
                if is_halted(vehicle) and approach.gap <= SimulatorConfig.STOP_LINE_TOLERANCE:
                    waiting_at_stop.append(approach)

        if waiting_at_stop and nearest_priority > conflict_zone:
            winner = min(waiting_at_stop, key=lambda a: (-a.vehicle.waiting_time, a.vehicle.id))
            permits.add(winner.vehicle.id)

    # A lo sumo un ingreso por carril destino en cada tick: el más cercano a la línea
    entering: Dict[Lane, _Approach] = {}
    for node_id in sorted(by_node):
        for approach in by_node[node_id]:
            if approach.vehicle.id not in permits:
                continue
            target = approach.junction.to_lane
            current = entering.get(target)
            if current is None or (approach.gap, approach.vehicle.id) < (current.gap, current.vehicle.id):
                entering[target] = approach

    return plans, {approach.vehicle.id for approach in entering.values()}


def _advance_one(snapshot: TickSnapshot, vehicle: Vehicle) -> Tuple[Vehicle, bool]:
    """
    Etapa 3 para un vehículo: cinemática y transición por junction.

    Lee únicamente la foto previa al paso, por lo que puede ejecutarse en
    paralelo con el resto de vehículos.

    Returns:
        (vehículo nuevo, True si debe retirarse en la etapa 5)
    """
    config = snapshot.config
    dt = config.time_step
    lane = vehicle.lane
    lane_length = lane.length
    occupancy = snapshot.occupancy[lane]

    leader = occupancy.leader_index(vehicle.id)
    boundary = config.ends_at_boundary(lane)
    junction = snapshot.plans.get(vehicle.id)
    permitted = vehicle.id in snapshot.permits

    # Espacio libre al inicio del carril destino para entrar sin violar el hueco mínimo
    room = math.inf

    lead: Optional[LeadObstacle]
    if leader is not None:
        lead = vehicle_ahead(Meters(occupancy.positions[leader] - SimulatorConfig.VEHICLE_LENGTH),
                             float(occupancy.speeds[leader]))
    elif boundary:
        lead = None
    elif junction is None or not permitted:
        lead = stop_line(lane_length)
    else:
        # Habilitado: el obstáculo es el último vehículo del carril destino
        target = snapshot.occupancy.get(junction.to_lane)
        if target is None or target.count == 0:
            lead = None
        else:
            target_rear = Meters(float(target.positions[0]) - SimulatorConfig.VEHICLE_LENGTH)
            room = target_rear - SimulatorConfig.MIN_SAFE_DISTANCE
            lead = vehicle_ahead(Meters(lane_length + target_rear), float(target.speeds[0]))

    speed, position = advance_vehicle(vehicle, lead, lane.road.speed_limit, dt)
    odometer = Meters(vehicle.odometer + (position - vehicle.distance))
    waiting = Seconds(vehicle.waiting_time + (dt if speed <= SimulatorConfig.HALT_SPEED else 0.0))

    if leader is None and position >= lane_length:
        if boundary:
            return replace(vehicle, position=VehiclePosition(lane, position), speed=speed,
                           odometer=odometer, waiting_time=waiting), True
        if junction is not None and permitted:
            carried = Meters(position - lane_length)
            if carried <= room:
                return replace(vehicle, position=VehiclePosition(junction.to_lane, carried), speed=speed,
                               odometer=odometer, waiting_time=Seconds(0.0)), False
            # Carril destino sin lugar: espera en la línea
            position = Meters(lane_length)
            speed = MetersPerSecond(0.0)
            odometer = Meters(vehicle.odometer + (position - vehicle.distance))
            waiting = Seconds(vehicle.waiting_time + dt)

    return replace(vehicle, position=VehiclePosition(lane, position), speed=speed,
                   odometer=odometer, waiting_time=waiting), False


def step(config: SimulationConfig, state: SimState) -> SimState:
    """
    Ejecuta un paso de simulación.

    Args:
        config: Configuración de la corrida (solo lectura)
        state: Foto actual (no se modifica)

    Returns:
        SimState: Foto siguiente
    """
    dt = config.time_step

    # 1. Semáforos
    signals = _advance_signals(config, state)

    # 2. Foto de ocupación previa al paso
    occupancy = compute_occupancy(state.vehicles, config.lanes)
    by_id = {vehicle.id: vehicle for vehicle in state.vehicles}
    plans, permits = _resolve_lane_ends(config, signals, occupancy, by_id)
    snapshot = TickSnapshot(config, signals, occupancy, plans, permits)

    # 3. Cinemática y transiciones, en orden ascendente de id
    ordered = sorted(state.vehicles, key=lambda v: v.id)
    if config.max_workers > 1 and len(ordered) > 1:
        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            results = list(pool.map(partial(_advance_one, snapshot), ordered))
    else:
        results = [_advance_one(snapshot, vehicle) for vehicle in ordered]

    # 4. Generación
    new_time = Seconds(state.time + dt)
    spawned = config.generator.spawn(
        state.spawn_accumulators, dt, new_time, spawn_rng(config.seed, state.tick),
        state.next_vehicle_id, snapshot.lane_count, snapshot.rear_position,
    )

    # 5. Retiro de vehículos que alcanzaron un Drain/Sink
    survivors = tuple(vehicle for vehicle, exited in results if not exited)
    exited_count = len(results) - len(survivors)

    # 6. Avance del tiempo
    return SimState(
        time=new_time,
        tick=state.tick + 1,
        vehicles=survivors + spawned.vehicles,
        signals=signals,
        spawn_accumulators=spawned.accumulators,
        next_vehicle_id=spawned.next_vehicle_id,
        vehicles_spawned=state.vehicles_spawned + len(spawned.vehicles),
        vehicles_exited=state.vehicles_exited + exited_count,
    )


class TrafficSimulator:
    """
    Conductor del bucle de simulación.

    Encadena llamadas a ``step`` y guarda el historial de fotos. El núcleo no
    tiene planificador propio: quien llama decide cuántos pasos ejecutar y
    puede detenerse en cualquier momento.
    """

    def __init__(self, config: SimulationConfig, state: Optional[SimState] = None,
                 record_history: bool = True):
        """
        Inicializa el simulador.

        Args:
            config: Configuración validada de la corrida
            state: Estado inicial (por defecto ``initial_state(config)``)
            record_history: Si True, conserva todas las fotos en ``history``
        """
        self.config = config
        self._initial = state if state is not None else initial_state(config)
        self.state = self._initial
        self.record_history = record_history
        self.history: List[SimState] = [self.state] if record_history else []
        self.computation_time = 0.0

    @property
    def current_time(self) -> Seconds:
        return self.state.time

    def step(self) -> SimState:
        """Ejecuta un paso y retorna la foto nueva."""
        self.state = step(self.config, self.state)
        if self.record_history:
            self.history.append(self.state)
        return self.state

    def run(self, duration: Seconds = SimulatorConfig.DEFAULT_SIMULATION_DURATION,
            verbose: bool = False) -> Dict:
        """
        Ejecuta la simulación por un tiempo determinado.

        Args:
            duration: Duración a simular en segundos
            verbose: Si True, registra el progreso cada ~10%

        Returns:
            dict: Resumen de métricas de la corrida
        """
        from src.utils.metrics import MetricsCalculator

        num_steps = int(round(duration / self.config.time_step))
        report_every = max(1, num_steps // 10)
        start = timer.time()

        for index in range(num_steps):
            self.step()
            if verbose and (index + 1) % report_every == 0:
                logger.info("[T=%6.0fs] Activos: %3d | Generados: %3d | Salidos: %3d",
                            self.state.time, self.state.vehicle_count,
                            self.state.vehicles_spawned, self.state.vehicles_exited)

        self.computation_time += timer.time() - start

        history = self.history if self.record_history else [self.state]
        summary = MetricsCalculator.summary(history)
        summary['computation_time'] = self.computation_time
        return summary

    def reset(self):
        """Reinicia el simulador al estado inicial."""
        self.state = self._initial
        self.history = [self.state] if self.record_history else []
        self.computation_time = 0.0

    def get_current_state(self) -> Dict:
        """
        Retorna un resumen del estado actual.

        Returns:
            dict: Estado actual
        """
        return {
            'time': self.state.time,
            'tick': self.state.tick,
            'active_vehicles': self.state.vehicle_count,
            'vehicles_spawned': self.state.vehicles_spawned,
            'vehicles_exited': self.state.vehicles_exited,
            'traffic_lights': {
                node_id: {
                    'phase': signal.phase_index,
                    'stage': signal.stage.value,
                    'time_in_stage': signal.time_in_stage,
                }
                for node_id, signal in self.state.signals.items()
            },
        }
