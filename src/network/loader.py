"""
Carga y guardado de descripciones de red en JSON.

Formato (resumido)::

    {
      "network_name": "Merge de ejemplo",
      "time_step_s": 1.0,
      "roads": [
        {"label": "A", "length_m": 500, "speed_limit_kmh": 50,
         "road_type": "street", "lanes": 2, "from_id": 0, "to_id": 1}
      ],
      "nodes": [
        {"id": 0, "kind": "emitter", "label": "Entrada",
         "to_lanes": [{"road": "A", "lane": 0}], "spawn_rate_vph": 300,
         "profiles": [{"weight": 1.0, "reaction_time_s": 1.0}]},
        {"id": 1, "kind": "intersection", "label": "Cruce",
         "control": {"kind": "uncontrolled"},
         "junctions": [{"from": {"road": "A", "lane": 0},
                        "to": {"road": "B", "lane": 0}}]}
      ]
    }

Las vías se referencian por etiqueta, por lo que deben ser únicas.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Tuple, Union

from src.utils.config import TrafficLightConfig

from .domain import (
    Commuter, Cruising, Drain, DriverParameters, DriverProfile, Emitter, FlowState,
    Intersection, Junction, Lane, LaneNumber, Road, RoadType, ServiceWorker,
    SignalConfig, SignalPhase, Sink, StopSign, TrafficSignal, Uncontrolled, YieldSign,
)
from .graph import VertexId
from .traffic_network import NetworkConfig

logger = logging.getLogger(__name__)


def _lane_from_dict(data: Dict, roads: Dict[str, Road]) -> Lane:
    label = data['road']
    if label not in roads:
        raise ValueError(f"Carril referencia una vía desconocida: '{label}'")
    return Lane(roads[label], LaneNumber(int(data['lane'])))


def _lane_to_dict(lane: Lane) -> Dict:
    return {'road': lane.road.label, 'lane': lane.ordinal.value}


def _routine_from_dict(data: Dict):
    kind = data.get('kind', 'cruising')
    if kind == 'cruising':
        return Cruising()
    if kind == 'commuter':
        return Commuter(data['work_start_hr'], data['work_end_hr'], data.get('lunch_break', False))
    if kind == 'service_worker':
        return ServiceWorker(data['shift_start_hr'], data['shift_duration_hr'])
    raise ValueError(f"Rutina de conductor desconocida: '{kind}'")


def _routine_to_dict(routine) -> Dict:
    if isinstance(routine, Commuter):
        return {'kind': 'commuter', 'work_start_hr': routine.work_start,
                'work_end_hr': routine.work_end, 'lunch_break': routine.lunch_break}
    if isinstance(routine, ServiceWorker):
        return {'kind': 'service_worker', 'shift_start_hr': routine.shift_start,
                'shift_duration_hr': routine.shift_duration}
    return {'kind': 'cruising'}


def _profiles_from_list(items: List[Dict]) -> Tuple[Tuple[DriverProfile, float], ...]:
    profiles = []
    for item in items:
        parameters = DriverParameters(
            reaction_time=item.get('reaction_time_s', 1.0),
            aggression=item.get('aggression', 1.0),
            courtesy=item.get('courtesy', 0.5),
        )
        routine = _routine_from_dict(item.get('routine', {}))
        profiles.append((DriverProfile(parameters, routine), float(item.get('weight', 1.0))))
    return tuple(profiles)


def _profiles_to_list(distribution) -> List[Dict]:
    return [
        {
            'weight': weight,
            'reaction_time_s': profile.parameters.reaction_time,
            'aggression': profile.parameters.aggression,
            'courtesy': profile.parameters.courtesy,
            'routine': _routine_to_dict(profile.routine),
        }
        for profile, weight in distribution
    ]


def _control_from_dict(data: Dict, roads: Dict[str, Road]):
    kind = data.get('kind', 'uncontrolled')
    if kind == 'uncontrolled':
        return Uncontrolled()
    if kind == 'yield_sign':
        return YieldSign()
    if kind == 'stop_sign':
        return StopSign(all_way=data.get('all_way', True))
    if kind == 'traffic_signal':
        phases = []
        for phase_data in data.get('phases', []):
            states = {}
            for entry in phase_data.get('states', []):
                junction = Junction(_lane_from_dict(entry['from'], roads),
                                    _lane_from_dict(entry['to'], roads))
                states[junction] = FlowState(entry['state'])
            duration = phase_data.get('duration_s', TrafficLightConfig.DEFAULT_GREEN_TIME)
            phases.append(SignalPhase(duration, states))
        return TrafficSignal(SignalConfig(
            tuple(phases),
            yellow_duration=data.get('yellow_s', TrafficLightConfig.YELLOW_TIME),
            all_red_duration=data.get('all_red_s', TrafficLightConfig.ALL_RED_TIME),
        ))
    raise ValueError(f"Tipo de control desconocido: '{kind}'")


def _control_to_dict(control) -> Dict:
    if isinstance(control, YieldSign):
        return {'kind': 'yield_sign'}
    if isinstance(control, StopSign):
        return {'kind': 'stop_sign', 'all_way': control.all_way}
    if isinstance(control, TrafficSignal):
        config = control.config
        return {
            'kind': 'traffic_signal',
            'yellow_s': config.yellow_duration,
            'all_red_s': config.all_red_duration,
            'phases': [
                {
                    'duration_s': phase.duration,
                    'states': [
                        {'from': _lane_to_dict(junction.from_lane),
                         'to': _lane_to_dict(junction.to_lane),
                         'state': state.value}
                        for junction, state in phase.junction_states.items()
                    ],
                }
                for phase in config.phases
            ],
        }
    return {'kind': 'uncontrolled'}


def _node_from_dict(data: Dict, roads: Dict[str, Road]):
    kind = data['kind']
    label = data.get('label', '')
    to_lanes = tuple(_lane_from_dict(item, roads) for item in data.get('to_lanes', []))
    from_lanes = tuple(_lane_from_dict(item, roads) for item in data.get('from_lanes', []))
    profiles = _profiles_from_list(data.get('profiles', []))
    spawn_rate = data.get('spawn_rate_vph', 0.0)

    if kind == 'emitter':
        return Emitter(label, to_lanes, spawn_rate, profiles)
    if kind == 'drain':
        return Drain(label, from_lanes)
    if kind == 'sink':
        return Sink(label, to_lanes, from_lanes, spawn_rate, profiles)
    if kind == 'intersection':
        junctions = tuple(
            Junction(_lane_from_dict(item['from'], roads), _lane_from_dict(item['to'], roads))
            for item in data.get('junctions', [])
        )
        return Intersection(label, _control_from_dict(data.get('control', {}), roads), junctions)
    raise ValueError(f"Tipo de nodo desconocido: '{kind}'")


def _node_to_dict(node_id: VertexId, node) -> Dict:
    data = {'id': node_id.value, 'label': node.label}
    if isinstance(node, Emitter):
        data.update(kind='emitter', to_lanes=[_lane_to_dict(l) for l in node.to_lanes],
                    spawn_rate_vph=node.spawn_rate,
                    profiles=_profiles_to_list(node.profile_distribution))
    elif isinstance(node, Drain):
        data.update(kind='drain', from_lanes=[_lane_to_dict(l) for l in node.from_lanes])
    elif isinstance(node, Sink):
        data.update(kind='sink', to_lanes=[_lane_to_dict(l) for l in node.to_lanes],
                    from_lanes=[_lane_to_dict(l) for l in node.from_lanes],
                    spawn_rate_vph=node.spawn_rate,
                    profiles=_profiles_to_list(node.profile_distribution))
    elif isinstance(node, Intersection):
        data.update(kind='intersection', control=_control_to_dict(node.control),
                    junctions=[{'from': _lane_to_dict(j.from_lane), 'to': _lane_to_dict(j.to_lane)}
                               for j in node.junctions])
    else:
        raise TypeError(f"Tipo de nodo desconocido: {type(node).__name__}")
    return data


def network_config_from_dict(data: Dict) -> NetworkConfig:
    """
    Convierte un diccionario (JSON ya parseado) en ``NetworkConfig``.

    Raises:
        ValueError: Si hay tipos desconocidos o referencias a vías inexistentes
    """
    roads: Dict[str, Road] = {}
    connections = []
    for road_data in data.get('roads', []):
        road = Road(
            label=road_data['label'],
            length=float(road_data['length_m']),
            speed_limit_kmh=float(road_data['speed_limit_kmh']),
            road_type=RoadType(road_data.get('road_type', 'street')),
            lane_count=int(road_data.get('lanes', 1)),
        )
        if road.label in roads:
            raise ValueError(f"Etiqueta de vía duplicada: '{road.label}'")
        roads[road.label] = road
        connections.append((road, VertexId(road_data['from_id']), VertexId(road_data['to_id'])))

    nodes = [(VertexId(node_data['id']), _node_from_dict(node_data, roads))
             for node_data in data.get('nodes', [])]

    return NetworkConfig(
        nodes=tuple(nodes),
        connections=tuple(connections),
        time_step=float(data.get('time_step_s', 1.0)),
        name=data.get('network_name', ''),
    )


def network_config_to_dict(config: NetworkConfig) -> Dict:
    """Inversa de ``network_config_from_dict``."""
    return {
        'network_name': config.name,
        'time_step_s': config.time_step,
        'roads': [
            {
                'label': road.label,
                'length_m': road.length,
                'speed_limit_kmh': road.speed_limit_kmh,
                'road_type': road.road_type.value,
                'lanes': road.lane_count,
                'from_id': source.value,
                'to_id': target.value,
            }
            for road, source, target in config.connections
        ],
        'nodes': [_node_to_dict(node_id, node) for node_id, node in config.nodes],
    }


def load_network_config(filepath: Union[str, Path]) -> NetworkConfig:
    """
    Carga una descripción de red desde un archivo JSON.

    Raises:
        FileNotFoundError: Si el archivo no existe
        json.JSONDecodeError: Si el archivo no es JSON válido
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"No se encontró el archivo: {filepath}")

    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    config = network_config_from_dict(data)
    logger.info("Red cargada: %s (%d nodos, %d vías)",
                config.name or path.name, len(config.nodes), len(config.connections))
    return config


def save_network_config(config: NetworkConfig, filepath: Union[str, Path]) -> None:
    """Guarda una descripción de red como JSON indentado."""
    path = Path(filepath)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(network_config_to_dict(config), f, indent=2, ensure_ascii=False)
