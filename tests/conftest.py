"""
Fixtures compartidas: red de ejemplo "merge".

    Emitter(0) --A (500m, 50km/h, 2 carriles)--> Intersection(1) --B (300m, 40km/h, 1 carril)--> Drain(2)

Ambos carriles de A se funden en el único carril de B.
"""

import pytest
import sys
from pathlib import Path

# Agregar src al path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.network.domain import (
    Drain, DriverParameters, DriverProfile, Emitter, Intersection, Junction, Lane,
    LaneNumber, Road, RoadType, Uncontrolled,
)
from src.network.graph import VertexId
from src.network.traffic_network import NetworkConfig, build_graph


@pytest.fixture
def road_a():
    return Road("A", 500.0, 50.0, RoadType.STREET, 2)


@pytest.fixture
def road_b():
    return Road("B", 300.0, 40.0, RoadType.RESIDENTIAL, 1)


@pytest.fixture
def default_profile():
    return DriverProfile(DriverParameters(reaction_time=1.0, aggression=1.0, courtesy=0.5))


@pytest.fixture
def make_merge_config(road_a, road_b, default_profile):
    """Fábrica de la red merge con tasa, control y junctions configurables."""

    def factory(spawn_rate=600.0, control=None, junctions=None, profiles=None):
        a0 = Lane(road_a, LaneNumber(0))
        a1 = Lane(road_a, LaneNumber(1))
        b0 = Lane(road_b, LaneNumber(0))
        if junctions is None:
            junctions = (Junction(a0, b0), Junction(a1, b0))
        if profiles is None:
            profiles = ((default_profile, 1.0),)

        emitter = Emitter("Entrada", (a0, a1), spawn_rate, profiles)
        intersection = Intersection("Merge", control or Uncontrolled(), junctions)
        drain = Drain("Salida", (b0,))

        return NetworkConfig(
            nodes=(
                (VertexId(0), emitter),
                (VertexId(1), intersection),
                (VertexId(2), drain),
            ),
            connections=(
                (road_a, VertexId(0), VertexId(1)),
                (road_b, VertexId(1), VertexId(2)),
            ),
            time_step=1.0,
            name="merge",
        )

    return factory


@pytest.fixture
def merge_config(make_merge_config):
    return make_merge_config()


@pytest.fixture
def merge_graph(merge_config):
    return build_graph(merge_config)
