"""
Tests para el módulo de semáforos y derecho de paso.
"""

import pytest
import sys
from pathlib import Path

# Agregar src al path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.network.domain import (
    FlowState, Junction, Lane, LaneNumber, Road, RoadType, SignalConfig, SignalPhase,
    StopSign, TrafficSignal, Uncontrolled, YieldSign,
)
from src.simulator.traffic_light import (
    SignalStage, SignalState, advance_signal, cycle_length, describe_signal,
    initial_signal_state, junction_flow_state, signal_flow_state,
)


@pytest.fixture
def junctions():
    north = Road("N", 100.0, 50.0, RoadType.STREET, 1)
    east = Road("E", 100.0, 50.0, RoadType.STREET, 1)
    out = Road("S", 100.0, 50.0, RoadType.STREET, 1)
    ns = Junction(Lane(north, LaneNumber(0)), Lane(out, LaneNumber(0)))
    es = Junction(Lane(east, LaneNumber(0)), Lane(out, LaneNumber(0)))
    return ns, es


@pytest.fixture
def two_phase_config(junctions):
    ns, es = junctions
    return SignalConfig(
        phases=(
            SignalPhase(30.0, {ns: FlowState.RIGHT_OF_WAY, es: FlowState.STOP}),
            SignalPhase(20.0, {ns: FlowState.STOP, es: FlowState.RIGHT_OF_WAY}),
        ),
        yellow_duration=3.0,
        all_red_duration=1.0,
    )


class TestSignalConfig:
    """Tests para la configuración del plan semafórico."""

    def test_cycle_length(self, two_phase_config):
        """Test: ciclo = verdes + K × (amarillo + todo-rojo)."""
        # 30 + 20 + 2 × (3 + 1) = 58s
        assert cycle_length(two_phase_config) == 58.0

    def test_config_validation(self):
        """Test de validación de duraciones."""
        with pytest.raises(ValueError):
            SignalConfig(phases=())

        with pytest.raises(ValueError):
            SignalConfig((SignalPhase(-1.0),))

        with pytest.raises(ValueError):
            SignalConfig((SignalPhase(0.0),), yellow_duration=0.0, all_red_duration=0.0)

    def test_unmapped_junction_is_stop(self, junctions):
        """Test: junction sin mapear en la fase se considera STOP."""
        ns, _ = junctions
        assert SignalPhase(10.0).state_for(ns) == FlowState.STOP


class TestAdvanceSignal:
    """Tests para la máquina de estados."""

    def test_stage_sequence(self, two_phase_config):
        """Test de secuencia verde → amarillo → todo-rojo → siguiente fase."""
        state = initial_signal_state()

        state = advance_signal(two_phase_config, state, 30.0)
        assert (state.phase_index, state.stage) == (0, SignalStage.YELLOW)

        state = advance_signal(two_phase_config, state, 3.0)
        assert (state.phase_index, state.stage) == (0, SignalStage.ALL_RED)

        state = advance_signal(two_phase_config, state, 1.0)
        assert (state.phase_index, state.stage) == (1, SignalStage.GREEN)
        assert state.time_in_stage == 0.0

    def test_cycle_closure(self, two_phase_config):
        """Test: tras un ciclo completo con dt=1 se vuelve al estado inicial."""
        state = initial_signal_state()

        for _ in range(int(cycle_length(two_phase_config))):
            state = advance_signal(two_phase_config, state, 1.0)

        assert state == SignalState(0, SignalStage.GREEN, 0.0)

    def test_cycle_closure_with_fractional_steps(self, junctions):
        """Test: con dt de 0.1, 0.2 y 0.3s el ciclo cierra en el tick exacto."""
        ns, es = junctions
        config = SignalConfig(
            phases=(
                SignalPhase(30.0, {ns: FlowState.RIGHT_OF_WAY, es: FlowState.STOP}),
                SignalPhase(25.0, {ns: FlowState.STOP, es: FlowState.RIGHT_OF_WAY}),
            ),
            yellow_duration=3.0,
            all_red_duration=1.0,
        )

        for dt in (0.1, 0.2, 0.3):
            green_ticks = int(round(30.0 / dt))
            cycle_ticks = int(round(cycle_length(config) / dt))
            state = initial_signal_state()

            for tick in range(1, cycle_ticks + 1):
                state = advance_signal(config, state, dt)
                if tick == green_ticks - 1:
                    assert (state.phase_index, state.stage) == (0, SignalStage.GREEN)
                if tick == green_ticks:
                    assert (state.phase_index, state.stage) == (0, SignalStage.YELLOW)

            assert state.phase_index == 0
            assert state.stage == SignalStage.GREEN
            assert state.time_in_stage == pytest.approx(0.0, abs=1e-9)

    def test_surplus_carries_over(self, two_phase_config):
        """Test: el excedente atraviesa varias etapas en un solo paso."""
        state = advance_signal(two_phase_config, initial_signal_state(), 36.5)

        # 30 verde + 3 amarillo + 1 todo-rojo = 34 → 2.5s en el verde de la fase 1
        assert state.phase_index == 1
        assert state.stage == SignalStage.GREEN
        assert state.time_in_stage == pytest.approx(2.5)

    def test_zero_duration_stages_are_skipped(self, junctions):
        """Test de etapas de duración cero."""
        ns, _ = junctions
        config = SignalConfig((SignalPhase(5.0, {ns: FlowState.RIGHT_OF_WAY}),),
                              yellow_duration=0.0, all_red_duration=0.0)

        state = advance_signal(config, initial_signal_state(), 5.0)

        assert state == SignalState(0, SignalStage.GREEN, 0.0)

    def test_describe_signal(self, two_phase_config):
        """Test de representación legible."""
        text = describe_signal(two_phase_config, initial_signal_state())

        assert "GREEN" in text
        assert "1/2" in text


class TestFlowState:
    """Tests para el derecho de paso efectivo."""

    def test_green_uses_configured_state(self, two_phase_config, junctions):
        """Test: en verde rige la fase activa."""
        ns, es = junctions
        state = initial_signal_state()

        assert signal_flow_state(two_phase_config, state, ns) == FlowState.RIGHT_OF_WAY
        assert signal_flow_state(two_phase_config, state, es) == FlowState.STOP

    def test_yellow_degrades_right_of_way(self, two_phase_config, junctions):
        """Test: en amarillo RIGHT_OF_WAY pasa a YIELD y el resto no cambia."""
        ns, es = junctions
        state = SignalState(0, SignalStage.YELLOW, 1.0)

        assert signal_flow_state(two_phase_config, state, ns) == FlowState.YIELD
        assert signal_flow_state(two_phase_config, state, es) == FlowState.STOP

    def test_all_red_stops_everything(self, two_phase_config, junctions):
        """Test: en todo-rojo todas las junctions quedan en STOP."""
        ns, es = junctions
        state = SignalState(0, SignalStage.ALL_RED, 0.5)

        assert signal_flow_state(two_phase_config, state, ns) == FlowState.STOP
        assert signal_flow_state(two_phase_config, state, es) == FlowState.STOP

    def test_sign_controls(self, two_phase_config, junctions):
        """Test de controles sin semáforo."""
        ns, _ = junctions

        assert junction_flow_state(Uncontrolled(), None, ns) == FlowState.RIGHT_OF_WAY
        assert junction_flow_state(YieldSign(), None, ns) == FlowState.YIELD
        assert junction_flow_state(YieldSign(), None, ns, major_approach=True) == FlowState.RIGHT_OF_WAY
        assert junction_flow_state(StopSign(), None, ns, major_approach=True) == FlowState.STOP
        assert junction_flow_state(StopSign(all_way=False), None, ns,
                                   major_approach=True) == FlowState.RIGHT_OF_WAY
        assert junction_flow_state(TrafficSignal(two_phase_config), None, ns) == FlowState.RIGHT_OF_WAY


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
