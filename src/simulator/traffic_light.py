"""
Máquina de estados de semáforo y derecho de paso efectivo.

Cada intersección con ``TrafficSignal`` recorre indefinidamente el ciclo
verde → amarillo → todo-rojo de cada fase. El estado es un valor inmutable
(``SignalState``); avanzarlo produce un estado nuevo.

Regla de degradación (crítica para la seguridad):
- Verde: cada junction tiene el FlowState que le asigna la fase activa.
- Amarillo: las junctions con RIGHT_OF_WAY pasan a YIELD, el resto no cambia.
- Todo-rojo: todas las junctions quedan en STOP.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from src.network.domain import (
    FlowState, IntersectionControl, Junction, SignalConfig, StopSign, TrafficSignal,
    Uncontrolled, YieldSign,
)
from src.network.units import Seconds
from src.utils.config import TrafficLightConfig


class SignalStage(Enum):
    """Etapas dentro de una fase."""
    GREEN = "green"
    YELLOW = "yellow"
    ALL_RED = "all_red"


@dataclass(frozen=True)
class SignalState:
    """Estado de un semáforo: (fase, etapa, tiempo transcurrido en la etapa)."""
    phase_index: int = 0
    stage: SignalStage = SignalStage.GREEN
    time_in_stage: Seconds = Seconds(0.0)


def initial_signal_state() -> SignalState:
    """Estado inicial: fase 0 en verde, sin tiempo transcurrido."""
    return SignalState(0, SignalStage.GREEN, Seconds(0.0))


def stage_duration(config: SignalConfig, phase_index: int, stage: SignalStage) -> Seconds:
    if stage == SignalStage.GREEN:
        return config.phases[phase_index].duration
    if stage == SignalStage.YELLOW:
        return config.yellow_duration
    return config.all_red_duration


def _next_stage(config: SignalConfig, phase_index: int, stage: SignalStage) -> Tuple[int, SignalStage]:
    if stage == SignalStage.GREEN:
        return phase_index, SignalStage.YELLOW
    if stage == SignalStage.YELLOW:
        return phase_index, SignalStage.ALL_RED
    return (phase_index + 1) % len(config.phases), SignalStage.GREEN


def cycle_length(config: SignalConfig) -> Seconds:
    """Duración del ciclo: suma de verdes + K × (amarillo + todo-rojo)."""
    greens = sum(phase.duration for phase in config.phases)
    return Seconds(greens + len(config.phases) * (config.yellow_duration + config.all_red_duration))


def advance_signal(config: SignalConfig, state: SignalState, dt: Seconds) -> SignalState:
    """
    Avanza el semáforo ``dt`` segundos.

    Una etapa expira cuando el tiempo acumulado alcanza su duración; el
    excedente se traslada a la etapa siguiente, atravesando tantas etapas
    como haga falta (incluidas las de duración cero). La comparación admite
    el margen ``TrafficLightConfig.STAGE_TOLERANCE``, de modo que con pasos
    fraccionarios (0.1s, 0.3s) el redondeo acumulado no atrasa un tick el
    cambio de etapa.

    Args:
        config: Plan semafórico
        state: Estado actual
        dt: Paso de tiempo (segundos)

    Returns:
        SignalState: Estado nuevo
    """
    phase_index = state.phase_index % len(config.phases)
    stage = state.stage
    elapsed = state.time_in_stage + dt

    # SignalConfig garantiza ciclo > 0, por lo que el bucle termina
    while elapsed >= stage_duration(config, phase_index, stage) - TrafficLightConfig.STAGE_TOLERANCE:
        elapsed = max(0.0, elapsed - stage_duration(config, phase_index, stage))
        if elapsed <= TrafficLightConfig.STAGE_TOLERANCE:
            elapsed = 0.0
        phase_index, stage = _next_stage(config, phase_index, stage)

    return SignalState(phase_index, stage, Seconds(elapsed))


def signal_flow_state(config: SignalConfig, state: SignalState, junction: Junction) -> FlowState:
    """FlowState efectivo de una junction bajo un semáforo en el estado dado."""
    if state.stage == SignalStage.ALL_RED:
        return FlowState.STOP

    configured = config.phases[state.phase_index].state_for(junction)
    if state.stage == SignalStage.YELLOW and configured == FlowState.RIGHT_OF_WAY:
        return FlowState.YIELD
    return configured


def junction_flow_state(control: IntersectionControl, signal_state: Optional[SignalState],
                        junction: Junction, major_approach: bool = False) -> FlowState:
    """
    Derecho de paso efectivo de una junction en este instante.

    Args:
        control: Política de control de la intersección
        signal_state: Estado del semáforo (sólo para ``TrafficSignal``)
        junction: Junction consultada
        major_approach: True si la junction parte de un acceso principal
                        (ceda el paso y pare de dos vías)

    Returns:
        FlowState: RIGHT_OF_WAY, YIELD o STOP
    """
    if isinstance(control, Uncontrolled):
        return FlowState.RIGHT_OF_WAY
    if isinstance(control, YieldSign):
        return FlowState.RIGHT_OF_WAY if major_approach else FlowState.YIELD
    if isinstance(control, StopSign):
        if major_approach and not control.all_way:
            return FlowState.RIGHT_OF_WAY
        return FlowState.STOP
    if isinstance(control, TrafficSignal):
        if signal_state is None:
            signal_state = initial_signal_state()
        return signal_flow_state(control.config, signal_state, junction)
    raise TypeError(f"Control de intersección desconocido: {type(control).__name__}")


def describe_signal(config: SignalConfig, state: SignalState) -> str:
    """
    Retorna una representación legible del estado actual.

    Returns:
        str: String con estado formateado
    """
    symbols = {
        SignalStage.GREEN: "🟢",
        SignalStage.YELLOW: "🟡",
        SignalStage.ALL_RED: "🔴",
    }
    duration = stage_duration(config, state.phase_index, state.stage)
    return (f"{symbols[state.stage]} Fase: {state.phase_index + 1}/{len(config.phases)} | "
            f"Estado: {state.stage.value.upper()} | "
            f"Tiempo en etapa: {state.time_in_stage:.1f}s / {duration}s | "
            f"Ciclo: {cycle_length(config)}s")
