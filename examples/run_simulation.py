"""
Script de ejemplo: Simulación de una avenida con calle lateral semaforizada

Este script demuestra cómo cargar una red desde JSON, validarla, simular
con distintas semillas y comparar los resultados.
"""

import sys
from pathlib import Path

# Agregar src al path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.network.loader import load_network_config
from src.network.traffic_network import build_graph, network_stats
from src.network.validation import validate_network
from src.simulator import SimulationConfig, TrafficSimulator
from src.simulator.traffic_light import describe_signal
from src.utils.config import NETWORKS_DIR
from src.utils.logging_utils import setup_logging
from src.utils.metrics import MetricsCalculator

NETWORK_FILE = NETWORKS_DIR / "avenida.json"


def show_network():
    """Muestra estadísticas y errores de topología de la red."""
    print("\n" + "="*70)
    print("RED VIAL")
    print("="*70)

    network = load_network_config(NETWORK_FILE)
    graph = build_graph(network)

    for key, value in network_stats(graph).items():
        print(f"  {key:20s}: {value}")

    errors = validate_network(graph)
    print(f"  {'errores':20s}: {len(errors)}")
    for error in errors:
        print(f"    - {error}")

    return network


def run_single_simulation(network, seed=0, duration=600):
    """
    Ejecuta una simulación completa.

    Returns:
        dict: Métricas de la simulación
    """
    print("\n" + "="*70)
    print(f"SIMULACIÓN - semilla {seed}, {duration}s")
    print("="*70)

    config = SimulationConfig.from_network_config(network, seed=seed)
    simulator = TrafficSimulator(config)

    metrics = simulator.run(duration=duration, verbose=True)

    for node_id, signal in simulator.state.signals.items():
        control = config.node(node_id).control
        print(f"  {config.node(node_id).label}: {describe_signal(control.config, signal)}")

    frame = MetricsCalculator.states_to_frame(simulator.history)
    print(f"\n  Máximo de vehículos activos: {frame['active_vehicles'].max()}")
    print("\n  Ocupación final por carril:")
    print(MetricsCalculator.lane_occupancy_frame(simulator.state).to_string(index=False))

    return metrics


def compare_seeds(network, seeds=(0, 1, 2)):
    """Compara corridas con distintas semillas."""
    print("\n" + "="*70)
    print("COMPARACIÓN DE SEMILLAS")
    print("="*70)

    results = {}
    for seed in seeds:
        config = SimulationConfig.from_network_config(network, seed=seed)
        results[f"seed={seed}"] = TrafficSimulator(config, record_history=True).run(duration=300)

    df = MetricsCalculator.create_summary_dataframe(results)
    print(df.to_string(index=False))


def main():
    """Función principal del ejemplo."""
    setup_logging("INFO")

    print("="*70)
    print("EJEMPLO COMPLETO DE SIMULACIÓN DE TRÁFICO")
    print("="*70)

    network = show_network()

    metrics = run_single_simulation(network)

    print("\nMétricas:")
    print(f"  Vehículos generados:  {metrics['vehicles_spawned']}")
    print(f"  Vehículos salidos:    {metrics['vehicles_exited']}")
    print(f"  Velocidad promedio:   {metrics['avg_speed_kmh']:.2f} km/h")
    print(f"  Densidad promedio:    {metrics['avg_density_veh_per_km']:.2f} veh/km")
    print(f"  Throughput:           {metrics['throughput_per_hour']:.0f} veh/h")
    print(f"  Tiempo de cómputo:    {metrics['computation_time']:.2f} s")

    compare_seeds(network)

    print("\n" + "="*70)
    print("EJEMPLO COMPLETADO")
    print("="*70)


if __name__ == "__main__":
    main()
