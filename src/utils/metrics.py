"""
Sistema de métricas y análisis de resultados.

Este módulo proporciona funciones para resumir una corrida a partir del
historial de fotos ``SimState``: series temporales en pandas, ocupación por
carril y agregados (velocidad media, densidad, throughput).
"""

from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from src.network.units import m_to_km, ms_to_kmh


class MetricsCalculator:
    """
    Calculadora de métricas de evaluación para simulaciones de tráfico.

    Proporciona métodos estáticos que operan sobre listas de ``SimState``
    (sólo se leen sus atributos públicos).
    """

    @staticmethod
    def states_to_frame(states: Sequence) -> pd.DataFrame:
        """
        Convierte el historial en una serie temporal.

        Args:
            states: Fotos en orden de tick

        Returns:
            pd.DataFrame: Una fila por tick con tiempo, vehículos activos,
            generados, salidos y velocidad media (m/s)
        """
        rows = []
        for state in states:
            speeds = [vehicle.speed for vehicle in state.vehicles]
            rows.append({
                'tick': state.tick,
                'time': state.time,
                'active_vehicles': len(state.vehicles),
                'vehicles_spawned': state.vehicles_spawned,
                'vehicles_exited': state.vehicles_exited,
                'mean_speed': float(np.mean(speeds)) if speeds else 0.0,
            })

        columns = ['tick', 'time', 'active_vehicles', 'vehicles_spawned',
                   'vehicles_exited', 'mean_speed']
        return pd.DataFrame(rows, columns=columns)

    @staticmethod
    def lane_occupancy_frame(state) -> pd.DataFrame:
        """
        Ocupación por carril en una foto.

        Returns:
            pd.DataFrame: Columnas road, lane, vehicles, length_m,
            density_veh_per_km, ordenado por vía y carril
        """
        rows: Dict[tuple, Dict] = {}
        for vehicle in state.vehicles:
            lane = vehicle.lane
            key = (lane.road.label, lane.ordinal.value)
            row = rows.setdefault(key, {
                'road': lane.road.label,
                'lane': lane.ordinal.value,
                'vehicles': 0,
                'length_m': lane.length,
            })
            row['vehicles'] += 1

        df = pd.DataFrame(list(rows.values()), columns=['road', 'lane', 'vehicles', 'length_m'])
        df['density_veh_per_km'] = [
            count / m_to_km(length) if length > 0 else np.inf
            for count, length in zip(df['vehicles'], df['length_m'])
        ]
        return df.sort_values(['road', 'lane']).reset_index(drop=True)

    @staticmethod
    def average_speed(states: Sequence) -> float:
        """
        Velocidad media de todos los vehículos observados en el historial.

        Returns:
            float: Velocidad promedio en km/h
        """
        speeds: List[float] = [vehicle.speed for state in states for vehicle in state.vehicles]
        if not speeds:
            return 0.0
        return ms_to_kmh(float(np.mean(speeds)))

    @staticmethod
    def throughput_per_hour(states: Sequence) -> float:
        """
        Vehículos que abandonaron la red por hora simulada.

        Returns:
            float: Vehículos por hora
        """
        if len(states) < 2:
            return 0.0
        elapsed = states[-1].time - states[0].time
        if elapsed <= 0:
            return 0.0
        exited = states[-1].vehicles_exited - states[0].vehicles_exited
        return (exited / elapsed) * 3600

    @staticmethod
    def average_density(states: Sequence) -> float:
        """
        Densidad media (veh/km) sobre los carriles ocupados en cada foto.

        Returns:
            float: Densidad promedio; 0 si nunca hubo vehículos
        """
        densities = []
        for state in states:
            frame = MetricsCalculator.lane_occupancy_frame(state)
            finite = frame['density_veh_per_km'][np.isfinite(frame['density_veh_per_km'])]
            densities.extend(finite.tolist())
        return float(np.mean(densities)) if densities else 0.0

    @staticmethod
    def summary(states: Sequence) -> Dict:
        """
        Resumen de una corrida.

        Args:
            states: Historial de fotos (al menos la última)

        Returns:
            dict: Métricas agregadas
        """
        if not states:
            return {
                'simulation_time': 0.0,
                'ticks': 0,
                'vehicles_spawned': 0,
                'vehicles_exited': 0,
                'active_vehicles': 0,
                'avg_speed_kmh': 0.0,
                'avg_density_veh_per_km': 0.0,
                'throughput_per_hour': 0.0,
            }

        last = states[-1]
        return {
            'simulation_time': last.time,
            'ticks': last.tick,
            'vehicles_spawned': last.vehicles_spawned,
            'vehicles_exited': last.vehicles_exited,
            'active_vehicles': len(last.vehicles),
            'avg_speed_kmh': MetricsCalculator.average_speed(states),
            'avg_density_veh_per_km': MetricsCalculator.average_density(states),
            'throughput_per_hour': MetricsCalculator.throughput_per_hour(states),
        }

    @staticmethod
    def create_summary_dataframe(results: Dict[str, Dict]) -> pd.DataFrame:
        """
        Crea un DataFrame con resumen comparativo de corridas.

        Args:
            results: Dict {nombre_de_corrida: resumen}

        Returns:
            pd.DataFrame: DataFrame con métricas comparadas
        """
        data = []

        for run_name, metrics in results.items():
            data.append({
                'Run': run_name,
                'Spawned': metrics.get('vehicles_spawned', 0),
                'Exited': metrics.get('vehicles_exited', 0),
                'Active': metrics.get('active_vehicles', 0),
                'Avg Speed (km/h)': metrics.get('avg_speed_kmh', 0),
                'Avg Density (veh/km)': metrics.get('avg_density_veh_per_km', 0),
                'Throughput (veh/h)': metrics.get('throughput_per_hour', 0),
            })

        df = pd.DataFrame(data)

        # Mayor throughput primero
        if not df.empty:
            df = df.sort_values('Throughput (veh/h)', ascending=False)

        return df
