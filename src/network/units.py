"""
Unidades físicas del modelo.

Internamente todo se expresa en unidades base del SI: metros, segundos y
metros por segundo. Los alias semánticos documentan qué magnitud lleva cada
valor; las conversiones sólo ocurren en el borde del sistema mediante las
funciones de este módulo.
"""

from typing import List, NewType

Meters = NewType("Meters", float)
Kilometers = NewType("Kilometers", float)
Seconds = NewType("Seconds", float)
Hours = NewType("Hours", float)
MetersPerSecond = NewType("MetersPerSecond", float)
KilometersPerHour = NewType("KilometersPerHour", float)
VehiclesPerHour = NewType("VehiclesPerHour", float)
VehiclesPerKilometer = NewType("VehiclesPerKilometer", float)

METERS_PER_KM = 1000.0
SECONDS_PER_HOUR = 3600.0


def km_to_m(distance: Kilometers) -> Meters:
    return Meters(distance * METERS_PER_KM)


def m_to_km(distance: Meters) -> Kilometers:
    return Kilometers(distance / METERS_PER_KM)


def hr_to_sec(duration: Hours) -> Seconds:
    return Seconds(duration * SECONDS_PER_HOUR)


def sec_to_hr(duration: Seconds) -> Hours:
    return Hours(duration / SECONDS_PER_HOUR)


def kmh_to_ms(speed: KilometersPerHour) -> MetersPerSecond:
    """Convierte km/h a m/s (50 km/h ≈ 13.89 m/s)."""
    return MetersPerSecond(speed * METERS_PER_KM / SECONDS_PER_HOUR)


def ms_to_kmh(speed: MetersPerSecond) -> KilometersPerHour:
    return KilometersPerHour(speed * SECONDS_PER_HOUR / METERS_PER_KM)


def vph_to_per_second(rate: VehiclesPerHour) -> float:
    """Convierte un flujo en veh/h a llegadas esperadas por segundo."""
    return rate / SECONDS_PER_HOUR


def lane_range(count: int) -> List[int]:
    """
    Ordinales de carril de una vía.

    Args:
        count: Número de carriles

    Returns:
        Lista ``0..count-1`` (vacía si ``count <= 0``)
    """
    return list(range(max(0, count)))
