"""
Configuración global del motor de tráfico.

Este módulo contiene todas las constantes y parámetros de configuración
utilizados en el proyecto. Todas las magnitudes físicas se expresan en
unidades base del SI (metros, segundos, metros por segundo).
"""

from pathlib import Path

# Rutas del proyecto
PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
NETWORKS_DIR = DATA_DIR / "networks"


# Parámetros del simulador
class SimulatorConfig:
    """Configuración del simulador de tráfico."""

    # Tiempo
    TIME_STEP = 1.0  # Paso de simulación en segundos
    DEFAULT_SIMULATION_DURATION = 3600  # 1 hora en segundos
    DEFAULT_SEED = 0

    # Vehículos
    VEHICLE_LENGTH = 4.5  # metros
    MIN_SAFE_DISTANCE = 2.0  # metros (hueco mínimo detenido)

    # Dinámica (Intelligent Driver Model)
    ACCELERATION = 2.0  # m/s²
    COMFORTABLE_DECELERATION = 2.0  # m/s²
    MAX_DECELERATION = 3.5  # m/s² (frenado de emergencia)
    ACCELERATION_EXPONENT = 4

    # Línea de detención y prioridad
    HALT_SPEED = 0.1  # m/s, por debajo se considera detenido
    STOP_LINE_TOLERANCE = 1.0  # metros hasta la línea para contar como detenido en ella
    CONFLICT_ZONE = 30.0  # metros antes de la línea vigilados al ceder el paso

    # Generación
    MAX_PENDING_ARRIVALS = 5.0  # llegadas acumuladas máximas por punto de entrada


# Parámetros de semáforos
class TrafficLightConfig:
    """Configuración de semáforos."""

    YELLOW_TIME = 3.0  # segundos
    ALL_RED_TIME = 1.0  # segundos (despeje)
    DEFAULT_GREEN_TIME = 30.0  # segundos
    STAGE_TOLERANCE = 1e-9  # segundos (error de redondeo al acumular pasos fraccionarios)


# Logging
class LoggingConfig:
    """Configuración de logging."""

    LOG_LEVEL = "INFO"
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
