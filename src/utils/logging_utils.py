"""
Configuración de logging del proyecto.

Cada módulo obtiene su propio logger con ``logging.getLogger(__name__)``;
este módulo sólo instala los handlers a partir de ``LoggingConfig``.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .config import LoggingConfig


def setup_logging(level: Union[int, str] = LoggingConfig.LOG_LEVEL,
                  log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Configura el logging raíz del paquete ``src``.

    Args:
        level: Nivel de logging (nombre o constante de ``logging``)
        log_file: Archivo opcional donde duplicar la salida

    Returns:
        logging.Logger: Logger raíz del paquete
    """
    handlers = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=LoggingConfig.LOG_FORMAT,
        handlers=handlers,
    )
    return logging.getLogger("src")
