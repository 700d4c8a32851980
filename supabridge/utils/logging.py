"""
Configuración de logging compartida.
"""
import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Transport libraries are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "websockets", "hpack")


def init_logging(log_level: str = "INFO", service_name: Optional[str] = None) -> logging.Logger:
    """
    Inicializa el logging raíz con un único handler a stdout.

    Args:
        log_level: Nivel de log (DEBUG, INFO, WARNING, ...)
        service_name: Nombre del logger devuelto

    Returns:
        Logger del servicio
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger = logging.getLogger(service_name or "supabridge")
    logger.debug(f"Logging initialized at {logging.getLevelName(level)}")
    return logger
