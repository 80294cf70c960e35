"""Niveles de log del crawler.

El nivel es un valor de configuración explícito: nada aquí se ejecuta al
importar. Sólo el wrapper de proceso (CLI) llama a ``configure_logging``.
"""

from __future__ import annotations

import logging
from typing import Optional

from crawler_api.core.domain.errors import ConfigurationError

LOG_LEVELS = {
    "TRACE": logging.DEBUG,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
    "PANIC": logging.CRITICAL,
}

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def parse_log_level(name: str) -> int:
    level = LOG_LEVELS.get((name or "").strip().upper())
    if level is None:
        raise ConfigurationError(
            "Log level need to be one of this: [TRACE DEBUG INFO WARNING ERROR FATAL PANIC]"
        )
    return level


def configure_logging(level_name: str, logger_name: Optional[str] = None) -> logging.Logger:
    """Configura el handler de consola y devuelve el logger con el nivel aplicado."""
    level = parse_log_level(level_name)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
    )
    log = logging.getLogger(logger_name)
    log.setLevel(level)
    return log
