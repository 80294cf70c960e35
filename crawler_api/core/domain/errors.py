"""Errores tipados del crawler.

Cada componente lanza el error que detecta y nunca lo reintenta; la política
de terminación (exit code, reintentos) queda en manos del llamador.
"""

from __future__ import annotations

from typing import Optional


class CrawlerError(Exception):
    """Base de todos los errores del crawler."""


class ConfigurationError(CrawlerError):
    """Setting requerido ausente o inválido (p.ej. device id vacío)."""


class BrokerConnectionError(CrawlerError, ConnectionError):
    """Broker MQTT inalcanzable o credenciales rechazadas."""


class PublishError(CrawlerError):
    """El broker no confirmó la entrega del mensaje."""


class RemoteServiceError(CrawlerError):
    """Fallo de create/update/read/delete contra el IoT Agent."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is None:
            return base
        return f"{base} (status={self.status_code})"


class ReconciliationError(CrawlerError):
    """Estado remoto inconsistente que no se repara adivinando.

    Ejemplo: un Device existente sin entity_name recuperable.
    """
