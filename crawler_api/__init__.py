"""Crawler periódico hacia un FIWARE IoT Agent Ultralight.

Estructura:
- core/domain/     → Registros (Scope, ConfigGroup, Device), errores, contrato
- iota/            → Backends de provisioning (HTTP, memoria)
- reconciliation/  → Create-or-update con preservación de entity_name
- ultralight/      → Codificación de payloads UL
- mqtt/            → Publicación transitoria a broker
- scheduling/      → Cron con segundos
- job_runner       → Cuerpo de un tick
- crawler          → Fachada (importar desde crawler_api.crawler)
"""

from .core.domain import (
    BrokerConnectionError,
    ConfigGroup,
    ConfigurationError,
    CrawlerError,
    Device,
    PublishError,
    ReconciliationError,
    RemoteServiceError,
    Scope,
)
from .job_runner import JobRunner
from .mqtt import MQTTPublisher, build_topic
from .reconciliation import Reconciler
from .ultralight import encode

__all__ = [
    "BrokerConnectionError",
    "ConfigGroup",
    "ConfigurationError",
    "CrawlerError",
    "Device",
    "JobRunner",
    "MQTTPublisher",
    "PublishError",
    "ReconciliationError",
    "Reconciler",
    "RemoteServiceError",
    "Scope",
    "build_topic",
    "encode",
]
