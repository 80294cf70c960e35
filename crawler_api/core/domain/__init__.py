"""Domain layer - Registros, errores y contratos."""

from .errors import (
    BrokerConnectionError,
    ConfigurationError,
    CrawlerError,
    PublishError,
    ReconciliationError,
    RemoteServiceError,
)
from .models import Attribute, ConfigGroup, Device, Scope
from .provisioning_interface import ProvisioningBackend

__all__ = [
    "Attribute",
    "BrokerConnectionError",
    "ConfigGroup",
    "ConfigurationError",
    "CrawlerError",
    "Device",
    "ProvisioningBackend",
    "PublishError",
    "ReconciliationError",
    "RemoteServiceError",
    "Scope",
]
