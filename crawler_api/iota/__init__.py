"""Provisioning backends - IoT Agent HTTP y en memoria."""

from .client import IoTAgentClient
from .in_memory import InMemoryProvisioningBackend

__all__ = ["IoTAgentClient", "InMemoryProvisioningBackend"]
