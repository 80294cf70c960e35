"""Abstract interface for the provisioning platform.

This decouples reconciliation from the IoT Agent transport.
Any implementation (HTTP IoT Agent, in-memory) can implement this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .models import ConfigGroup, Device, Scope


class ProvisioningBackend(ABC):
    """Capability set consumed by the reconciler.

    Implementations:
    - IoTAgentClient: IoT Agent north-bound HTTP API
    - InMemoryProvisioningBackend: dict-backed, for tests and dry runs

    Every method raises RemoteServiceError when the platform call fails.
    """

    # ConfigGroup -----------------------------------------------------------

    @abstractmethod
    def config_group_exists(self, scope: Scope, resource: str, apikey: str) -> bool:
        pass

    @abstractmethod
    def read_config_group(self, scope: Scope, resource: str, apikey: str) -> Optional[ConfigGroup]:
        pass

    @abstractmethod
    def create_config_group(self, scope: Scope, group: ConfigGroup) -> None:
        pass

    @abstractmethod
    def update_config_group(
        self, scope: Scope, resource: str, apikey: str, group: ConfigGroup
    ) -> None:
        pass

    @abstractmethod
    def delete_config_group(self, scope: Scope, resource: str, apikey: str) -> None:
        pass

    # Device ----------------------------------------------------------------

    @abstractmethod
    def device_exists(self, scope: Scope, device_id: str) -> bool:
        pass

    @abstractmethod
    def read_device(self, scope: Scope, device_id: str) -> Optional[Device]:
        pass

    @abstractmethod
    def create_device(self, scope: Scope, device: Device) -> None:
        pass

    @abstractmethod
    def update_device(self, scope: Scope, device_id: str, device: Device) -> None:
        pass

    @abstractmethod
    def delete_device(self, scope: Scope, device_id: str) -> None:
        pass

    # Health ----------------------------------------------------------------

    @abstractmethod
    def healthcheck(self) -> Dict[str, Any]:
        """Estado del backend (p.ej. la respuesta de ``/iot/about``)."""
