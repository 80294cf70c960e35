"""Reconciliación create-or-update de registros del IoT Agent.

Cada tipo de recurso es una máquina de estados mínima:

    ABSENT  --create-->            PRESENT
    PRESENT --read-then-update-->  PRESENT

El tipo aporta su clave, la sonda de existencia y la fusión previa al update.
La regla de entity_name / transport del Device vive sólo en
``DeviceKind.merge_for_update``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Generic, Optional, TypeVar

from ..core.domain.errors import ReconciliationError
from ..core.domain.models import ConfigGroup, Device, Scope
from ..core.domain.provisioning_interface import ProvisioningBackend

logger = logging.getLogger(__name__)

R = TypeVar("R", ConfigGroup, Device)


class ResourceState(str, Enum):
    ABSENT = "absent"
    PRESENT = "present"


class Transition(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class ResourceKind(ABC, Generic[R]):
    """Operaciones de un tipo de recurso sobre el backend."""

    name: str = "resource"

    @abstractmethod
    def describe(self, desired: R) -> str:
        pass

    @abstractmethod
    def state(self, backend: ProvisioningBackend, scope: Scope, desired: R) -> ResourceState:
        pass

    @abstractmethod
    def create(self, backend: ProvisioningBackend, scope: Scope, desired: R) -> None:
        pass

    @abstractmethod
    def merge_for_update(self, backend: ProvisioningBackend, scope: Scope, desired: R) -> R:
        """Registro a enviar en el update (puede leer el estado remoto)."""

    @abstractmethod
    def update(self, backend: ProvisioningBackend, scope: Scope, desired: R, merged: R) -> None:
        pass

    @abstractmethod
    def delete(self, backend: ProvisioningBackend, scope: Scope, desired: R) -> None:
        pass


class ConfigGroupKind(ResourceKind[ConfigGroup]):
    """Sin campos asignados por el servidor: el update sobrescribe todo."""

    name = "config_group"

    def describe(self, desired: ConfigGroup) -> str:
        return f"resource={desired.resource} apikey={desired.apikey}"

    def state(self, backend, scope, desired):
        exists = backend.config_group_exists(scope, desired.resource, desired.apikey)
        return ResourceState.PRESENT if exists else ResourceState.ABSENT

    def create(self, backend, scope, desired):
        backend.create_config_group(scope, desired)

    def merge_for_update(self, backend, scope, desired):
        return desired

    def update(self, backend, scope, desired, merged):
        backend.update_config_group(scope, desired.resource, desired.apikey, merged)

    def delete(self, backend, scope, desired):
        backend.delete_config_group(scope, desired.resource, desired.apikey)


class DeviceKind(ResourceKind[Device]):
    """entity_name lo asigna la plataforma; transport sólo al crear."""

    name = "device"

    def describe(self, desired: Device) -> str:
        return f"device_id={desired.device_id}"

    def state(self, backend, scope, desired):
        exists = backend.device_exists(scope, desired.device_id)
        return ResourceState.PRESENT if exists else ResourceState.ABSENT

    def create(self, backend, scope, desired):
        backend.create_device(scope, desired)

    def merge_for_update(self, backend, scope, desired):
        current = backend.read_device(scope, desired.device_id)
        entity_name = current.entity_name if current is not None else None
        if not entity_name:
            raise ReconciliationError(
                f"Device {desired.device_id!r} exists but the platform reports no entity_name"
            )
        return desired.model_copy(update={"entity_name": entity_name, "transport": None})

    def update(self, backend, scope, desired, merged):
        backend.update_device(scope, desired.device_id, merged)

    def delete(self, backend, scope, desired):
        backend.delete_device(scope, desired.device_id)


class Reconciler:
    """Hace que el registro remoto coincida con el estado deseado.

    Ambas operaciones son idempotentes: repetirlas con el mismo registro deja
    el estado remoto igual y no falla. Los errores del backend
    (RemoteServiceError) y de consistencia (ReconciliationError) se propagan
    sin reintentos.
    """

    def __init__(
        self,
        backend: ProvisioningBackend,
        log: Optional[logging.Logger] = None,
    ):
        self.backend = backend
        self._log = log or logger
        self._config_groups = ConfigGroupKind()
        self._devices = DeviceKind()

    def ensure_config_group(self, scope: Scope, desired: ConfigGroup) -> Transition:
        return self._ensure(self._config_groups, scope, desired)

    def ensure_device(self, scope: Scope, desired: Device) -> Transition:
        return self._ensure(self._devices, scope, desired)

    def remove_config_group(self, scope: Scope, desired: ConfigGroup) -> None:
        self._remove(self._config_groups, scope, desired)

    def remove_device(self, scope: Scope, desired: Device) -> None:
        self._remove(self._devices, scope, desired)

    def _ensure(self, kind: ResourceKind, scope: Scope, desired) -> Transition:
        state = kind.state(self.backend, scope, desired)
        self._log.debug(
            "[RECONCILE] %s %s state=%s service=%s path=%s",
            kind.name, kind.describe(desired), state.value, scope.service, scope.service_path,
        )

        if state is ResourceState.ABSENT:
            kind.create(self.backend, scope, desired)
            transition = Transition.CREATED
        else:
            merged = kind.merge_for_update(self.backend, scope, desired)
            kind.update(self.backend, scope, desired, merged)
            transition = Transition.UPDATED

        self._log.info("[RECONCILE] %s %s %s", kind.name, kind.describe(desired), transition.value)
        return transition

    def _remove(self, kind: ResourceKind, scope: Scope, desired) -> None:
        if kind.state(self.backend, scope, desired) is ResourceState.ABSENT:
            self._log.debug("[RECONCILE] %s %s already absent", kind.name, kind.describe(desired))
            return
        kind.delete(self.backend, scope, desired)
        self._log.info("[RECONCILE] %s %s removed", kind.name, kind.describe(desired))
