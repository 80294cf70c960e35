from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from ..core.domain.errors import RemoteServiceError
from ..core.domain.models import ConfigGroup, Device, Scope
from ..core.domain.provisioning_interface import ProvisioningBackend

DEFAULT_ENTITY_TYPE = "Thing"
DEFAULT_CONJUNCTION = ":"

_ScopeKey = Tuple[str, str]


class InMemoryProvisioningBackend(ProvisioningBackend):
    """Implementación en memoria del IoT Agent.

    Reproduce las reglas que le importan al reconciliador:
    - al crear un Device sin entity_name, la plataforma lo asigna
      (``<entity_type><conjunction><device_id>``);
    - un update que cambia o vacía el entity_name se rechaza;
    - un update que reenvía ``transport`` se rechaza.

    Sin locks explícitos: pensado para un único hilo (tests, dry runs).
    """

    def __init__(self) -> None:
        self._groups: Dict[_ScopeKey, Dict[Tuple[str, str], ConfigGroup]] = {}
        self._devices: Dict[_ScopeKey, Dict[str, Device]] = {}

    # ConfigGroup -----------------------------------------------------------

    def config_group_exists(self, scope: Scope, resource: str, apikey: str) -> bool:
        return (resource, apikey) in self._groups_of(scope)

    def read_config_group(self, scope: Scope, resource: str, apikey: str) -> Optional[ConfigGroup]:
        group = self._groups_of(scope).get((resource, apikey))
        return group.model_copy(deep=True) if group else None

    def create_config_group(self, scope: Scope, group: ConfigGroup) -> None:
        groups = self._groups_of(scope)
        if group.key in groups:
            raise RemoteServiceError("DUPLICATE_GROUP", status_code=409)
        groups[group.key] = group.model_copy(deep=True)

    def update_config_group(
        self, scope: Scope, resource: str, apikey: str, group: ConfigGroup
    ) -> None:
        groups = self._groups_of(scope)
        if (resource, apikey) not in groups:
            raise RemoteServiceError("DEVICE_GROUP_NOT_FOUND", status_code=404)
        del groups[(resource, apikey)]
        groups[group.key] = group.model_copy(deep=True)

    def delete_config_group(self, scope: Scope, resource: str, apikey: str) -> None:
        if self._groups_of(scope).pop((resource, apikey), None) is None:
            raise RemoteServiceError("DEVICE_GROUP_NOT_FOUND", status_code=404)

    # Device ----------------------------------------------------------------

    def device_exists(self, scope: Scope, device_id: str) -> bool:
        return device_id in self._devices_of(scope)

    def read_device(self, scope: Scope, device_id: str) -> Optional[Device]:
        device = self._devices_of(scope).get(device_id)
        return device.model_copy(deep=True) if device else None

    def create_device(self, scope: Scope, device: Device) -> None:
        devices = self._devices_of(scope)
        if device.device_id in devices:
            raise RemoteServiceError("DUPLICATE_DEVICE_ID", status_code=409)
        stored = device.model_copy(deep=True)
        if not stored.entity_name:
            entity_type = stored.entity_type or DEFAULT_ENTITY_TYPE
            stored.entity_name = f"{entity_type}{self._conjunction(scope)}{stored.device_id}"
        devices[stored.device_id] = stored

    def update_device(self, scope: Scope, device_id: str, device: Device) -> None:
        devices = self._devices_of(scope)
        current = devices.get(device_id)
        if current is None:
            raise RemoteServiceError("DEVICE_NOT_FOUND", status_code=404)
        if device.entity_name != current.entity_name:
            raise RemoteServiceError(
                f"entity_name is immutable ({current.entity_name!r} -> {device.entity_name!r})",
                status_code=400,
            )
        if device.transport is not None:
            raise RemoteServiceError("transport can only be set at creation", status_code=400)
        stored = device.model_copy(deep=True)
        stored.transport = current.transport
        devices[device_id] = stored

    def delete_device(self, scope: Scope, device_id: str) -> None:
        if self._devices_of(scope).pop(device_id, None) is None:
            raise RemoteServiceError("DEVICE_NOT_FOUND", status_code=404)

    def healthcheck(self) -> Dict[str, Any]:
        return {"backend": "in-memory"}

    # -----------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Copia del estado remoto (para comparar antes/después)."""
        return {
            "groups": {
                scope: {key: g.to_payload() for key, g in groups.items()}
                for scope, groups in self._groups.items()
            },
            "devices": {
                scope: {key: d.to_payload() for key, d in devices.items()}
                for scope, devices in self._devices.items()
            },
        }

    def _conjunction(self, scope: Scope) -> str:
        for group in self._groups_of(scope).values():
            if group.default_entity_name_conjunction:
                return group.default_entity_name_conjunction
        return DEFAULT_CONJUNCTION

    def _groups_of(self, scope: Scope) -> Dict[Tuple[str, str], ConfigGroup]:
        return self._groups.setdefault((scope.service, scope.service_path), {})

    def _devices_of(self, scope: Scope) -> Dict[str, Device]:
        return self._devices.setdefault((scope.service, scope.service_path), {})
