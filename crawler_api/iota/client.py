"""Cliente HTTP del API north-bound del IoT Agent.

Implementa ProvisioningBackend sobre ``requests``. Cada llamada viaja con las
cabeceras ``fiware-service`` / ``fiware-servicepath`` del Scope y un timeout
acotado. No hay reintentos: cualquier fallo se propaga como RemoteServiceError.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from pydantic import BaseModel, ValidationError

from ..core.domain.errors import RemoteServiceError
from ..core.domain.models import ConfigGroup, Device, Scope
from ..core.domain.provisioning_interface import ProvisioningBackend

logger = logging.getLogger(__name__)

SERVICES_PATH = "/iot/services"
DEVICES_PATH = "/iot/devices"
ABOUT_PATH = "/iot/about"

DEFAULT_TIMEOUT = 10.0


class IoTAgentClient(ProvisioningBackend):
    """Cliente del IoT Agent (Ultralight).

    Responsabilidades:
    - CRUD de config groups (``/iot/services``)
    - CRUD de devices (``/iot/devices``)
    - Health check (``/iot/about``)
    """

    def __init__(
        self,
        host: str,
        port: int,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        scheme: str = "http",
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.base_url = f"{scheme}://{host}:{port}"
        self._session = session or requests.Session()

    # ------------------------------------------------------------------
    # ConfigGroup
    # ------------------------------------------------------------------

    def config_group_exists(self, scope: Scope, resource: str, apikey: str) -> bool:
        return self.read_config_group(scope, resource, apikey) is not None

    def read_config_group(self, scope: Scope, resource: str, apikey: str) -> Optional[ConfigGroup]:
        response = self._request(
            "GET", SERVICES_PATH, scope, params={"resource": resource, "apikey": apikey}
        )
        data = self._json(response)
        # Algunas versiones del agente ignoran el filtro por apikey.
        for raw in data.get("services") or []:
            if isinstance(raw, dict) and raw.get("resource") == resource and raw.get("apikey") == apikey:
                return self._record(ConfigGroup, raw, response, "config group")
        return None

    def create_config_group(self, scope: Scope, group: ConfigGroup) -> None:
        self._request("POST", SERVICES_PATH, scope, json={"services": [group.to_payload()]})
        logger.info("[IOTA] Config group created resource=%s apikey=%s", group.resource, group.apikey)

    def update_config_group(
        self, scope: Scope, resource: str, apikey: str, group: ConfigGroup
    ) -> None:
        self._request(
            "PUT",
            SERVICES_PATH,
            scope,
            params={"resource": resource, "apikey": apikey},
            json=group.to_payload(),
        )
        logger.info("[IOTA] Config group updated resource=%s apikey=%s", resource, apikey)

    def delete_config_group(self, scope: Scope, resource: str, apikey: str) -> None:
        self._request(
            "DELETE", SERVICES_PATH, scope, params={"resource": resource, "apikey": apikey}
        )
        logger.info("[IOTA] Config group deleted resource=%s apikey=%s", resource, apikey)

    # ------------------------------------------------------------------
    # Device
    # ------------------------------------------------------------------

    def device_exists(self, scope: Scope, device_id: str) -> bool:
        return self.read_device(scope, device_id) is not None

    def read_device(self, scope: Scope, device_id: str) -> Optional[Device]:
        response = self._request("GET", self._device_path(device_id), scope, allow_missing=True)
        if response.status_code == 404:
            return None
        return self._record(Device, self._json(response), response, "device")

    def create_device(self, scope: Scope, device: Device) -> None:
        self._request("POST", DEVICES_PATH, scope, json={"devices": [device.to_payload()]})
        logger.info("[IOTA] Device created device_id=%s", device.device_id)

    def update_device(self, scope: Scope, device_id: str, device: Device) -> None:
        self._request("PUT", self._device_path(device_id), scope, json=device.to_payload())
        logger.info("[IOTA] Device updated device_id=%s", device_id)

    def delete_device(self, scope: Scope, device_id: str) -> None:
        self._request("DELETE", self._device_path(device_id), scope)
        logger.info("[IOTA] Device deleted device_id=%s", device_id)

    # ------------------------------------------------------------------

    def healthcheck(self) -> Dict[str, Any]:
        """Devuelve la respuesta de ``/iot/about`` (versión, puertos...)."""
        response = self._request("GET", ABOUT_PATH, None)
        return self._json(response)

    def close(self) -> None:
        self._session.close()

    @staticmethod
    def _device_path(device_id: str) -> str:
        return f"{DEVICES_PATH}/{quote(device_id, safe='')}"

    def _request(
        self,
        method: str,
        path: str,
        scope: Optional[Scope],
        params: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
        allow_missing: bool = False,
    ) -> requests.Response:
        url = self.base_url + path
        headers = scope.headers if scope is not None else {}
        logger.debug("[IOTA] %s %s params=%s", method, url, params)

        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteServiceError(f"{method} {path} failed: {e}") from e

        if allow_missing and response.status_code == 404:
            return response
        if not response.ok:
            raise RemoteServiceError(
                f"{method} {path} rejected by IoT Agent",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    @staticmethod
    def _record(model: type, raw: Any, response: requests.Response, kind: str) -> BaseModel:
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise RemoteServiceError(
                f"IoT Agent returned an unexpected {kind} record: {e.error_count()} invalid field(s)",
                status_code=response.status_code,
                body=response.text,
            ) from e

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError(
                "IoT Agent returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from e
