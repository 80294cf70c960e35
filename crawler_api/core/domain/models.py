"""Registros de provisioning del IoT Agent.

Los nombres de campo Python siguen snake_case; los alias coinciden con el JSON
que espera el API north-bound del IoT Agent (``explicitAttrs``,
``defaultEntityNameConjunction``...).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_RESOURCE = "/iot/d"
MQTT_TRANSPORT = "MQTT"


class Scope(BaseModel):
    """Tenant (fiware-service) + sub-path (fiware-servicepath)."""

    model_config = ConfigDict(frozen=True)

    service: str
    service_path: str = "/"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "fiware-service": self.service,
            "fiware-servicepath": self.service_path,
        }


class Attribute(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object_id: Optional[str] = None
    name: str
    type: str = "Text"
    expression: Optional[str] = None


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_payload(self) -> Dict[str, Any]:
        """JSON listo para el IoT Agent (alias, sin campos vacíos)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ConfigGroup(_Record):
    """Grupo de configuración (service group).

    Identificado dentro de un Scope por (resource, apikey). No tiene campos
    asignados por el servidor, así que un update lo sobrescribe completo.
    """

    resource: str = DEFAULT_RESOURCE
    apikey: str
    entity_type: Optional[str] = None
    default_entity_name_conjunction: Optional[str] = Field(
        default=None, alias="defaultEntityNameConjunction"
    )
    cbroker: Optional[str] = None
    trust: Optional[str] = None
    lazy: Optional[List[Attribute]] = None
    commands: Optional[List[Attribute]] = None
    attributes: Optional[List[Attribute]] = None
    static_attributes: Optional[List[Attribute]] = None
    internal_attributes: Optional[List[Dict[str, Any]]] = None
    explicit_attrs: Optional[Union[bool, str]] = Field(default=None, alias="explicitAttrs")
    entity_name_exp: Optional[str] = Field(default=None, alias="entityNameExp")
    timestamp: Optional[bool] = None
    autoprovision: Optional[bool] = None
    transport: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.resource, self.apikey)


class Device(_Record):
    """Registro de un dispositivo individual.

    ``entity_name`` lo asigna la plataforma al crear y es inmutable;
    ``transport`` sólo se envía en la creación.
    """

    device_id: str
    entity_name: Optional[str] = None
    entity_type: Optional[str] = None
    transport: Optional[str] = None
    explicit_attrs: Optional[Union[bool, str]] = Field(default=None, alias="explicitAttrs")
    protocol: Optional[str] = None
    apikey: Optional[str] = None
    timezone: Optional[str] = None
    timestamp: Optional[bool] = None
    endpoint: Optional[str] = None
    attributes: Optional[List[Attribute]] = None
    lazy: Optional[List[Attribute]] = None
    commands: Optional[List[Attribute]] = None
    static_attributes: Optional[List[Attribute]] = None
    internal_attributes: Optional[List[Dict[str, Any]]] = None
    ngsi_version: Optional[str] = Field(default=None, alias="ngsiVersion")
    payload_type: Optional[str] = Field(default=None, alias="payloadType")

    @property
    def key(self) -> str:
        return self.device_id
