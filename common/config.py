from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values

from crawler_api.core.domain.errors import ConfigurationError
from crawler_api.core.domain.models import DEFAULT_RESOURCE

from .logging_config import parse_log_level


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


@dataclass(frozen=True)
class Settings:
    crontab: str

    iota_host: str
    iota_port: int

    service: str
    service_path: str

    api_key: str
    resource: str

    device_id: str
    entity_type: str

    log_level: str

    mqtt_broker: str
    mqtt_port: int
    client_id: str
    username: Optional[str]
    password: Optional[str]

    mqtt_qos: int = 0
    mqtt_timeout: float = 10.0
    iota_timeout: float = 10.0


class _Reader:
    """Lee variables acumulando errores para reportarlos todos juntos."""

    def __init__(self, env: Mapping[str, str]):
        self._env = env
        self.errors: List[str] = []

    def required(self, name: str) -> str:
        value = (self._env.get(name) or "").strip()
        if not value:
            self.errors.append(f"{name} is required")
        return value

    def optional(self, name: str, default: str = "") -> str:
        value = self._env.get(name)
        if value is None or not value.strip():
            return default
        return value.strip()

    def integer(self, name: str, raw: str) -> int:
        try:
            return int(raw)
        except ValueError:
            if raw:
                self.errors.append(f"{name} must be an integer, got {raw!r}")
            return 0

    def number(self, name: str, raw: str) -> float:
        try:
            value = float(raw)
        except ValueError:
            self.errors.append(f"{name} must be a number, got {raw!r}")
            return 0.0
        if value <= 0:
            self.errors.append(f"{name} must be positive")
        return value


def load_environment(env_file: Optional[str] = None) -> Dict[str, str]:
    """Entorno efectivo: el .env (si existe) sin pisar variables reales."""
    env_file = env_file or os.getenv("CRAWLER_ENV_FILE", _default_env_file())
    merged: Dict[str, str] = {}
    if env_file and Path(env_file).exists():
        merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    merged.update(os.environ)
    return merged


def get_settings(
    env_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Construye Settings desde el entorno.

    Raises:
        ConfigurationError: con la lista de todas las variables ausentes o inválidas.
    """
    env = environ if environ is not None else load_environment(env_file)
    r = _Reader(env)

    crontab = r.required("CRONTAB")
    iota_host = r.required("IOTA_HOST")
    iota_port = r.integer("IOTA_PORT", r.required("IOTA_PORT"))
    service = r.required("SERVICE")
    service_path = r.required("SERVICE_PATH")
    api_key = r.required("API_KEY")
    resource = r.optional("RESOURCE", DEFAULT_RESOURCE)
    device_id = r.optional("DEVICE_ID")
    entity_type = r.required("ENTITY_TYPE")
    client_id = r.required("CLIENT_ID")

    log_level = r.optional("LOG_LEVEL", "DEBUG").upper()
    try:
        parse_log_level(log_level)
    except ConfigurationError as e:
        r.errors.append(str(e))

    mqtt_broker = r.optional("MQTT_BROKER", "mosquitto")
    mqtt_port = r.integer("MQTT_PORT", r.optional("MQTT_PORT", "1883"))
    mqtt_qos = r.integer("MQTT_QOS", r.optional("MQTT_QOS", "0"))
    if mqtt_qos not in (0, 1, 2):
        r.errors.append(f"MQTT_QOS must be 0, 1 or 2, got {mqtt_qos}")

    mqtt_timeout = r.number("MQTT_TIMEOUT", r.optional("MQTT_TIMEOUT", "10"))
    iota_timeout = r.number("IOTA_TIMEOUT", r.optional("IOTA_TIMEOUT", "10"))

    if r.errors:
        raise ConfigurationError("Invalid configuration: " + "; ".join(r.errors))

    return Settings(
        crontab=crontab,
        iota_host=iota_host,
        iota_port=iota_port,
        service=service,
        service_path=service_path,
        api_key=api_key,
        resource=resource,
        device_id=device_id,
        entity_type=entity_type,
        log_level=log_level,
        mqtt_broker=mqtt_broker,
        mqtt_port=mqtt_port,
        client_id=client_id,
        username=r.optional("USERNAME") or None,
        password=r.optional("PASSWORD") or None,
        mqtt_qos=mqtt_qos,
        mqtt_timeout=mqtt_timeout,
        iota_timeout=iota_timeout,
    )
