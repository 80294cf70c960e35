"""Crawler: fachada que conecta configuración, IoT Agent, MQTT y cron.

Uso típico::

    crawler = Crawler.from_env()
    crawler.setup()                       # config group + device, una vez
    crawler.start_job(collect_weather)    # bloqueante, un publish por tick
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Mapping, Optional

from common.config import Settings, get_settings

from .core.domain.models import MQTT_TRANSPORT, ConfigGroup, Device, Scope
from .core.domain.provisioning_interface import ProvisioningBackend
from .iota.client import IoTAgentClient
from .job_runner import Collector, JobRunner, Publisher
from .mqtt.publisher import MQTTPublisher
from .reconciliation.reconciler import Reconciler, Transition
from .scheduling.scheduler import CronScheduler
from .ultralight import encode

logger = logging.getLogger(__name__)


class Crawler:
    """Recolección periódica hacia un IoT Agent UL.

    Las dependencias se pueden inyectar (tests, backends alternativos); por
    defecto se construyen a partir de ``settings``.
    """

    def __init__(
        self,
        settings: Settings,
        backend: Optional[ProvisioningBackend] = None,
        publisher: Optional[Publisher] = None,
        scheduler: Optional[CronScheduler] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.settings = settings
        self._log = log or logger
        self.scope = Scope(service=settings.service, service_path=settings.service_path)
        self.backend = backend or IoTAgentClient(
            settings.iota_host, settings.iota_port, timeout=settings.iota_timeout
        )
        self.publisher = publisher or MQTTPublisher(
            broker_host=settings.mqtt_broker,
            broker_port=settings.mqtt_port,
            client_id=settings.client_id,
            username=settings.username,
            password=settings.password,
            qos=settings.mqtt_qos,
            timeout=settings.mqtt_timeout,
            log=self._log.getChild("mqtt"),
        )
        self.scheduler = scheduler or CronScheduler(
            settings.crontab, log=self._log.getChild("cron")
        )
        self.reconciler = Reconciler(self.backend, log=self._log.getChild("reconcile"))
        self._guard = threading.Lock()

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **kwargs: Any) -> "Crawler":
        return cls(get_settings(env_file), **kwargs)

    # ------------------------------------------------------------------
    # Registros deseados
    # ------------------------------------------------------------------

    def new_config_group(self) -> ConfigGroup:
        return ConfigGroup(
            apikey=self.settings.api_key,
            resource=self.settings.resource,
            entity_type=self.settings.entity_type,
        )

    def new_device(self) -> Device:
        return Device(
            device_id=self.settings.device_id,
            entity_type=self.settings.entity_type,
            transport=MQTT_TRANSPORT,
        )

    # ------------------------------------------------------------------
    # Reconciliación
    # ------------------------------------------------------------------

    def upsert_config_group(self, group: ConfigGroup) -> Transition:
        with self._guard:
            return self.reconciler.ensure_config_group(self.scope, group)

    def upsert_device(self, device: Device) -> Transition:
        with self._guard:
            return self.reconciler.ensure_device(self.scope, device)

    def setup(self) -> Dict[str, Transition]:
        """Reconcilia el config group y, si hay DEVICE_ID, el device."""
        result = {"config_group": self.upsert_config_group(self.new_config_group())}
        if self.settings.device_id:
            result["device"] = self.upsert_device(self.new_device())
        else:
            self._log.info("[SETUP] DEVICE_ID not set, relying on config group autoprovisioning")
        return result

    def deprovision(self) -> None:
        """Elimina device y config group (inverso de ``setup``)."""
        with self._guard:
            if self.settings.device_id:
                self.reconciler.remove_device(self.scope, self.new_device())
            self.reconciler.remove_config_group(self.scope, self.new_config_group())

    def healthcheck(self) -> Dict[str, Any]:
        return self.backend.healthcheck()

    # ------------------------------------------------------------------
    # Publicación
    # ------------------------------------------------------------------

    def job_runner(self, collect: Collector) -> JobRunner:
        return JobRunner(
            publisher=self.publisher,
            api_key=self.settings.api_key,
            collect=collect,
            default_device_id=self.settings.device_id,
            guard=self._guard,
            log=self._log.getChild("job"),
        )

    def publish(self, data: Mapping[str, Any]) -> str:
        """Publica ``data`` para el DEVICE_ID configurado."""
        return self.publish_with_device_id(data, self.settings.device_id)

    def publish_with_device_id(self, data: Mapping[str, Any], device_id: str) -> str:
        """Publica ``data`` como payload UL; devuelve el payload enviado."""
        payload = encode(data)
        self.publisher.publish(self.settings.api_key, device_id, payload)
        return payload

    def start_job(self, collect: Collector) -> None:
        """Registra ``collect`` en el cron y bloquea hasta que el scheduler pare."""
        self.scheduler.start_blocking(self.job_runner(collect))

    def stop(self) -> None:
        self.scheduler.stop()
