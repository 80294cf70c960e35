"""Publicador MQTT de payloads Ultralight.

Cada publicación abre su propia conexión y la cierra al terminar, tanto si la
entrega tuvo éxito como si falló. No hay reutilización de conexiones.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import paho.mqtt.client as mqtt

from ..core.domain.errors import BrokerConnectionError, ConfigurationError, PublishError

logger = logging.getLogger(__name__)

TOPIC_TEMPLATE = "/ul/{api_key}/{device_id}/attrs"

QOS_AT_MOST_ONCE = 0
QOS_AT_LEAST_ONCE = 1
QOS_EXACTLY_ONCE = 2

DEFAULT_TIMEOUT = 10.0


def build_topic(api_key: str, device_id: str) -> str:
    """Topic de atributos del IoT Agent UL para un dispositivo."""
    return TOPIC_TEMPLATE.format(api_key=api_key, device_id=device_id)


def _default_client_factory(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
    )


class _Handshake:
    """Resultado del CONNACK, señalizado desde el hilo de red de paho."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.connected = False
        self.reason: Optional[str] = None

    def on_connect(self, client, userdata, flags, reason_code, properties=None):
        failed = getattr(reason_code, "is_failure", reason_code != 0)
        self.connected = not failed
        if failed:
            self.reason = str(reason_code)
        self.done.set()

    def on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        if not self.done.is_set():
            self.reason = f"connection closed before CONNACK ({reason_code})"
            self.done.set()


class MQTTPublisher:
    """Publica payloads UL en ``/ul/{apiKey}/{deviceId}/attrs``.

    Responsabilidades:
    - Validar el device id antes de tocar la red
    - Conexión transitoria (una por publicación)
    - Entrega con el QoS configurado (por defecto "at most once")
    - Cierre incondicional de la conexión
    """

    def __init__(
        self,
        broker_host: str = "mosquitto",
        broker_port: int = 1883,
        client_id: str = "fiware-crawler",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = QOS_AT_MOST_ONCE,
        timeout: float = DEFAULT_TIMEOUT,
        client_factory: Optional[Callable[[str], mqtt.Client]] = None,
        log: Optional[logging.Logger] = None,
    ):
        if qos not in (QOS_AT_MOST_ONCE, QOS_AT_LEAST_ONCE, QOS_EXACTLY_ONCE):
            raise ConfigurationError(f"Invalid MQTT QoS: {qos}")
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.client_id = client_id
        self.username = username
        self.password = password
        self.qos = qos
        self.timeout = timeout
        self._client_factory = client_factory or _default_client_factory
        self._log = log or logger

    def publish(self, api_key: str, device_id: str, payload: str) -> str:
        """Publica ``payload`` para el dispositivo y devuelve el topic usado.

        Raises:
            ConfigurationError: device id o api key vacíos (sin actividad de red)
            BrokerConnectionError: broker inalcanzable o credenciales rechazadas
            PublishError: el broker no confirmó la entrega
        """
        if not device_id:
            raise ConfigurationError("Device id cannot be empty")
        if not api_key:
            raise ConfigurationError("API key cannot be empty")

        topic = build_topic(api_key, device_id)
        self._log.debug("[MQTT] Publishing payload=%s topic=%s", payload, topic)

        client = self._client_factory(self.client_id)
        try:
            self._connect(client)
            self._deliver(client, topic, payload)
        finally:
            self._close(client)

        self._log.info("[MQTT] Published to %s", topic)
        return topic

    def _connect(self, client: mqtt.Client) -> None:
        handshake = _Handshake()
        client.on_connect = handshake.on_connect
        client.on_disconnect = handshake.on_disconnect

        if self.username:
            client.username_pw_set(self.username, self.password or None)

        self._log.debug("[MQTT] Connecting to %s:%d as %s", self.broker_host, self.broker_port, self.client_id)
        try:
            client.connect(self.broker_host, self.broker_port, keepalive=60)
        except (OSError, ValueError) as e:
            raise BrokerConnectionError(
                f"Cannot reach broker {self.broker_host}:{self.broker_port}: {e}"
            ) from e
        client.loop_start()

        if not handshake.done.wait(self.timeout):
            raise BrokerConnectionError(
                f"Connection to {self.broker_host}:{self.broker_port} timed out after {self.timeout}s"
            )
        if not handshake.connected:
            raise BrokerConnectionError(
                f"Broker {self.broker_host}:{self.broker_port} refused connection: {handshake.reason}"
            )

    def _deliver(self, client: mqtt.Client, topic: str, payload: str) -> None:
        info = client.publish(topic, payload, qos=self.qos, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(f"Publish to {topic} rejected: {mqtt.error_string(info.rc)}")
        try:
            info.wait_for_publish(timeout=self.timeout)
        except (RuntimeError, ValueError) as e:
            raise PublishError(f"Publish to {topic} failed: {e}") from e
        if not info.is_published():
            raise PublishError(f"Publish to {topic} not acknowledged after {self.timeout}s")

    def _close(self, client: mqtt.Client) -> None:
        try:
            client.disconnect()
        except Exception as e:
            self._log.warning("[MQTT] Disconnect error: %s", e)
        finally:
            client.loop_stop()
