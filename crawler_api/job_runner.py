"""Job de un tick: recolectar, codificar y publicar."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Optional, Protocol

from .ultralight import encode

logger = logging.getLogger(__name__)

Collector = Callable[[], Mapping[str, Any]]


class Publisher(Protocol):
    def publish(self, api_key: str, device_id: str, payload: str) -> str: ...


class JobRunner:
    """Ejecuta el cuerpo de un tick del scheduler.

    El primer error (de la recolección, el encoder o el publisher) se propaga
    sin reintentos. Un tick que arranca mientras otro sigue activo se salta y
    devuelve None; ``guard`` se comparte con la reconciliación para que un
    read-merge-update nunca corra en paralelo con una publicación.
    """

    def __init__(
        self,
        publisher: Publisher,
        api_key: str,
        collect: Collector,
        default_device_id: str = "",
        guard: Optional[threading.Lock] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.publisher = publisher
        self.api_key = api_key
        self.collect = collect
        self.default_device_id = default_device_id
        self.guard = guard or threading.Lock()
        self._log = log or logger

    def run(self, device_id: Optional[str] = None) -> Optional[str]:
        """Un tick completo. Devuelve el payload publicado, o None si se saltó."""
        if not self.guard.acquire(blocking=False):
            self._log.warning("[JOB] Previous run still active, skipping tick")
            return None
        try:
            attributes = self.collect()
            return self.publish(attributes, device_id)
        finally:
            self.guard.release()

    def publish(self, attributes: Mapping[str, Any], device_id: Optional[str] = None) -> str:
        payload = encode(attributes)
        target = device_id or self.default_device_id
        self.publisher.publish(self.api_key, target, payload)
        return payload

    __call__ = run
