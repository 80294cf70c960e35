"""Scheduler cron con precisión de segundos.

Acepta expresiones de 5 campos o de 6 campos con los segundos al principio
(``*/2 * * * * *`` = cada 2 segundos). Los ticks se ejecutan en el hilo del
scheduler; los ticks que vencen mientras un job sigue corriendo se saltan,
nunca se encolan.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from croniter import croniter

from ..core.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)


def normalize_expression(expression: str) -> str:
    """Pasa ``seg min hora dia mes dow`` al orden de croniter (segundos al final)."""
    fields = expression.split()
    if len(fields) == 6:
        fields = fields[1:] + fields[:1]
    normalized = " ".join(fields)
    if len(fields) not in (5, 6) or not croniter.is_valid(normalized):
        raise ConfigurationError(f"Invalid cron expression: {expression!r}")
    return normalized


class CronScheduler:
    """Dispara un job según una expresión cron.

    ``clock`` y ``wait`` son inyectables para tests: ``wait(segundos)`` debe
    devolver True si el scheduler se detuvo mientras esperaba.
    """

    def __init__(
        self,
        expression: str,
        clock: Callable[[], float] = time.time,
        wait: Optional[Callable[[float], bool]] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.expression = expression
        self._cron = normalize_expression(expression)
        self._clock = clock
        self._stop = threading.Event()
        self._wait = wait or self._stop.wait
        self._log = log or logger
        self._limit: Optional[int] = None

        self.runs = 0
        self.failures = 0
        self.skipped = 0

    def limit_runs_to(self, runs: int) -> "CronScheduler":
        if runs < 1:
            raise ConfigurationError("Run limit must be >= 1")
        self._limit = runs
        return self

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def next_fire_time(self, after: Optional[float] = None) -> float:
        base = datetime.fromtimestamp(self._clock() if after is None else after).astimezone()
        return croniter(self._cron, base).get_next(float)

    def start_blocking(self, job: Callable[[], object]) -> None:
        """Bucle bloqueante hasta ``stop()`` o hasta alcanzar el límite de runs."""
        self._log.info("[CRON] Started expression=%r limit=%s", self.expression, self._limit)
        fire_at = self.next_fire_time()

        while not self._stop.is_set():
            if self._limit is not None and self.runs >= self._limit:
                self._log.info("[CRON] Run limit %d reached", self._limit)
                break

            delay = fire_at - self._clock()
            if delay > 0 and self._wait(delay):
                break

            self.runs += 1
            try:
                job()
            except Exception as e:
                self.failures += 1
                self._log.error("[CRON] Job run %d failed: %s", self.runs, e)

            fire_at = self._next_after_run(fire_at)

        self._log.info(
            "[CRON] Stopped runs=%d failures=%d skipped=%d", self.runs, self.failures, self.skipped
        )

    def _next_after_run(self, previous: float) -> float:
        now = self._clock()
        upcoming = self.next_fire_time(previous)
        missed = 0
        while upcoming <= now:
            missed += 1
            upcoming = self.next_fire_time(upcoming)
        if missed:
            self.skipped += missed
            self._log.warning("[CRON] Job overran its interval, %d tick(s) skipped", missed)
        return upcoming
