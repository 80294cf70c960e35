"""Tests del scheduler cron (reloj falso, sin esperas reales)."""

import pytest

from crawler_api.core.domain import ConfigurationError
from crawler_api.scheduling import CronScheduler, normalize_expression


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.waits = []

    def __call__(self) -> float:
        return self.now

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        self.now += seconds
        return False


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# EXPRESIONES
# =============================================================================

class TestExpressions:

    def test_seconds_field_moves_to_the_end(self):
        assert normalize_expression("*/2 * * * * *") == "* * * * * */2"

    def test_five_fields_untouched(self):
        assert normalize_expression("*/5 * * * *") == "*/5 * * * *"

    @pytest.mark.parametrize("expr", ["", "* * *", "61 * * * * *", "not a cron"])
    def test_invalid(self, expr):
        with pytest.raises(ConfigurationError):
            normalize_expression(expr)

    def test_next_fire_time_every_two_seconds(self, clock):
        scheduler = CronScheduler("*/2 * * * * *", clock=clock, wait=clock.wait)
        base = 1_700_000_001.0

        assert scheduler.next_fire_time(base) == base + 1


# =============================================================================
# BUCLE
# =============================================================================

class TestLoop:

    def test_run_limit(self, clock):
        calls = []
        scheduler = CronScheduler("*/2 * * * * *", clock=clock, wait=clock.wait).limit_runs_to(3)

        scheduler.start_blocking(lambda: calls.append(clock.now))

        assert len(calls) == 3
        assert calls[1] - calls[0] == 2
        assert calls[2] - calls[1] == 2
        assert scheduler.runs == 3

    def test_failing_job_does_not_stop_the_loop(self, clock):
        def job():
            raise RuntimeError("collector down")

        scheduler = CronScheduler("*/2 * * * * *", clock=clock, wait=clock.wait).limit_runs_to(2)
        scheduler.start_blocking(job)

        assert scheduler.runs == 2
        assert scheduler.failures == 2

    def test_overrunning_job_skips_ticks(self, clock):
        def slow_job():
            clock.now += 5

        scheduler = CronScheduler("*/2 * * * * *", clock=clock, wait=clock.wait).limit_runs_to(2)
        scheduler.start_blocking(slow_job)

        assert scheduler.runs == 2
        assert scheduler.skipped >= 2

    def test_stop_from_job(self, clock):
        scheduler = CronScheduler("*/2 * * * * *", clock=clock, wait=clock.wait)
        scheduler.start_blocking(scheduler.stop)

        assert scheduler.runs == 1
        assert scheduler.stopped

    def test_wait_interrupted_by_stop(self, clock):
        scheduler = CronScheduler("*/2 * * * * *", clock=clock, wait=lambda seconds: True)
        scheduler.start_blocking(lambda: None)

        assert scheduler.runs == 0

    def test_invalid_limit(self, clock):
        with pytest.raises(ConfigurationError):
            CronScheduler("* * * * *", clock=clock).limit_runs_to(0)
