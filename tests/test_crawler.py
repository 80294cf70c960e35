"""Tests de la fachada Crawler y del JobRunner.

Escenario end-to-end: cron cada 2 s con límite de 3 runs, cada tick publica
``{"test": "test"}``; al terminar hubo exactamente 3 publicaciones de
``test|test``.
"""

import threading
from unittest.mock import MagicMock

import pytest

from common.config import Settings
from crawler_api.core.domain import ConfigurationError, PublishError
from crawler_api.crawler import Crawler
from crawler_api.iota import InMemoryProvisioningBackend
from crawler_api.job_runner import JobRunner
from crawler_api.mqtt import MQTTPublisher
from crawler_api.reconciliation import Transition
from crawler_api.scheduling import CronScheduler


# =============================================================================
# FIXTURES
# =============================================================================

class RecordingPublisher:
    """Publisher falso que registra (api_key, device_id, payload)."""

    def __init__(self):
        self.calls = []

    def publish(self, api_key, device_id, payload):
        self.calls.append((api_key, device_id, payload))
        return f"/ul/{api_key}/{device_id}/attrs"


class BlockingBackend(InMemoryProvisioningBackend):
    """Backend en memoria cuyo ``device_exists`` espera a ``release``."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def device_exists(self, scope, device_id):
        self.entered.set()
        assert self.release.wait(5)
        return super().device_exists(scope, device_id)


class FakeClock:
    def __init__(self):
        self.now = 1_700_000_000.0

    def __call__(self):
        return self.now

    def wait(self, seconds):
        self.now += seconds
        return False


def make_settings(**overrides) -> Settings:
    values = dict(
        crontab="*/2 * * * * *",
        iota_host="localhost",
        iota_port=4061,
        service="testservice",
        service_path="/test",
        api_key="123456",
        resource="/iot/d",
        device_id="testDevice",
        entity_type="testType",
        log_level="DEBUG",
        mqtt_broker="localhost",
        mqtt_port=1883,
        client_id="testClientID",
        username="weathercrawler",
        password="test",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def backend() -> InMemoryProvisioningBackend:
    return InMemoryProvisioningBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def crawler(backend, publisher, clock) -> Crawler:
    settings = make_settings()
    scheduler = CronScheduler(settings.crontab, clock=clock, wait=clock.wait)
    return Crawler(settings, backend=backend, publisher=publisher, scheduler=scheduler)


# =============================================================================
# REGISTROS POR DEFECTO
# =============================================================================

class TestDefaults:

    def test_new_config_group(self, crawler):
        group = crawler.new_config_group()

        assert group.entity_type == "testType"
        assert group.apikey == "123456"
        assert group.resource == "/iot/d"

    def test_new_device(self, crawler):
        device = crawler.new_device()

        assert device.device_id == "testDevice"
        assert device.transport == "MQTT"
        assert device.entity_name is None

    def test_default_collaborators_from_settings(self):
        crawler = Crawler(make_settings())

        assert crawler.backend.base_url == "http://localhost:4061"
        assert crawler.publisher.client_id == "testClientID"
        assert crawler.scope.headers["fiware-servicepath"] == "/test"


# =============================================================================
# SETUP / UPSERT
# =============================================================================

class TestSetup:

    def test_setup_twice_is_idempotent(self, crawler, backend):
        first = crawler.setup()
        snapshot = backend.snapshot()
        second = crawler.setup()

        assert first == {"config_group": Transition.CREATED, "device": Transition.CREATED}
        assert second == {"config_group": Transition.UPDATED, "device": Transition.UPDATED}
        assert backend.snapshot() == snapshot

    def test_upsert_config_group_with_conjunction(self, crawler, backend):
        group = crawler.new_config_group()
        group.default_entity_name_conjunction = ":"

        crawler.upsert_config_group(group)
        crawler.upsert_config_group(group)

        stored = backend.read_config_group(crawler.scope, "/iot/d", "123456")
        assert stored.default_entity_name_conjunction == ":"

    def test_setup_without_device_id(self, backend, publisher):
        crawler = Crawler(make_settings(device_id=""), backend=backend, publisher=publisher)

        assert set(crawler.setup()) == {"config_group"}

    def test_deprovision(self, crawler, backend):
        crawler.setup()
        crawler.deprovision()

        assert not backend.device_exists(crawler.scope, "testDevice")
        assert not backend.config_group_exists(crawler.scope, "/iot/d", "123456")


# =============================================================================
# PUBLICACIÓN
# =============================================================================

class TestPublish:

    def test_publish_default_device(self, crawler, publisher):
        assert crawler.publish({"test": "test"}) == "test|test"
        assert publisher.calls == [("123456", "testDevice", "test|test")]

    def test_publish_with_device_id(self, crawler, publisher):
        crawler.publish_with_device_id({"test": "test"}, "Test")

        assert publisher.calls == [("123456", "Test", "test|test")]

    def test_publish_without_device_id(self, backend):
        factory = MagicMock()
        publisher = MQTTPublisher(client_id="testClientID", client_factory=factory)
        crawler = Crawler(make_settings(device_id=""), backend=backend, publisher=publisher)

        with pytest.raises(ConfigurationError):
            crawler.publish({"test": "test"})

        factory.assert_not_called()


# =============================================================================
# JOB RUNNER
# =============================================================================

class TestJobRunner:

    def test_first_error_propagates(self):
        publisher = MagicMock()
        publisher.publish.side_effect = PublishError("nack")
        runner = JobRunner(publisher, "123456", lambda: {"a": 1}, default_device_id="d")

        with pytest.raises(PublishError):
            runner.run()

        assert runner.guard.acquire(blocking=False)

    def test_collector_error_skips_publish(self):
        publisher = MagicMock()

        def collect():
            raise ValueError("source down")

        with pytest.raises(ValueError):
            JobRunner(publisher, "123456", collect, default_device_id="d").run()

        publisher.publish.assert_not_called()

    def test_overlapping_tick_is_skipped(self, publisher):
        guard = threading.Lock()
        runner = JobRunner(publisher, "123456", lambda: {"a": 1}, default_device_id="d", guard=guard)

        with guard:
            assert runner.run() is None

        assert publisher.calls == []
        assert runner.run() == "a|1"

    def test_explicit_device_id_wins(self, publisher):
        runner = JobRunner(publisher, "123456", lambda: {"a": 1}, default_device_id="d")

        runner.run("other")

        assert publisher.calls == [("123456", "other", "a|1")]


# =============================================================================
# EXCLUSIÓN RECONCILIACIÓN / TICKS
# =============================================================================

class TestSharedGuard:

    def test_tick_is_skipped_while_upsert_runs(self, publisher):
        backend = BlockingBackend()
        crawler = Crawler(make_settings(), backend=backend, publisher=publisher)
        worker = threading.Thread(target=crawler.upsert_device, args=(crawler.new_device(),))
        worker.start()
        assert backend.entered.wait(5)

        try:
            assert crawler.job_runner(lambda: {"a": 1}).run() is None
            assert publisher.calls == []
        finally:
            backend.release.set()
            worker.join(5)

        assert not worker.is_alive()
        assert backend.device_exists(crawler.scope, "testDevice")
        assert crawler.job_runner(lambda: {"a": 1}).run() == "a|1"

    def test_upsert_waits_for_active_tick(self, crawler, backend, publisher):
        tick_started = threading.Event()
        finish_tick = threading.Event()

        def collect():
            tick_started.set()
            assert finish_tick.wait(5)
            return {"a": 1}

        tick = threading.Thread(target=crawler.job_runner(collect).run)
        tick.start()
        assert tick_started.wait(5)

        upsert = threading.Thread(target=crawler.upsert_device, args=(crawler.new_device(),))
        upsert.start()
        upsert.join(0.1)
        try:
            assert upsert.is_alive()
            assert not backend.device_exists(crawler.scope, "testDevice")
        finally:
            finish_tick.set()
            tick.join(5)
            upsert.join(5)

        assert not upsert.is_alive()
        assert publisher.calls == [("123456", "testDevice", "a|1")]
        assert backend.device_exists(crawler.scope, "testDevice")


# =============================================================================
# HEALTH
# =============================================================================

class TestHealthcheck:

    def test_delegates_to_backend(self, crawler):
        assert crawler.healthcheck() == {"backend": "in-memory"}

    def test_custom_backend(self, publisher):
        backend = MagicMock(spec=InMemoryProvisioningBackend)
        backend.healthcheck.return_value = {"libVersion": "2.4.0"}
        crawler = Crawler(make_settings(), backend=backend, publisher=publisher)

        assert crawler.healthcheck() == {"libVersion": "2.4.0"}


# =============================================================================
# END TO END
# =============================================================================

class TestScheduledJob:

    def test_three_ticks_publish_three_payloads(self, crawler, publisher):
        crawler.setup()
        crawler.scheduler.limit_runs_to(3)

        crawler.start_job(lambda: {"test": "test"})

        assert len(publisher.calls) == 3
        assert [payload for _, _, payload in publisher.calls] == ["test|test"] * 3
        assert crawler.scheduler.runs == 3

    def test_publish_failures_do_not_stop_schedule(self, crawler):
        crawler.publisher = MagicMock()
        crawler.publisher.publish.side_effect = PublishError("nack")
        crawler.scheduler.limit_runs_to(3)

        crawler.start_job(lambda: {"test": "test"})

        assert crawler.publisher.publish.call_count == 3
        assert crawler.scheduler.failures == 3
