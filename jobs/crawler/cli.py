"""CLI entry point for the crawler runner.

Único punto del proyecto que decide terminar el proceso: la librería sólo
lanza errores tipados y aquí se traducen a códigos de salida.
"""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from typing import List, Optional

from common.config import get_settings
from common.logging_config import configure_logging
from crawler_api.core.domain.errors import ConfigurationError, CrawlerError
from crawler_api.crawler import Crawler
from crawler_api.job_runner import Collector

from .config import RunnerConfig

logger = logging.getLogger(__name__)

EXIT_RUNTIME_ERROR = 1
EXIT_CONFIG_ERROR = 2


def load_collector(target: str) -> Collector:
    """Resuelve ``paquete.modulo:funcion`` a un callable sin argumentos."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Collector must look like 'module:function', got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import collector module {module_name!r}: {e}") from e
    collect = getattr(module, attr, None)
    if not callable(collect):
        raise ConfigurationError(f"{target!r} is not callable")
    return collect


def parse_args(argv: Optional[List[str]] = None) -> RunnerConfig:
    p = argparse.ArgumentParser(description="FIWARE IoT Agent UL crawler")
    p.add_argument("--collector", required=True, help="module:function returning the attributes to publish")
    p.add_argument("--env-file", default=None, help=".env file (real environment variables win)")
    p.add_argument("--device-id", default=None, help="publish to this device instead of DEVICE_ID")
    p.add_argument("--runs", type=int, default=None, help="stop after N scheduled runs")
    p.add_argument("--once", action="store_true", help="publish once and exit, without the scheduler")
    p.add_argument("--skip-setup", action="store_true", help="do not reconcile config group / device")
    args = p.parse_args(argv)

    return RunnerConfig(
        collector=args.collector,
        env_file=args.env_file,
        device_id=args.device_id,
        runs=args.runs,
        once=bool(args.once),
        skip_setup=bool(args.skip_setup),
    )


def run(cfg: RunnerConfig) -> None:
    settings = get_settings(cfg.env_file)
    configure_logging(settings.log_level)

    collect = load_collector(cfg.collector)
    crawler = Crawler(settings)

    logger.info("Crawler started")
    logger.info(
        "Config: iota=%s:%d service=%s path=%s broker=%s:%d cron=%r",
        settings.iota_host, settings.iota_port, settings.service, settings.service_path,
        settings.mqtt_broker, settings.mqtt_port, settings.crontab,
    )

    if not cfg.skip_setup:
        crawler.setup()

    runner = crawler.job_runner(collect)
    if cfg.once:
        runner.run(cfg.device_id)
        return

    if cfg.runs is not None:
        crawler.scheduler.limit_runs_to(cfg.runs)
    try:
        crawler.scheduler.start_blocking(lambda: runner.run(cfg.device_id))
    except KeyboardInterrupt:
        crawler.stop()
        logger.info("Interrupted, scheduler stopped")


def main(argv: Optional[List[str]] = None) -> int:
    cfg = parse_args(argv)
    try:
        run(cfg)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR
    except CrawlerError as e:
        logger.error("Crawler error: %s", e)
        return EXIT_RUNTIME_ERROR
    return 0


if __name__ == "__main__":
    sys.exit(main())
