"""Crawler runner configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RunnerConfig:
    """Opciones de línea de comandos del runner."""
    collector: str
    env_file: Optional[str]
    device_id: Optional[str]
    runs: Optional[int]
    once: bool
    skip_setup: bool
