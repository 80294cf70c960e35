"""Crawler runner package.

Modules:
- config: RunnerConfig dataclass
- cli: CLI entry point (main)
"""

from .config import RunnerConfig
from .cli import main, run

__all__ = ["RunnerConfig", "main", "run"]
