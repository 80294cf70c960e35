from .scheduler import CronScheduler, normalize_expression

__all__ = ["CronScheduler", "normalize_expression"]
