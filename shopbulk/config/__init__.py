"""Configuration package for shopbulk."""

from shopbulk.config.bulk_limits import (
    HARD_PARALLEL_CAP,
    LOW_WATER_MARK,
    MAX_ALIASES_PER_CALL,
    MAX_ATTEMPTS_PER_BATCH,
    MAX_ITEMS_PER_CALL,
    MAX_STUCK_CYCLES,
    SAFETY_FACTOR,
)
from shopbulk.config.settings import Settings, get_settings

__all__ = [
    "HARD_PARALLEL_CAP",
    "LOW_WATER_MARK",
    "MAX_ALIASES_PER_CALL",
    "MAX_ATTEMPTS_PER_BATCH",
    "MAX_ITEMS_PER_CALL",
    "MAX_STUCK_CYCLES",
    "SAFETY_FACTOR",
    "Settings",
    "get_settings",
]
