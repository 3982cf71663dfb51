"""Core batch engine components for shopbulk."""

from shopbulk.core.concurrency import ConcurrencyController
from shopbulk.core.dispatcher import BatchDispatcher
from shopbulk.core.partitioner import partition
from shopbulk.core.retry import RetryGovernor
from shopbulk.core.scheduler import ManualScheduler, Scheduler
from shopbulk.core.throttle import ThrottleTracker

__all__ = [
    "BatchDispatcher",
    "ConcurrencyController",
    "ManualScheduler",
    "RetryGovernor",
    "Scheduler",
    "ThrottleTracker",
    "partition",
]
