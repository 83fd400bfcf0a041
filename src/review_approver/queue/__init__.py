"""Job queue for review moderation.

Provides the broker interface, the worker pool that claims and resolves
jobs, and the periodic driver that runs it.
"""

from review_approver.queue.driver import PollingDriver
from review_approver.queue.pool import JobDecision, ProcessOutcome, QueueStats, WorkerPool
from review_approver.queue.store import QueueStore, RedisQueueStore

__all__ = [
    "QueueStore",
    "RedisQueueStore",
    "WorkerPool",
    "JobDecision",
    "ProcessOutcome",
    "QueueStats",
    "PollingDriver",
]
