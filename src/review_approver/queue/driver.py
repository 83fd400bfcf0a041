"""Periodic driver for the worker pool.

Every tick submits one `process_next` call to a thread pool without waiting
for earlier calls, so slow moderation lets calls overlap. There is no
backpressure; correctness rests on the store's atomic claim.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor

from review_approver.config import QueueSettings
from review_approver.errors import ApproverError, ResolutionMismatchError, format_error_for_display
from review_approver.logging import get_logger
from review_approver.queue.pool import ProcessOutcome, WorkerPool

logger = get_logger(__name__)


class PollingDriver:
    """Invokes `WorkerPool.process_next` on a fixed interval.

    Attributes:
        pool: Worker pool to drive
        settings: Queue names, interval and thread count
        ticks: Number of dispatches made so far
    """

    def __init__(self, pool: WorkerPool, settings: QueueSettings):
        self.pool = pool
        self.settings = settings
        self.ticks = 0
        self.processed = 0
        # Outcomes that took the job off the queues for good
        self.resolved = 0
        self.failures = 0
        self._stop = threading.Event()
        self._counter_lock = threading.Lock()

    def stop(self) -> None:
        """Ask `run` to return after the current tick."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _on_done(self, future: Future) -> None:
        error = future.exception()
        if error is not None:
            with self._counter_lock:
                self.failures += 1
            category = error.category.value if isinstance(error, ApproverError) else "internal"
            extra = {"category": category}
            if isinstance(error, ResolutionMismatchError):
                extra["mismatch"] = "lost" if error.lost else "duplicated"
            logger.error(
                f"Error: {format_error_for_display(error)}",
                extra=extra,
                exc_info=None if isinstance(error, ApproverError) else error,
            )
            return

        outcome: ProcessOutcome | None = future.result()
        if outcome is None:
            logger.debug("Request queue empty")
            return

        with self._counter_lock:
            self.processed += 1
            if outcome.terminal:
                self.resolved += 1
        for err in outcome.notification_errors:
            logger.warning(f"Notification failed: {format_error_for_display(err)}")

    def run(self, max_ticks: int | None = None) -> None:
        """Dispatch ticks until stopped or `max_ticks` is reached.

        Waits for in-flight calls to finish before returning.
        """
        request = self.settings.request
        processing = self.settings.processing
        logger.info(
            f"Polling {request} every {self.settings.poll_seconds}s",
            extra={"processing": processing, "max_workers": self.settings.max_workers},
        )

        with ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix="approver",
        ) as executor:
            while not self._stop.is_set():
                future = executor.submit(self.pool.process_next, request, processing)
                future.add_done_callback(self._on_done)
                self.ticks += 1

                if max_ticks is not None and self.ticks >= max_ticks:
                    break
                self._stop.wait(self.settings.poll_seconds)

        logger.info(
            "Driver stopped",
            extra={
                "ticks": self.ticks,
                "processed": self.processed,
                "resolved": self.resolved,
                "failures": self.failures,
            },
        )
