"""Tests for the polling driver."""

import logging
import threading
from unittest.mock import Mock

from review_approver.config import QueueSettings
from review_approver.errors import ResolutionMismatchError, StoreTimeoutError
from review_approver.moderation import DenylistReviewer
from review_approver.queue import PollingDriver, WorkerPool

from conftest import PROC, REQ, RecordingNotifier, make_review


def _settings(**kwargs):
    return QueueSettings(request=REQ, processing=PROC, poll_seconds=0.01, **kwargs)


class TestPollingDriver:
    """Tests for PollingDriver.run."""

    def test_processes_queued_reviews(self, store):
        """Each tick claims at most one job."""
        notifier = RecordingNotifier()
        pool = WorkerPool(store, [DenylistReviewer.default()], [notifier])
        for product_id in (1, 2, 3):
            pool.push_review(make_review(product_id=product_id), REQ)

        driver = PollingDriver(pool, _settings())
        driver.run(max_ticks=5)

        assert driver.ticks == 5
        assert driver.processed == 3
        assert driver.failures == 0
        assert store.length(REQ) == 0
        assert store.length(PROC) == 0
        assert len(notifier.calls) == 3

    def test_resolved_counts_terminal_outcomes(self, store):
        """Requeued jobs are processed but not resolved."""
        pool = WorkerPool(store, [DenylistReviewer.default()], max_attempts=2)
        pool.push_review(make_review(product_id=1), REQ)
        pool.push_review(make_review(text="nee", product_id=2), REQ)

        driver = PollingDriver(pool, _settings(max_workers=1))
        driver.run(max_ticks=2)

        assert driver.processed == 2
        assert driver.resolved == 1
        assert store.length(REQ) == 1

    def test_resolution_mismatch_logged_as_lost(self, caplog):
        """A job that vanished is reported as lost."""
        pool = Mock()
        pool.process_next.side_effect = ResolutionMismatchError(PROC, 0)

        driver = PollingDriver(pool, _settings())
        with caplog.at_level(logging.ERROR, logger="review_approver"):
            driver.run(max_ticks=1)

        (record,) = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert record.mismatch == "lost"
        assert record.category == "resolution"

    def test_errors_counted_not_raised(self):
        """Failed ticks are logged and the driver keeps polling."""
        pool = Mock()
        pool.process_next.side_effect = StoreTimeoutError("timed out")

        driver = PollingDriver(pool, _settings())
        driver.run(max_ticks=3)

        assert driver.ticks == 3
        assert driver.failures == 3
        pool.process_next.assert_called_with(REQ, PROC)

    def test_unexpected_errors_counted(self):
        """Errors outside the project hierarchy are also contained."""
        pool = Mock()
        pool.process_next.side_effect = RuntimeError("bug")

        driver = PollingDriver(pool, _settings())
        driver.run(max_ticks=2)

        assert driver.failures == 2

    def test_stop_before_run(self):
        """A stopped driver dispatches nothing."""
        pool = Mock()
        driver = PollingDriver(pool, _settings())
        driver.stop()

        driver.run()

        assert driver.stopped
        assert driver.ticks == 0
        pool.process_next.assert_not_called()

    def test_stop_from_another_thread(self):
        """stop() ends an unbounded run."""
        pool = Mock()
        pool.process_next.return_value = None
        driver = PollingDriver(pool, _settings())

        timer = threading.Timer(0.05, driver.stop)
        timer.start()
        driver.run()
        timer.join()

        assert driver.ticks >= 1
        assert driver.processed == 0

    def test_overlapping_dispatch(self):
        """Ticks don't wait for earlier calls to finish."""
        release = threading.Event()
        started = threading.Semaphore(0)

        def slow(*args):
            started.release()
            release.wait(timeout=5)
            return None

        pool = Mock()
        pool.process_next.side_effect = slow
        driver = PollingDriver(pool, _settings(max_workers=4))

        runner = threading.Thread(target=driver.run, kwargs={"max_ticks": 3})
        runner.start()
        # All three calls start while none has finished
        for _ in range(3):
            assert started.acquire(timeout=5)
        release.set()
        runner.join(timeout=5)

        assert pool.process_next.call_count == 3
