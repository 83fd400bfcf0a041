"""Shared fixtures for review-approver tests."""

import threading

import pytest

from review_approver.errors import NotificationError
from review_approver.models.review import ProductReview
from review_approver.moderation.notifiers import Notifier
from review_approver.moderation.reviewers import DenylistReviewer
from review_approver.queue.pool import WorkerPool
from review_approver.queue.store import QueueStore

REQ = "req_queue"
PROC = "proc_queue"
DEAD = "dead_queue"


class InMemoryQueueStore(QueueStore):
    """QueueStore over Python lists; index 0 is the head.

    A single lock makes every operation atomic, like broker commands.
    """

    def __init__(self):
        self.lists: dict[str, list[bytes]] = {}
        self._lock = threading.Lock()
        self.closed = False

    def _list(self, name: str) -> list[bytes]:
        return self.lists.setdefault(name, [])

    def push(self, list_name, payload):
        with self._lock:
            lst = self._list(list_name)
            lst.insert(0, payload)
            return len(lst)

    def move(self, source, destination):
        with self._lock:
            src = self._list(source)
            if not src:
                return None
            payload = src.pop()
            self._list(destination).insert(0, payload)
            return payload

    def remove(self, list_name, payload):
        with self._lock:
            lst = self._list(list_name)
            if payload in lst:
                lst.remove(payload)
                return 1
            return 0

    def requeue(self, source, destination, old, new):
        with self._lock:
            src = self._list(source)
            if old not in src:
                return 0
            src.remove(old)
            self._list(destination).insert(0, new)
            return 1

    def length(self, list_name):
        with self._lock:
            return len(self._list(list_name))

    def items(self, list_name):
        with self._lock:
            return list(self._list(list_name))

    def close(self):
        self.closed = True


class RecordingNotifier(Notifier):
    """Notifier that remembers every call."""

    def __init__(self, fail: bool = False):
        self.calls: list[tuple[ProductReview, bool, str]] = []
        self.fail = fail
        self._lock = threading.Lock()

    def notify(self, review, approved, message):
        with self._lock:
            self.calls.append((review, approved, message))
        if self.fail:
            raise NotificationError("mail server down", notifier=self.name)


def make_review(text: str = "great buy, would recommend", product_id: int = 709, **kwargs) -> ProductReview:
    data = {
        "product_id": product_id,
        "text": text,
        "reviewer_name": "Jane Doe",
        "email": "jane@example.com",
        "rating": 5,
    }
    data.update(kwargs)
    return ProductReview(**data)


@pytest.fixture
def store():
    return InMemoryQueueStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def review():
    return make_review()


@pytest.fixture
def pool(store, notifier):
    return WorkerPool(store, [DenylistReviewer.default()], [notifier], max_attempts=3)
