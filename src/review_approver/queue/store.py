"""Queue store: the list-oriented broker holding serialized jobs.

Jobs live on named lists. Producers push onto the head of a list and
claims pop from its tail, so lists are FIFO. Each operation below is a
single atomic broker command; the worker relies on that atomicity, not on
in-process locks, to keep a job on at most one list at a time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator

import redis

from review_approver.config import RedisSettings
from review_approver.errors import StoreConnectionError, StoreError, StoreTimeoutError
from review_approver.logging import get_logger

logger = get_logger(__name__)

# Remove one copy of ARGV[1] from KEYS[1] and, only if that succeeded, push
# ARGV[2] onto KEYS[2]. Returns the number removed.
_REQUEUE_SCRIPT = """
local removed = redis.call('LREM', KEYS[1], 1, ARGV[1])
if removed == 1 then
    redis.call('LPUSH', KEYS[2], ARGV[2])
end
return removed
"""


class QueueStore(ABC):
    """Abstract interface to the broker."""

    @abstractmethod
    def push(self, list_name: str, payload: bytes) -> int:
        """Push a payload onto the head of a list.

        Returns:
            Length of the list after the push
        """
        pass

    @abstractmethod
    def move(self, source: str, destination: str) -> bytes | None:
        """Atomically move the tail of `source` to the head of `destination`.

        Returns:
            The moved payload, or None if `source` was empty
        """
        pass

    @abstractmethod
    def remove(self, list_name: str, payload: bytes) -> int:
        """Remove the first element equal to `payload`.

        Returns:
            Number of elements removed
        """
        pass

    @abstractmethod
    def requeue(self, source: str, destination: str, old: bytes, new: bytes) -> int:
        """Atomically replace `old` in `source` with `new` at the head of `destination`.

        `new` is pushed only if `old` was removed.

        Returns:
            Number of elements removed from `source`
        """
        pass

    @abstractmethod
    def length(self, list_name: str) -> int:
        pass

    @abstractmethod
    def items(self, list_name: str) -> list[bytes]:
        """All elements of a list, head first."""
        pass

    def ping(self) -> bool:
        """Check the store is reachable.

        Raises:
            StoreError: If it is not
        """
        return True

    def close(self) -> None:
        """Release any held resources."""


class RedisQueueStore(QueueStore):
    """QueueStore backed by Redis lists.

    Connections come from a shared pool; redis-py checks one out for each
    command and returns it when the command finishes or fails. Every call
    carries the configured socket timeout.
    """

    def __init__(self, settings: RedisSettings | None = None, client: redis.Redis | None = None):
        """Initialize the store.

        Args:
            settings: Connection settings (defaults used if omitted)
            client: Pre-built client, mainly for tests
        """
        self.settings = settings or RedisSettings()
        if client is None:
            pool = redis.ConnectionPool(
                host=self.settings.host,
                port=self.settings.port,
                db=self.settings.db,
                password=self.settings.password,
                max_connections=self.settings.max_connections,
                socket_timeout=self.settings.socket_timeout,
                socket_connect_timeout=self.settings.connect_timeout,
            )
            client = redis.Redis(connection_pool=pool)
        self._client = client
        self._requeue = self._client.register_script(_REQUEUE_SCRIPT)

    @contextmanager
    def _session(self, operation: str, **context) -> Iterator[redis.Redis]:
        """Run store calls, translating client errors into StoreError types."""
        context = {"operation": operation, **context}
        try:
            yield self._client
        except redis.TimeoutError as e:
            raise StoreTimeoutError(f"Queue store timed out during {operation}", context) from e
        except redis.ConnectionError as e:
            raise StoreConnectionError(
                f"Could not reach queue store during {operation}: {e}", context
            ) from e
        except redis.RedisError as e:
            raise StoreError(f"Queue store error during {operation}: {e}", context) from e

    def ping(self) -> bool:
        with self._session("ping") as client:
            return bool(client.ping())

    def push(self, list_name: str, payload: bytes) -> int:
        with self._session("push", list=list_name) as client:
            return int(client.lpush(list_name, payload))

    def move(self, source: str, destination: str) -> bytes | None:
        with self._session("move", source=source, destination=destination) as client:
            return client.rpoplpush(source, destination)

    def remove(self, list_name: str, payload: bytes) -> int:
        with self._session("remove", list=list_name) as client:
            return int(client.lrem(list_name, 1, payload))

    def requeue(self, source: str, destination: str, old: bytes, new: bytes) -> int:
        with self._session("requeue", source=source, destination=destination):
            return int(self._requeue(keys=[source, destination], args=[old, new]))

    def length(self, list_name: str) -> int:
        with self._session("length", list=list_name) as client:
            return int(client.llen(list_name))

    def items(self, list_name: str) -> list[bytes]:
        with self._session("items", list=list_name) as client:
            return list(client.lrange(list_name, 0, -1))

    def close(self) -> None:
        logger.debug("Closing queue store connection pool")
        self._client.close()
        self._client.connection_pool.disconnect()
