"""
Sliding-window rate limiting.

Each identity keeps the timestamps (epoch ms) of its admitted requests. A request
is rejected once the number of timestamps inside the trailing window reaches the
configured maximum.
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from core.errors import RateLimitError

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


class RateLimitStore(ABC):
    @abstractmethod
    def get(self, identity: str) -> list[int]:
        """Return the recorded request timestamps for ``identity``."""

    @abstractmethod
    def evict(self, identity: str, older_than: int) -> list[int]:
        """Drop timestamps ``<= older_than`` and return the survivors."""

    @abstractmethod
    def record(self, identity: str, timestamp: int) -> None: ...


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store. State survives only as long as the execution environment."""

    def __init__(self) -> None:
        self._requests: dict[str, list[int]] = {}
        self._lock = threading.Lock()

    def get(self, identity: str) -> list[int]:
        with self._lock:
            return list(self._requests.get(identity, []))

    def evict(self, identity: str, older_than: int) -> list[int]:
        with self._lock:
            kept = [ts for ts in self._requests.get(identity, []) if ts > older_than]
            if kept:
                self._requests[identity] = kept
            else:
                self._requests.pop(identity, None)
            return list(kept)

    def record(self, identity: str, timestamp: int) -> None:
        with self._lock:
            self._requests.setdefault(identity, []).append(timestamp)


class DynamoRateLimitStore(RateLimitStore):
    """Shared store: one item per identity holding a ``timestamps`` number list.

    Items carry a ``ttl`` attribute so DynamoDB expires idle identities.
    """

    def __init__(self, dynamo_client: Any, table_name: str, window_ms: int) -> None:
        self._client = dynamo_client
        self._table = table_name
        self._ttl_seconds = math.ceil(window_ms / 1000)

    def get(self, identity: str) -> list[int]:
        response = self._client.get_item(
            TableName=self._table,
            Key={"identity": {"S": identity}},
            ConsistentRead=True,
        )
        item = response.get("Item")
        if not item:
            return []
        return [int(entry["N"]) for entry in item.get("timestamps", {}).get("L", [])]

    def evict(self, identity: str, older_than: int) -> list[int]:
        current = self.get(identity)
        kept = [ts for ts in current if ts > older_than]
        if len(kept) == len(current):
            return kept
        if not kept:
            self._client.delete_item(TableName=self._table, Key={"identity": {"S": identity}})
            return kept
        self._client.put_item(
            TableName=self._table,
            Item={
                "identity": {"S": identity},
                "timestamps": {"L": [{"N": str(ts)} for ts in kept]},
                "ttl": {"N": str(max(kept) // 1000 + self._ttl_seconds)},
            },
        )
        return kept

    def record(self, identity: str, timestamp: int) -> None:
        self._client.update_item(
            TableName=self._table,
            Key={"identity": {"S": identity}},
            UpdateExpression="SET timestamps = list_append(if_not_exists(timestamps, :empty), :ts), #ttl = :ttl",
            ExpressionAttributeNames={"#ttl": "ttl"},
            ExpressionAttributeValues={
                ":empty": {"L": []},
                ":ts": {"L": [{"N": str(timestamp)}]},
                ":ttl": {"N": str(timestamp // 1000 + self._ttl_seconds)},
            },
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


class SlidingWindowRateLimiter:
    def __init__(
        self,
        store: RateLimitStore,
        max_requests: int = 100,
        window_ms: int = 15 * 60 * 1000,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock

    @property
    def retry_after(self) -> int:
        return math.ceil(self.window_ms / 1000)

    def check(self, identity: str, now_ms: int | None = None) -> None:
        """Admit one request for ``identity`` or raise ``RateLimitError``."""
        now = self._clock() if now_ms is None else now_ms
        recent = self._store.evict(identity, now - self.window_ms)
        if len(recent) >= self.max_requests:
            logger.warning("Rate limit exceeded for %s (%d requests in window)", identity, len(recent))
            raise RateLimitError(RATE_LIMIT_MESSAGE, retry_after=self.retry_after)
        self._store.record(identity, now)
