from __future__ import annotations

import json
import logging
import threading
from collections import deque
from typing import Any, Optional

import redis

from newsrss.core.constants import QUEUE_NAME
from newsrss.core.errors import QueueError
from newsrss.models import WorkItem

logger = logging.getLogger(__name__)


def encode_work_item(item: WorkItem) -> str:
    return json.dumps(item.to_payload(), ensure_ascii=False)


def decode_work_item(raw: Any) -> WorkItem:
    """Raises ValueError/KeyError on a malformed envelope."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError(f"queue payload is not an object: {type(payload).__name__}")
    return WorkItem.from_payload(payload)


class RedisJobQueue:
    """LPUSH on enqueue, RPOP on dequeue: FIFO, at-least-once, no acknowledgment."""

    def __init__(
        self,
        client: "redis.Redis",
        name: str = QUEUE_NAME,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._name = name
        self._log = log or logger

    @classmethod
    def from_url(cls, redis_url: str, name: str = QUEUE_NAME, log: Optional[logging.Logger] = None) -> "RedisJobQueue":
        return cls(redis.Redis.from_url(redis_url), name=name, log=log)

    @property
    def name(self) -> str:
        return self._name

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as exc:
            raise QueueError(f"redis ping failed: {exc}") from exc

    def enqueue(self, item: WorkItem) -> None:
        try:
            self._client.lpush(self._name, encode_work_item(item))
        except redis.RedisError as exc:
            raise QueueError(f"enqueue failed for {item.url}: {exc}") from exc
        self._log.debug("job_enqueued: url=%s", item.url)

    def dequeue(self) -> Optional[WorkItem]:
        try:
            raw = self._client.rpop(self._name)
        except redis.RedisError as exc:
            raise QueueError(f"dequeue failed: {exc}") from exc
        if raw is None:
            return None
        try:
            return decode_work_item(raw)
        except (ValueError, KeyError, TypeError) as exc:
            self._log.error("job_dropped_malformed: error=%s payload=%.200r", exc, raw)
            return None

    def __len__(self) -> int:
        try:
            return int(self._client.llen(self._name))
        except redis.RedisError as exc:
            raise QueueError(f"llen failed: {exc}") from exc


class InMemoryJobQueue:
    """Same contract as RedisJobQueue; stores the JSON envelope so payloads round-trip identically."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._items: deque[str] = deque()
        self._lock = threading.Lock()
        self._log = log or logger

    def enqueue(self, item: WorkItem) -> None:
        with self._lock:
            self._items.appendleft(encode_work_item(item))

    def push_raw(self, raw: str) -> None:
        with self._lock:
            self._items.appendleft(raw)

    def dequeue(self) -> Optional[WorkItem]:
        with self._lock:
            if not self._items:
                return None
            raw = self._items.pop()
        try:
            return decode_work_item(raw)
        except (ValueError, KeyError, TypeError) as exc:
            self._log.error("job_dropped_malformed: error=%s payload=%.200r", exc, raw)
            return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
