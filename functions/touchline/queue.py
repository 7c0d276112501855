"""
Queue abstraction for scheduling roster analytics refreshes.

Each queued item is the id of a user whose roster changed. Supports an
in-memory fallback for tests/local runs and a Redis-backed implementation
for production.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from touchline.errors import StorageUnavailableError


class JobQueue(Protocol):
    """Minimal queue interface for dispatching user ids to the analytics worker."""

    def enqueue(self, user_id: str) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        ...


@dataclass
class InMemoryJobQueue:
    """Simple FIFO queue for testing/dev. Skips ids that are already waiting."""

    items: list[str] = field(default_factory=list)

    def enqueue(self, user_id: str) -> None:
        if user_id not in self.items:
            self.items.append(user_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        if not self.items:
            return None
        return self.items.pop(0)


@dataclass
class RedisJobQueue:
    """Redis-backed queue using list push/pop operations."""

    url: str
    queue_key: str = "touchline:roster-analytics"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, user_id: str) -> None:
        try:
            self.client.rpush(self.queue_key, user_id)
        except redis_exceptions.RedisError as exc:
            raise StorageUnavailableError("Analytics queue is unavailable") from exc

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, user_id = result
            else:
                user_id = self.client.lpop(self.queue_key)
                if user_id is None:
                    return None
            return user_id.decode("utf-8")
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis. Treat as empty queue
            # and allow the worker loop to retry.
            self.client = redis.Redis.from_url(self.url)
            return None
