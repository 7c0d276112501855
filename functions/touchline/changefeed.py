"""
Realtime change feed.

Services publish a ``ChangeEvent`` after every successful write. Roster rows
are delivered on a per-user channel; help content goes to a public channel.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from touchline.json_utils import to_wire
from touchline.records import ChangeEvent
from touchline.types import ChangeType

logger = logging.getLogger(__name__)

PUBLIC_CHANNEL = "public"

Subscriber = Callable[[ChangeEvent], None]


def channel_for(event: ChangeEvent) -> str:
    return event.user_id or PUBLIC_CHANNEL


def serialize_event(event: ChangeEvent) -> str:
    return json.dumps(to_wire(event))


class ChangeFeed(Protocol):
    """Publish/subscribe interface for row change notifications."""

    def publish(self, event: ChangeEvent) -> None:
        ...

    def subscribe(self, channel: str, callback: Subscriber) -> None:
        ...


@dataclass
class InMemoryChangeFeed:
    """Keeps a bounded history and calls subscribers synchronously."""

    history_size: int = 1000
    subscribers: dict[str, list[Subscriber]] = field(default_factory=dict)

    def __post_init__(self):
        self.history: deque[ChangeEvent] = deque(maxlen=self.history_size)

    def publish(self, event: ChangeEvent) -> None:
        self.history.append(event)
        for callback in list(self.subscribers.get(channel_for(event), [])):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Change feed subscriber failed for %s %s",
                    event.table,
                    event.event_type.value,
                )

    def subscribe(self, channel: str, callback: Subscriber) -> None:
        self.subscribers.setdefault(channel, []).append(callback)

    def events_for(self, channel: str, table: Optional[str] = None) -> list[ChangeEvent]:
        return [
            event
            for event in self.history
            if channel_for(event) == channel and (table is None or event.table == table)
        ]

    def reset(self) -> None:
        self.history.clear()
        self.subscribers.clear()


@dataclass
class RedisChangeFeed:
    """Redis pub/sub feed; one channel per owning user plus a public channel."""

    url: str
    channel_prefix: str = "touchline:changes"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _channel(self, name: str) -> str:
        return f"{self.channel_prefix}:{name}"

    def publish(self, event: ChangeEvent) -> None:
        try:
            self.client.publish(self._channel(channel_for(event)), serialize_event(event))
        except redis_exceptions.ConnectionError:
            # Notifications are best effort; the write itself already succeeded.
            logger.warning(
                "Dropped %s change for %s: redis unavailable",
                event.event_type.value,
                event.table,
            )
            self.client = redis.Redis.from_url(self.url)

    def subscribe(self, channel: str, callback: Subscriber) -> None:
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)

        def _handler(message):
            payload = json.loads(message["data"])
            callback(
                ChangeEvent(
                    table=payload["table"],
                    event_type=ChangeType(payload["eventType"]),
                    record=payload["record"],
                    user_id=payload.get("userId"),
                    timestamp=payload["timestamp"],
                )
            )

        pubsub.subscribe(**{self._channel(channel): _handler})
        pubsub.run_in_thread(sleep_time=0.5, daemon=True)
