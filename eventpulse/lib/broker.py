"""Pub/sub broker used to fan events out across server replicas.

Two backends share one interface:

- RedisBroker: PUBLISH / PSUBSCRIBE on a shared Redis, used in production
  so every replica sees every event.
- InMemoryBroker: process-local, used for single-instance development and
  tests. Replicas do not see each other's messages.

Subscriptions are registered as soon as ``subscribe`` returns, so a publish
issued afterwards is always delivered to them.
"""

import asyncio
import fnmatch
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from eventpulse.lib.config import Settings
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)

EVENT_TOPIC_PREFIX = "events:"
EVENT_TOPIC_PATTERN = "events:*"


def event_topic(event_id: object) -> str:
    """Broker topic for one event."""
    return f"{EVENT_TOPIC_PREFIX}{event_id}"


class BrokerError(Exception):
    """Broker unreachable or the subscription was lost."""

    pass


@dataclass(frozen=True)
class BrokerMessage:
    """A message received on a pattern subscription."""

    topic: str
    data: bytes


class Subscription(Protocol):
    """Async iterator of broker messages that can be closed."""

    def __aiter__(self) -> AsyncIterator[BrokerMessage]: ...

    async def close(self) -> None: ...


class Broker(Protocol):
    """Publish/pattern-subscribe contract used by the hub."""

    async def publish(self, topic: str, data: bytes) -> None: ...

    async def subscribe(self, pattern: str) -> Subscription: ...

    async def ping(self) -> None: ...

    async def close(self) -> None: ...


class _MemorySubscription:
    def __init__(self, broker: "InMemoryBroker", pattern: str):
        self._broker = broker
        self.pattern = pattern
        self.queue: asyncio.Queue[BrokerMessage | None] = asyncio.Queue()
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[BrokerMessage]:
        while True:
            message = await self.queue.get()
            if message is None:
                return
            yield message

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._broker._subscriptions.discard(self)
        self.queue.put_nowait(None)


class InMemoryBroker:
    """Process-local broker with glob pattern matching."""

    def __init__(self) -> None:
        self._subscriptions: set[_MemorySubscription] = set()
        self._closed = False

    async def publish(self, topic: str, data: bytes) -> None:
        if self._closed:
            raise BrokerError("broker is closed")
        message = BrokerMessage(topic=topic, data=data)
        for subscription in list(self._subscriptions):
            if fnmatch.fnmatchcase(topic, subscription.pattern):
                subscription.queue.put_nowait(message)

    async def subscribe(self, pattern: str) -> _MemorySubscription:
        if self._closed:
            raise BrokerError("broker is closed")
        subscription = _MemorySubscription(self, pattern)
        self._subscriptions.add(subscription)
        return subscription

    async def ping(self) -> None:
        if self._closed:
            raise BrokerError("broker is closed")

    async def close(self) -> None:
        self._closed = True
        for subscription in list(self._subscriptions):
            await subscription.close()


class _RedisSubscription:
    def __init__(self, pubsub: aioredis.client.PubSub, pattern: str):
        self._pubsub = pubsub
        self.pattern = pattern

    async def __aiter__(self) -> AsyncIterator[BrokerMessage]:
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "pmessage":
                    continue
                channel = message["channel"]
                if isinstance(channel, bytes):
                    channel = channel.decode("utf-8")
                data = message["data"]
                if isinstance(data, str):
                    data = data.encode("utf-8")
                yield BrokerMessage(topic=channel, data=data)
        except RedisError as e:
            raise BrokerError(f"subscription to {self.pattern} lost: {e}") from e

    async def close(self) -> None:
        try:
            await self._pubsub.punsubscribe(self.pattern)
        except RedisError as e:
            logger.debug("redis_punsubscribe_failed", pattern=self.pattern, error=str(e))
        await self._pubsub.aclose()


class RedisBroker:
    """Redis PUBLISH / PSUBSCRIBE backend."""

    def __init__(self, client: aioredis.Redis):
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisBroker":
        host, _, port = settings.redis_addr.partition(":")
        client = aioredis.Redis(
            host=host or "localhost",
            port=int(port or 6379),
            db=settings.redis_db,
            password=settings.redis_password or None,
            socket_connect_timeout=5,
        )
        return cls(client)

    async def publish(self, topic: str, data: bytes) -> None:
        try:
            await self._client.publish(topic, data)
        except RedisError as e:
            raise BrokerError(f"publish to {topic} failed: {e}") from e

    async def subscribe(self, pattern: str) -> _RedisSubscription:
        pubsub = self._client.pubsub()
        try:
            await pubsub.psubscribe(pattern)
        except RedisError as e:
            await pubsub.aclose()
            raise BrokerError(f"psubscribe {pattern} failed: {e}") from e
        return _RedisSubscription(pubsub, pattern)

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except RedisError as e:
            raise BrokerError(f"ping failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()


def create_broker(settings: Settings) -> Broker:
    """Build the broker selected by BROKER_BACKEND."""
    if settings.broker_backend == "memory":
        logger.info("broker_selected", backend="memory")
        return InMemoryBroker()
    logger.info("broker_selected", backend="redis", addr=settings.redis_addr)
    return RedisBroker.from_settings(settings)


__all__ = [
    "EVENT_TOPIC_PATTERN",
    "Broker",
    "BrokerError",
    "BrokerMessage",
    "InMemoryBroker",
    "RedisBroker",
    "Subscription",
    "create_broker",
    "event_topic",
]
