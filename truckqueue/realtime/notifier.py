"""
Truck Queue — Real-time notifier

Two kinds of channel:
  queue              every connected client, queue snapshots
  owner:{owner_id}   one customer's clients, status changes of their orders

Publishing is fire-and-forget: it never waits for subscribers to process an
event and nothing is kept for clients that are not connected. A client that
reconnects re-queries the queue.
"""
import abc
import asyncio
import json
import logging
from collections import defaultdict

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from truckqueue.core.config import Settings, get_settings
from truckqueue.core.errors import NotificationFailure
from truckqueue.core.redis_client import get_redis

settings = get_settings()
logger = logging.getLogger(__name__)

QUEUE_CHANNEL = "queue"


def owner_channel(owner_id: str) -> str:
    return f"owner:{owner_id}"


class Subscription(abc.ABC):
    channel: str

    @abc.abstractmethod
    async def get(self, timeout: float) -> dict | None:
        """Next event, or None if nothing arrived within `timeout` seconds."""

    @abc.abstractmethod
    async def close(self) -> None:
        ...


class Notifier(abc.ABC):
    @abc.abstractmethod
    async def publish(self, channel: str, event: dict) -> None:
        """Raises NotificationFailure if the event could not reach every subscriber."""

    @abc.abstractmethod
    async def subscribe(self, channel: str) -> Subscription:
        ...

    async def broadcast(self, event: dict) -> None:
        await self.publish(QUEUE_CHANNEL, event)

    async def send_to_owner(self, owner_id: str, event: dict) -> None:
        await self.publish(owner_channel(owner_id), event)

    async def ping(self) -> None:
        pass

    async def close(self) -> None:
        pass


# ─── In-process fan-out ───────────────────────────────────────────────────────

class LocalSubscription(Subscription):
    def __init__(self, notifier: "LocalNotifier", channel: str, maxsize: int):
        self.channel = channel
        self.queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=maxsize)
        self._notifier = notifier

    async def get(self, timeout: float) -> dict | None:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def close(self) -> None:
        self._notifier._discard(self)


class LocalNotifier(Notifier):
    """
    Single-process notifier. Each subscriber gets a bounded buffer; an event
    for a full buffer is dropped for that subscriber only.
    """

    def __init__(self, buffer_size: int | None = None):
        self.buffer_size = buffer_size or settings.SUBSCRIBER_BUFFER_SIZE
        self._channels: dict[str, set[LocalSubscription]] = defaultdict(set)

    def subscriber_count(self, channel: str) -> int:
        return len(self._channels.get(channel, ()))

    async def subscribe(self, channel: str) -> Subscription:
        sub = LocalSubscription(self, channel, self.buffer_size)
        self._channels[channel].add(sub)
        return sub

    def _discard(self, sub: LocalSubscription) -> None:
        subs = self._channels.get(sub.channel)
        if subs is None:
            return
        subs.discard(sub)
        if not subs:
            del self._channels[sub.channel]

    async def publish(self, channel: str, event: dict) -> None:
        dropped = 0
        for sub in list(self._channels.get(channel, ())):
            try:
                sub.queue.put_nowait(event)
            except asyncio.QueueFull:
                dropped += 1
        if dropped:
            raise NotificationFailure(f"{dropped} subscriber(s) on '{channel}' missed an event.")


# ─── Redis pub/sub ────────────────────────────────────────────────────────────

class RedisSubscription(Subscription):
    def __init__(self, pubsub, channel: str):
        self.channel = channel
        self._pubsub = pubsub

    async def get(self, timeout: float) -> dict | None:
        message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=timeout)
        if message and message["type"] == "message":
            data = message["data"]
            try:
                return json.loads(data)
            except ValueError:
                return {"raw": data}
        return None

    async def close(self) -> None:
        await self._pubsub.unsubscribe(self.channel)
        await self._pubsub.aclose()


class RedisNotifier(Notifier):
    """Fan-out across every API process through Redis pub/sub."""

    def __init__(self, redis: aioredis.Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> aioredis.Redis:
        return self._redis or get_redis()

    async def publish(self, channel: str, event: dict) -> None:
        try:
            await self.redis.publish(channel, json.dumps(event))
        except RedisError as exc:
            raise NotificationFailure(f"Redis publish on '{channel}' failed: {exc}") from exc

    async def subscribe(self, channel: str) -> Subscription:
        pubsub = self.redis.pubsub()
        try:
            await pubsub.subscribe(channel)
        except RedisError as exc:
            await pubsub.aclose()
            raise NotificationFailure(f"Cannot subscribe to '{channel}': {exc}") from exc
        return RedisSubscription(pubsub, channel)

    async def ping(self) -> None:
        await asyncio.wait_for(self.redis.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)


def build_notifier(config: Settings | None = None) -> Notifier:
    config = config or settings
    if config.NOTIFIER_BACKEND == "local":
        return LocalNotifier(buffer_size=config.SUBSCRIBER_BUFFER_SIZE)
    return RedisNotifier()
