"""
Async pub/sub event bus.

Settlement components publish here after an operation commits or is
rejected. Subscribers register handlers against topic patterns.
"""

from collections import defaultdict
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import anyio
import structlog
from ulid import ULID

from assetswap.bus.topics import Topic
from assetswap.core.events import Message

logger = structlog.get_logger()

MessageHandler = Callable[[Message], Coroutine[Any, Any, None]]


@dataclass
class Subscription:
    """A handler bound to a topic pattern."""

    id: str
    pattern: str
    handler: MessageHandler
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class MessageBusStats:
    """Counters for the bus."""

    total_messages_published: int = 0
    total_messages_delivered: int = 0
    total_messages_expired: int = 0
    total_subscriptions: int = 0
    total_errors: int = 0


class MessageBus:
    """
    Topic-routed event bus.

    Handlers for one message run concurrently in a task group. A failing
    handler is logged and counted but never propagates to the publisher,
    so a broken subscriber cannot fail a settlement that already committed.
    """

    def __init__(self, max_concurrent_handlers: int = 100) -> None:
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)
        self._subscriptions_by_id: dict[str, Subscription] = {}
        self._stats = MessageBusStats()
        self._max_concurrent = max_concurrent_handlers
        self._log = logger.bind(component="message_bus")

    @property
    def stats(self) -> MessageBusStats:
        return self._stats

    async def subscribe(self, pattern: str | Topic, handler: MessageHandler) -> str:
        """Subscribe a handler to a topic pattern. Returns the subscription id."""
        pattern_str = str(pattern)
        subscription = Subscription(id=str(ULID()), pattern=pattern_str, handler=handler)

        self._subscriptions[pattern_str].append(subscription)
        self._subscriptions_by_id[subscription.id] = subscription
        self._stats.total_subscriptions += 1

        self._log.debug("subscribed", pattern=pattern_str, subscription_id=subscription.id)
        return subscription.id

    async def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription by id."""
        sub = self._subscriptions_by_id.pop(subscription_id, None)
        if sub is None:
            return False

        remaining = [s for s in self._subscriptions[sub.pattern] if s.id != sub.id]
        if remaining:
            self._subscriptions[sub.pattern] = remaining
        else:
            del self._subscriptions[sub.pattern]
        self._stats.total_subscriptions -= 1

        self._log.debug("unsubscribed", subscription_id=subscription_id)
        return True

    async def publish(self, message: Message) -> int:
        """
        Deliver a message to every matching subscriber.

        Returns:
            Number of handlers that completed without error
        """
        self._stats.total_messages_published += 1

        if message.is_expired:
            self._stats.total_messages_expired += 1
            self._log.debug("message_expired", topic=message.topic, message_id=message.id)
            return 0

        topic = Topic(message.topic)
        matching = [
            sub
            for pattern, subs in self._subscriptions.items()
            if topic.matches(pattern)
            for sub in subs
        ]
        if not matching:
            self._log.debug("no_subscribers", topic=message.topic)
            return 0

        results: list[bool] = []

        async def deliver(sub: Subscription) -> None:
            try:
                await sub.handler(message)
                results.append(True)
            except Exception:
                self._stats.total_errors += 1
                self._log.exception(
                    "handler_failed",
                    topic=message.topic,
                    subscription_id=sub.id,
                )
                results.append(False)

        async with anyio.create_task_group() as tg:
            for sub in matching[: self._max_concurrent]:
                tg.start_soon(deliver, sub)

        delivered = sum(1 for r in results if r)
        self._stats.total_messages_delivered += delivered

        self._log.debug(
            "published",
            topic=message.topic,
            message_id=message.id,
            delivered=delivered,
            total_handlers=len(matching),
        )
        return delivered

    def get_subscriptions(self, pattern: str | None = None) -> list[Subscription]:
        """List subscriptions, optionally only those registered for `pattern`."""
        if pattern is None:
            return list(self._subscriptions_by_id.values())
        return list(self._subscriptions.get(pattern, []))

    def clear(self) -> None:
        """Remove all subscriptions."""
        count = len(self._subscriptions_by_id)
        self._subscriptions.clear()
        self._subscriptions_by_id.clear()
        self._stats.total_subscriptions = 0
        self._log.info("cleared", removed_subscriptions=count)
