"""Settlement event bus."""

from assetswap.bus.message_bus import MessageBus, Subscription
from assetswap.bus.topics import AdminTopics, CommissionTopics, ExchangeTopics, Topic

__all__ = [
    "AdminTopics",
    "CommissionTopics",
    "ExchangeTopics",
    "MessageBus",
    "Subscription",
    "Topic",
]
