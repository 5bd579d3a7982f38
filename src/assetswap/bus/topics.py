"""
Topic definitions for the event bus.

Topics are dot-separated paths:
  <area>.<entity>.<event>

Wildcards are supported in subscription patterns:
  * - matches any single segment
  # - matches zero or more segments
"""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class Topic:
    """A hierarchical bus topic with wildcard matching."""

    path: str

    WILDCARD_SINGLE: ClassVar[str] = "*"
    WILDCARD_MULTI: ClassVar[str] = "#"

    @property
    def segments(self) -> list[str]:
        return self.path.split(".")

    @property
    def area(self) -> str:
        """Top-level segment (exchange, admin, commission)."""
        return self.segments[0]

    def matches(self, pattern: "str | Topic") -> bool:
        """Check if this topic matches a subscription pattern."""
        return _match(self.segments, str(pattern).split("."))

    def __str__(self) -> str:
        return self.path


def _match(topic: list[str], pattern: list[str]) -> bool:
    if not pattern:
        return not topic

    head, rest = pattern[0], pattern[1:]
    if head == Topic.WILDCARD_MULTI:
        # '#' swallows zero or more segments
        return any(_match(topic[i:], rest) for i in range(len(topic) + 1))

    if not topic:
        return False
    if head == Topic.WILDCARD_SINGLE or head == topic[0]:
        return _match(topic[1:], rest)
    return False


class ExchangeTopics:
    """Swap settlement outcomes."""

    SETTLED = Topic("exchange.settled")
    REJECTED = Topic("exchange.rejected")
    ALL = Topic("exchange.#")


class AdminTopics:
    """Registry mutations by the administrator."""

    ASSET_VERIFIED = Topic("admin.asset.verified")
    ASSET_ENABLED = Topic("admin.asset.enabled")
    ASSET_DISABLED = Topic("admin.asset.disabled")
    PERMISSION_SET = Topic("admin.permission.set")
    PERMISSION_CLEARED = Topic("admin.permission.cleared")
    ALL = Topic("admin.#")


class CommissionTopics:
    """Commission ledger activity."""

    WITHDRAWN = Topic("commission.withdrawn")
    WITHDRAWAL_REJECTED = Topic("commission.withdrawal.rejected")
    ALL = Topic("commission.#")
