"""
Component base class for the settlement engine.

The admin registry, exchange engine and commission ledger share one
EngineState and one lock; each publishes its own events on the optional
bus once the lock has been released.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, NoReturn

import anyio
import structlog

from assetswap.bus.topics import Topic
from assetswap.config import EngineConfig
from assetswap.core.events import Message
from assetswap.core.models import AccountId
from assetswap.core.state import EngineState
from assetswap.errors import AdminOnly, ExchangeError

if TYPE_CHECKING:
    from assetswap.bus.message_bus import MessageBus

logger = structlog.get_logger()


@dataclass
class ComponentStats:
    """Runtime counters for a component."""

    total_operations: int = 0
    total_rejections: int = 0
    total_messages_sent: int = 0
    last_activity_at: datetime | None = None


class Component:
    """Shared plumbing for engine components."""

    def __init__(
        self,
        name: str,
        config: EngineConfig,
        state: EngineState,
        lock: anyio.Lock,
        message_bus: "MessageBus | None" = None,
    ) -> None:
        self.name = name
        self._config = config
        self._state = state
        self._lock = lock
        self._message_bus = message_bus
        self._stats = ComponentStats()
        self._log = logger.bind(component=name)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def stats(self) -> ComponentStats:
        return self._stats

    def set_message_bus(self, bus: "MessageBus") -> None:
        self._message_bus = bus

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[EngineState]:
        """
        Serialize one operation against the shared state.

        Engine state is checkpointed on entry and restored if the block
        raises, so a failed operation leaves no partial mutation behind.
        """
        async with self._lock:
            checkpoint = self._state.snapshot()
            try:
                yield self._state
            except BaseException:
                self._state.restore(checkpoint)
                raise

    def require_admin(self, caller: AccountId, operation: str, **context: Any) -> None:
        """Raise AdminOnly unless `caller` is the configured administrator."""
        if caller != self._config.admin_id:
            self._reject(
                AdminOnly(f"{operation} is restricted to the administrator", caller=caller),
                operation=operation,
                **context,
            )

    def _reject(self, error: ExchangeError, **context: Any) -> NoReturn:
        """Count, log and raise a rejected operation."""
        self._record(rejected=True)
        self._log.warning(
            "operation_rejected",
            error=error.code.name,
            reason=error.message,
            **context,
        )
        raise error

    def _record(self, *, rejected: bool = False) -> None:
        self._stats.total_operations += 1
        if rejected:
            self._stats.total_rejections += 1
        self._stats.last_activity_at = datetime.now(UTC)

    async def emit_event(
        self,
        topic: str | Topic,
        payload: dict[str, Any],
        *,
        correlation_id: str | None = None,
    ) -> None:
        """Publish an event if a bus is attached."""
        if self._message_bus is None:
            return

        message = Message.event(
            str(topic),
            self.name,
            payload,
            correlation_id=correlation_id,
            ttl_seconds=self._config.event_ttl_seconds,
        )
        await self._message_bus.publish(message)
        self._stats.total_messages_sent += 1
        self._log.debug("published", topic=message.topic, message_id=message.id)
