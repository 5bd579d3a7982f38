"""
Event messages carried on the bus.

Components publish an event after every committed or rejected operation.
Messages are immutable and correlate to a settlement id where one exists.
Subscribers that fall behind may drop events older than the configured TTL.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID


class Message(BaseModel):
    """Carrier for events on the pub/sub bus."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: str(ULID()))
    topic: str
    payload: Any
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Routing
    source: str  # Publishing component
    correlation_id: str | None = None  # Settlement id, when there is one

    # Delivery
    ttl_seconds: int | None = Field(default=None, gt=0)

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_expired(self) -> bool:
        """Check if message has exceeded its TTL."""
        if self.ttl_seconds is None:
            return False
        age = (datetime.now(UTC) - self.created_at).total_seconds()
        return age > self.ttl_seconds

    @classmethod
    def event(
        cls,
        topic: str,
        source: str,
        payload: Any,
        *,
        correlation_id: str | None = None,
        ttl_seconds: int | None = None,
    ) -> "Message":
        """Create an event message."""
        return cls(
            topic=topic,
            payload=payload,
            source=source,
            correlation_id=correlation_id,
            ttl_seconds=ttl_seconds,
        )
