"""
Data model for the settlement engine.

Assets are referenced by opaque string identifiers. Registry records are
frozen models that are replaced, never mutated; the running statistics are a
plain mutable dataclass that the commission ledger owns.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from ulid import ULID

from assetswap.config import MAX_FEE_BPS
from assetswap.errors import ErrorCode

AssetId = str
AccountId = str


class AssetRecord(BaseModel):
    """Verification and enablement state of one asset."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    asset_id: AssetId
    verified: bool = True
    enabled: bool = False
    fee_bps: int = Field(default=0, ge=0)
    verified_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode="after")
    def validate_enablement(self) -> Self:
        """An enabled asset is verified and charges less than MAX_FEE_BPS."""
        if self.enabled and not self.verified:
            raise ValueError("an asset can only be enabled after verification")
        if self.enabled and self.fee_bps >= MAX_FEE_BPS:
            raise ValueError(f"fee_bps must be below {MAX_FEE_BPS}, got {self.fee_bps}")
        return self

    def enable(self, fee_bps: int) -> "AssetRecord":
        """Return an enabled copy charging `fee_bps`."""
        return AssetRecord(
            asset_id=self.asset_id,
            verified=self.verified,
            enabled=True,
            fee_bps=fee_bps,
            verified_at=self.verified_at,
        )

    def disable(self) -> "AssetRecord":
        """Return a disabled copy; the fee is tied to enablement and resets."""
        return AssetRecord(
            asset_id=self.asset_id,
            verified=self.verified,
            enabled=False,
            fee_bps=0,
            verified_at=self.verified_at,
        )


class PermissionEdge(BaseModel):
    """Directional exchange permission from `source` to `target`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: AssetId
    target: AssetId
    permitted: bool
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def key(self) -> tuple[AssetId, AssetId]:
        return (self.source, self.target)


@dataclass
class ExchangeStats:
    """
    Running totals of the engine.

    `total_commission` sums commission across every asset into one counter.
    The per-asset maps are informational and record which asset each unit
    was withheld in.
    """

    total_volume: int = 0
    total_commission: int = 0
    exchange_count: int = 0
    commission_by_asset: dict[AssetId, int] = field(default_factory=dict)
    withdrawn_by_asset: dict[AssetId, int] = field(default_factory=dict)

    def copy(self) -> "ExchangeStats":
        return ExchangeStats(
            total_volume=self.total_volume,
            total_commission=self.total_commission,
            exchange_count=self.exchange_count,
            commission_by_asset=dict(self.commission_by_asset),
            withdrawn_by_asset=dict(self.withdrawn_by_asset),
        )


class SettlementKind(Enum):
    """What a journal entry settles."""

    EXCHANGE = auto()
    COMMISSION_WITHDRAWAL = auto()


class SettlementStatus(Enum):
    """Status of a settlement."""

    PENDING = auto()  # Validating or transferring
    COMPLETED = auto()  # All transfers done and totals updated
    FAILED = auto()  # Rejected before any transfer took effect
    ROLLED_BACK = auto()  # Issued transfers were compensated
    CANCELLED = auto()  # Aborted by cancellation; issued transfers were compensated


class Settlement(BaseModel):
    """Journal entry for one exchange or withdrawal attempt."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: str(ULID()))
    kind: SettlementKind
    status: SettlementStatus = SettlementStatus.PENDING
    caller: AccountId
    source: AssetId | None = None  # None for withdrawals
    target: AssetId
    quantity: int
    commission: int = 0
    payout: int = 0
    error_code: ErrorCode | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    settled_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == SettlementStatus.COMPLETED

    def completed(self, *, commission: int = 0, payout: int = 0) -> "Settlement":
        return self.model_copy(
            update={
                "status": SettlementStatus.COMPLETED,
                "commission": commission,
                "payout": payout,
                "settled_at": datetime.now(UTC),
            }
        )

    def failed(
        self,
        code: ErrorCode,
        error: str,
        *,
        rolled_back: bool = False,
    ) -> "Settlement":
        return self.model_copy(
            update={
                "status": SettlementStatus.ROLLED_BACK if rolled_back else SettlementStatus.FAILED,
                "error_code": code,
                "error": error,
                "settled_at": datetime.now(UTC),
            }
        )

    def cancelled(self) -> "Settlement":
        return self.model_copy(
            update={
                "status": SettlementStatus.CANCELLED,
                "error": "cancelled",
                "settled_at": datetime.now(UTC),
            }
        )


class ExchangeQuote(BaseModel):
    """Fee breakdown for a prospective exchange."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: AssetId
    target: AssetId
    quantity: int
    fee_bps: int
    commission: int
    payout: int


class AssetInfo(BaseModel):
    """Descriptive metadata reported by an asset provider."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    asset_id: AssetId
    name: str
    symbol: str
    decimals: int = Field(ge=0)
