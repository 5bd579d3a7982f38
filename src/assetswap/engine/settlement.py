"""
Settlement journal and compensating transfers.

Asset providers live outside the engine, so their transfers cannot join a
host transaction. CompensatingTransfers records every transfer it issues;
if the settlement fails it replays the reverse transfers newest first, so
no leg of a failed settlement remains in effect.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from types import TracebackType
from typing import Any, TypeVar

import anyio
import structlog

from assetswap.assets.provider import AssetDirectory, AssetProvider, UnknownAssetError
from assetswap.core.models import (
    AccountId,
    AssetId,
    Settlement,
    SettlementKind,
    SettlementStatus,
)
from assetswap.errors import ExchangeError, TransferFailed, is_quantity

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class IssuedTransfer:
    """A transfer that took effect and may need reversing."""

    provider: AssetProvider
    quantity: int
    sender: AccountId
    recipient: AccountId


async def call_provider(
    provider: AssetProvider,
    operation: str,
    method: Callable[..., Awaitable[T]],
    *args: Any,
) -> T:
    """Await a provider call, mapping any exception to TransferFailed."""
    try:
        return await method(*args)
    except Exception as e:
        raise TransferFailed(
            f"{operation} on asset '{provider.asset_id}' failed: {e}",
            asset=provider.asset_id,
            operation=operation,
        ) from e


def resolve_provider(directory: AssetDirectory, asset: AssetId) -> AssetProvider:
    """Look up the provider for `asset`; an unresolvable asset cannot be transferred."""
    try:
        return directory.resolve(asset)
    except UnknownAssetError as e:
        raise TransferFailed(str(e), asset=asset, operation="resolve") from e


class CompensatingTransfers:
    """
    Async context manager issuing transfers as one all-or-nothing unit.

    Usage:
        async with CompensatingTransfers() as tx:
            await tx.transfer(source, quantity, caller, custody)
            await tx.transfer(target, payout, custody, caller)

    Leaving the block with an exception reverses every issued transfer.
    A TransferFailed raised inside the block is re-raised with
    `rolled_back` and `compensation_failed` filled in.
    """

    def __init__(self) -> None:
        self._issued: list[IssuedTransfer] = []
        self._log = logger.bind(component="compensating_transfers")

    @property
    def issued(self) -> tuple[IssuedTransfer, ...]:
        return tuple(self._issued)

    async def transfer(
        self,
        provider: AssetProvider,
        quantity: int,
        sender: AccountId,
        recipient: AccountId,
    ) -> None:
        """Issue one transfer; raise TransferFailed if it errors or reports failure."""
        ok = await call_provider(provider, "transfer", provider.transfer, quantity, sender, recipient)
        if not ok:
            raise TransferFailed(
                f"transfer of {quantity} '{provider.asset_id}' from {sender} to {recipient} was refused",
                asset=provider.asset_id,
                operation="transfer",
            )
        self._issued.append(IssuedTransfer(provider, quantity, sender, recipient))

    async def __aenter__(self) -> "CompensatingTransfers":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            return

        rolled_back = bool(self._issued)
        # Reversals must run to completion even if the settlement was cancelled
        with anyio.CancelScope(shield=True):
            compensation_failed = not await self.compensate()

        if isinstance(exc, TransferFailed):
            exc.rolled_back = rolled_back
            exc.compensation_failed = compensation_failed
        elif compensation_failed:
            raise TransferFailed(
                "settlement aborted and compensation failed",
                rolled_back=rolled_back,
                compensation_failed=True,
            ) from exc

    async def compensate(self) -> bool:
        """Reverse issued transfers newest first. Returns False if any reversal failed."""
        success = True
        while self._issued:
            leg = self._issued.pop()
            try:
                ok = await leg.provider.transfer(leg.quantity, leg.recipient, leg.sender)
            except Exception:
                ok = False
                self._log.exception(
                    "compensation_raised",
                    asset=leg.provider.asset_id,
                    quantity=leg.quantity,
                )
            if not ok:
                success = False
                self._log.critical(
                    "compensation_failed",
                    asset=leg.provider.asset_id,
                    quantity=leg.quantity,
                    sender=leg.recipient,
                    recipient=leg.sender,
                )
            else:
                self._log.info(
                    "transfer_compensated",
                    asset=leg.provider.asset_id,
                    quantity=leg.quantity,
                )
        return success


class SettlementJournal:
    """Audit trail of every exchange and withdrawal attempt."""

    def __init__(self, max_history: int | None = None) -> None:
        self._entries: dict[str, Settlement] = {}
        self._max_history = max_history

    def open(
        self,
        kind: SettlementKind,
        caller: AccountId,
        target: AssetId,
        quantity: int,
        source: AssetId | None = None,
    ) -> Settlement:
        """Record a new PENDING settlement."""
        settlement = Settlement(
            kind=kind,
            caller=caller,
            source=source,
            target=target,
            quantity=quantity if is_quantity(quantity) else 0,
        )
        self._entries[settlement.id] = settlement

        if self._max_history is not None and len(self._entries) > self._max_history:
            oldest = next(iter(self._entries))
            self._entries.pop(oldest)

        return settlement

    def complete(self, settlement: Settlement, *, commission: int = 0, payout: int = 0) -> Settlement:
        updated = settlement.completed(commission=commission, payout=payout)
        self._entries[settlement.id] = updated
        return updated

    def fail(self, settlement: Settlement, error: ExchangeError) -> Settlement:
        rolled_back = isinstance(error, TransferFailed) and error.rolled_back
        updated = settlement.failed(error.code, error.message, rolled_back=rolled_back)
        self._entries[settlement.id] = updated
        return updated

    def cancel(self, settlement: Settlement) -> Settlement:
        updated = settlement.cancelled()
        self._entries[settlement.id] = updated
        return updated

    def get(self, settlement_id: str) -> Settlement | None:
        return self._entries.get(settlement_id)

    def query(
        self,
        *,
        kind: SettlementKind | None = None,
        status: SettlementStatus | None = None,
    ) -> list[Settlement]:
        """Settlements in creation order, optionally filtered."""
        return [
            s
            for s in self._entries.values()
            if (kind is None or s.kind == kind) and (status is None or s.status == status)
        ]

    def __len__(self) -> int:
        return len(self._entries)
