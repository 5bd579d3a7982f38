"""
CommissionLedger: running totals of exchanged volume and collected commission.

The totals are a single process-wide counter pair. Commission withheld from
different assets is summed into one `total_commission`; the per-asset maps
in ExchangeStats only record where each unit came from and where it went.
"""

from typing import TYPE_CHECKING

import anyio

from assetswap.assets.provider import AssetDirectory
from assetswap.bus.topics import CommissionTopics
from assetswap.config import EngineConfig
from assetswap.core.models import (
    AccountId,
    AssetId,
    ExchangeStats,
    Settlement,
    SettlementKind,
)
from assetswap.core.state import EngineState
from assetswap.engine.component import Component
from assetswap.engine.settlement import (
    CompensatingTransfers,
    SettlementJournal,
    resolve_provider,
)
from assetswap.errors import ExchangeError, InvalidAsset, InvalidQuantity, is_quantity

if TYPE_CHECKING:
    from assetswap.bus.message_bus import MessageBus


class CommissionLedger(Component):
    """Volume/commission accounting and admin-only commission withdrawal."""

    def __init__(
        self,
        config: EngineConfig,
        state: EngineState,
        lock: anyio.Lock,
        directory: AssetDirectory,
        journal: SettlementJournal,
        message_bus: "MessageBus | None" = None,
    ) -> None:
        super().__init__("commission_ledger", config, state, lock, message_bus)
        self._directory = directory
        self._journal = journal

    def record_exchange(self, target: AssetId, quantity: int, commission: int) -> None:
        """
        Add a settled exchange to the totals.

        Must be called by the exchange engine while it holds the engine lock,
        after both settlement transfers have succeeded.
        """
        stats = self._state.stats
        stats.total_volume += quantity
        stats.total_commission += commission
        stats.exchange_count += 1
        if commission:
            stats.commission_by_asset[target] = stats.commission_by_asset.get(target, 0) + commission

    async def withdraw_commission(
        self,
        asset: AssetId,
        quantity: int,
        *,
        caller: AccountId,
    ) -> Settlement:
        """Pay `quantity` units of `asset` out of custody to the administrator."""
        failure: ExchangeError | None = None

        async with self.transaction() as state:
            self.require_admin(caller, "withdraw_commission", asset=asset, quantity=quantity)
            settlement = self._journal.open(
                SettlementKind.COMMISSION_WITHDRAWAL, caller, asset, quantity
            )
            try:
                if not state.is_enabled(asset):
                    raise InvalidAsset(f"Asset '{asset}' is not enabled", asset=asset)
                if not is_quantity(quantity) or quantity <= 0:
                    raise InvalidQuantity(
                        f"Withdrawal quantity must be a positive integer, got {quantity!r}",
                        quantity=quantity,
                    )
                if quantity > state.stats.total_commission:
                    raise InvalidQuantity(
                        f"Withdrawal of {quantity} exceeds collected commission "
                        f"{state.stats.total_commission}",
                        quantity=quantity,
                        total_commission=state.stats.total_commission,
                    )

                provider = resolve_provider(self._directory, asset)
                async with CompensatingTransfers() as tx:
                    await tx.transfer(provider, quantity, self._config.custody_account, caller)

                state.stats.total_commission -= quantity
                state.stats.withdrawn_by_asset[asset] = (
                    state.stats.withdrawn_by_asset.get(asset, 0) + quantity
                )
                settlement = self._journal.complete(settlement, payout=quantity)
                self._record()
                self._log.info(
                    "commission_withdrawn",
                    asset=asset,
                    quantity=quantity,
                    remaining=state.stats.total_commission,
                    settlement_id=settlement.id,
                )
            except ExchangeError as e:
                settlement = self._journal.fail(settlement, e)
                self._record(rejected=True)
                self._log.warning(
                    "commission_withdrawal_rejected",
                    asset=asset,
                    quantity=quantity,
                    error=e.code.name,
                    reason=e.message,
                    settlement_id=settlement.id,
                )
                failure = e
            except BaseException:
                settlement = self._journal.cancel(settlement)
                self._record(rejected=True)
                self._log.warning(
                    "commission_withdrawal_cancelled",
                    asset=asset,
                    quantity=quantity,
                    settlement_id=settlement.id,
                )
                raise

        if failure is not None:
            await self.emit_event(
                CommissionTopics.WITHDRAWAL_REJECTED,
                {"asset": asset, "quantity": quantity, "error": failure.code.name},
                correlation_id=settlement.id,
            )
            raise failure

        await self.emit_event(
            CommissionTopics.WITHDRAWN,
            {"asset": asset, "quantity": quantity},
            correlation_id=settlement.id,
        )
        return settlement

    # --- Queries ---

    def get_total_exchange_volume(self) -> int:
        return self._state.stats.total_volume

    def get_total_commission_collected(self) -> int:
        return self._state.stats.total_commission

    def get_stats(self) -> ExchangeStats:
        """Snapshot of the running totals."""
        return self._state.stats.copy()
