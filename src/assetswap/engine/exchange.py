"""
ExchangeEngine: validates and settles swaps between whitelisted assets.

Settlement of one exchange:
1. Validate: both assets known and enabled, the directional pair permitted,
   the quantity a positive integer
2. Pre-check: the caller's source balance covers the quantity
3. Price: commission = quantity * fee_bps // 10000 of the source asset's fee
4. Transfer: pull `quantity` of source into custody, push `quantity -
   commission` of target back to the caller
5. Record: add volume and commission to the ledger

Steps 4 and 5 are all-or-nothing: if the second transfer fails the first is
reversed, and the ledger is only touched once both have succeeded.
"""

from typing import TYPE_CHECKING

import anyio
from pydantic import ValidationError

from assetswap.assets.provider import AssetDirectory
from assetswap.bus.topics import ExchangeTopics
from assetswap.config import BPS_DENOMINATOR, EngineConfig
from assetswap.core.models import (
    AccountId,
    AssetId,
    AssetInfo,
    AssetRecord,
    ExchangeQuote,
    Settlement,
    SettlementKind,
)
from assetswap.core.state import EngineState
from assetswap.engine.commission import CommissionLedger
from assetswap.engine.component import Component
from assetswap.engine.settlement import (
    CompensatingTransfers,
    SettlementJournal,
    call_provider,
    resolve_provider,
)
from assetswap.errors import (
    ExchangeError,
    ExchangeNotPermitted,
    InsufficientFunds,
    InvalidQuantity,
    TransferFailed,
    is_quantity,
)

if TYPE_CHECKING:
    from assetswap.bus.message_bus import MessageBus


def compute_commission(quantity: int, fee_bps: int) -> tuple[int, int]:
    """
    Split `quantity` into (commission, payout).

    Integer division truncates: the commission is rounded down and the
    payout is never rounded up.
    """
    commission = quantity * fee_bps // BPS_DENOMINATOR
    return commission, quantity - commission


class ExchangeEngine(Component):
    """Swap algorithm over the admin registry state and the asset providers."""

    def __init__(
        self,
        config: EngineConfig,
        state: EngineState,
        lock: anyio.Lock,
        directory: AssetDirectory,
        ledger: CommissionLedger,
        journal: SettlementJournal,
        message_bus: "MessageBus | None" = None,
    ) -> None:
        super().__init__("exchange_engine", config, state, lock, message_bus)
        self._directory = directory
        self._ledger = ledger
        self._journal = journal

    async def exchange(
        self,
        source: AssetId,
        target: AssetId,
        quantity: int,
        *,
        caller: AccountId,
    ) -> Settlement:
        """
        Swap `quantity` of `source` for `target`, net of the source asset's fee.

        Returns:
            The completed settlement

        Raises:
            ExchangeNotPermitted: pair unknown, disabled or not permitted, or
                the caller is the custody account
            InvalidQuantity: quantity is not a positive integer
            InsufficientFunds: caller's source balance is below quantity
            TransferFailed: an asset provider call failed; nothing was settled
        """
        failure: ExchangeError | None = None

        async with self.transaction():
            settlement = self._journal.open(
                SettlementKind.EXCHANGE, caller, target, quantity, source=source
            )
            try:
                settlement = await self._settle(settlement, source, target, quantity, caller)
            except ExchangeError as e:
                settlement = self._journal.fail(settlement, e)
                self._record(rejected=True)
                self._log.warning(
                    "exchange_rejected",
                    source=source,
                    target=target,
                    quantity=quantity,
                    caller=caller,
                    error=e.code.name,
                    reason=e.message,
                    settlement_id=settlement.id,
                )
                failure = e
            except BaseException:
                settlement = self._journal.cancel(settlement)
                self._record(rejected=True)
                self._log.warning(
                    "exchange_cancelled",
                    source=source,
                    target=target,
                    quantity=quantity,
                    caller=caller,
                    settlement_id=settlement.id,
                )
                raise

        if failure is not None:
            await self.emit_event(
                ExchangeTopics.REJECTED,
                {
                    "source": source,
                    "target": target,
                    "quantity": quantity,
                    "caller": caller,
                    "error": failure.code.name,
                },
                correlation_id=settlement.id,
            )
            raise failure

        await self.emit_event(
            ExchangeTopics.SETTLED,
            {
                "source": source,
                "target": target,
                "quantity": quantity,
                "commission": settlement.commission,
                "payout": settlement.payout,
                "caller": caller,
            },
            correlation_id=settlement.id,
        )
        return settlement

    async def quote_exchange(self, source: AssetId, target: AssetId, quantity: int) -> ExchangeQuote:
        """Price an exchange without moving any balance."""
        async with self._lock:
            source_record, _ = self._validate(source, target, quantity)
            commission, payout = compute_commission(quantity, source_record.fee_bps)

        return ExchangeQuote(
            source=source,
            target=target,
            quantity=quantity,
            fee_bps=source_record.fee_bps,
            commission=commission,
            payout=payout,
        )

    async def describe_asset(self, asset: AssetId) -> AssetInfo:
        """Read name, symbol and decimals through the asset's provider."""
        provider = resolve_provider(self._directory, asset)
        name = await call_provider(provider, "get_name", provider.get_name)
        symbol = await call_provider(provider, "get_symbol", provider.get_symbol)
        decimals = await call_provider(provider, "get_decimals", provider.get_decimals)
        try:
            return AssetInfo(asset_id=asset, name=name, symbol=symbol, decimals=decimals)
        except ValidationError as e:
            raise TransferFailed(
                f"asset '{asset}' reported malformed metadata: {e.error_count()} invalid field(s)",
                asset=asset,
                operation="describe",
            ) from e

    # --- Internal ---

    def _validate(
        self,
        source: AssetId,
        target: AssetId,
        quantity: int,
    ) -> tuple[AssetRecord, AssetRecord]:
        source_record = self._state.get_asset(source)
        target_record = self._state.get_asset(target)
        if source_record is None or target_record is None:
            raise ExchangeNotPermitted(
                f"No exchange configured for {source} -> {target}",
                source=source,
                target=target,
            )

        edge = self._state.get_edge(source, target)
        if edge is None:
            raise ExchangeNotPermitted(
                f"No permission set for {source} -> {target}",
                source=source,
                target=target,
            )

        if not (source_record.enabled and target_record.enabled and edge.permitted):
            raise ExchangeNotPermitted(
                f"Exchange {source} -> {target} is disabled",
                source=source,
                target=target,
                source_enabled=source_record.enabled,
                target_enabled=target_record.enabled,
                permitted=edge.permitted,
            )

        if not is_quantity(quantity) or quantity <= 0:
            raise InvalidQuantity(
                f"Quantity must be a positive integer, got {quantity!r}",
                quantity=quantity,
            )

        return source_record, target_record

    async def _settle(
        self,
        settlement: Settlement,
        source: AssetId,
        target: AssetId,
        quantity: int,
        caller: AccountId,
    ) -> Settlement:
        source_record, _ = self._validate(source, target, quantity)
        custody = self._config.custody_account
        if caller == custody:
            raise ExchangeNotPermitted(
                "The custody account cannot exchange against itself",
                source=source,
                target=target,
                caller=caller,
            )

        source_asset = resolve_provider(self._directory, source)
        target_asset = resolve_provider(self._directory, target)

        # Fail fast; the source transfer below is the authoritative balance check
        balance = await call_provider(source_asset, "get_balance", source_asset.get_balance, caller)
        if not is_quantity(balance):
            raise TransferFailed(
                f"get_balance on asset '{source}' returned {balance!r}",
                asset=source,
                operation="get_balance",
            )
        if balance < quantity:
            raise InsufficientFunds(
                f"Balance {balance} of '{source}' is below {quantity}",
                asset=source,
                balance=balance,
                quantity=quantity,
            )

        commission, payout = compute_commission(quantity, source_record.fee_bps)

        async with CompensatingTransfers() as tx:
            await tx.transfer(source_asset, quantity, caller, custody)
            await tx.transfer(target_asset, payout, custody, caller)

        self._ledger.record_exchange(target, quantity, commission)
        self._record()
        settlement = self._journal.complete(settlement, commission=commission, payout=payout)
        self._log.info(
            "exchange_settled",
            source=source,
            target=target,
            quantity=quantity,
            commission=commission,
            payout=payout,
            caller=caller,
            settlement_id=settlement.id,
        )
        return settlement
