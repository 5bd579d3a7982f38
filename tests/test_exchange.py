"""Tests for ExchangeEngine settlement."""

import anyio
import pytest

from assetswap.assets import AssetProviderError
from assetswap.core.models import SettlementKind, SettlementStatus
from assetswap.engine import compute_commission
from assetswap.errors import (
    ErrorCode,
    ExchangeNotPermitted,
    InsufficientFunds,
    InvalidQuantity,
    TransferFailed,
)

from conftest import (
    ADMIN,
    CUSTODY,
    OTHER_USER,
    USER,
    CountingAsset,
    Market,
    MislabeledAsset,
    OneShotAsset,
    RaisingAsset,
    StallingAsset,
    build_market,
    record_events,
)


class TestComputeCommission:
    @pytest.mark.parametrize(
        "quantity,fee_bps,commission,payout",
        [
            (1000, 50, 5, 995),
            (199, 50, 0, 199),  # 9950 // 10000 truncates to zero
            (10_000, 99, 99, 9901),
            (20_000, 1, 2, 19_998),
            (12_345, 0, 0, 12_345),
        ],
    )
    def test_split(self, quantity: int, fee_bps: int, commission: int, payout: int) -> None:
        assert compute_commission(quantity, fee_bps) == (commission, payout)

    def test_parts_sum_to_quantity(self) -> None:
        for quantity in (1, 7, 101, 9_999, 1_000_003):
            for fee in (0, 1, 33, 99):
                c, p = compute_commission(quantity, fee)
                assert c + p == quantity
                assert 0 <= c < quantity


class TestExchangeSettlement:
    @pytest.mark.asyncio
    async def test_basic_exchange(self, market: Market) -> None:
        """1000 X at 50 bps: 5 commission, 995 Y paid out."""
        await market.onboard()

        settlement = await market.exchange.exchange("X", "Y", 1000, caller=USER)

        assert settlement.succeeded
        assert settlement.kind == SettlementKind.EXCHANGE
        assert settlement.commission == 5
        assert settlement.payout == 995

        assert market.x.balance_of(USER) == 0
        assert market.x.balance_of(CUSTODY) == 1000
        assert market.y.balance_of(USER) == 995
        assert market.y.balance_of(CUSTODY) == 9005

        assert market.exchange.get_total_exchange_volume() == 1000
        assert market.exchange.get_total_commission_collected() == 5

    @pytest.mark.asyncio
    async def test_fee_of_source_asset_applies(self, market: Market) -> None:
        """The target asset's fee plays no part in pricing."""
        await market.onboard(x_fee=10, y_fee=99)

        settlement = await market.exchange.exchange("X", "Y", 1000, caller=USER)

        assert settlement.commission == 1
        assert settlement.payout == 999

    @pytest.mark.asyncio
    async def test_totals_accumulate(self, market: Market) -> None:
        await market.onboard()
        market.x.mint(OTHER_USER, 4000)

        await market.exchange.exchange("X", "Y", 400, caller=USER)
        await market.exchange.exchange("X", "Y", 4000, caller=OTHER_USER)

        stats = market.exchange.get_stats()
        assert stats.total_volume == 4400
        assert stats.total_commission == 2 + 20
        assert stats.exchange_count == 2
        assert stats.commission_by_asset == {"Y": 22}

    @pytest.mark.asyncio
    async def test_stats_snapshot_is_detached(self, market: Market) -> None:
        await market.onboard()
        stats = market.exchange.get_stats()
        stats.total_volume = 99

        assert market.exchange.get_total_exchange_volume() == 0

    @pytest.mark.asyncio
    async def test_self_exchange_with_edge(self, market: Market) -> None:
        await market.onboard()
        market.x.mint(CUSTODY, 1000)
        await market.exchange.set_exchange_permission("X", "X", True, caller=ADMIN)

        settlement = await market.exchange.exchange("X", "X", 1000, caller=USER)

        assert settlement.payout == 995
        assert market.x.balance_of(USER) == 995


class TestExchangeValidation:
    @pytest.mark.asyncio
    async def test_missing_permission(self, market: Market) -> None:
        """Y -> X was never opened."""
        await market.onboard()
        market.y.mint(USER, 100)

        with pytest.raises(ExchangeNotPermitted):
            await market.exchange.exchange("Y", "X", 100, caller=USER)

    @pytest.mark.asyncio
    async def test_unknown_assets(self, market: Market) -> None:
        await market.onboard()

        with pytest.raises(ExchangeNotPermitted):
            await market.exchange.exchange("X", "nope", 10, caller=USER)

    @pytest.mark.asyncio
    async def test_permission_set_false(self, market: Market) -> None:
        await market.onboard()
        await market.exchange.set_exchange_permission("X", "Y", False, caller=ADMIN)

        with pytest.raises(ExchangeNotPermitted):
            await market.exchange.exchange("X", "Y", 10, caller=USER)

    @pytest.mark.asyncio
    async def test_disabled_endpoint_blocks_then_reenable_restores(self, market: Market) -> None:
        await market.onboard()
        await market.exchange.remove_enabled_asset("Y", caller=ADMIN)

        with pytest.raises(ExchangeNotPermitted):
            await market.exchange.exchange("X", "Y", 10, caller=USER)

        await market.exchange.add_enabled_asset("Y", 25, caller=ADMIN)
        settlement = await market.exchange.exchange("X", "Y", 10, caller=USER)
        assert settlement.succeeded

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -5, 1.5, True, None])
    async def test_invalid_quantity(self, market: Market, quantity: object) -> None:
        await market.onboard()

        with pytest.raises(InvalidQuantity):
            await market.exchange.exchange("X", "Y", quantity, caller=USER)  # type: ignore[arg-type]

        assert market.x.balance_of(USER) == 1000

    @pytest.mark.asyncio
    async def test_custody_account_cannot_exchange(self, market: Market) -> None:
        await market.onboard()
        market.x.mint(CUSTODY, 1000)

        with pytest.raises(ExchangeNotPermitted):
            await market.exchange.exchange("X", "Y", 1000, caller=CUSTODY)

        assert market.x.balance_of(CUSTODY) == 1000
        assert market.exchange.get_total_commission_collected() == 0

    @pytest.mark.asyncio
    async def test_permission_checked_before_quantity(self, market: Market) -> None:
        await market.onboard()

        with pytest.raises(ExchangeNotPermitted):
            await market.exchange.exchange("Y", "X", 0, caller=USER)

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, market: Market) -> None:
        await market.onboard()

        with pytest.raises(InsufficientFunds) as exc_info:
            await market.exchange.exchange("X", "Y", 1001, caller=USER)

        assert exc_info.value.code == ErrorCode.INSUFFICIENT_FUNDS
        assert market.x.balance_of(USER) == 1000
        assert market.exchange.get_total_exchange_volume() == 0

    @pytest.mark.asyncio
    async def test_rejection_journaled_and_published(self, market: Market) -> None:
        await market.onboard()
        await record_events(market, "exchange.#")

        with pytest.raises(InsufficientFunds):
            await market.exchange.exchange("X", "Y", 5000, caller=USER)

        [failed] = market.exchange.list_settlements(status=SettlementStatus.FAILED)
        assert failed.error_code == ErrorCode.INSUFFICIENT_FUNDS
        assert market.topics() == ["exchange.rejected"]
        assert market.events[0].correlation_id == failed.id


class TestExchangeAtomicity:
    @pytest.mark.asyncio
    async def test_refused_payout_rolls_back_source_leg(self) -> None:
        """Custody cannot pay Y: the X leg is reversed and nothing is counted."""
        market = build_market()
        market.x.mint(USER, 1000)
        await market.onboard()

        with pytest.raises(TransferFailed) as exc_info:
            await market.exchange.exchange("X", "Y", 1000, caller=USER)

        assert exc_info.value.rolled_back is True
        assert exc_info.value.compensation_failed is False
        assert market.x.balance_of(USER) == 1000
        assert market.x.balance_of(CUSTODY) == 0
        assert market.y.balance_of(USER) == 0
        assert market.exchange.get_stats().total_volume == 0
        assert market.exchange.get_stats().total_commission == 0

        [entry] = market.exchange.list_settlements()
        assert entry.status == SettlementStatus.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_raising_payout_rolls_back(self) -> None:
        y = RaisingAsset("Y", "Asset Y", "YYY", fail_senders={CUSTODY})
        market = build_market(y=y)
        market.x.mint(USER, 1000)
        y.mint(CUSTODY, 10_000)
        await market.onboard()

        with pytest.raises(TransferFailed) as exc_info:
            await market.exchange.exchange("X", "Y", 1000, caller=USER)

        assert exc_info.value.rolled_back is True
        assert isinstance(exc_info.value.__cause__, Exception)
        assert market.x.balance_of(USER) == 1000
        assert y.balance_of(CUSTODY) == 10_000

    @pytest.mark.asyncio
    async def test_refused_source_leg_needs_no_rollback(self) -> None:
        x = RaisingAsset("X", "Asset X", "XXX", fail_senders={USER})
        market = build_market(x=x)
        x.mint(USER, 1000)
        market.y.mint(CUSTODY, 10_000)
        await market.onboard()

        with pytest.raises(TransferFailed) as exc_info:
            await market.exchange.exchange("X", "Y", 1000, caller=USER)

        assert exc_info.value.rolled_back is False
        [entry] = market.exchange.list_settlements()
        assert entry.status == SettlementStatus.FAILED

    @pytest.mark.asyncio
    async def test_failed_compensation_reported(self) -> None:
        x = OneShotAsset("X", "Asset X", "XXX")
        market = build_market(x=x)
        x.mint(USER, 1000)
        await market.onboard()

        with pytest.raises(TransferFailed) as exc_info:
            await market.exchange.exchange("X", "Y", 1000, caller=USER)

        assert exc_info.value.compensation_failed is True
        assert market.exchange.get_total_exchange_volume() == 0

    @pytest.mark.asyncio
    async def test_truthy_transfer_result_counts_as_success(self) -> None:
        x = CountingAsset("X", "Asset X", "XXX")
        market = build_market(x=x)
        x.mint(USER, 1000)
        market.y.mint(CUSTODY, 10_000)
        await market.onboard()

        settlement = await market.exchange.exchange("X", "Y", 1000, caller=USER)

        assert settlement.succeeded
        assert x.balance_of(CUSTODY) == 1000
        assert market.y.balance_of(USER) == 995

    @pytest.mark.asyncio
    async def test_truthy_source_leg_reversed_when_payout_refused(self) -> None:
        """Custody holds no Y; the X leg reported as 1000 must still be undone."""
        x = CountingAsset("X", "Asset X", "XXX")
        market = build_market(x=x)
        x.mint(USER, 1000)
        await market.onboard()

        with pytest.raises(TransferFailed) as exc_info:
            await market.exchange.exchange("X", "Y", 1000, caller=USER)

        assert exc_info.value.rolled_back is True
        assert exc_info.value.compensation_failed is False
        assert x.balance_of(USER) == 1000
        assert x.balance_of(CUSTODY) == 0

    @pytest.mark.asyncio
    async def test_cancelled_settlement_is_journaled_and_reversed(self) -> None:
        y = StallingAsset("Y", "Asset Y", "YYY", stall_senders={CUSTODY})
        market = build_market(y=y)
        market.x.mint(USER, 1000)
        y.mint(CUSTODY, 10_000)
        await market.onboard()

        with anyio.move_on_after(0.1) as scope:
            await market.exchange.exchange("X", "Y", 1000, caller=USER)

        assert scope.cancelled_caught
        [entry] = market.exchange.list_settlements()
        assert entry.status == SettlementStatus.CANCELLED
        assert market.x.balance_of(USER) == 1000
        assert market.x.balance_of(CUSTODY) == 0
        assert market.exchange.get_total_exchange_volume() == 0

        # The engine lock was released
        quote = await market.exchange.quote_exchange("X", "Y", 1000)
        assert quote.payout == 995

    @pytest.mark.asyncio
    async def test_balance_query_failure(self) -> None:
        x = RaisingAsset("X", "Asset X", "XXX")
        x.fail_balance = True
        market = build_market(x=x)
        x.mint(USER, 1000)
        market.y.mint(CUSTODY, 10_000)
        await market.onboard()

        with pytest.raises(TransferFailed):
            await market.exchange.exchange("X", "Y", 10, caller=USER)

        assert x.balance_of(USER) == 1000

    @pytest.mark.asyncio
    async def test_unregistered_provider(self, market: Market) -> None:
        await market.onboard()
        market.exchange.directory.unregister("Y")

        with pytest.raises(TransferFailed):
            await market.exchange.exchange("X", "Y", 10, caller=USER)

        assert market.x.balance_of(USER) == 1000


class TestQuoteAndDescribe:
    @pytest.mark.asyncio
    async def test_quote_moves_nothing(self, market: Market) -> None:
        await market.onboard()

        quote = await market.exchange.quote_exchange("X", "Y", 1000)

        assert quote.fee_bps == 50
        assert quote.commission == 5
        assert quote.payout == 995
        assert market.x.balance_of(USER) == 1000
        assert len(market.exchange.list_settlements()) == 0

    @pytest.mark.asyncio
    async def test_quote_validates(self, market: Market) -> None:
        await market.onboard()

        with pytest.raises(ExchangeNotPermitted):
            await market.exchange.quote_exchange("Y", "X", 10)
        with pytest.raises(InvalidQuantity):
            await market.exchange.quote_exchange("X", "Y", 0)

    @pytest.mark.asyncio
    async def test_describe_asset(self, market: Market) -> None:
        info = await market.exchange.describe_asset("Y")

        assert info.name == "Asset Y"
        assert info.symbol == "YYY"
        assert info.decimals == 8

    @pytest.mark.asyncio
    async def test_describe_unknown_asset(self, market: Market) -> None:
        with pytest.raises(TransferFailed):
            await market.exchange.describe_asset("nope")

    @pytest.mark.asyncio
    async def test_describe_malformed_metadata(self) -> None:
        market = build_market(y=MislabeledAsset("Y", "Asset Y", "YYY"))

        with pytest.raises(TransferFailed) as exc_info:
            await market.exchange.describe_asset("Y")

        assert exc_info.value.details["operation"] == "describe"

    @pytest.mark.asyncio
    async def test_describe_provider_raises(self) -> None:
        y = MislabeledAsset("Y", "Asset Y", "YYY")
        y.name_error = AssetProviderError("metadata service down")
        market = build_market(y=y)

        with pytest.raises(TransferFailed) as exc_info:
            await market.exchange.describe_asset("Y")

        assert exc_info.value.details["operation"] == "get_name"
        assert isinstance(exc_info.value.__cause__, AssetProviderError)
