#!/usr/bin/env python3
"""
Example: Settlement Demo

Demonstrates:
- Admin onboarding of assets with per-asset fee rates
- Directional exchange permissions
- A settled exchange, a rejected one and a rolled-back one
- Commission withdrawal by the administrator

ONBOARD -> EXCHANGE -> ROLLBACK -> WITHDRAW
"""

import logging

import anyio

from assetswap import (
    AssetDirectory,
    AssetExchange,
    EngineConfig,
    ExchangeError,
    InMemoryAsset,
    TransferFailed,
)
from assetswap.bus import MessageBus
from assetswap.core import Message
from assetswap.logging_config import configure_logging


async def main() -> None:
    configure_logging(logging.WARNING)

    print("=" * 60)
    print("Settlement Demo")
    print("=" * 60)
    print()

    gold = InMemoryAsset("GLD", "Gold Token", "GLD", decimals=2)
    silver = InMemoryAsset("SLV", "Silver Token", "SLV", decimals=2)
    copper = InMemoryAsset("CPR", "Copper Token", "CPR", decimals=0)

    bus = MessageBus()
    events: list[str] = []

    async def on_event(message: Message) -> None:
        events.append(message.topic)

    await bus.subscribe("#", on_event)

    exchange = AssetExchange(
        EngineConfig(admin_id="operator", custody_account="vault"),
        directory=AssetDirectory([gold, silver, copper]),
        message_bus=bus,
    )

    gold.mint("alice", 50_000)
    silver.mint("vault", 1_000_000)

    # =========================================================================
    # Step 1: Onboard assets
    # =========================================================================
    print("Step 1: Onboarding Assets")
    print("-" * 40)

    for asset, fee in ((gold, 30), (silver, 10), (copper, 0)):
        await exchange.verify_asset(asset.asset_id, caller="operator")
        record = await exchange.add_enabled_asset(asset.asset_id, fee, caller="operator")
        info = await exchange.describe_asset(asset.asset_id)
        print(f"  {info.name} ({info.symbol}): fee {record.fee_bps} bps")

    await exchange.set_exchange_permission("GLD", "SLV", True, caller="operator")
    await exchange.set_exchange_permission("GLD", "CPR", True, caller="operator")
    print("  Opened: GLD -> SLV, GLD -> CPR")
    print()

    # =========================================================================
    # Step 2: Exchange
    # =========================================================================
    print("Step 2: Exchanging")
    print("-" * 40)

    quote = await exchange.quote_exchange("GLD", "SLV", 20_000)
    print(f"  Quote 20000 GLD -> SLV: commission {quote.commission}, payout {quote.payout}")

    settlement = await exchange.exchange("GLD", "SLV", 20_000, caller="alice")
    print(f"  Settled {settlement.id}")
    print(f"    alice GLD: {gold.balance_of('alice')}  SLV: {silver.balance_of('alice')}")

    try:
        await exchange.exchange("SLV", "GLD", 100, caller="alice")
    except ExchangeError as e:
        print(f"  SLV -> GLD rejected: {e.code.name}")
    print()

    # =========================================================================
    # Step 3: Rollback
    # =========================================================================
    print("Step 3: Rollback (vault holds no CPR)")
    print("-" * 40)

    try:
        await exchange.exchange("GLD", "CPR", 1_000, caller="alice")
    except TransferFailed as e:
        print(f"  Failed: {e.message}")
        print(f"    rolled back: {e.rolled_back}")
        print(f"    alice GLD still: {gold.balance_of('alice')}")
    print()

    # =========================================================================
    # Step 4: Withdraw commission
    # =========================================================================
    print("Step 4: Withdrawing Commission")
    print("-" * 40)

    collected = exchange.get_total_commission_collected()
    print(f"  Collected: {collected}")
    await exchange.withdraw_commission("SLV", collected, caller="operator")
    print(f"  operator SLV: {silver.balance_of('operator')}")
    print()

    # =========================================================================
    # Summary
    # =========================================================================
    stats = exchange.get_stats()
    print("Summary:")
    print(f"  Volume: {stats.total_volume}")
    print(f"  Exchanges: {stats.exchange_count}")
    print(f"  Remaining commission: {stats.total_commission}")
    print(f"  Journal entries: {len(exchange.list_settlements())}")
    print(f"  Events published: {len(events)}")

    print()
    print("=" * 60)
    print("Example Complete!")
    print("=" * 60)


if __name__ == "__main__":
    anyio.run(main)
