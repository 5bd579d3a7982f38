"""Shared fixtures: an exchange with two in-memory assets X and Y."""

from dataclasses import dataclass

import anyio
import pytest

from assetswap.assets import AssetDirectory, AssetProviderError, InMemoryAsset
from assetswap.bus import MessageBus
from assetswap.config import EngineConfig
from assetswap.core.events import Message
from assetswap.engine import AssetExchange

ADMIN = "admin"
USER = "alice"
OTHER_USER = "bob"
CUSTODY = "exchange_custody"


class RaisingAsset(InMemoryAsset):
    """Raises on transfers out of any account in `fail_senders`."""

    def __init__(self, *args, fail_senders: set[str] | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.fail_senders = fail_senders or set()
        self.fail_balance = False

    async def transfer(self, quantity: int, sender: str, recipient: str) -> bool:
        if sender in self.fail_senders:
            raise AssetProviderError(f"ledger unavailable for {sender}")
        return await super().transfer(quantity, sender, recipient)

    async def get_balance(self, account: str) -> int:
        if self.fail_balance:
            raise AssetProviderError("balance service down")
        return await super().get_balance(account)


class OneShotAsset(InMemoryAsset):
    """Honors the first transfer, then refuses everything (breaks compensation)."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.transfers = 0

    async def transfer(self, quantity: int, sender: str, recipient: str) -> bool:
        self.transfers += 1
        if self.transfers > 1:
            return False
        return await super().transfer(quantity, sender, recipient)


class CountingAsset(InMemoryAsset):
    """Reports successful transfers as the count of units moved, not True."""

    async def transfer(self, quantity: int, sender: str, recipient: str) -> bool:
        ok = await super().transfer(quantity, sender, recipient)
        return quantity if ok else 0  # type: ignore[return-value]


class StallingAsset(InMemoryAsset):
    """Blocks forever on transfers out of any account in `stall_senders`."""

    def __init__(self, *args, stall_senders: set[str] | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.stall_senders = stall_senders or set()

    async def transfer(self, quantity: int, sender: str, recipient: str) -> bool:
        if sender in self.stall_senders:
            await anyio.sleep_forever()
        return await super().transfer(quantity, sender, recipient)


class MislabeledAsset(InMemoryAsset):
    """Metadata calls return values of the wrong type, or raise."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.name_error: Exception | None = None

    async def get_name(self) -> str:
        if self.name_error is not None:
            raise self.name_error
        return await super().get_name()

    async def get_decimals(self) -> int:
        return "eight"  # type: ignore[return-value]


@dataclass
class Market:
    exchange: AssetExchange
    x: InMemoryAsset
    y: InMemoryAsset
    bus: MessageBus
    events: list[Message]

    async def onboard(self, x_fee: int = 50, y_fee: int = 25) -> None:
        """Verify and enable X and Y and open X -> Y."""
        for asset_id, fee in (("X", x_fee), ("Y", y_fee)):
            await self.exchange.verify_asset(asset_id, caller=ADMIN)
            await self.exchange.add_enabled_asset(asset_id, fee, caller=ADMIN)
        await self.exchange.set_exchange_permission("X", "Y", True, caller=ADMIN)

    def topics(self) -> list[str]:
        return [m.topic for m in self.events]


def build_market(x: InMemoryAsset | None = None, y: InMemoryAsset | None = None) -> Market:
    x = x or InMemoryAsset("X", "Asset X", "XXX", decimals=6)
    y = y or InMemoryAsset("Y", "Asset Y", "YYY", decimals=8)
    bus = MessageBus()
    exchange = AssetExchange(
        EngineConfig(admin_id=ADMIN, custody_account=CUSTODY),
        directory=AssetDirectory([x, y]),
        message_bus=bus,
    )
    return Market(exchange=exchange, x=x, y=y, bus=bus, events=[])


async def record_events(market: Market, pattern: str = "#") -> None:
    async def handler(message: Message) -> None:
        market.events.append(message)

    await market.bus.subscribe(pattern, handler)


@pytest.fixture
def market() -> Market:
    """X and Y registered; alice holds 1000 X, custody holds 10000 Y."""
    m = build_market()
    m.x.mint(USER, 1000)
    m.y.mint(CUSTODY, 10_000)
    return m
