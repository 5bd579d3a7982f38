"""
AssetExchange: the full operation surface of the settlement engine.

Builds the admin registry, commission ledger and exchange engine over one
EngineState and one lock, so every mutation across the three is serialized.
"""

import anyio
import structlog

from assetswap.assets.provider import AssetDirectory
from assetswap.bus.message_bus import MessageBus
from assetswap.config import EngineConfig
from assetswap.core.models import (
    AccountId,
    AssetId,
    AssetInfo,
    AssetRecord,
    ExchangeQuote,
    ExchangeStats,
    PermissionEdge,
    Settlement,
    SettlementKind,
    SettlementStatus,
)
from assetswap.core.state import EngineState
from assetswap.engine.admin import AdminRegistry
from assetswap.engine.commission import CommissionLedger
from assetswap.engine.exchange import ExchangeEngine
from assetswap.engine.settlement import SettlementJournal

logger = structlog.get_logger()


class AssetExchange:
    """
    Administrator-curated asset exchange.

    Lifecycle:
    1. Admin verifies assets, enables them with a fee, opens directional pairs
    2. Any caller exchanges between permitted pairs
    3. Admin withdraws accumulated commission from custody
    """

    def __init__(
        self,
        config: EngineConfig,
        directory: AssetDirectory | None = None,
        message_bus: MessageBus | None = None,
        max_history: int | None = None,
    ) -> None:
        self._config = config
        self._directory = directory or AssetDirectory()
        self._message_bus = message_bus
        self._state = EngineState()
        self._lock = anyio.Lock()
        self._journal = SettlementJournal(max_history=max_history)

        self._registry = AdminRegistry(config, self._state, self._lock, message_bus)
        self._ledger = CommissionLedger(
            config, self._state, self._lock, self._directory, self._journal, message_bus
        )
        self._engine = ExchangeEngine(
            config,
            self._state,
            self._lock,
            self._directory,
            self._ledger,
            self._journal,
            message_bus,
        )
        self._log = logger.bind(component=config.name)
        self._log.info(
            "exchange_initialized",
            admin=config.admin_id,
            custody=config.custody_account,
        )

    # --- Properties ---

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def admin_id(self) -> AccountId:
        return self._config.admin_id

    @property
    def custody_account(self) -> AccountId:
        return self._config.custody_account

    @property
    def directory(self) -> AssetDirectory:
        return self._directory

    @property
    def registry(self) -> AdminRegistry:
        return self._registry

    @property
    def ledger(self) -> CommissionLedger:
        return self._ledger

    @property
    def engine(self) -> ExchangeEngine:
        return self._engine

    def set_message_bus(self, bus: MessageBus) -> None:
        """Attach a bus to every component."""
        self._message_bus = bus
        for component in (self._registry, self._ledger, self._engine):
            component.set_message_bus(bus)

    # --- Admin registry ---

    async def verify_asset(self, asset: AssetId, *, caller: AccountId) -> AssetRecord:
        return await self._registry.verify_asset(asset, caller=caller)

    async def add_enabled_asset(
        self, asset: AssetId, fee_bps: int, *, caller: AccountId
    ) -> AssetRecord:
        return await self._registry.add_enabled_asset(asset, fee_bps, caller=caller)

    async def remove_enabled_asset(self, asset: AssetId, *, caller: AccountId) -> AssetRecord:
        return await self._registry.remove_enabled_asset(asset, caller=caller)

    async def set_exchange_permission(
        self,
        source: AssetId,
        target: AssetId,
        is_permitted: bool,
        *,
        caller: AccountId,
    ) -> PermissionEdge:
        return await self._registry.set_exchange_permission(
            source, target, is_permitted, caller=caller
        )

    async def clear_exchange_permission(
        self, source: AssetId, target: AssetId, *, caller: AccountId
    ) -> bool:
        return await self._registry.clear_exchange_permission(source, target, caller=caller)

    def is_asset_verified(self, asset: AssetId) -> bool:
        return self._registry.is_asset_verified(asset)

    def is_asset_enabled(self, asset: AssetId) -> bool:
        return self._registry.is_asset_enabled(asset)

    def is_exchange_permitted(self, source: AssetId, target: AssetId) -> bool:
        return self._registry.is_exchange_permitted(source, target)

    def get_asset(self, asset: AssetId) -> AssetRecord | None:
        return self._registry.get_asset(asset)

    # --- Exchange engine ---

    async def exchange(
        self,
        source: AssetId,
        target: AssetId,
        quantity: int,
        *,
        caller: AccountId,
    ) -> Settlement:
        return await self._engine.exchange(source, target, quantity, caller=caller)

    async def quote_exchange(self, source: AssetId, target: AssetId, quantity: int) -> ExchangeQuote:
        return await self._engine.quote_exchange(source, target, quantity)

    async def describe_asset(self, asset: AssetId) -> AssetInfo:
        return await self._engine.describe_asset(asset)

    # --- Commission ledger ---

    async def withdraw_commission(
        self, asset: AssetId, quantity: int, *, caller: AccountId
    ) -> Settlement:
        return await self._ledger.withdraw_commission(asset, quantity, caller=caller)

    def get_total_exchange_volume(self) -> int:
        return self._ledger.get_total_exchange_volume()

    def get_total_commission_collected(self) -> int:
        return self._ledger.get_total_commission_collected()

    def get_stats(self) -> ExchangeStats:
        return self._ledger.get_stats()

    # --- Settlement journal ---

    def get_settlement(self, settlement_id: str) -> Settlement | None:
        return self._journal.get(settlement_id)

    def list_settlements(
        self,
        *,
        kind: SettlementKind | None = None,
        status: SettlementStatus | None = None,
    ) -> list[Settlement]:
        return self._journal.query(kind=kind, status=status)
