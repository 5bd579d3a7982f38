"""
AdminRegistry: asset whitelist, enablement and the permission graph.

Only the configured administrator may mutate the registry. Verification is
sticky; enablement toggles and carries the asset's fee rate; permission
edges are directional and are only written while both endpoints are
enabled.
"""

from typing import TYPE_CHECKING

import anyio

from assetswap.bus.topics import AdminTopics
from assetswap.config import MAX_FEE_BPS, EngineConfig
from assetswap.core.models import AccountId, AssetId, AssetRecord, PermissionEdge
from assetswap.core.state import EngineState
from assetswap.engine.component import Component
from assetswap.errors import InvalidAsset, InvalidQuantity, is_quantity

if TYPE_CHECKING:
    from assetswap.bus.message_bus import MessageBus


class AdminRegistry(Component):
    """Verification/enablement state per asset and directional pair permissions."""

    def __init__(
        self,
        config: EngineConfig,
        state: EngineState,
        lock: anyio.Lock,
        message_bus: "MessageBus | None" = None,
    ) -> None:
        super().__init__("admin_registry", config, state, lock, message_bus)

    # --- Mutations (administrator only) ---

    async def verify_asset(self, asset: AssetId, *, caller: AccountId) -> AssetRecord:
        """Whitelist an asset. Idempotent: a known asset is left untouched."""
        async with self.transaction():
            self.require_admin(caller, "verify_asset", asset=asset)
            record = self._state.get_asset(asset)
            if record is None:
                record = AssetRecord(asset_id=asset)
                self._state.assets[asset] = record
                self._log.info("asset_verified", asset=asset)
            else:
                self._log.debug("asset_already_verified", asset=asset)
            self._record()

        await self.emit_event(AdminTopics.ASSET_VERIFIED, {"asset": asset})
        return record

    async def add_enabled_asset(
        self,
        asset: AssetId,
        fee_bps: int,
        *,
        caller: AccountId,
    ) -> AssetRecord:
        """Enable a verified asset for trading at `fee_bps` basis points."""
        async with self.transaction():
            self.require_admin(caller, "add_enabled_asset", asset=asset)
            record = self._state.get_asset(asset)
            if record is None or not record.verified:
                self._reject(InvalidAsset(f"Asset '{asset}' is not verified", asset=asset))
            if not is_quantity(fee_bps) or not 0 <= fee_bps < MAX_FEE_BPS:
                self._reject(
                    InvalidQuantity(
                        f"fee_bps must be an integer in [0, {MAX_FEE_BPS}), got {fee_bps!r}",
                        asset=asset,
                        fee_bps=fee_bps,
                    )
                )

            record = record.enable(fee_bps)
            self._state.assets[asset] = record
            self._record()
            self._log.info("asset_enabled", asset=asset, fee_bps=fee_bps)

        await self.emit_event(AdminTopics.ASSET_ENABLED, {"asset": asset, "fee_bps": fee_bps})
        return record

    async def remove_enabled_asset(self, asset: AssetId, *, caller: AccountId) -> AssetRecord:
        """Disable an asset. Its fee resets to zero; it stays verified."""
        async with self.transaction():
            self.require_admin(caller, "remove_enabled_asset", asset=asset)
            record = self._state.get_asset(asset)
            if record is None or not record.enabled:
                self._reject(InvalidAsset(f"Asset '{asset}' is not enabled", asset=asset))

            record = record.disable()
            self._state.assets[asset] = record
            self._record()
            self._log.info("asset_disabled", asset=asset)

        await self.emit_event(AdminTopics.ASSET_DISABLED, {"asset": asset})
        return record

    async def set_exchange_permission(
        self,
        source: AssetId,
        target: AssetId,
        is_permitted: bool,
        *,
        caller: AccountId,
    ) -> PermissionEdge:
        """
        Write the directional edge source -> target.

        Both endpoints must be enabled at the time of the call. The reverse
        direction is never implied and needs its own call.
        """
        async with self.transaction():
            self.require_admin(caller, "set_exchange_permission", source=source, target=target)
            for asset in (source, target):
                if not self._state.is_enabled(asset):
                    self._reject(
                        InvalidAsset(
                            f"Asset '{asset}' is not enabled",
                            asset=asset,
                            source=source,
                            target=target,
                        )
                    )

            edge = PermissionEdge(source=source, target=target, permitted=bool(is_permitted))
            self._state.permissions[edge.key] = edge
            self._record()
            self._log.info(
                "permission_set",
                source=source,
                target=target,
                permitted=edge.permitted,
            )

        await self.emit_event(
            AdminTopics.PERMISSION_SET,
            {"source": source, "target": target, "permitted": edge.permitted},
        )
        return edge

    async def clear_exchange_permission(
        self,
        source: AssetId,
        target: AssetId,
        *,
        caller: AccountId,
    ) -> bool:
        """Delete the edge source -> target. Returns True if one existed."""
        async with self.transaction():
            self.require_admin(caller, "clear_exchange_permission", source=source, target=target)
            removed = self._state.permissions.pop((source, target), None) is not None
            self._record()
            self._log.info("permission_cleared", source=source, target=target, existed=removed)

        if removed:
            await self.emit_event(
                AdminTopics.PERMISSION_CLEARED,
                {"source": source, "target": target},
            )
        return removed

    # --- Queries (never raise) ---

    def is_asset_verified(self, asset: AssetId) -> bool:
        record = self._state.get_asset(asset)
        return record is not None and record.verified

    def is_asset_enabled(self, asset: AssetId) -> bool:
        return self._state.is_enabled(asset)

    def is_exchange_permitted(self, source: AssetId, target: AssetId) -> bool:
        """True only if the directional edge exists and is set to permitted."""
        edge = self._state.get_edge(source, target)
        return edge is not None and edge.permitted

    def get_asset(self, asset: AssetId) -> AssetRecord | None:
        return self._state.get_asset(asset)

    def get_permission(self, source: AssetId, target: AssetId) -> PermissionEdge | None:
        return self._state.get_edge(source, target)

    def list_enabled_assets(self) -> list[AssetRecord]:
        return [r for r in self._state.assets.values() if r.enabled]

    def list_permissions(self, *, permitted_only: bool = True) -> list[PermissionEdge]:
        return [
            e for e in self._state.permissions.values() if e.permitted or not permitted_only
        ]

