"""
Shared engine state: the asset table, the permission table and the stats
singleton.

The admin registry, exchange engine and commission ledger all operate on one
EngineState instance under one lock.
"""

from dataclasses import dataclass, field

from assetswap.core.models import AssetId, AssetRecord, ExchangeStats, PermissionEdge


@dataclass
class EngineState:
    """The three key-value tables of the engine."""

    assets: dict[AssetId, AssetRecord] = field(default_factory=dict)
    permissions: dict[tuple[AssetId, AssetId], PermissionEdge] = field(default_factory=dict)
    stats: ExchangeStats = field(default_factory=ExchangeStats)

    def get_asset(self, asset: AssetId) -> AssetRecord | None:
        return self.assets.get(asset)

    def get_edge(self, source: AssetId, target: AssetId) -> PermissionEdge | None:
        return self.permissions.get((source, target))

    def is_enabled(self, asset: AssetId) -> bool:
        record = self.assets.get(asset)
        return record is not None and record.enabled

    def snapshot(self) -> "EngineState":
        """Copy of the tables; records are frozen so a shallow copy suffices."""
        return EngineState(
            assets=dict(self.assets),
            permissions=dict(self.permissions),
            stats=self.stats.copy(),
        )

    def restore(self, snapshot: "EngineState") -> None:
        """Reset all tables in place to a previous snapshot."""
        self.assets = dict(snapshot.assets)
        self.permissions = dict(snapshot.permissions)
        self.stats = snapshot.stats.copy()
