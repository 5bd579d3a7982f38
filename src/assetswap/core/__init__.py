"""Core data model of the settlement engine."""

from assetswap.core.events import Message
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

__all__ = [
    "AccountId",
    "AssetId",
    "AssetInfo",
    "AssetRecord",
    "EngineState",
    "ExchangeQuote",
    "ExchangeStats",
    "Message",
    "PermissionEdge",
    "Settlement",
    "SettlementKind",
    "SettlementStatus",
]
