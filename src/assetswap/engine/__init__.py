"""Settlement engine components."""

from assetswap.engine.admin import AdminRegistry
from assetswap.engine.asset_exchange import AssetExchange
from assetswap.engine.commission import CommissionLedger
from assetswap.engine.exchange import ExchangeEngine, compute_commission
from assetswap.engine.settlement import CompensatingTransfers, SettlementJournal

__all__ = [
    "AdminRegistry",
    "AssetExchange",
    "CommissionLedger",
    "CompensatingTransfers",
    "ExchangeEngine",
    "SettlementJournal",
    "compute_commission",
]
