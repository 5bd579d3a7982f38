"""
assetswap

An asset-exchange settlement engine. An administrator whitelists asset
types, opens directional trading pairs and sets per-asset fee rates; any
caller swaps one whitelisted asset for another at the configured fee while
the engine keeps running totals of volume and commission.

- AdminRegistry → verification, enablement, permission graph
- ExchangeEngine → validated, all-or-nothing two-leg settlement
- CommissionLedger → volume/commission totals, admin withdrawal
- AssetProvider → capability every tradable asset implements
"""

__version__ = "0.1.0"

from assetswap.assets import AssetDirectory, AssetProvider, AssetProviderError, InMemoryAsset
from assetswap.config import BPS_DENOMINATOR, MAX_FEE_BPS, EngineConfig
from assetswap.engine import AssetExchange
from assetswap.errors import (
    AdminOnly,
    ErrorCode,
    ExchangeError,
    ExchangeNotPermitted,
    InsufficientFunds,
    InvalidAsset,
    InvalidQuantity,
    TransferFailed,
)

__all__ = [
    "__version__",
    "AdminOnly",
    "AssetDirectory",
    "AssetExchange",
    "AssetProvider",
    "AssetProviderError",
    "BPS_DENOMINATOR",
    "EngineConfig",
    "ErrorCode",
    "ExchangeError",
    "ExchangeNotPermitted",
    "InMemoryAsset",
    "InsufficientFunds",
    "InvalidAsset",
    "InvalidQuantity",
    "MAX_FEE_BPS",
    "TransferFailed",
]
