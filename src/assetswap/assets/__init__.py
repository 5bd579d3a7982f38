"""Asset provider capability and the reference in-memory asset."""

from assetswap.assets.memory import InMemoryAsset
from assetswap.assets.provider import (
    AssetDirectory,
    AssetProvider,
    AssetProviderError,
    UnknownAssetError,
)

__all__ = [
    "AssetDirectory",
    "AssetProvider",
    "AssetProviderError",
    "InMemoryAsset",
    "UnknownAssetError",
]
