"""
Asset Provider Capability.

Any asset type tradable on the exchange implements AssetProvider. The engine
never implements storage or transfer itself; it awaits these calls and
treats every one of them as possibly failing.
"""

from collections.abc import Iterator
from typing import Protocol, runtime_checkable

import structlog

from assetswap.core.models import AccountId, AssetId

logger = structlog.get_logger()


class AssetProviderError(Exception):
    """Raised by a provider when a call cannot be completed."""


class UnknownAssetError(AssetProviderError):
    """No provider is registered for an asset id."""


@runtime_checkable
class AssetProvider(Protocol):
    """Capability interface of a tradable asset."""

    @property
    def asset_id(self) -> AssetId: ...

    async def transfer(self, quantity: int, sender: AccountId, recipient: AccountId) -> bool:
        """Move `quantity` units. Returns False (or raises) on failure."""
        ...

    async def get_balance(self, account: AccountId) -> int: ...

    async def get_decimals(self) -> int: ...

    async def get_name(self) -> str: ...

    async def get_symbol(self) -> str: ...


class AssetDirectory:
    """Resolves asset ids to the providers that implement them."""

    def __init__(self, providers: list[AssetProvider] | None = None) -> None:
        self._providers: dict[AssetId, AssetProvider] = {}
        self._log = logger.bind(component="asset_directory")
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: AssetProvider) -> None:
        """Register a provider under its own asset id."""
        if not isinstance(provider, AssetProvider):
            raise TypeError(f"Expected AssetProvider, got {type(provider)}")
        if provider.asset_id in self._providers:
            raise ValueError(f"Asset '{provider.asset_id}' already registered")

        self._providers[provider.asset_id] = provider
        self._log.debug("provider_registered", asset=provider.asset_id)

    def unregister(self, asset: AssetId) -> bool:
        return self._providers.pop(asset, None) is not None

    def resolve(self, asset: AssetId) -> AssetProvider:
        """Get the provider for an asset or raise UnknownAssetError."""
        provider = self._providers.get(asset)
        if provider is None:
            raise UnknownAssetError(f"No provider registered for asset '{asset}'")
        return provider

    def __contains__(self, asset: AssetId) -> bool:
        return asset in self._providers

    def __iter__(self) -> Iterator[AssetProvider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)
