"""In-memory asset provider backed by a balance table."""

import structlog

from assetswap.assets.provider import AssetProviderError
from assetswap.core.models import AccountId, AssetId
from assetswap.errors import is_quantity

logger = structlog.get_logger()


class InMemoryAsset:
    """
    Reference AssetProvider holding balances in a dict.

    `transfer` returns False when the sender cannot cover the quantity and
    raises AssetProviderError for malformed quantities.
    """

    def __init__(
        self,
        asset_id: AssetId,
        name: str,
        symbol: str,
        decimals: int = 18,
    ) -> None:
        self._asset_id = asset_id
        self._name = name
        self._symbol = symbol
        self._decimals = decimals
        self._balances: dict[AccountId, int] = {}
        self._log = logger.bind(component="in_memory_asset", asset=asset_id)

    @property
    def asset_id(self) -> AssetId:
        return self._asset_id

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def mint(self, account: AccountId, quantity: int) -> int:
        """Credit new units to an account. Returns the new balance."""
        if not is_quantity(quantity) or quantity <= 0:
            raise AssetProviderError(f"Invalid mint quantity: {quantity!r}")
        self._balances[account] = self._balances.get(account, 0) + quantity
        return self._balances[account]

    def balance_of(self, account: AccountId) -> int:
        return self._balances.get(account, 0)

    async def transfer(self, quantity: int, sender: AccountId, recipient: AccountId) -> bool:
        if not is_quantity(quantity) or quantity <= 0:
            raise AssetProviderError(f"Invalid transfer quantity: {quantity!r}")

        available = self._balances.get(sender, 0)
        if available < quantity:
            self._log.debug(
                "transfer_refused",
                sender=sender,
                quantity=quantity,
                available=available,
            )
            return False

        self._balances[sender] = available - quantity
        self._balances[recipient] = self._balances.get(recipient, 0) + quantity
        return True

    async def get_balance(self, account: AccountId) -> int:
        return self.balance_of(account)

    async def get_decimals(self) -> int:
        return self._decimals

    async def get_name(self) -> str:
        return self._name

    async def get_symbol(self) -> str:
        return self._symbol
