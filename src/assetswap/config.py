"""Engine configuration."""

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Fee rates are basis points of BPS_DENOMINATOR and must stay below MAX_FEE_BPS (1%).
MAX_FEE_BPS = 100
BPS_DENOMINATOR = 10_000


class EngineConfig(BaseModel):
    """
    Immutable engine configuration, fixed at construction.

    The administrator identity cannot be changed after the engine is built;
    there is no ownership-transfer operation.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    admin_id: str = Field(min_length=1)
    custody_account: str = Field(default="exchange_custody", min_length=1)
    name: str = "asset_exchange"
    event_ttl_seconds: int | None = Field(default=None, gt=0)  # None: events never expire

    @model_validator(mode="after")
    def validate_distinct_accounts(self) -> Self:
        """Custody must not be the administrator's own account."""
        if self.admin_id == self.custody_account:
            raise ValueError("custody_account must differ from admin_id")
        return self
