"""
Error taxonomy for the settlement engine.

Every failed operation raises an ExchangeError subclass carrying an
ErrorCode, so callers can tell configuration problems apart from funds
problems and from transport problems.
"""

from enum import Enum, auto
from typing import Any


class ErrorCode(Enum):
    """Discriminator for engine failures."""

    ADMIN_ONLY = auto()  # Caller lacks authority
    INSUFFICIENT_FUNDS = auto()  # Advisory balance pre-check failed
    INVALID_QUANTITY = auto()  # Zero, negative or out-of-range numeric input
    EXCHANGE_NOT_PERMITTED = auto()  # Pair not configured or disabled
    TRANSFER_FAILED = auto()  # External asset call failed
    INVALID_ASSET = auto()  # Asset not verified/enabled where required


class ExchangeError(Exception):
    """Base class for all engine errors."""

    code: ErrorCode

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code.name})"


class AdminOnly(ExchangeError):
    code = ErrorCode.ADMIN_ONLY


class InsufficientFunds(ExchangeError):
    code = ErrorCode.INSUFFICIENT_FUNDS


class InvalidQuantity(ExchangeError):
    code = ErrorCode.INVALID_QUANTITY


class ExchangeNotPermitted(ExchangeError):
    code = ErrorCode.EXCHANGE_NOT_PERMITTED


class InvalidAsset(ExchangeError):
    code = ErrorCode.INVALID_ASSET


class TransferFailed(ExchangeError):
    """
    An external asset call failed or reported failure.

    `rolled_back` is True when transfers issued earlier in the same
    operation were reversed; `compensation_failed` is True when one of
    those reversals itself failed and manual reconciliation is needed.
    """

    code = ErrorCode.TRANSFER_FAILED

    def __init__(
        self,
        message: str,
        *,
        rolled_back: bool = False,
        compensation_failed: bool = False,
        **details: Any,
    ) -> None:
        super().__init__(message, **details)
        self.rolled_back = rolled_back
        self.compensation_failed = compensation_failed


def is_quantity(value: Any) -> bool:
    """True for plain integers (bools excluded)."""
    return isinstance(value, int) and not isinstance(value, bool)
