from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ApplyError(Exception):
    """Canonical error type for domain apply and dispatch failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


# Rejection taxonomy. Each member pins its own `code` so callers can assert on
# either the class or the code string carried in receipts and API bodies.

CODE_FORBIDDEN = "forbidden"
CODE_NOT_FOUND = "not_found"
CODE_INVALID_PAYLOAD = "invalid_payload"
CODE_INSUFFICIENT_BALANCE = "insufficient_balance"
CODE_INSUFFICIENT_PAYMENT = "insufficient_payment"
CODE_INVALID_STATE = "invalid_state"
CODE_TRANSFER_FAILED = "transfer_failed"


class AuthorizationError(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(CODE_FORBIDDEN, reason, details)


class NotFoundError(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(CODE_NOT_FOUND, reason, details)


class InvalidArgumentError(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(CODE_INVALID_PAYLOAD, reason, details)


class InsufficientBalanceError(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(CODE_INSUFFICIENT_BALANCE, reason, details)


class InsufficientPaymentError(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(CODE_INSUFFICIENT_PAYMENT, reason, details)


class InvalidStateError(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(CODE_INVALID_STATE, reason, details)


class ValueTransferError(ApplyError):
    """A native value movement could not complete; the whole call is void."""

    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(CODE_TRANSFER_FAILED, reason, details)


__all__ = [
    "ApplyError",
    "AuthorizationError",
    "NotFoundError",
    "InvalidArgumentError",
    "InsufficientBalanceError",
    "InsufficientPaymentError",
    "InvalidStateError",
    "ValueTransferError",
    "CODE_FORBIDDEN",
    "CODE_NOT_FOUND",
    "CODE_INVALID_PAYLOAD",
    "CODE_INSUFFICIENT_BALANCE",
    "CODE_INSUFFICIENT_PAYMENT",
    "CODE_INVALID_STATE",
    "CODE_TRANSFER_FAILED",
]
