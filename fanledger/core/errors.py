"""
Error taxonomy for the entitlement & ledger engine.

Services raise these; the API layer renders them as
``{"ok": false, "error": <code>, "message": ..., **extra}`` with the
matching HTTP status (see ``fanledger.main``).
"""

from typing import Any


class LedgerError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.code
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"ok": False, "error": self.code, "message": self.message, **self.extra}


class ValidationError(LedgerError):
    """Malformed or out-of-range input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(LedgerError):
    """Fan, offer, pack, purchase or PPV message does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(LedgerError):
    """Caller does not own the fan/creator resource, or a precondition (adult status) is unmet."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str | None = None, *, reason: str | None = None, **extra: Any):
        if reason:
            extra["reason"] = reason
        super().__init__(message, **extra)
        self.reason = reason


class InsufficientBalanceError(LedgerError):
    status_code = 400
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, required_cents: int, balance_cents: int | None = None, wallet: dict | None = None):
        extra: dict[str, Any] = {"requiredCents": required_cents}
        if wallet is not None:
            extra["wallet"] = wallet
        super().__init__("Wallet balance is too low for this purchase", **extra)
        self.required_cents = required_cents
        self.balance_cents = balance_cents
        self.wallet = wallet


class ConflictError(LedgerError):
    """A uniqueness violation that is not the caller's own earlier request."""

    status_code = 409
    code = "CONFLICT"
