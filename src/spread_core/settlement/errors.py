"""Settlement error hierarchy."""

from __future__ import annotations

from decimal import Decimal


class SettlementError(Exception):
    """Base class for all settlement failures."""


class ValidationError(SettlementError):
    """Malformed input: bad percentage, unknown bet type, non-finite number."""


class PositionStateError(ValidationError):
    """Operation not allowed in the position's current status."""

    def __init__(self, position_id: str, status: str, action: str = "close") -> None:
        self.position_id = position_id
        self.status = status
        super().__init__(f"cannot {action} a position that is {status} ({position_id})")


class PositionNotFound(SettlementError):
    """No position matches the given id or match reference."""


class InsufficientBalance(SettlementError):
    """Account cannot cover the collateral a new position requires."""

    def __init__(self, required: Decimal, available: Decimal) -> None:
        self.required = required
        self.available = available
        super().__init__(f"Insufficient balance. Required: {required}, Available: {available}")


class StaleStateError(SettlementError):
    """Persisted record changed since it was loaded (version mismatch)."""

    def __init__(self, kind: str, key: str, expected_version: int) -> None:
        self.kind = kind
        self.key = key
        self.expected_version = expected_version
        super().__init__(f"{kind} {key} changed since version {expected_version}")
