from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any


class PolicyReason(str, Enum):
    date_in_past = "date_in_past"
    outside_booking_window = "outside_booking_window"
    outside_extended_window = "outside_extended_window"
    appointment_limit_reached = "appointment_limit_reached"
    no_slot_available = "no_slot_available"
    insufficient_points = "insufficient_points"
    invalid_transition = "invalid_transition"


class CleanCarError(Exception):
    """Base class for errors raised by the booking and points core."""


class PolicyViolation(CleanCarError):
    """User-correctable business rule rejection. Never retried automatically."""

    def __init__(self, reason: PolicyReason, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.details = dict(details or {})


class NotFoundError(CleanCarError):
    def __init__(self, entity: str, identifier: str) -> None:
        super().__init__(f"{entity.capitalize()} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class AlreadyTerminalError(CleanCarError):
    def __init__(self, entity: str, identifier: str, status: str) -> None:
        super().__init__(f"{entity.capitalize()} {identifier} is already {status}")
        self.entity = entity
        self.identifier = identifier
        self.status = status


class SlotConflictError(CleanCarError):
    """Raised by the store when an active appointment already holds (date, slot)."""

    def __init__(self, day: date, slot: str) -> None:
        super().__init__(f"Slot {slot} on {day.isoformat()} is already taken")
        self.day = day
        self.slot = slot


class ActiveAppointmentLimitError(CleanCarError):
    """Raised by the store when the owner already holds the maximum number of active appointments."""

    def __init__(self, user_id: str, limit: int) -> None:
        super().__init__(f"User {user_id} already has {limit} active appointments")
        self.user_id = user_id
        self.limit = limit


class DuplicateReferenceError(CleanCarError):
    def __init__(self, reference: str) -> None:
        super().__init__(f"Purchase already exists for payment reference {reference}")
        self.reference = reference


class InsufficientBalanceError(CleanCarError):
    def __init__(self, user_id: str, balance: int, amount: int) -> None:
        super().__init__(f"User {user_id} has {balance} points, {amount} required")
        self.user_id = user_id
        self.balance = balance
        self.amount = amount


class PurchaseInProgressError(CleanCarError):
    """Reconciliation is already claimed or the payment is not final yet; retry later."""

    def __init__(self, reference: str, status: str | None = None) -> None:
        super().__init__(f"Purchase {reference} is being processed, retry later")
        self.reference = reference
        self.status = status


class ExternalDependencyError(CleanCarError):
    """Raised when the payment provider fails (network errors, API errors, timeouts)."""
    pass


class InvariantViolation(CleanCarError):
    """Raised when a unit-of-work or idempotency guard has been bypassed. Indicates a bug."""
    pass
