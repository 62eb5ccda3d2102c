from __future__ import annotations

import logging
from enum import Enum

from cleancar.application.exceptions import InvariantViolation, NotFoundError
from cleancar.application.ports.user_repository import UserRepositoryPort
from cleancar.application.use_cases.notify import NotifyUseCase


class LedgerOperation(str, Enum):
    add = "add"
    subtract = "subtract"
    set = "set"


class PointsLedger:
    """
    A user's point balance. Every mutation is a single atomic write at the
    store; the balance is never read, modified and written back.
    """

    def __init__(self, users: UserRepositoryPort, notifier: NotifyUseCase | None = None) -> None:
        self._users = users
        self._notifier = notifier
        self._logger = logging.getLogger(__name__)

    def balance(self, user_id: str) -> int:
        user = self._users.get_user(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user.points_balance

    def debit(self, user_id: str, amount: int) -> int:
        """Raises InsufficientBalanceError (balance unchanged) if the debit would go negative."""
        _check_amount(amount)
        new_balance = self._users.increment_points(user_id, -amount, floor=0)
        if new_balance is None:
            raise NotFoundError("user", user_id)
        if new_balance < 0:
            self._logger.critical(
                "Negative balance after guarded debit",
                extra={"user_id": user_id, "points": new_balance},
            )
            raise InvariantViolation(f"Balance of user {user_id} dropped to {new_balance}")
        self._logger.info("Points debited", extra={"user_id": user_id, "points": -amount})
        return new_balance

    def credit(self, user_id: str, amount: int) -> int:
        _check_amount(amount)
        new_balance = self._users.increment_points(user_id, amount, floor=None)
        if new_balance is None:
            raise NotFoundError("user", user_id)
        self._logger.info("Points credited", extra={"user_id": user_id, "points": amount})
        return new_balance

    def set(self, user_id: str, amount: int) -> int:
        _check_amount(amount)
        new_balance = self._users.set_points(user_id, amount)
        if new_balance is None:
            raise NotFoundError("user", user_id)
        self._logger.info("Points set", extra={"user_id": user_id, "points": amount})
        return new_balance

    def adjust(self, user_id: str, operation: LedgerOperation | str, points: int, reason: str | None = None) -> int:
        """Administrative adjustment; the user is notified of the new balance."""
        operation = LedgerOperation(operation)
        if operation == LedgerOperation.add:
            new_balance = self.credit(user_id, points)
        elif operation == LedgerOperation.subtract:
            new_balance = self.debit(user_id, points)
        else:
            new_balance = self.set(user_id, points)

        self._logger.info(
            "Admin points adjustment",
            extra={"user_id": user_id, "points": points, "status": operation.value, "reason": reason or "none"},
        )
        if self._notifier is not None:
            user = self._users.get_user(user_id)
            if user is not None:
                self._notifier.points_updated(user, operation.value, points, new_balance)
        return new_balance


def _check_amount(amount: int) -> None:
    if amount < 0:
        raise ValueError(f"Point amount must be >= 0, got {amount}")
