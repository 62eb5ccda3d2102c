from __future__ import annotations

from abc import ABC, abstractmethod

from cleancar.domain.entities.user import User


class UserRepositoryPort(ABC):
    @abstractmethod
    def get_user(self, user_id: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def add_user(self, user: User) -> User:
        raise NotImplementedError

    @abstractmethod
    def increment_points(self, user_id: str, delta: int, floor: int | None = 0) -> int | None:
        """
        Atomically add `delta` to the user's balance and return the new balance.

        If `floor` is set and the result would fall below it, nothing is written
        and InsufficientBalanceError is raised. Returns None if the user is missing.
        """
        raise NotImplementedError

    @abstractmethod
    def set_points(self, user_id: str, amount: int) -> int | None:
        """Overwrite the balance. Returns the new balance, or None if the user is missing."""
        raise NotImplementedError
