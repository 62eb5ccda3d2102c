from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from cleancar.domain.entities.purchase import Purchase, PurchaseStatus


class PurchaseRepositoryPort(ABC):
    @abstractmethod
    def insert_purchase(self, purchase: Purchase) -> Purchase:
        """Raises DuplicateReferenceError if the external reference is already stored."""
        raise NotImplementedError

    @abstractmethod
    def get_by_reference(self, external_reference: str) -> Purchase | None:
        raise NotImplementedError

    @abstractmethod
    def list_user_purchases(self, user_id: str) -> list[Purchase]:
        """All purchases of a user, newest first."""
        raise NotImplementedError

    @abstractmethod
    def transition_purchase(
        self,
        external_reference: str,
        expected: Iterable[PurchaseStatus],
        status: PurchaseStatus,
        claimed_before: datetime | None = None,
        claimed_at: datetime | None = None,
        changes: dict[str, Any] | None = None,
    ) -> Purchase | None:
        """
        Compare-and-set the status of a purchase.

        The write happens only if the stored status is in `expected`, or if it is
        `processing` with a claim older than `claimed_before`. When `claimed_at`
        is given, a stored `processing` row must carry exactly that claim time.
        `changes` are applied to the other fields in the same write.
        Returns the updated purchase, or None if the condition did not hold.
        """
        raise NotImplementedError

    @abstractmethod
    def settle_purchase(
        self,
        external_reference: str,
        claimed_at: datetime,
        points: int,
        changes: dict[str, Any] | None = None,
    ) -> Purchase | None:
        """
        Credit the purchaser and mark the purchase succeeded in one write.

        Happens only while the row is `processing` under exactly this claim;
        otherwise nothing is credited and None is returned. Raises
        NotFoundError if the purchasing user no longer exists.
        """
        raise NotImplementedError
