from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from cleancar.domain.entities.pack import ServiceCredit


class PurchaseStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    succeeded = "succeeded"
    failed = "failed"
    canceled = "canceled"


# A purchase in any of these states may be claimed for reconciliation.
CLAIMABLE_STATUSES = frozenset(
    {PurchaseStatus.pending, PurchaseStatus.failed, PurchaseStatus.canceled}
)


@dataclass(frozen=True)
class Purchase:
    id: str
    user_id: str
    pack_id: str
    external_reference: str  # unique payment intent id
    amount: int  # smallest currency unit
    currency: str
    status: PurchaseStatus = PurchaseStatus.pending
    client_secret: str | None = None
    points_awarded: int = 0
    bonus_points_awarded: int = 0
    service_credits_awarded: tuple[ServiceCredit, ...] = ()
    failure_reason: str | None = None
    claimed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_points_awarded(self) -> int:
        return self.points_awarded + self.bonus_points_awarded
