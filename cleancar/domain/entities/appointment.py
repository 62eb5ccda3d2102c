from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class ServiceType(str, Enum):
    basic = "basic"
    deluxe = "deluxe"


class AppointmentStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


# Statuses that occupy a slot and count towards the per-user cap.
ACTIVE_STATUSES = frozenset(
    {AppointmentStatus.pending, AppointmentStatus.confirmed, AppointmentStatus.in_progress}
)
TERMINAL_STATUSES = frozenset({AppointmentStatus.completed, AppointmentStatus.cancelled})


@dataclass(frozen=True)
class Appointment:
    id: str
    user_id: str
    service_type: ServiceType
    date: date
    slot: str  # e.g. "14:00-16:00"
    start_time: datetime
    end_time: datetime
    location: str
    status: AppointmentStatus
    price: int
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
