from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date
from enum import Enum

from cleancar.domain.entities.appointment import Appointment, AppointmentStatus


class Unchanged(Enum):
    """Marker for a field a write must leave as it is."""

    token = "unchanged"


UNCHANGED = Unchanged.token


class AppointmentRepositoryPort(ABC):
    @abstractmethod
    def get_appointment(self, appointment_id: str) -> Appointment | None:
        raise NotImplementedError

    @abstractmethod
    def list_user_appointments(self, user_id: str) -> list[Appointment]:
        raise NotImplementedError

    @abstractmethod
    def count_active_for_user(self, user_id: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def occupied_slots(self, day: date) -> set[str]:
        """Slot labels held by active appointments on `day`."""
        raise NotImplementedError

    @abstractmethod
    def active_counts_by_date(self, start: date, end: date) -> dict[date, int]:
        """Number of active appointments per date, for dates in [start, end]."""
        raise NotImplementedError

    @abstractmethod
    def insert_appointment(self, appointment: Appointment, max_active_for_user: int | None = None) -> Appointment:
        """
        Persist a new appointment.

        Enforces the partial unique index on (date, slot) over active statuses:
        raises SlotConflictError if another active appointment holds the slot.
        With `max_active_for_user` set, raises ActiveAppointmentLimitError when
        the owner already has that many active appointments.
        """
        raise NotImplementedError

    @abstractmethod
    def delete_appointment(self, appointment_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def transition_appointment(
        self,
        appointment_id: str,
        expected: Iterable[AppointmentStatus],
        status: AppointmentStatus,
        notes: str | None | Unchanged = UNCHANGED,
    ) -> Appointment | None:
        """
        Compare-and-set the status. Returns the updated appointment, or None when
        the stored status is not in `expected` (or the appointment is missing).
        Raises SlotConflictError if moving into an active status would collide.
        `notes` overwrites the stored notes, None included, unless UNCHANGED.
        """
        raise NotImplementedError
