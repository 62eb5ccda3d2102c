from __future__ import annotations

from datetime import date
from zoneinfo import ZoneInfo

from cleancar.application.ports.appointment_repository import AppointmentRepositoryPort
from cleancar.application.utils.calendar import TIME_SLOTS, slot_times
from cleancar.domain.entities.slot import SlotAssignment


class SlotAllocator:
    """
    Read-only view of slot occupancy for a date.

    The answer may be stale by the time the caller writes; the store's unique
    index on active (date, slot) pairs is what prevents double booking.
    """

    def __init__(self, appointments: AppointmentRepositoryPort, timezone: ZoneInfo) -> None:
        self._appointments = appointments
        self._timezone = timezone

    def find_available_slot(self, day: date) -> SlotAssignment | None:
        """First free slot in declared order, or None when the date is fully booked."""
        occupied = self._appointments.occupied_slots(day)
        for slot in TIME_SLOTS:
            if slot not in occupied:
                return self._assignment(day, slot)
        return None

    def available_slots(self, day: date) -> list[SlotAssignment]:
        occupied = self._appointments.occupied_slots(day)
        return [self._assignment(day, slot) for slot in TIME_SLOTS if slot not in occupied]

    def _assignment(self, day: date, slot: str) -> SlotAssignment:
        start, end = slot_times(day, slot, self._timezone)
        return SlotAssignment(slot=slot, start_time=start, end_time=end)
