from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from zoneinfo import ZoneInfo

from cleancar.application.exceptions import (
    ActiveAppointmentLimitError,
    AlreadyTerminalError,
    InsufficientBalanceError,
    InvariantViolation,
    NotFoundError,
    PolicyReason,
    PolicyViolation,
    SlotConflictError,
)
from cleancar.application.ports.appointment_repository import UNCHANGED, AppointmentRepositoryPort
from cleancar.application.ports.user_repository import UserRepositoryPort
from cleancar.application.use_cases.booking_window import BookingWindowPolicy
from cleancar.application.use_cases.notify import NotifyUseCase
from cleancar.application.use_cases.points_ledger import PointsLedger
from cleancar.application.use_cases.slot_allocation import SlotAllocator
from cleancar.application.utils.calendar import today_in
from cleancar.application.utils.pricing import PriceBreakdown, price_breakdown
from cleancar.domain.entities.appointment import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentStatus,
    ServiceType,
)
from cleancar.domain.entities.slot import SlotAssignment
from cleancar.domain.entities.user import User

# A lost slot race is retried once against a fresh occupancy view.
BOOKING_ATTEMPTS = 2

ADMIN_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.pending: frozenset({AppointmentStatus.confirmed, AppointmentStatus.in_progress}),
    AppointmentStatus.confirmed: frozenset({AppointmentStatus.in_progress, AppointmentStatus.completed}),
    AppointmentStatus.in_progress: frozenset({AppointmentStatus.completed}),
}


@dataclass(frozen=True)
class BookingResult:
    appointment: Appointment
    breakdown: PriceBreakdown
    points_remaining: int


@dataclass(frozen=True)
class CancellationResult:
    appointment: Appointment
    refunded_points: int


@dataclass(frozen=True)
class Quote:
    breakdown: PriceBreakdown
    slot: SlotAssignment | None


class AppointmentUseCase:
    def __init__(
        self,
        users: UserRepositoryPort,
        appointments: AppointmentRepositoryPort,
        ledger: PointsLedger,
        allocator: SlotAllocator,
        window_policy: BookingWindowPolicy,
        notifier: NotifyUseCase,
        timezone: ZoneInfo,
        max_active_appointments: int = 3,
    ) -> None:
        self._users = users
        self._appointments = appointments
        self._ledger = ledger
        self._allocator = allocator
        self._window_policy = window_policy
        self._notifier = notifier
        self._timezone = timezone
        self._max_active = max_active_appointments
        self._logger = logging.getLogger(__name__)

    def book(
        self,
        user_id: str,
        service_type: ServiceType | str,
        day: date,
        location: str,
        notes: str | None = None,
        today: date | None = None,
    ) -> BookingResult:
        """
        Book the first free slot on `day` and pay for it in points.

        Creating the appointment and debiting the price form one unit of work:
        if the debit fails the appointment is deleted again before the error
        propagates.
        """
        service_type = ServiceType(service_type)
        user = self._get_active_user(user_id)

        self._window_policy.check(day, today or today_in(self._timezone))

        active_count = self._appointments.count_active_for_user(user_id)
        if active_count >= self._max_active:
            raise self._limit_reached(active_count)

        breakdown = price_breakdown(service_type, day)
        price = breakdown.final_price
        if user.points_balance < price:
            raise _insufficient_points(price, user.points_balance)

        appointment = self._insert_with_retry(user_id, service_type, day, location, notes, price)

        try:
            remaining = self._ledger.debit(user_id, price)
        except InsufficientBalanceError as e:
            self._compensate_insert(appointment)
            raise _insufficient_points(price, e.balance) from e
        except Exception:
            self._compensate_insert(appointment)
            raise

        self._logger.info(
            "Appointment booked",
            extra={"user_id": user_id, "appointment_id": appointment.id, "slot": appointment.slot, "points": price},
        )
        self._notifier.appointment_confirmed(user, appointment)
        return BookingResult(appointment=appointment, breakdown=breakdown, points_remaining=remaining)

    def cancel(self, appointment_id: str, requestor_id: str, reason: str | None = None) -> CancellationResult:
        """
        Cancel an active appointment and refund its full price to the owner.

        Admins may cancel any appointment. The status flip and the refund form one
        unit of work: if the refund fails the status is restored.
        """
        appointment = self._appointments.get_appointment(appointment_id)
        requestor = self._users.get_user(requestor_id)
        if requestor is None:
            raise NotFoundError("user", requestor_id)
        if appointment is None or (appointment.user_id != requestor_id and not requestor.is_admin):
            raise NotFoundError("appointment", appointment_id)
        if appointment.is_terminal:
            raise AlreadyTerminalError("appointment", appointment_id, appointment.status.value)

        notes = UNCHANGED
        if requestor.is_admin and appointment.user_id != requestor_id and reason:
            note = f"Cancelled by admin: {reason}"
            notes = f"{appointment.notes}\n\n{note}" if appointment.notes else note

        cancelled = self._appointments.transition_appointment(
            appointment_id, ACTIVE_STATUSES, AppointmentStatus.cancelled, notes=notes
        )
        if cancelled is None:
            current = self._appointments.get_appointment(appointment_id)
            status = current.status.value if current else "missing"
            raise AlreadyTerminalError("appointment", appointment_id, status)

        try:
            self._ledger.credit(appointment.user_id, appointment.price)
        except Exception:
            self._revert_cancellation(appointment)
            raise

        self._logger.info(
            "Appointment cancelled",
            extra={
                "user_id": appointment.user_id,
                "appointment_id": appointment_id,
                "points": appointment.price,
                "reason": reason or "none",
            },
        )
        owner = requestor if requestor.id == appointment.user_id else self._users.get_user(appointment.user_id)
        if owner is not None:
            self._notifier.appointment_cancelled(owner, cancelled, appointment.price)
        return CancellationResult(appointment=cancelled, refunded_points=appointment.price)

    def update_status(self, appointment_id: str, status: AppointmentStatus | str) -> Appointment:
        """Move an appointment forward through its lifecycle. Cancelling goes through cancel()."""
        status = AppointmentStatus(status)
        appointment = self._appointments.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError("appointment", appointment_id)
        if appointment.is_terminal:
            raise AlreadyTerminalError("appointment", appointment_id, appointment.status.value)
        if status not in ADMIN_TRANSITIONS.get(appointment.status, frozenset()):
            raise PolicyViolation(
                PolicyReason.invalid_transition,
                f"Cannot move appointment from {appointment.status.value} to {status.value}",
            )

        updated = self._appointments.transition_appointment(appointment_id, [appointment.status], status)
        if updated is None:
            current = self._appointments.get_appointment(appointment_id)
            if current is not None and current.is_terminal:
                raise AlreadyTerminalError("appointment", appointment_id, current.status.value)
            raise PolicyViolation(
                PolicyReason.invalid_transition,
                "Appointment changed concurrently, reload and retry",
            )
        self._logger.info(
            "Appointment status updated",
            extra={"appointment_id": appointment_id, "status": status.value},
        )
        return updated

    def list_for_user(self, user_id: str) -> list[Appointment]:
        return self._appointments.list_user_appointments(user_id)

    def quote(self, service_type: ServiceType | str, day: date) -> Quote:
        return Quote(
            breakdown=price_breakdown(ServiceType(service_type), day),
            slot=self._allocator.find_available_slot(day),
        )

    def available_slots(self, day: date) -> list[SlotAssignment]:
        return self._allocator.available_slots(day)

    def _get_active_user(self, user_id: str) -> User:
        user = self._users.get_user(user_id)
        if user is None or not user.active:
            raise NotFoundError("user", user_id)
        return user

    def _insert_with_retry(
        self,
        user_id: str,
        service_type: ServiceType,
        day: date,
        location: str,
        notes: str | None,
        price: int,
    ) -> Appointment:
        attempt = 1
        while True:
            assignment = self._allocator.find_available_slot(day)
            if assignment is None:
                raise PolicyViolation(
                    PolicyReason.no_slot_available,
                    "No available time slots for this date. Please choose another date.",
                    {"date": day.isoformat()},
                )
            appointment = Appointment(
                id=uuid.uuid4().hex,
                user_id=user_id,
                service_type=service_type,
                date=day,
                slot=assignment.slot,
                start_time=assignment.start_time,
                end_time=assignment.end_time,
                location=location,
                status=AppointmentStatus.confirmed,
                price=price,
                notes=notes,
            )
            try:
                return self._appointments.insert_appointment(appointment, max_active_for_user=self._max_active)
            except ActiveAppointmentLimitError as e:
                raise self._limit_reached(e.limit) from e
            except SlotConflictError:
                self._logger.warning(
                    "Lost slot race",
                    extra={"user_id": user_id, "slot": assignment.slot, "reason": f"attempt {attempt}"},
                )
                if attempt >= BOOKING_ATTEMPTS:
                    raise
                attempt += 1

    def _limit_reached(self, active_count: int) -> PolicyViolation:
        return PolicyViolation(
            PolicyReason.appointment_limit_reached,
            f"Maximum appointment limit reached. You can have up to {self._max_active} active appointments.",
            {"active_appointments": active_count},
        )

    def _compensate_insert(self, appointment: Appointment) -> None:
        if not self._appointments.delete_appointment(appointment.id):
            self._logger.critical(
                "Could not remove appointment after failed debit",
                extra={"appointment_id": appointment.id, "user_id": appointment.user_id},
            )
            raise InvariantViolation(f"Orphan appointment {appointment.id} left without payment")

    def _revert_cancellation(self, appointment: Appointment) -> None:
        try:
            restored = self._appointments.transition_appointment(
                appointment.id,
                [AppointmentStatus.cancelled],
                appointment.status,
                notes=appointment.notes,
            )
        except SlotConflictError as e:
            restored = None
            self._logger.critical(
                "Slot re-booked before cancellation could be reverted",
                extra={"appointment_id": appointment.id, "slot": appointment.slot, "error": str(e)},
            )
        if restored is None:
            raise InvariantViolation(f"Appointment {appointment.id} cancelled without refund")


def _insufficient_points(price: int, available: int) -> PolicyViolation:
    return PolicyViolation(
        PolicyReason.insufficient_points,
        "Insufficient points",
        {"required": price, "available": available, "shortfall": max(price - available, 0)},
    )
