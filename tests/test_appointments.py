from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from cleancar.application.exceptions import (
    AlreadyTerminalError,
    InsufficientBalanceError,
    NotFoundError,
    PolicyReason,
    PolicyViolation,
    SlotConflictError,
)
from cleancar.application.utils.calendar import TIME_SLOTS
from cleancar.domain.entities.appointment import AppointmentStatus, ServiceType
from cleancar.domain.entities.user import Role, User
from cleancar.infrastructure.store.memory_store import MemoryDocumentStore

WEDNESDAY = date(2025, 6, 4)
FRIDAY = date(2025, 6, 6)
SATURDAY = date(2025, 6, 7)
CHRISTMAS_EVE = date(2025, 12, 24)


class StaleFirstViewStore(MemoryDocumentStore):
    """Reports every slot as free on the first occupancy read, as if another booking raced us."""

    def __init__(self) -> None:
        super().__init__()
        self.stale_reads = 1

    def occupied_slots(self, day):
        if self.stale_reads:
            self.stale_reads -= 1
            return set()
        return super().occupied_slots(day)


class ConcurrentSpendStore(MemoryDocumentStore):
    """Every guarded debit loses to a concurrent spend."""

    def increment_points(self, user_id, delta, floor=0):
        if delta < 0:
            raise InsufficientBalanceError(user_id, 0, -delta)
        return super().increment_points(user_id, delta, floor)


class FailingRefundStore(MemoryDocumentStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail_credits = False

    def increment_points(self, user_id, delta, floor=0):
        if delta > 0 and self.fail_credits:
            raise RuntimeError("store unavailable")
        return super().increment_points(user_id, delta, floor)


def test_book_weekday_basic(appointments, store, today):
    result = appointments.book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", today=today)

    assert result.appointment.status == AppointmentStatus.confirmed
    assert result.appointment.slot == TIME_SLOTS[0]
    assert result.appointment.price == 1000
    assert result.points_remaining == 1000
    assert store.get_user("alice").points_balance == 1000


def test_book_fully_booked_date(appointments, store, occupy, today):
    appointments.book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", today=today)
    for slot in TIME_SLOTS:
        occupy(store, FRIDAY, slot)

    with pytest.raises(PolicyViolation) as exc:
        appointments.book("alice", ServiceType.basic, FRIDAY, "Vesterbrogade 1", today=today)
    assert exc.value.reason == PolicyReason.no_slot_available
    assert store.get_user("alice").points_balance == 1000


def test_book_far_future_outside_window(appointments, store, today):
    with pytest.raises(PolicyViolation) as exc:
        appointments.book("alice", ServiceType.basic, date(2025, 12, 19), "Vesterbrogade 1", today=today)
    assert exc.value.reason == PolicyReason.outside_booking_window
    assert store.get_user("alice").points_balance == 2000


def test_book_in_past(appointments, today):
    with pytest.raises(PolicyViolation) as exc:
        appointments.book("alice", ServiceType.basic, date(2025, 6, 1), "Vesterbrogade 1", today=today)
    assert exc.value.reason == PolicyReason.date_in_past


def test_weekend_price_is_debited(appointments, store, today):
    result = appointments.book("bob", "deluxe", SATURDAY, "Nørrebrogade 5", today=today)
    assert result.appointment.price == 2100
    assert result.breakdown.surcharge == 700
    assert store.get_user("bob").points_balance == 2900


def test_insufficient_points(appointments, store, today):
    # 2025-06-05 is Constitution Day; deluxe costs 2800 there
    with pytest.raises(PolicyViolation) as exc:
        appointments.book("alice", ServiceType.deluxe, date(2025, 6, 5), "Vesterbrogade 1", today=today)
    assert exc.value.reason == PolicyReason.insufficient_points
    assert exc.value.details == {"required": 2800, "available": 2000, "shortfall": 800}
    assert store.list_user_appointments("alice") == []


def test_active_appointment_cap(appointments, store, today):
    booked = [
        appointments.book("bob", ServiceType.basic, date(2025, 6, d), "Nørrebrogade 5", today=today)
        for d in (3, 4, 6)
    ]
    with pytest.raises(PolicyViolation) as exc:
        appointments.book("bob", ServiceType.basic, date(2025, 6, 10), "Nørrebrogade 5", today=today)
    assert exc.value.reason == PolicyReason.appointment_limit_reached
    assert store.get_user("bob").points_balance == 2000

    appointments.cancel(booked[0].appointment.id, "bob")
    appointments.book("bob", ServiceType.basic, date(2025, 6, 10), "Nørrebrogade 5", today=today)


def test_concurrent_bookings_respect_active_cap(store, appointments, today):
    days = [date(2025, 6, d) for d in (3, 4, 6, 10, 11, 12, 13, 16, 17, 18)]

    def attempt(day):
        try:
            return appointments.book("bob", ServiceType.basic, day, "Nørrebrogade 5", today=today)
        except PolicyViolation as e:
            return e

    with ThreadPoolExecutor(max_workers=10) as pool:
        outcomes = list(pool.map(attempt, days))

    booked = [o for o in outcomes if not isinstance(o, Exception)]
    rejected = [o for o in outcomes if isinstance(o, PolicyViolation)]
    assert len(booked) == 3
    assert {e.reason for e in rejected} == {PolicyReason.appointment_limit_reached}
    assert store.count_active_for_user("bob") == 3
    assert store.get_user("bob").points_balance == 2000


def test_inactive_user_cannot_book(appointments, today):
    with pytest.raises(NotFoundError):
        appointments.book("ghost", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", today=today)


def test_lost_slot_race_reallocates(make_appointments, occupy, today):
    store = StaleFirstViewStore()
    store.add_user(User(id="alice", email="alice@example.com", points_balance=2000))
    occupy(store, WEDNESDAY, TIME_SLOTS[0])

    result = make_appointments(store).book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", today=today)
    assert result.appointment.slot == TIME_SLOTS[1]
    assert store.get_user("alice").points_balance == 1000


def test_concurrent_bookings_never_double_book(store, appointments, today):
    users = [f"user{i}" for i in range(10)]
    for user_id in users:
        store.add_user(User(id=user_id, email=f"{user_id}@example.com", points_balance=1000))

    def attempt(user_id):
        try:
            return appointments.book(user_id, ServiceType.basic, WEDNESDAY, "Somewhere", today=today)
        except (PolicyViolation, SlotConflictError) as e:
            return e

    with ThreadPoolExecutor(max_workers=10) as pool:
        outcomes = list(pool.map(attempt, users))

    booked = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(booked) == 4
    assert sorted(b.appointment.slot for b in booked) == sorted(TIME_SLOTS)
    assert sum(store.get_user(u).points_balance for u in users) == 6000
    assert store.occupied_slots(WEDNESDAY) == set(TIME_SLOTS)


def test_failed_debit_removes_appointment(make_appointments, today):
    store = ConcurrentSpendStore()
    store.add_user(User(id="alice", email="alice@example.com", points_balance=2000))

    with pytest.raises(PolicyViolation) as exc:
        make_appointments(store).book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", today=today)
    assert exc.value.reason == PolicyReason.insufficient_points
    assert store.list_user_appointments("alice") == []
    assert store.occupied_slots(WEDNESDAY) == set()


def test_booking_sends_confirmation(appointments, notifier, today):
    appointments.book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", today=today)
    sent = {(to, template) for to, template, _ in notifier.sent}
    assert ("alice@example.com", "appointment_confirmation") in sent
    assert ("bookings@cleancar.com", "new_booking_notification") in sent


def test_cancel_refunds_once(appointments, store, today):
    booked = appointments.book("alice", ServiceType.basic, SATURDAY, "Vesterbrogade 1", today=today)
    assert store.get_user("alice").points_balance == 500

    result = appointments.cancel(booked.appointment.id, "alice")
    assert result.refunded_points == 1500
    assert result.appointment.status == AppointmentStatus.cancelled
    assert store.get_user("alice").points_balance == 2000

    with pytest.raises(AlreadyTerminalError):
        appointments.cancel(booked.appointment.id, "alice")
    assert store.get_user("alice").points_balance == 2000
    assert store.occupied_slots(SATURDAY) == set()


def test_concurrent_cancels_refund_once(appointments, store, today):
    booked = appointments.book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", today=today)

    def attempt(_):
        try:
            appointments.cancel(booked.appointment.id, "alice")
            return True
        except AlreadyTerminalError:
            return False

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(8)))

    assert results.count(True) == 1
    assert store.get_user("alice").points_balance == 2000


def test_cannot_cancel_someone_elses_appointment(appointments, store, today):
    booked = appointments.book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", today=today)
    with pytest.raises(NotFoundError):
        appointments.cancel(booked.appointment.id, "bob")
    assert store.get_appointment(booked.appointment.id).status == AppointmentStatus.confirmed


def test_admin_cancel_records_reason_and_refunds_owner(appointments, store, notifier, today):
    booked = appointments.book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", notes="Gate code 1234", today=today)

    result = appointments.cancel(booked.appointment.id, "admin", reason="Storm warning")
    assert result.appointment.notes == "Gate code 1234\n\nCancelled by admin: Storm warning"
    assert store.get_user("alice").points_balance == 2000
    assert store.get_user("admin").points_balance == 0
    assert ("alice@example.com", "appointment_cancellation") in {(to, t) for to, t, _ in notifier.sent}


def test_refund_failure_reverts_cancellation(make_appointments, today):
    store = FailingRefundStore()
    store.add_user(User(id="alice", email="alice@example.com", points_balance=2000))
    use_case = make_appointments(store)
    booked = use_case.book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", today=today)

    store.fail_credits = True
    with pytest.raises(RuntimeError):
        use_case.cancel(booked.appointment.id, "alice")

    restored = store.get_appointment(booked.appointment.id)
    assert restored.status == AppointmentStatus.confirmed
    assert restored.notes is None
    assert store.get_user("alice").points_balance == 1000


def test_refund_failure_restores_notes_after_admin_cancel(make_appointments, today):
    store = FailingRefundStore()
    store.add_user(User(id="alice", email="alice@example.com", points_balance=2000))
    store.add_user(User(id="admin", email="admin@example.com", role=Role.admin))
    use_case = make_appointments(store)
    booked = use_case.book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", notes="Gate code 1234", today=today)

    store.fail_credits = True
    with pytest.raises(RuntimeError):
        use_case.cancel(booked.appointment.id, "admin", reason="Storm warning")

    restored = store.get_appointment(booked.appointment.id)
    assert restored.status == AppointmentStatus.confirmed
    assert restored.notes == "Gate code 1234"


def test_status_lifecycle(appointments, today):
    booked = appointments.book("alice", ServiceType.basic, WEDNESDAY, "Vesterbrogade 1", today=today)
    appointment_id = booked.appointment.id

    with pytest.raises(PolicyViolation) as exc:
        appointments.update_status(appointment_id, AppointmentStatus.pending)
    assert exc.value.reason == PolicyReason.invalid_transition

    assert appointments.update_status(appointment_id, "in_progress").status == AppointmentStatus.in_progress
    assert appointments.update_status(appointment_id, "completed").status == AppointmentStatus.completed

    with pytest.raises(AlreadyTerminalError):
        appointments.update_status(appointment_id, AppointmentStatus.in_progress)
    with pytest.raises(AlreadyTerminalError):
        appointments.cancel(appointment_id, "alice")


def test_quote_and_availability(appointments, store, occupy):
    occupy(store, SATURDAY, TIME_SLOTS[0])
    quote = appointments.quote("basic", SATURDAY)
    assert quote.breakdown.final_price == 1500
    assert quote.slot.slot == TIME_SLOTS[1]
    assert [s.slot for s in appointments.available_slots(SATURDAY)] == list(TIME_SLOTS[1:])

    assert appointments.quote(ServiceType.deluxe, CHRISTMAS_EVE).breakdown.final_price == 2800


def test_list_for_user_is_ordered(appointments, today):
    appointments.book("bob", ServiceType.basic, SATURDAY, "Nørrebrogade 5", today=today)
    appointments.book("bob", ServiceType.basic, WEDNESDAY, "Nørrebrogade 5", today=today)
    assert [a.date for a in appointments.list_for_user("bob")] == [WEDNESDAY, SATURDAY]
