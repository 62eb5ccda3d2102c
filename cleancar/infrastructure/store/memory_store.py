from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any

from cleancar.application.exceptions import (
    ActiveAppointmentLimitError,
    DuplicateReferenceError,
    InsufficientBalanceError,
    NotFoundError,
    SlotConflictError,
)
from cleancar.application.ports.appointment_repository import UNCHANGED, AppointmentRepositoryPort, Unchanged
from cleancar.application.ports.pack_repository import PackRepositoryPort
from cleancar.application.ports.purchase_repository import PurchaseRepositoryPort
from cleancar.application.ports.user_repository import UserRepositoryPort
from cleancar.application.utils.calendar import TIME_SLOTS
from cleancar.domain.entities.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus
from cleancar.domain.entities.pack import Pack
from cleancar.domain.entities.purchase import Purchase, PurchaseStatus
from cleancar.domain.entities.user import User


class MemoryDocumentStore(
    UserRepositoryPort,
    AppointmentRepositoryPort,
    PackRepositoryPort,
    PurchaseRepositoryPort,
):
    """
    Thread-safe in-process document store.

    Every mutation runs under one lock, so increments and compare-and-set
    transitions are atomic with respect to each other, and the partial unique
    index on active (date, slot) pairs is checked in the same critical section
    as the write.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: dict[str, User] = {}
        self._appointments: dict[str, Appointment] = {}
        self._packs: dict[str, Pack] = {}
        self._purchases: dict[str, Purchase] = {}  # keyed by external reference

    # users

    def get_user(self, user_id: str) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def add_user(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = user
            return user

    def increment_points(self, user_id: str, delta: int, floor: int | None = 0) -> int | None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            new_balance = user.points_balance + delta
            if floor is not None and new_balance < floor:
                raise InsufficientBalanceError(user_id, user.points_balance, -delta)
            self._users[user_id] = replace(user, points_balance=new_balance)
            return new_balance

    def set_points(self, user_id: str, amount: int) -> int | None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            self._users[user_id] = replace(user, points_balance=amount)
            return amount

    # appointments

    def get_appointment(self, appointment_id: str) -> Appointment | None:
        with self._lock:
            return self._appointments.get(appointment_id)

    def list_user_appointments(self, user_id: str) -> list[Appointment]:
        with self._lock:
            items = [a for a in self._appointments.values() if a.user_id == user_id]
        return sorted(items, key=lambda a: (a.date, _slot_order(a.slot)))

    def count_active_for_user(self, user_id: str) -> int:
        with self._lock:
            return sum(1 for a in self._appointments.values() if a.user_id == user_id and a.is_active)

    def occupied_slots(self, day: date) -> set[str]:
        with self._lock:
            return {a.slot for a in self._appointments.values() if a.date == day and a.is_active}

    def active_counts_by_date(self, start: date, end: date) -> dict[date, int]:
        counts: dict[date, int] = {}
        with self._lock:
            for a in self._appointments.values():
                if a.is_active and start <= a.date <= end:
                    counts[a.date] = counts.get(a.date, 0) + 1
        return counts

    def insert_appointment(self, appointment: Appointment, max_active_for_user: int | None = None) -> Appointment:
        with self._lock:
            if appointment.is_active:
                self._check_slot_free(appointment.date, appointment.slot, ignore_id=appointment.id)
                if max_active_for_user is not None:
                    active = sum(
                        1
                        for a in self._appointments.values()
                        if a.user_id == appointment.user_id and a.is_active and a.id != appointment.id
                    )
                    if active >= max_active_for_user:
                        raise ActiveAppointmentLimitError(appointment.user_id, max_active_for_user)
            now = _now()
            stored = replace(appointment, created_at=appointment.created_at or now, updated_at=now)
            self._appointments[stored.id] = stored
            return stored

    def delete_appointment(self, appointment_id: str) -> bool:
        with self._lock:
            return self._appointments.pop(appointment_id, None) is not None

    def transition_appointment(
        self,
        appointment_id: str,
        expected: Iterable[AppointmentStatus],
        status: AppointmentStatus,
        notes: str | None | Unchanged = UNCHANGED,
    ) -> Appointment | None:
        expected_set = set(expected)
        with self._lock:
            current = self._appointments.get(appointment_id)
            if current is None or current.status not in expected_set:
                return None
            if status in ACTIVE_STATUSES and not current.is_active:
                self._check_slot_free(current.date, current.slot, ignore_id=current.id)
            updated = replace(
                current,
                status=status,
                notes=current.notes if notes is UNCHANGED else notes,
                updated_at=_now(),
            )
            self._appointments[appointment_id] = updated
            return updated

    def _check_slot_free(self, day: date, slot: str, ignore_id: str) -> None:
        for other in self._appointments.values():
            if other.id != ignore_id and other.is_active and other.date == day and other.slot == slot:
                raise SlotConflictError(day, slot)

    # packs

    def get_pack(self, pack_id: str) -> Pack | None:
        with self._lock:
            return self._packs.get(pack_id)

    def list_active_packs(self) -> list[Pack]:
        with self._lock:
            packs = [p for p in self._packs.values() if p.active]
        return sorted(packs, key=lambda p: p.price)

    def add_pack(self, pack: Pack) -> Pack:
        with self._lock:
            self._packs[pack.id] = pack
            return pack

    # purchases

    def insert_purchase(self, purchase: Purchase) -> Purchase:
        with self._lock:
            if purchase.external_reference in self._purchases:
                raise DuplicateReferenceError(purchase.external_reference)
            now = _now()
            stored = replace(purchase, created_at=purchase.created_at or now, updated_at=now)
            self._purchases[stored.external_reference] = stored
            return stored

    def get_by_reference(self, external_reference: str) -> Purchase | None:
        with self._lock:
            return self._purchases.get(external_reference)

    def list_user_purchases(self, user_id: str) -> list[Purchase]:
        with self._lock:
            items = [p for p in self._purchases.values() if p.user_id == user_id]
        return sorted(items, key=lambda p: p.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)

    def transition_purchase(
        self,
        external_reference: str,
        expected: Iterable[PurchaseStatus],
        status: PurchaseStatus,
        claimed_before: datetime | None = None,
        claimed_at: datetime | None = None,
        changes: dict[str, Any] | None = None,
    ) -> Purchase | None:
        expected_set = set(expected)
        with self._lock:
            current = self._purchases.get(external_reference)
            if current is None:
                return None

            allowed = current.status in expected_set
            stale_claim = (
                current.status == PurchaseStatus.processing
                and claimed_before is not None
                and current.claimed_at is not None
                and current.claimed_at < claimed_before
            )
            if not (allowed or stale_claim):
                return None
            if (
                claimed_at is not None
                and current.status == PurchaseStatus.processing
                and current.claimed_at != claimed_at
            ):
                return None

            updated = replace(current, status=status, updated_at=_now(), **dict(changes or {}))
            self._purchases[external_reference] = updated
            return updated

    def settle_purchase(
        self,
        external_reference: str,
        claimed_at: datetime,
        points: int,
        changes: dict[str, Any] | None = None,
    ) -> Purchase | None:
        with self._lock:
            current = self._purchases.get(external_reference)
            if (
                current is None
                or current.status != PurchaseStatus.processing
                or current.claimed_at != claimed_at
            ):
                return None
            user = self._users.get(current.user_id)
            if user is None:
                raise NotFoundError("user", current.user_id)

            self._users[user.id] = replace(user, points_balance=user.points_balance + points)
            updated = replace(
                current,
                status=PurchaseStatus.succeeded,
                claimed_at=None,
                updated_at=_now(),
                **dict(changes or {}),
            )
            self._purchases[external_reference] = updated
            return updated


def _slot_order(slot: str) -> int:
    try:
        return TIME_SLOTS.index(slot)
    except ValueError:
        return len(TIME_SLOTS)


def _now() -> datetime:
    return datetime.now(timezone.utc)
