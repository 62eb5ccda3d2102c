from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any

from cleancar.application.ports.appointment_repository import UNCHANGED, Unchanged
from cleancar.domain.entities.appointment import Appointment, AppointmentStatus, ServiceType
from cleancar.domain.entities.pack import Pack, ServiceCredit
from cleancar.domain.entities.purchase import Purchase, PurchaseStatus
from cleancar.domain.entities.user import Role, User
from cleancar.infrastructure.store.memory_store import MemoryDocumentStore

STORE_VERSION = 1


def _always(result: Any) -> bool:
    return True


def _not_none(result: Any) -> bool:
    return result is not None


class JsonDocumentStore(MemoryDocumentStore):
    """
    MemoryDocumentStore persisted to a single JSON file.

    Every successful mutation rewrites the file atomically (temp file + rename)
    while still holding the store lock, so the file never reflects a partial
    unit of work of a single call. A failed write restores the previous state.
    """

    def __init__(self, data_dir: str = "./data/store", filename: str = "store.json") -> None:
        super().__init__()
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._data_dir / filename
        self._logger = logging.getLogger(__name__)
        self._load()

    def _load(self) -> None:
        if not self._file_path.exists():
            return
        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            self._logger.error("Store file unreadable, starting empty", extra={"reason": str(e)})
            return

        self._users = {u["id"]: _deserialize_user(u) for u in data.get("users", [])}
        self._appointments = {a["id"]: _deserialize_appointment(a) for a in data.get("appointments", [])}
        self._packs = {p["id"]: _deserialize_pack(p) for p in data.get("packs", [])}
        self._purchases = {
            p["external_reference"]: _deserialize_purchase(p) for p in data.get("purchases", [])
        }

    def _save(self) -> None:
        data = {
            "version": STORE_VERSION,
            "users": [_serialize_user(u) for u in self._users.values()],
            "appointments": [_serialize_appointment(a) for a in self._appointments.values()],
            "packs": [_serialize_pack(p) for p in self._packs.values()],
            "purchases": [_serialize_purchase(p) for p in self._purchases.values()],
        }
        temp_path = self._file_path.with_suffix(".json.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_path.replace(self._file_path)
        except Exception:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def _commit(self, mutation: Callable[..., Any], *args: Any, changed: Callable[[Any], bool] = _always) -> Any:
        """
        Run `mutation` and persist the result under the store lock.

        If the file cannot be written the in-memory state is rolled back to the
        snapshot taken before the mutation, so memory never runs ahead of disk.
        """
        with self._lock:
            snapshot = (dict(self._users), dict(self._appointments), dict(self._packs), dict(self._purchases))
            result = mutation(*args)
            if not changed(result):
                return result
            try:
                self._save()
            except Exception:
                self._users, self._appointments, self._packs, self._purchases = snapshot
                self._logger.error("Store write failed, changes rolled back", extra={"path": str(self._file_path)})
                raise
            return result

    def add_user(self, user: User) -> User:
        return self._commit(super().add_user, user)

    def increment_points(self, user_id: str, delta: int, floor: int | None = 0) -> int | None:
        return self._commit(super().increment_points, user_id, delta, floor, changed=_not_none)

    def set_points(self, user_id: str, amount: int) -> int | None:
        return self._commit(super().set_points, user_id, amount, changed=_not_none)

    def insert_appointment(self, appointment: Appointment, max_active_for_user: int | None = None) -> Appointment:
        return self._commit(super().insert_appointment, appointment, max_active_for_user)

    def delete_appointment(self, appointment_id: str) -> bool:
        return self._commit(super().delete_appointment, appointment_id, changed=bool)

    def transition_appointment(
        self,
        appointment_id: str,
        expected: Iterable[AppointmentStatus],
        status: AppointmentStatus,
        notes: str | None | Unchanged = UNCHANGED,
    ) -> Appointment | None:
        return self._commit(
            super().transition_appointment, appointment_id, expected, status, notes, changed=_not_none
        )

    def add_pack(self, pack: Pack) -> Pack:
        return self._commit(super().add_pack, pack)

    def insert_purchase(self, purchase: Purchase) -> Purchase:
        return self._commit(super().insert_purchase, purchase)

    def transition_purchase(
        self,
        external_reference: str,
        expected: Iterable[PurchaseStatus],
        status: PurchaseStatus,
        claimed_before: datetime | None = None,
        claimed_at: datetime | None = None,
        changes: dict[str, Any] | None = None,
    ) -> Purchase | None:
        return self._commit(
            super().transition_purchase,
            external_reference,
            expected,
            status,
            claimed_before,
            claimed_at,
            changes,
            changed=_not_none,
        )

    def settle_purchase(
        self,
        external_reference: str,
        claimed_at: datetime,
        points: int,
        changes: dict[str, Any] | None = None,
    ) -> Purchase | None:
        return self._commit(
            super().settle_purchase, external_reference, claimed_at, points, changes, changed=_not_none
        )


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _serialize_credits(credits: tuple[ServiceCredit, ...]) -> list[dict[str, Any]]:
    return [{"service_type": c.service_type.value, "quantity": c.quantity} for c in credits]


def _deserialize_credits(data: list[dict[str, Any]] | None) -> tuple[ServiceCredit, ...]:
    return tuple(
        ServiceCredit(service_type=ServiceType(c["service_type"]), quantity=int(c["quantity"]))
        for c in data or []
    )


def _serialize_user(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role.value,
        "points_balance": user.points_balance,
        "active": user.active,
    }


def _deserialize_user(data: dict[str, Any]) -> User:
    return User(
        id=data["id"],
        email=data["email"],
        first_name=data.get("first_name", ""),
        last_name=data.get("last_name", ""),
        role=Role(data.get("role", Role.user.value)),
        points_balance=int(data.get("points_balance", 0)),
        active=data.get("active", True),
    )


def _serialize_appointment(appointment: Appointment) -> dict[str, Any]:
    return {
        "id": appointment.id,
        "user_id": appointment.user_id,
        "service_type": appointment.service_type.value,
        "date": appointment.date.isoformat(),
        "slot": appointment.slot,
        "start_time": _iso(appointment.start_time),
        "end_time": _iso(appointment.end_time),
        "location": appointment.location,
        "status": appointment.status.value,
        "price": appointment.price,
        "notes": appointment.notes,
        "created_at": _iso(appointment.created_at),
        "updated_at": _iso(appointment.updated_at),
    }


def _deserialize_appointment(data: dict[str, Any]) -> Appointment:
    return Appointment(
        id=data["id"],
        user_id=data["user_id"],
        service_type=ServiceType(data["service_type"]),
        date=date.fromisoformat(data["date"]),
        slot=data["slot"],
        start_time=datetime.fromisoformat(data["start_time"]),
        end_time=datetime.fromisoformat(data["end_time"]),
        location=data["location"],
        status=AppointmentStatus(data["status"]),
        price=int(data["price"]),
        notes=data.get("notes"),
        created_at=_parse_datetime(data.get("created_at")),
        updated_at=_parse_datetime(data.get("updated_at")),
    )


def _serialize_pack(pack: Pack) -> dict[str, Any]:
    return {
        "id": pack.id,
        "name": pack.name,
        "description": pack.description,
        "price": pack.price,
        "points_included": pack.points_included,
        "bonus_points": pack.bonus_points,
        "free_services": _serialize_credits(pack.free_services),
        "active": pack.active,
    }


def _deserialize_pack(data: dict[str, Any]) -> Pack:
    return Pack(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        price=int(data["price"]),
        points_included=int(data["points_included"]),
        bonus_points=int(data.get("bonus_points", 0)),
        free_services=_deserialize_credits(data.get("free_services")),
        active=data.get("active", True),
    )


def _serialize_purchase(purchase: Purchase) -> dict[str, Any]:
    return {
        "id": purchase.id,
        "user_id": purchase.user_id,
        "pack_id": purchase.pack_id,
        "external_reference": purchase.external_reference,
        "amount": purchase.amount,
        "currency": purchase.currency,
        "status": purchase.status.value,
        "client_secret": purchase.client_secret,
        "points_awarded": purchase.points_awarded,
        "bonus_points_awarded": purchase.bonus_points_awarded,
        "service_credits_awarded": _serialize_credits(purchase.service_credits_awarded),
        "failure_reason": purchase.failure_reason,
        "claimed_at": _iso(purchase.claimed_at),
        "created_at": _iso(purchase.created_at),
        "updated_at": _iso(purchase.updated_at),
    }


def _deserialize_purchase(data: dict[str, Any]) -> Purchase:
    return Purchase(
        id=data["id"],
        user_id=data["user_id"],
        pack_id=data["pack_id"],
        external_reference=data["external_reference"],
        amount=int(data["amount"]),
        currency=data.get("currency", "dkk"),
        status=PurchaseStatus(data.get("status", PurchaseStatus.pending.value)),
        client_secret=data.get("client_secret"),
        points_awarded=int(data.get("points_awarded", 0)),
        bonus_points_awarded=int(data.get("bonus_points_awarded", 0)),
        service_credits_awarded=_deserialize_credits(data.get("service_credits_awarded")),
        failure_reason=data.get("failure_reason"),
        claimed_at=_parse_datetime(data.get("claimed_at")),
        created_at=_parse_datetime(data.get("created_at")),
        updated_at=_parse_datetime(data.get("updated_at")),
    )
