"""
Tests for the JSON-file document store.
"""

from __future__ import annotations

import json
import tempfile
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from cleancar.application.exceptions import ActiveAppointmentLimitError, DuplicateReferenceError, SlotConflictError
from cleancar.domain.entities.appointment import AppointmentStatus, ServiceType
from cleancar.domain.entities.pack import Pack, ServiceCredit
from cleancar.domain.entities.purchase import Purchase, PurchaseStatus
from cleancar.domain.entities.user import Role, User
from cleancar.infrastructure.store.json_store import JsonDocumentStore

DAY = date(2025, 6, 4)


def test_json_store_persistence(occupy):
    """State written by one store instance is visible to the next."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonDocumentStore(data_dir=tmpdir)
        store.add_user(User(id="alice", email="alice@example.com", first_name="Alice", points_balance=2000))
        store.add_user(User(id="admin", email="admin@example.com", role=Role.admin))
        store.add_pack(
            Pack(
                id="premium",
                name="Premium Pack",
                description="",
                price=5600,
                points_included=5600,
                free_services=(ServiceCredit(ServiceType.basic, 1),),
            )
        )
        appointment = occupy(store, DAY, "16:00-18:00", user_id="alice")
        store.increment_points("alice", -1000)

        reloaded = JsonDocumentStore(data_dir=tmpdir)

        assert reloaded.get_user("alice").points_balance == 1000
        assert reloaded.get_user("admin").is_admin
        assert reloaded.get_pack("premium").free_services == (ServiceCredit(ServiceType.basic, 1),)
        restored = reloaded.get_appointment(appointment.id)
        assert restored == appointment
        assert reloaded.occupied_slots(DAY) == {"16:00-18:00"}


def test_purchase_claim_survives_restart():
    """A processing claim and its timestamp are persisted, not dropped."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonDocumentStore(data_dir=tmpdir)
        store.insert_purchase(
            Purchase(id="p1", user_id="alice", pack_id="basic", external_reference="pi_1", amount=100000, currency="dkk")
        )
        claimed_at = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)
        store.transition_purchase("pi_1", [PurchaseStatus.pending], PurchaseStatus.processing, changes={"claimed_at": claimed_at})

        reloaded = JsonDocumentStore(data_dir=tmpdir)
        purchase = reloaded.get_by_reference("pi_1")
        assert purchase.status == PurchaseStatus.processing
        assert purchase.claimed_at == claimed_at


def test_unique_constraints_hold_after_reload(occupy):
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonDocumentStore(data_dir=tmpdir)
        occupy(store, DAY, "14:00-16:00")
        store.insert_purchase(
            Purchase(id="p1", user_id="alice", pack_id="basic", external_reference="pi_1", amount=100000, currency="dkk")
        )

        reloaded = JsonDocumentStore(data_dir=tmpdir)
        with pytest.raises(SlotConflictError):
            occupy(reloaded, DAY, "14:00-16:00")
        with pytest.raises(DuplicateReferenceError):
            reloaded.insert_purchase(
                Purchase(id="p2", user_id="bob", pack_id="basic", external_reference="pi_1", amount=100000, currency="dkk")
            )

        # a cancelled appointment frees its slot
        occupy(reloaded, DAY, "16:00-18:00", status=AppointmentStatus.cancelled)
        occupy(reloaded, DAY, "16:00-18:00")


def test_file_is_valid_json():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonDocumentStore(data_dir=tmpdir)
        store.add_user(User(id="alice", email="alice@example.com"))

        data = json.loads((Path(tmpdir) / "store.json").read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["users"][0]["id"] == "alice"
        assert not (Path(tmpdir) / "store.json.tmp").exists()


def test_corrupt_file_starts_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "store.json").write_text("{not json", encoding="utf-8")
        store = JsonDocumentStore(data_dir=tmpdir)
        assert store.get_user("alice") is None


def test_failed_write_rolls_back_memory(occupy, monkeypatch):
    """Memory never runs ahead of the file when a write fails."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonDocumentStore(data_dir=tmpdir)
        store.add_user(User(id="alice", email="alice@example.com", points_balance=2000))

        def disk_full():
            raise OSError("No space left on device")

        monkeypatch.setattr(store, "_save", disk_full)
        with pytest.raises(OSError):
            store.increment_points("alice", -1000)
        assert store.get_user("alice").points_balance == 2000

        with pytest.raises(OSError):
            occupy(store, DAY, "14:00-16:00", user_id="alice")
        assert store.occupied_slots(DAY) == set()

        monkeypatch.undo()
        assert JsonDocumentStore(data_dir=tmpdir).get_user("alice").points_balance == 2000
        assert store.increment_points("alice", -500) == 1500


def test_settle_purchase_requires_current_claim():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonDocumentStore(data_dir=tmpdir)
        store.add_user(User(id="alice", email="alice@example.com", points_balance=2000))
        store.insert_purchase(
            Purchase(id="p1", user_id="alice", pack_id="basic", external_reference="pi_1", amount=100000, currency="dkk")
        )
        first = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)
        second = first + timedelta(minutes=10)
        store.transition_purchase("pi_1", [PurchaseStatus.pending], PurchaseStatus.processing, changes={"claimed_at": first})
        store.transition_purchase(
            "pi_1", [], PurchaseStatus.processing, claimed_before=second - timedelta(minutes=2), changes={"claimed_at": second}
        )

        assert store.settle_purchase("pi_1", first, 1000) is None
        assert store.get_user("alice").points_balance == 2000

        settled = store.settle_purchase("pi_1", second, 1000, changes={"points_awarded": 1000})
        assert settled.status == PurchaseStatus.succeeded
        assert settled.claimed_at is None
        assert store.settle_purchase("pi_1", second, 1000) is None

        reloaded = JsonDocumentStore(data_dir=tmpdir)
        assert reloaded.get_user("alice").points_balance == 3000
        assert reloaded.get_by_reference("pi_1").points_awarded == 1000


def test_active_cap_is_enforced_on_insert(occupy):
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonDocumentStore(data_dir=tmpdir)
        first = occupy(store, DAY, "14:00-16:00", user_id="alice")
        extra = replace(first, id="second", slot="18:00-20:00")

        with pytest.raises(ActiveAppointmentLimitError):
            store.insert_appointment(extra, max_active_for_user=1)
        assert store.get_appointment("second") is None

        store.insert_appointment(extra, max_active_for_user=2)
        assert store.count_active_for_user("alice") == 2
