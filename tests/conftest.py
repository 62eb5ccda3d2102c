from __future__ import annotations

import uuid
from datetime import date
from zoneinfo import ZoneInfo

import pytest

from cleancar.application.use_cases.appointments import AppointmentUseCase
from cleancar.application.use_cases.booking_window import BookingWindowPolicy
from cleancar.application.use_cases.notify import NotifyUseCase
from cleancar.application.use_cases.points_ledger import PointsLedger
from cleancar.application.use_cases.purchases import PurchaseUseCase
from cleancar.application.use_cases.slot_allocation import SlotAllocator
from cleancar.application.utils.calendar import slot_times
from cleancar.domain.entities.appointment import Appointment, AppointmentStatus, ServiceType
from cleancar.domain.entities.pack import Pack, ServiceCredit
from cleancar.domain.entities.user import Role, User
from cleancar.infrastructure.notifications.mock_notifier import MockNotifier
from cleancar.infrastructure.payments.mock_processor import MockPaymentProcessor
from cleancar.infrastructure.store.memory_store import MemoryDocumentStore

TZ = ZoneInfo("Europe/Copenhagen")
WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
def today() -> date:
    return date(2025, 6, 2)  # a Monday


@pytest.fixture
def store() -> MemoryDocumentStore:
    store = MemoryDocumentStore()
    store.add_user(User(id="alice", email="alice@example.com", first_name="Alice", points_balance=2000))
    store.add_user(User(id="bob", email="bob@example.com", first_name="Bob", points_balance=5000))
    store.add_user(User(id="admin", email="admin@example.com", first_name="Ada", role=Role.admin))
    store.add_user(User(id="ghost", email="ghost@example.com", points_balance=5000, active=False))
    store.add_pack(Pack(id="basic", name="Basic Pack", description="1000 points", price=1000, points_included=1000))
    store.add_pack(
        Pack(
            id="standard",
            name="Standard Pack",
            description="2800 points + 500 bonus",
            price=2800,
            points_included=2800,
            bonus_points=500,
        )
    )
    store.add_pack(
        Pack(
            id="premium",
            name="Premium Pack",
            description="5600 points + 1 free basic wash",
            price=5600,
            points_included=5600,
            free_services=(ServiceCredit(ServiceType.basic, 1),),
        )
    )
    store.add_pack(Pack(id="retired", name="Retired", description="", price=10, points_included=10, active=False))
    return store


@pytest.fixture
def notifier() -> MockNotifier:
    return MockNotifier()


@pytest.fixture
def notify(notifier) -> NotifyUseCase:
    return NotifyUseCase(notifier=notifier, company_email="bookings@cleancar.com", enabled=True)


@pytest.fixture
def processor() -> MockPaymentProcessor:
    return MockPaymentProcessor(webhook_secret=WEBHOOK_SECRET, env="production")


def build_appointment_use_case(store, notify) -> AppointmentUseCase:
    return AppointmentUseCase(
        users=store,
        appointments=store,
        ledger=PointsLedger(users=store, notifier=notify),
        allocator=SlotAllocator(appointments=store, timezone=TZ),
        window_policy=BookingWindowPolicy(appointments=store),
        notifier=notify,
        timezone=TZ,
    )


def build_purchase_use_case(store, processor, notify, **kwargs) -> PurchaseUseCase:
    kwargs.setdefault("retry_backoff_seconds", 0)
    return PurchaseUseCase(
        users=store,
        packs=store,
        purchases=store,
        processor=processor,
        notifier=notify,
        **kwargs,
    )


@pytest.fixture
def appointments(store, notify) -> AppointmentUseCase:
    return build_appointment_use_case(store, notify)


@pytest.fixture
def purchases(store, processor, notify) -> PurchaseUseCase:
    return build_purchase_use_case(store, processor, notify)


@pytest.fixture
def occupy():
    """Insert an active appointment straight into a store, bypassing booking rules."""

    def _occupy(store, day: date, slot: str, user_id: str = "filler",
                status: AppointmentStatus = AppointmentStatus.confirmed) -> Appointment:
        start, end = slot_times(day, slot, TZ)
        return store.insert_appointment(
            Appointment(
                id=uuid.uuid4().hex,
                user_id=user_id,
                service_type=ServiceType.basic,
                date=day,
                slot=slot,
                start_time=start,
                end_time=end,
                location="Somewhere 1",
                status=status,
                price=1000,
            )
        )

    return _occupy


@pytest.fixture
def make_appointments(notify):
    return lambda store: build_appointment_use_case(store, notify)


@pytest.fixture
def make_purchases(processor, notify):
    return lambda store, **kwargs: build_purchase_use_case(store, processor, notify, **kwargs)
