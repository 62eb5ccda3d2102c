from functools import lru_cache
import logging
from zoneinfo import ZoneInfo

from cleancar.core.config import settings
from cleancar.application.ports.notifications import NotificationPort
from cleancar.application.ports.payments import PaymentProcessorPort
from cleancar.application.use_cases.appointments import AppointmentUseCase
from cleancar.application.use_cases.booking_window import BookingWindowPolicy
from cleancar.application.use_cases.notify import NotifyUseCase
from cleancar.application.use_cases.points_ledger import PointsLedger
from cleancar.application.use_cases.purchases import PurchaseUseCase
from cleancar.application.use_cases.slot_allocation import SlotAllocator
from cleancar.infrastructure.notifications.email_client import EmailClient
from cleancar.infrastructure.notifications.email_notifier import EmailNotifier
from cleancar.infrastructure.notifications.mock_notifier import MockNotifier
from cleancar.infrastructure.payments.mock_processor import MockPaymentProcessor
from cleancar.infrastructure.payments.stripe_processor import StripePaymentProcessor
from cleancar.infrastructure.store.json_store import JsonDocumentStore
from cleancar.infrastructure.store.memory_store import MemoryDocumentStore


_store: MemoryDocumentStore | JsonDocumentStore | None = None
logger = logging.getLogger(__name__)


def get_store() -> MemoryDocumentStore | JsonDocumentStore:
    global _store
    if _store is None:
        if settings.STORE_PROVIDER.lower() == "json":
            _store = JsonDocumentStore(data_dir=settings.STORE_DATA_DIR)
        else:
            _store = MemoryDocumentStore()
        logger.info("Using %s", type(_store).__name__)
    return _store


@lru_cache
def get_timezone() -> ZoneInfo:
    return ZoneInfo(settings.BUSINESS_TIMEZONE)


@lru_cache
def get_payment_processor() -> PaymentProcessorPort:
    if settings.STRIPE_SECRET_KEY:
        logger.info("Using StripePaymentProcessor (ENV=%s)", settings.ENV)
        return StripePaymentProcessor()
    if settings.ENV.lower() not in {"dev", "local"}:
        logger.warning("STRIPE_SECRET_KEY not set, payments are simulated (ENV=%s)", settings.ENV)
    else:
        logger.info("Using MockPaymentProcessor (ENV=%s)", settings.ENV)
    return MockPaymentProcessor(webhook_secret=settings.MOCK_PAYMENTS_WEBHOOK_SECRET, env=settings.ENV)


@lru_cache
def get_notifier() -> NotificationPort:
    if not settings.EMAIL_API_KEY:
        return MockNotifier()
    client = EmailClient(
        api_key=settings.EMAIL_API_KEY,
        send_endpoint=settings.EMAIL_API_URL,
        sender=settings.EMAIL_FROM,
    )
    return EmailNotifier(client=client, business_name=settings.BUSINESS_NAME)


def get_notify_use_case() -> NotifyUseCase:
    return NotifyUseCase(
        notifier=get_notifier(),
        company_email=settings.COMPANY_EMAIL,
        enabled=settings.NOTIFICATIONS_ENABLED,
    )


def get_points_ledger() -> PointsLedger:
    return PointsLedger(users=get_store(), notifier=get_notify_use_case())


def get_appointment_use_case() -> AppointmentUseCase:
    store = get_store()
    return AppointmentUseCase(
        users=store,
        appointments=store,
        ledger=get_points_ledger(),
        allocator=SlotAllocator(appointments=store, timezone=get_timezone()),
        window_policy=BookingWindowPolicy(
            appointments=store,
            window_months=settings.BOOKING_WINDOW_MONTHS,
            extended_window_months=settings.EXTENDED_BOOKING_WINDOW_MONTHS,
        ),
        notifier=get_notify_use_case(),
        timezone=get_timezone(),
        max_active_appointments=settings.MAX_ACTIVE_APPOINTMENTS,
    )


def get_purchase_use_case() -> PurchaseUseCase:
    store = get_store()
    return PurchaseUseCase(
        users=store,
        packs=store,
        purchases=store,
        processor=get_payment_processor(),
        notifier=get_notify_use_case(),
        currency=settings.PAYMENT_CURRENCY,
        retry_attempts=settings.PAYMENT_RETRY_ATTEMPTS,
        retry_backoff_seconds=settings.PAYMENT_RETRY_BACKOFF_SECONDS,
        claim_ttl_seconds=settings.PURCHASE_CLAIM_TTL_SECONDS,
    )
