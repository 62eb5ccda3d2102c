from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TypeVar

from cleancar.application.exceptions import (
    CleanCarError,
    ExternalDependencyError,
    NotFoundError,
    PurchaseInProgressError,
)
from cleancar.application.ports.pack_repository import PackRepositoryPort
from cleancar.application.ports.payments import IntentStatus, PaymentEvent, PaymentProcessorPort
from cleancar.application.ports.purchase_repository import PurchaseRepositoryPort
from cleancar.application.ports.user_repository import UserRepositoryPort
from cleancar.application.use_cases.notify import NotifyUseCase
from cleancar.application.utils.pricing import pack_total_value
from cleancar.domain.entities.pack import Pack
from cleancar.domain.entities.purchase import CLAIMABLE_STATUSES, Purchase, PurchaseStatus

T = TypeVar("T")

# Webhook events that are settled by reconciling against the provider.
RECONCILE_EVENTS = frozenset(
    {"payment_intent.succeeded", "payment_intent.payment_failed", "payment_intent.canceled"}
)


@dataclass(frozen=True)
class PackOffer:
    pack: Pack
    total_points: int
    total_value: int
    savings: int


@dataclass(frozen=True)
class PurchaseInitiation:
    external_id: str
    client_secret: str | None
    purchase: Purchase
    pack: Pack


@dataclass(frozen=True)
class ReconcileResult:
    purchase: Purchase
    points_awarded: int
    already_processed: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PurchaseUseCase:
    def __init__(
        self,
        users: UserRepositoryPort,
        packs: PackRepositoryPort,
        purchases: PurchaseRepositoryPort,
        processor: PaymentProcessorPort,
        notifier: NotifyUseCase,
        currency: str = "dkk",
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 1.0,
        claim_ttl_seconds: int = 120,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._users = users
        self._packs = packs
        self._purchases = purchases
        self._processor = processor
        self._notifier = notifier
        self._currency = currency
        self._retry_attempts = max(1, retry_attempts)
        self._retry_backoff_seconds = retry_backoff_seconds
        self._claim_ttl = timedelta(seconds=claim_ttl_seconds)
        # A claimant still sleeping between provider retries must not outlive its claim.
        total_backoff = retry_backoff_seconds * self._retry_attempts * (self._retry_attempts - 1) / 2
        if total_backoff >= claim_ttl_seconds:
            raise ValueError(
                f"Payment retry backoff ({total_backoff}s) must stay below the purchase claim TTL ({claim_ttl_seconds}s)"
            )
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    def list_offers(self) -> list[PackOffer]:
        offers: list[PackOffer] = []
        for pack in self._packs.list_active_packs():
            total_value = pack_total_value(pack)
            offers.append(
                PackOffer(
                    pack=pack,
                    total_points=pack.total_points,
                    total_value=total_value,
                    savings=total_value - pack.price,
                )
            )
        return offers

    def list_history(self, user_id: str) -> list[Purchase]:
        """Succeeded purchases that awarded points, newest first."""
        return [
            p
            for p in self._purchases.list_user_purchases(user_id)
            if p.status == PurchaseStatus.succeeded and p.total_points_awarded > 0
        ]

    def initiate(self, user_id: str, pack_id: str) -> PurchaseInitiation:
        user = self._users.get_user(user_id)
        if user is None or not user.active:
            raise NotFoundError("user", user_id)
        pack = self._packs.get_pack(pack_id)
        if pack is None or not pack.active:
            raise NotFoundError("pack", pack_id)

        amount = pack.price * 100
        intent = self._processor.create_intent(
            amount=amount,
            currency=self._currency,
            metadata={
                "user_id": user_id,
                "pack_id": pack.id,
                "pack_name": pack.name,
                "points_included": str(pack.points_included),
                "bonus_points": str(pack.bonus_points),
            },
            description=f"{pack.name} - {pack.total_points} points",
        )

        purchase = self._purchases.insert_purchase(
            Purchase(
                id=uuid.uuid4().hex,
                user_id=user_id,
                pack_id=pack.id,
                external_reference=intent.external_id,
                amount=amount,
                currency=self._currency,
                status=PurchaseStatus.pending,
                client_secret=intent.client_secret,
            )
        )
        self._logger.info(
            "Purchase initiated",
            extra={"user_id": user_id, "external_id": intent.external_id, "points": pack.total_points},
        )
        return PurchaseInitiation(
            external_id=intent.external_id,
            client_secret=intent.client_secret,
            purchase=purchase,
            pack=pack,
        )

    def reconcile(self, external_reference: str, requestor_id: str | None = None) -> ReconcileResult:
        """
        Turn the provider's authoritative payment status into a points credit, at most once.

        The row is first claimed by moving it to `processing`; only the claimant
        queries the provider and credits. Webhooks and client confirmations both
        end up here.
        """
        purchase = self._purchases.get_by_reference(external_reference)
        if purchase is None or (requestor_id is not None and purchase.user_id != requestor_id):
            raise NotFoundError("purchase", external_reference)
        if purchase.status == PurchaseStatus.succeeded:
            return ReconcileResult(purchase, purchase.total_points_awarded, already_processed=True)

        claim_time = self._clock()
        claimed = self._purchases.transition_purchase(
            external_reference,
            CLAIMABLE_STATUSES,
            PurchaseStatus.processing,
            claimed_before=claim_time - self._claim_ttl,
            changes={"claimed_at": claim_time},
        )
        if claimed is None:
            current = self._purchases.get_by_reference(external_reference)
            if current is not None and current.status == PurchaseStatus.succeeded:
                return ReconcileResult(current, current.total_points_awarded, already_processed=True)
            raise PurchaseInProgressError(external_reference, current.status.value if current else None)

        release_to = purchase.status if purchase.status in CLAIMABLE_STATUSES else PurchaseStatus.pending
        try:
            intent = self._with_retry(self._processor.get_intent_status, external_reference)
        except ExternalDependencyError:
            self._purchases.transition_purchase(
                external_reference,
                [PurchaseStatus.processing],
                release_to,
                claimed_at=claim_time,
                changes={"claimed_at": None},
            )
            raise

        if intent.status == IntentStatus.succeeded:
            return self._award(claimed, claim_time)

        if intent.status in (IntentStatus.failed, IntentStatus.canceled):
            final_status = PurchaseStatus(intent.status.value)
            updated = self._purchases.transition_purchase(
                external_reference,
                [PurchaseStatus.processing],
                final_status,
                claimed_at=claim_time,
                changes={"claimed_at": None, "failure_reason": intent.failure_reason},
            )
            self._logger.info(
                "Payment not completed",
                extra={"external_id": external_reference, "status": final_status.value, "reason": intent.failure_reason},
            )
            if updated is None:
                return self._current_outcome(external_reference)
            return ReconcileResult(updated, 0, already_processed=False)

        self._logger.warning(
            "Payment not final at provider, purchase left processing",
            extra={"external_id": external_reference, "status": intent.status.value},
        )
        raise PurchaseInProgressError(external_reference, intent.status.value)

    def handle_webhook(self, payload: bytes, signature: str | None) -> PaymentEvent | None:
        """Verify and route a provider event. Returns None when the signature does not verify."""
        event = self._processor.parse_webhook(payload, signature)
        if event is None:
            self._logger.warning("Payment webhook signature verification failed")
            return None

        self._logger.info(
            "Payment webhook received",
            extra={"external_id": event.external_id, "status": event.event_type},
        )
        if event.event_type in RECONCILE_EVENTS and event.external_id:
            try:
                self.reconcile(event.external_id)
            except PurchaseInProgressError as e:
                self._logger.info("Reconciliation deferred", extra={"external_id": event.external_id, "status": e.status})
            except CleanCarError as e:
                self._logger.error(
                    "Webhook reconciliation failed",
                    extra={"external_id": event.external_id, "status": event.event_type, "error": str(e)},
                )
        elif event.event_type == "payment_intent.requires_action":
            self._logger.info("Payment requires action", extra={"external_id": event.external_id})
        else:
            self._logger.info("Unhandled payment event", extra={"status": event.event_type})
        return event

    def _award(self, purchase: Purchase, claim_time: datetime) -> ReconcileResult:
        reference = purchase.external_reference
        pack = self._packs.get_pack(purchase.pack_id)
        try:
            if pack is None:
                raise NotFoundError("pack", purchase.pack_id)
            if pack.total_points == 0:
                self._logger.error("Pack awards no points", extra={"external_id": reference})
            updated = self._purchases.settle_purchase(
                reference,
                claim_time,
                pack.total_points,
                changes={
                    "failure_reason": None,
                    "points_awarded": pack.points_included,
                    "bonus_points_awarded": pack.bonus_points,
                    "service_credits_awarded": pack.free_services,
                },
            )
        except Exception as e:
            self._logger.exception("Crediting purchase failed", extra={"external_id": reference})
            self._purchases.transition_purchase(
                reference,
                [PurchaseStatus.processing],
                PurchaseStatus.failed,
                claimed_at=claim_time,
                changes={"claimed_at": None, "failure_reason": str(e)},
            )
            raise

        if updated is None:
            # The claim expired and another caller took the row over; nothing was credited here.
            self._logger.warning(
                "Purchase claim lost before crediting",
                extra={"external_id": reference, "user_id": purchase.user_id},
            )
            return self._current_outcome(reference)

        self._logger.info(
            "Points credited",
            extra={"user_id": purchase.user_id, "points": pack.total_points, "external_id": reference},
        )
        self._logger.info(
            "Purchase succeeded",
            extra={"external_id": reference, "user_id": purchase.user_id, "points": pack.total_points},
        )
        user = self._users.get_user(purchase.user_id)
        if user is not None:
            self._notifier.purchase_succeeded(user, updated)
        return ReconcileResult(updated, pack.total_points, already_processed=False)

    def _current_outcome(self, external_reference: str) -> ReconcileResult:
        current = self._purchases.get_by_reference(external_reference)
        if current is None:
            raise NotFoundError("purchase", external_reference)
        if current.status == PurchaseStatus.processing:
            raise PurchaseInProgressError(external_reference, current.status.value)
        return ReconcileResult(current, current.total_points_awarded, already_processed=True)

    def _with_retry(self, fn: Callable[[str], T], argument: str) -> T:
        """Bounded retry with linear backoff for provider calls."""
        attempt = 1
        while True:
            try:
                return fn(argument)
            except ExternalDependencyError as e:
                self._logger.warning(
                    "Payment provider call failed",
                    extra={"external_id": argument, "reason": f"attempt {attempt}", "error": str(e)},
                )
                if attempt >= self._retry_attempts:
                    raise
                time.sleep(self._retry_backoff_seconds * attempt)
                attempt += 1
