from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import replace
from typing import Any

from cleancar.application.exceptions import ExternalDependencyError
from cleancar.application.ports.payments import IntentStatus, PaymentEvent, PaymentIntent, PaymentProcessorPort
from cleancar.infrastructure.payments.webhook_verify import verify_post_signature


class MockPaymentProcessor(PaymentProcessorPort):
    """In-process payment provider for dev/local runs and tests."""

    def __init__(self, webhook_secret: str | None = None, env: str = "dev") -> None:
        self._webhook_secret = webhook_secret
        self._env = env
        self._intents: dict[str, PaymentIntent] = {}
        self._amounts: dict[str, int] = {}
        self._outages = 0
        self._status_calls = 0
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    @property
    def status_calls(self) -> int:
        return self._status_calls

    def create_intent(self, amount: int, currency: str, metadata: dict[str, str], description: str | None = None) -> PaymentIntent:
        external_id = f"pi_mock_{uuid.uuid4().hex[:24]}"
        intent = PaymentIntent(
            external_id=external_id,
            client_secret=f"{external_id}_secret_{uuid.uuid4().hex[:16]}",
            status=IntentStatus.pending,
        )
        with self._lock:
            self._intents[external_id] = intent
            self._amounts[external_id] = amount
        self._logger.info(
            "Mock payment intent created",
            extra={"external_id": external_id, "points": metadata.get("points_included")},
        )
        return intent

    def get_intent_status(self, external_id: str) -> PaymentIntent:
        with self._lock:
            self._status_calls += 1
            if self._outages > 0:
                self._outages -= 1
                raise ExternalDependencyError("Mock payment provider unavailable")
            intent = self._intents.get(external_id)
        if intent is None:
            raise ExternalDependencyError(f"No such payment intent: {external_id}")
        return intent

    def parse_webhook(self, payload: bytes, signature: str | None) -> PaymentEvent | None:
        if not verify_post_signature(payload, signature, self._webhook_secret, self._env):
            return None
        try:
            data: dict[str, Any] = json.loads(payload.decode("utf-8")) if payload else {}
        except (ValueError, UnicodeDecodeError):
            self._logger.exception("Failed to parse webhook body")
            return None
        obj = ((data.get("data") or {}).get("object")) or {}
        return PaymentEvent(
            event_id=str(data.get("id") or ""),
            event_type=str(data.get("type") or ""),
            external_id=obj.get("id"),
            data=dict(obj.get("metadata") or {}),
        )

    def set_status(self, external_id: str, status: IntentStatus, failure_reason: str | None = None) -> None:
        with self._lock:
            intent = self._intents[external_id]
            self._intents[external_id] = replace(intent, status=status, failure_reason=failure_reason)

    def simulate_outage(self, calls: int) -> None:
        """Make the next `calls` status queries fail."""
        with self._lock:
            self._outages = calls
