from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IntentStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    succeeded = "succeeded"
    failed = "failed"
    canceled = "canceled"


@dataclass(frozen=True)
class PaymentIntent:
    external_id: str
    client_secret: str | None
    status: IntentStatus
    failure_reason: str | None = None


@dataclass(frozen=True)
class PaymentEvent:
    event_id: str
    event_type: str  # e.g. "payment_intent.succeeded"
    external_id: str | None
    data: dict[str, Any] = field(default_factory=dict)


class PaymentProcessorPort(ABC):
    @abstractmethod
    def create_intent(self, amount: int, currency: str, metadata: dict[str, str], description: str | None = None) -> PaymentIntent:
        """Create a payment intent for `amount` in the smallest currency unit."""
        raise NotImplementedError

    @abstractmethod
    def get_intent_status(self, external_id: str) -> PaymentIntent:
        """Authoritative status of an intent. Raises ExternalDependencyError on provider failure."""
        raise NotImplementedError

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: str | None) -> PaymentEvent | None:
        """Verify the signature and parse the event. Returns None when verification fails."""
        raise NotImplementedError
