from __future__ import annotations

import logging
from typing import Any

from cleancar.application.ports.notifications import NotificationPort
from cleancar.domain.entities.appointment import Appointment
from cleancar.domain.entities.purchase import Purchase
from cleancar.domain.entities.user import User


class NotifyUseCase:
    """
    Best-effort templated notifications.

    Dispatch is synchronous and never raises: a failed send is logged and the
    calling operation carries on.
    """

    def __init__(self, notifier: NotificationPort, company_email: str | None = None, enabled: bool = True) -> None:
        self._notifier = notifier
        self._company_email = company_email
        self._enabled = enabled
        self._logger = logging.getLogger(__name__)

    def execute(self, to: str, template: str, data: dict[str, Any]) -> bool:
        """Send one message. Returns True if actually sent, False if skipped or failed."""
        if not to:
            self._logger.warning("Notification without recipient", extra={"reason": template})
            return False
        if not self._enabled:
            self._logger.info("WOULD_SEND_NOTIFICATION", extra={"reason": template})
            return False
        try:
            self._notifier.send(to=to, template=template, data=data)
        except Exception as e:
            self._logger.error("Notification failed", extra={"reason": template, "error": str(e)})
            return False
        return True

    def appointment_confirmed(self, user: User, appointment: Appointment) -> None:
        data = _appointment_data(appointment)
        self.execute(user.email, "appointment_confirmation", {"first_name": user.first_name, **data})
        if self._company_email:
            self.execute(
                self._company_email,
                "new_booking_notification",
                {"customer_name": user.full_name, "customer_email": user.email, **data},
            )

    def appointment_cancelled(self, user: User, appointment: Appointment, refunded_points: int) -> None:
        data = _appointment_data(appointment)
        data["refunded_points"] = refunded_points
        self.execute(user.email, "appointment_cancellation", {"first_name": user.first_name, **data})

    def points_updated(self, user: User, operation: str, points: int, balance: int) -> None:
        self.execute(
            user.email,
            "points_update",
            {"first_name": user.first_name, "operation": operation, "points": points, "balance": balance},
        )

    def purchase_succeeded(self, user: User, purchase: Purchase) -> None:
        self.execute(
            user.email,
            "purchase_receipt",
            {
                "first_name": user.first_name,
                "points_awarded": purchase.points_awarded,
                "bonus_points_awarded": purchase.bonus_points_awarded,
                "amount": purchase.amount,
                "currency": purchase.currency,
            },
        )


def _appointment_data(appointment: Appointment) -> dict[str, Any]:
    return {
        "appointment_id": appointment.id,
        "service_type": appointment.service_type.value,
        "date": appointment.date.isoformat(),
        "slot": appointment.slot,
        "location": appointment.location,
        "price": appointment.price,
    }
