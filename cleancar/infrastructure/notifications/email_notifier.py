from __future__ import annotations

from typing import Any

from cleancar.application.ports.notifications import NotificationPort
from cleancar.infrastructure.notifications.email_client import EmailClient

SUBJECTS: dict[str, str] = {
    "appointment_confirmation": "Appointment Confirmed",
    "new_booking_notification": "New Booking",
    "appointment_cancellation": "Appointment Cancelled",
    "points_update": "Points Balance Updated",
    "purchase_receipt": "Thank You for Your Purchase",
}


class EmailNotifier(NotificationPort):
    def __init__(self, client: EmailClient, business_name: str) -> None:
        self._client = client
        self._business_name = business_name

    def send(self, to: str, template: str, data: dict[str, Any]) -> None:
        subject = f"{SUBJECTS.get(template, 'Notification')} - {self._business_name}"
        self._client.send(to=to, subject=subject, template=template, data=data)
