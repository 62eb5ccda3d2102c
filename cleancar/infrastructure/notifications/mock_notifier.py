from __future__ import annotations

import logging
from typing import Any

from cleancar.application.ports.notifications import NotificationPort


class MockNotifier(NotificationPort):
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []
        self._logger = logging.getLogger(__name__)

    def send(self, to: str, template: str, data: dict[str, Any]) -> None:
        self.sent.append((to, template, dict(data)))
        self._logger.info("Mock notification", extra={"reason": template})
