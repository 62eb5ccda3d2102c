from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class NotificationPort(ABC):
    @abstractmethod
    def send(self, to: str, template: str, data: dict[str, Any]) -> None:
        raise NotImplementedError
