from __future__ import annotations

import logging
from typing import Any

import httpx


class EmailClient:
    """Thin client for a transactional email HTTP API."""

    def __init__(
        self,
        api_key: str,
        send_endpoint: str,
        sender: str,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._send_endpoint = send_endpoint
        self._sender = sender
        self._client = httpx.Client(timeout=10.0, transport=transport)
        self._logger = logging.getLogger(__name__)

    def send(self, to: str, subject: str, template: str, data: dict[str, Any]) -> None:
        payload = {
            "from": self._sender,
            "to": [to],
            "subject": subject,
            "template": template,
            "variables": data,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        resp = self._client.post(self._send_endpoint, json=payload, headers=headers)
        if resp.status_code >= 400:
            try:
                error_message = resp.json().get("message")
            except Exception:
                error_message = resp.text
            self._logger.error(
                "Email send failed",
                extra={"status": resp.status_code, "error": error_message, "reason": template},
            )
            resp.raise_for_status()
