"""Webhook transport: posts notifications as JSON to an HTTP endpoint."""

from typing import Any

import requests

from shared.utils import utcnow


class WebhookTransport:
    """POSTs {recipients, subject, body, sent_at} to a configured URL."""

    def __init__(self, url: str, timeout: float = 10.0, headers: dict[str, str] | None = None):
        self.url = url
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", **(headers or {})}

    def send(self, recipients: list[str], subject: str, body: str) -> dict[str, Any]:
        payload = {
            "recipients": recipients,
            "subject": subject,
            "body": body,
            "sent_at": utcnow().isoformat(),
        }
        try:
            response = requests.post(
                self.url, json=payload, headers=self.headers, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            return {"success": False, "error": str(e)}

        return {"success": True, "message_id": response.headers.get("X-Request-Id")}
