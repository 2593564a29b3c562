"""
Email sending via Resend API.

ResendTransport is the production transport for both scheduled digests and
rule-triggered notifications. Like every transport it returns a result dict
instead of raising, so callers record failures uniformly.
"""

import html
import os
from typing import Any, Protocol

import resend


class Transport(Protocol):
    """Pluggable notification transport."""

    def send(self, recipients: list[str], subject: str, body: str) -> dict[str, Any]:
        """
        Returns:
            Dictionary with 'success' (bool), 'message_id' (str if success), 'error' (str if failed)
        """
        ...


def _build_html(subject: str, body: str) -> str:
    """Wrap a plain-text body in a minimal HTML document."""
    paragraphs = "".join(
        f"<p>{html.escape(block).replace(chr(10), '<br>')}</p>"
        for block in body.split("\n\n")
        if block.strip()
    )
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(subject)}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    {paragraphs}
</body>
</html>
"""


class ResendTransport:
    """Sends one email per call with all recipients on the To line."""

    def __init__(
        self,
        api_key: str | None = None,
        from_email: str | None = None,
        from_name: str = "Compliance Digest",
    ):
        resend.api_key = api_key or os.getenv("RESEND_API_KEY")
        self.from_email = from_email or os.getenv(
            "NOTIFICATION_FROM_EMAIL", "digest-notifications@example.com"
        )
        self.from_name = from_name

    def send(self, recipients: list[str], subject: str, body: str) -> dict[str, Any]:
        if not recipients:
            return {"success": False, "error": "No recipients to send to"}

        try:
            response = resend.Emails.send(
                {
                    "from": f"{self.from_name} <{self.from_email}>",
                    "to": recipients,
                    "subject": subject,
                    "html": _build_html(subject, body),
                    "text": body,
                }
            )
            return {"success": True, "message_id": response.get("id")}

        except Exception as e:
            return {"success": False, "error": str(e)}


class DryRunTransport:
    """Prints what would be sent. Used by --dry-run."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []

    def send(self, recipients: list[str], subject: str, body: str) -> dict[str, Any]:
        print(f"  [DRY RUN] Would send '{subject}' to {len(recipients)} recipient(s)")
        self.sent.append({"recipients": list(recipients), "subject": subject, "body": body})
        return {"success": True, "message_id": f"dry-run-{len(self.sent)}"}
