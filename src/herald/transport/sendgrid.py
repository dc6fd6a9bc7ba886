"""SendGrid v3 Web API transport.

Posts a ``mail/send`` payload with the stdlib HTTP client.  Any 2xx
response is a success; every other outcome is returned as a failure
reason string.
"""

from __future__ import annotations

import contextlib
import json
import logging
import urllib.error
import urllib.request
from typing import TYPE_CHECKING

from herald.transport.base import SendResult, Transport

if TYPE_CHECKING:
    from herald.config.settings import SendGridSettings

log = logging.getLogger(__name__)


def build_payload(
    from_address: str,
    from_name: str,
    to_address: str,
    subject: str | None,
    html_body: str,
) -> dict:
    """Return the SendGrid ``mail/send`` request body."""
    sender = {"email": from_address}
    if from_name:
        sender["name"] = from_name
    return {
        "personalizations": [{"to": [{"email": to_address}]}],
        "from": sender,
        "subject": subject or "",
        "content": [{"type": "text/html", "value": html_body}],
    }


class SendGridTransport(Transport):
    name = "sendgrid"

    def __init__(self, settings: SendGridSettings) -> None:
        self._settings = settings

    def send(
        self,
        from_address: str,
        from_name: str,
        to_address: str,
        subject: str | None,
        html_body: str,
    ) -> SendResult:
        payload = json.dumps(
            build_payload(from_address, from_name, to_address, subject, html_body),
        ).encode("utf-8")

        req = urllib.request.Request(
            self._settings.api_url,
            data=payload,
            method="POST",
            headers={
                "Authorization": f"Bearer {self._settings.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

        try:
            with urllib.request.urlopen(req, timeout=self._settings.timeout_seconds) as resp:
                status = resp.status
                body = resp.read().decode("utf-8", errors="replace")[:200]
        except urllib.error.HTTPError as exc:
            body = ""
            with contextlib.suppress(OSError):
                body = exc.read().decode("utf-8", errors="replace")[:200]
            log.warning("SendGrid returned HTTP %d for %s: %s", exc.code, to_address, body)
            return SendResult.failed(f"SendGrid returned status {exc.code}: {body}")
        except urllib.error.URLError as exc:
            log.warning("SendGrid request for %s failed: network error: %s", to_address, exc.reason)
            return SendResult.failed(f"Network error while sending email: {exc.reason}")
        except OSError as exc:
            log.warning("SendGrid request for %s failed: %s", to_address, exc)
            return SendResult.failed(f"Network error while sending email: {exc}")
        except Exception as exc:
            log.exception("Unexpected error sending email to %s", to_address)
            return SendResult.failed(f"Unexpected error: {exc}")

        if 200 <= status < 300:
            log.info("Email accepted by SendGrid for %s", to_address)
            return SendResult.ok()
        return SendResult.failed(f"SendGrid returned status {status}: {body}")
