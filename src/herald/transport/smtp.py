"""SMTP transport.

One connection per message (no pooling): delivery volume is bounded by
the worker pool, and a fresh connection keeps failures isolated to the
message that caused them.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import TYPE_CHECKING

from herald.transport.base import SendResult, Transport

if TYPE_CHECKING:
    from herald.config.settings import SmtpSettings

log = logging.getLogger(__name__)


class SmtpTransport(Transport):
    name = "smtp"

    def __init__(self, settings: SmtpSettings) -> None:
        self._smtp = settings

    def send(
        self,
        from_address: str,
        from_name: str,
        to_address: str,
        subject: str | None,
        html_body: str,
    ) -> SendResult:
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((from_name, from_address)) if from_name else from_address
        msg["To"] = to_address
        msg["Subject"] = subject or ""
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with smtplib.SMTP(
                self._smtp.host, self._smtp.port, timeout=self._smtp.timeout_seconds
            ) as server:
                server.ehlo()
                if self._smtp.use_tls:
                    server.starttls()
                    server.ehlo()
                if self._smtp.username:
                    server.login(self._smtp.username, self._smtp.password)
                server.sendmail(from_address, [to_address], msg.as_string())
        except smtplib.SMTPException as exc:
            log.warning("SMTP delivery to %s failed: %s", to_address, exc)
            return SendResult.failed(f"SMTP error: {exc}")
        except OSError as exc:
            log.warning(
                "SMTP connection to %s:%d failed: %s", self._smtp.host, self._smtp.port, exc
            )
            return SendResult.failed(f"Network error while sending email: {exc}")
        except Exception as exc:
            log.exception("Unexpected error sending email to %s", to_address)
            return SendResult.failed(f"Unexpected error: {exc}")

        return SendResult.ok()
