"""
Mail dispatch for archived submissions.

Credentials are configured via GMAIL_USER / GMAIL_PASS (see config.yaml).
When they are absent the dispatcher is disabled: sends are skipped and logged,
never treated as errors.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Iterable, Tuple

from .configuration import MailSettings
from .errors import NotificationError

logger = logging.getLogger(__name__)

# (filename, bytes, content type)
Attachment = Tuple[str, bytes, str]


class MailDispatcher:
    def __init__(self, settings: MailSettings) -> None:
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    def build_message(self, subject: str, body: str, attachments: Iterable[Attachment]) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.sender
        msg["To"] = self.settings.recipient
        msg.set_content(body)
        for filename, data, content_type in attachments:
            maintype, _, subtype = content_type.partition("/")
            subtype = subtype.split(";")[0].strip() or "octet-stream"
            msg.add_attachment(data, maintype=maintype, subtype=subtype, filename=filename)
        return msg

    def send(self, subject: str, body: str, attachments: Iterable[Attachment]) -> bool:
        """
        Send one message with attachments to the configured recipient.

        Returns:
            True if the message was handed to the SMTP server, False if mail
            is disabled

        Raises:
            NotificationError: If the SMTP exchange fails or times out
        """
        if not self.enabled:
            logger.info(f"Mail disabled (no credentials configured), skipping: {subject}")
            return False

        msg = self.build_message(subject, body, attachments)
        s = self.settings
        try:
            logger.info(f"Sending mail to {s.recipient} via {s.host}:{s.port}")
            with smtplib.SMTP_SSL(s.host, s.port, timeout=s.timeout) as server:
                server.login(s.user, s.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"Mail to {s.recipient} failed: {exc}") from exc

        logger.info(f"Mail sent to {s.recipient}: {subject}")
        return True
