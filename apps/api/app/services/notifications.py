"""Invitation delivery.

Delivery is a collaborator of meeting creation: a failed send is reported to the
caller but never removes the meeting that was already stored."""
from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Protocol

from ..core.config import Settings

logger = logging.getLogger(__name__)

INVITATION_SUBJECT = "Meeting Invitation"


class NotificationError(RuntimeError):
    """Raised when an invitation could not be delivered."""


class InvitationNotifier(Protocol):
    async def send_invitation(
        self,
        contact: str,
        join_link: str,
        meeting_id: str,
        expires_in: int,
    ) -> None:
        """Deliver the invitation or raise :class:`NotificationError`."""


def build_invitation_html(join_link: str, expires_in: int) -> str:
    minutes = max(1, expires_in // 60)
    link = escape(join_link, quote=True)
    return (
        "<p>You've been invited to a meeting. Click the link below to schedule your slot and join:</p>"
        f'<p><a href="{link}">{link}</a></p>'
        f"<p>This invitation link will expire in {minutes} minutes.</p>"
    )


class LoggingNotifier:
    """Log the invitation instead of sending it. Used when no transport is configured."""

    async def send_invitation(self, contact: str, join_link: str, meeting_id: str, expires_in: int) -> None:
        logger.info(
            "Invitation for meeting %s to %s (expires in %ss): %s",
            meeting_id,
            contact,
            expires_in,
            join_link,
        )


class EmailNotifier:
    """Send HTML invitations over SMTP.

    Contacts that are not email addresses (phone numbers) are handed to
    ``fallback``, a :class:`LoggingNotifier` unless another channel is supplied.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        from_address: str = "",
        fallback: InvitationNotifier | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address or username
        self.fallback = fallback or LoggingNotifier()

    async def send_invitation(self, contact: str, join_link: str, meeting_id: str, expires_in: int) -> None:
        if "@" not in contact:
            await self.fallback.send_invitation(contact, join_link, meeting_id, expires_in)
            return

        body = build_invitation_html(join_link, expires_in)
        try:
            await asyncio.to_thread(self._send_email, contact, INVITATION_SUBJECT, body)
        except (OSError, smtplib.SMTPException) as exc:
            logger.error("Invitation email for meeting %s failed: %s", meeting_id, exc)
            raise NotificationError("Failed to send meeting invitation email") from exc

        logger.info("Invitation email for meeting %s sent to %s", meeting_id, contact)

    def _send_email(self, to_address: str, subject: str, body_html: str) -> None:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.from_address
        message["To"] = to_address
        message.attach(MIMEText(body_html, "html", "utf-8"))

        with smtplib.SMTP(self.host, self.port, timeout=15) as server:
            if self.use_tls:
                server.starttls(context=ssl.create_default_context())
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(self.from_address, [to_address], message.as_string())


def build_notifier(settings: Settings) -> InvitationNotifier:
    """Return the notifier configured by ``settings``."""

    if settings.smtp_host.strip():
        return EmailNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.mail_from,
        )
    logger.warning("SMTP is not configured; invitations will only be logged.")
    return LoggingNotifier()
