"""
Outbound mail over SMTP.

One plain-text message per call, sent synchronously with STARTTLS and login.
No retry and no queue.
"""

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from starlette.concurrency import run_in_threadpool

from app.core.config import Settings, get_settings
from app.core.errors import ConfigurationError, RecipientError, TransportError
from app.models.profile import Profile
from nexus_shared.schemas.common import Role
from nexus_shared.schemas.notify import ADMIN_RECIPIENT

log = structlog.get_logger()


@dataclass
class SentMessage:
    recipient: str
    message_id: str


class Mailer:
    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def sender(self) -> str:
        return self.settings.mail_user

    def ensure_configured(self) -> None:
        """Fail closed before any network call if credentials are missing."""
        missing = [
            name
            for name, value in (
                ("NX_MAIL_USER", self.settings.mail_user),
                ("NX_MAIL_APP_PASSWORD", self.settings.mail_app_password),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                "Mail server configuration missing.",
                f"Set {' and '.join(missing)} on the server.",
            )

    async def _admin_address(self, session: Optional[AsyncSession]) -> str:
        if self.settings.admin_lookup and session is not None:
            result = await session.execute(
                select(Profile)
                .where(Profile.role == Role.ADMIN.value)
                .order_by(Profile.created_at, Profile.email)
                .limit(1)
            )
            admin = result.scalar_one_or_none()
            if admin:
                return admin.notification_address
        return self.settings.admin_email or self.sender

    async def resolve_recipient(
        self, to: Optional[str], session: Optional[AsyncSession] = None
    ) -> str:
        """Map the `to` field to a deliverable address.

        ``"admin"`` resolves to the operator; anything containing ``@`` is
        used as given; everything else is rejected.
        """
        to = (to or "").strip()
        if to == ADMIN_RECIPIENT:
            return await self._admin_address(session)
        if "@" in to:
            return to
        raise RecipientError(
            "Invalid recipient.",
            f"Recipient must be '{ADMIN_RECIPIENT}' or an email address, got {to!r}.",
        )

    def _build(self, recipient: str, subject: str, body: str) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["From"] = formataddr((self.settings.mail_from_name, self.sender))
        msg["To"] = recipient
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain=self.sender.rpartition("@")[2] or None)
        return msg

    def _deliver(self, msg: MIMEText) -> None:
        with smtplib.SMTP(
            self.settings.smtp_host,
            self.settings.smtp_port,
            timeout=self.settings.smtp_timeout_seconds,
        ) as server:
            server.starttls()
            server.login(self.settings.mail_user, self.settings.mail_app_password)
            server.send_message(msg)

    async def send(self, recipient: str, subject: str, body: str) -> SentMessage:
        """Send one message. Raises TransportError on any provider failure."""
        self.ensure_configured()
        msg = self._build(recipient, subject, body)

        try:
            await run_in_threadpool(self._deliver, msg)
        except smtplib.SMTPResponseException as exc:
            detail = exc.smtp_error
            if isinstance(detail, bytes):
                detail = detail.decode(errors="replace")
            log.error("mail.failed", recipient=recipient, smtp_code=exc.smtp_code, error=detail)
            raise TransportError("SMTP Transmission Error", detail, provider_code=exc.smtp_code)
        except (smtplib.SMTPException, OSError) as exc:
            log.error("mail.failed", recipient=recipient, error=str(exc))
            raise TransportError("SMTP Transmission Error", str(exc))

        log.info("mail.sent", recipient=recipient, message_id=msg["Message-ID"])
        return SentMessage(recipient=recipient, message_id=msg["Message-ID"])


def get_mailer() -> Mailer:
    """FastAPI dependency; overridden in tests."""
    return Mailer(get_settings())
