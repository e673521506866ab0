"""
Outgoing email: account verification and password reset.

Messages go out over SMTP when it is configured. Outside production an
unconfigured service writes the message to the log instead, so links can be
followed during local development and in tests.
"""

import asyncio
import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from functools import partial
from typing import Any, Dict

from portal.config import settings
from portal.models.email import EmailRequest, EmailSendResult, EmailTemplate
from portal.services.template_service import template_service

logger = logging.getLogger(__name__)


class EmailServiceError(Exception):
    """Raised when the SMTP server cannot be reached or refuses our login."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _display_address(name: str, address: str) -> str:
    name = (name or "").strip()
    return formataddr((name, address)) if name else address


def _full_name(user: Dict[str, Any]) -> str:
    return f"{user.get('first_name', '')} {user.get('last_name', '')}".strip()


class EmailService:

    def __init__(self):
        # copied per instance so tests can point one service at a fake server
        self.email_enabled = settings.email_enabled
        self.email_from = settings.email_from
        self.email_from_name = settings.email_from_name
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_username = settings.smtp_username
        self.smtp_password = settings.smtp_password
        self.smtp_use_ssl = settings.smtp_use_ssl
        self.smtp_use_tls = settings.smtp_use_tls
        self.smtp_timeout = settings.smtp_timeout

    @property
    def smtp_available(self) -> bool:
        return self.email_enabled and settings.smtp_configured

    def _create_smtp_connection(self) -> smtplib.SMTP:
        """Open a logged-in SMTP connection; raises EmailServiceError."""
        endpoint = f"{self.smtp_host}:{self.smtp_port}"
        try:
            if self.smtp_use_ssl:
                smtp = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.smtp_timeout)
            else:
                smtp = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.smtp_timeout)
                if self.smtp_use_tls:
                    smtp.starttls()
            smtp.login(self.smtp_username, self.smtp_password)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"[EMAIL] {endpoint} refused login for {self.smtp_username}: {e}")
            raise EmailServiceError(f"SMTP authentication failed for {self.smtp_username}: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[EMAIL] Cannot reach {endpoint}: {e}")
            raise EmailServiceError(f"Cannot reach SMTP server {endpoint}: {e}") from e

        logger.debug(f"[EMAIL] Logged in to {endpoint} (ssl={self.smtp_use_ssl}, tls={self.smtp_use_tls})")
        return smtp

    def _build_email_message(self, email_request: EmailRequest) -> MIMEMultipart:
        """multipart/alternative with the plain-text part first."""
        message = MIMEMultipart("alternative")
        message["Subject"] = email_request.subject
        message["From"] = _display_address(self.email_from_name, self.email_from)
        message["To"] = _display_address(email_request.to_name, email_request.to_email)
        message.attach(MIMEText(email_request.body_text, "plain", "utf-8"))
        message.attach(MIMEText(email_request.body_html, "html", "utf-8"))
        return message

    def _log_to_console(self, email_request: EmailRequest) -> EmailSendResult:
        logger.info("=" * 80)
        logger.info(f"[EMAIL] SMTP not configured, logging message for {email_request.to_email}")
        logger.info(f"Subject: {email_request.subject}")
        logger.info("-" * 80)
        logger.info(f"\n{email_request.body_text}")
        logger.info("=" * 80)
        return EmailSendResult(
            success=True,
            message=f"Email logged to console for {email_request.to_email}",
            recipient=email_request.to_email,
            delivered_via="console",
            sent_at=_now_iso()
        )

    def send_email(self, email_request: EmailRequest) -> EmailSendResult:
        """
        Deliver one message. Blocking; async callers go through
        ``send_templated_email``.

        Failures are reported in the returned ``EmailSendResult`` rather than
        raised, so a broken mail server never fails the request that triggered
        the email.
        """
        recipient = email_request.to_email

        if not self.smtp_available:
            if not settings.is_production:
                return self._log_to_console(email_request)
            logger.error(f"[EMAIL] SMTP not configured in production, dropping email to {recipient}")
            return EmailSendResult(
                success=False,
                message="Email service not configured properly",
                error="SMTP credentials or configuration missing",
                recipient=recipient
            )

        message = self._build_email_message(email_request)
        try:
            smtp = self._create_smtp_connection()
            try:
                smtp.send_message(message)
            finally:
                smtp.quit()
        except (EmailServiceError, smtplib.SMTPException) as e:
            logger.error(f"[EMAIL] ❌ Delivery to {recipient} failed: {e}")
            return EmailSendResult(success=False, message="Failed to send email", error=str(e), recipient=recipient)

        logger.info(f"[EMAIL] ✅ Sent '{email_request.subject}' to {recipient}")
        return EmailSendResult(
            success=True,
            message=f"Email sent successfully to {recipient}",
            recipient=recipient,
            sent_at=_now_iso()
        )

    async def send_templated_email(
        self,
        template: EmailTemplate,
        to_email: str,
        to_name: str,
        subject: str,
        context: Dict[str, Any]
    ) -> EmailSendResult:
        bodies = template_service.render_email(template.value, {"app_name": settings.app_name, **context})
        email_request = EmailRequest(
            to_email=to_email,
            to_name=to_name,
            subject=subject,
            body_html=bodies["html"],
            body_text=bodies["text"]
        )
        # smtplib blocks, keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self.send_email, email_request))

    async def send_verification_email(self, user: Dict[str, Any], token: str) -> EmailSendResult:
        return await self.send_templated_email(
            EmailTemplate.VERIFY_EMAIL,
            to_email=user["email"],
            to_name=_full_name(user),
            subject=f"Verify your {settings.app_name} account",
            context={
                "first_name": user.get("first_name", ""),
                "verification_url": f"{settings.app_base_url}/verify-email?token={token}",
                "expires_hours": settings.email_verification_ttl_hours
            }
        )

    async def send_password_reset_email(self, user: Dict[str, Any], token: str) -> EmailSendResult:
        return await self.send_templated_email(
            EmailTemplate.PASSWORD_RESET,
            to_email=user["email"],
            to_name=_full_name(user),
            subject=f"Reset your {settings.app_name} password",
            context={
                "first_name": user.get("first_name", ""),
                "reset_url": f"{settings.app_base_url}/reset-password?token={token}",
                "expires_hours": settings.password_reset_ttl_hours
            }
        )


email_service = EmailService()
