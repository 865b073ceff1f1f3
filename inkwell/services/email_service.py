"""Outbound account email (welcome, password reset, email verification)."""

from email.message import EmailMessage

import aiosmtplib
import structlog

from inkwell.config import settings
from inkwell.core.exceptions import ExternalServiceException

logger = structlog.get_logger(__name__)


class EmailService:
    """Sends plain-text account emails over SMTP.

    Delivery is skipped (and logged) when ``SMTP_HOST`` is not configured.
    """

    @property
    def enabled(self) -> bool:
        return bool(settings.smtp_host)

    async def send(self, to_email: str, subject: str, body: str, template: str) -> bool:
        """
        Send one email.

        Returns:
            True if sent, False if email delivery is disabled

        Raises:
            ExternalServiceException: If the SMTP server rejects or is unreachable
        """
        if not self.enabled:
            logger.info("email_delivery_disabled", template=template)
            return False

        message = EmailMessage()
        message["From"] = settings.email_from
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content(body)

        try:
            await aiosmtplib.send(
                message,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username or None,
                password=settings.smtp_password or None,
                use_tls=settings.smtp_use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("email_send_failed", template=template, error=str(e))
            raise ExternalServiceException(f"Failed to send {template} email") from e

        logger.info("email_sent", template=template)
        return True

    async def send_welcome_email(self, user: dict) -> bool:
        body = (
            f"Hello {user['first_name']},\n\n"
            f"Welcome to {settings.app_name}! Your username is @{user['username']}.\n"
            "Start exploring and sharing your knowledge with the community.\n"
        )
        return await self.send(user["email"], f"Welcome to {settings.app_name}", body, "welcome")

    async def send_password_reset_email(self, user: dict, token: str) -> bool:
        reset_url = f"{settings.client_url}/reset-password?token={token}"
        minutes = settings.password_reset_token_expire_minutes
        body = (
            f"Hello {user['first_name']},\n\n"
            "We received a request to reset your password. Use the link below to choose a "
            f"new one. It expires in {minutes} minutes.\n\n"
            f"{reset_url}\n\n"
            "If you did not request this, you can ignore this email.\n"
        )
        return await self.send(user["email"], "Reset your password", body, "password_reset")

    async def send_verification_email(self, user: dict, token: str) -> bool:
        verification_url = f"{settings.client_url}/verify-email?token={token}"
        body = (
            f"Hello {user['first_name']},\n\n"
            f"Please confirm your email address:\n\n{verification_url}\n"
        )
        return await self.send(
            user["email"], "Verify your email address", body, "email_verification"
        )
