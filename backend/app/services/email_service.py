"""Email service using SendGrid."""

import logging
from datetime import UTC, datetime
from html import escape

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from app.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending transactional emails via SendGrid."""

    @staticmethod
    def _send_email(to_email: str, subject: str, html_content: str) -> bool:
        """Send email via SendGrid. Returns True if successful."""
        if not settings.sendgrid_api_key:
            logger.warning("SendGrid API key not configured, skipping email send")
            return False

        message = Mail(
            from_email=(settings.email_from_address, settings.email_from_name),
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )

        try:
            sg = SendGridAPIClient(settings.sendgrid_api_key)
            response = sg.send(message)
            logger.info(f"Email sent to {to_email[:3]}***, status: {response.status_code}")
            return response.status_code in (200, 201, 202)
        except Exception:
            logger.exception(f"Failed to send email to {to_email[:3]}***")
            return False

    @staticmethod
    def build_reset_link(token: str) -> str:
        return f"{settings.frontend_url.rstrip('/')}/reset-password?token={token}"

    @classmethod
    def send_password_reset_email(
        cls,
        email: str,
        reset_link: str,
        first_name: str | None = None,
        expiry_minutes: int = 15,
    ) -> bool:
        """Send password reset link."""
        greeting = f"Hi {escape(first_name)}," if first_name else "Hi,"
        html = f"""
        <h2>Reset Your Password</h2>
        <p>{greeting}</p>
        <p>Click the link below to reset your password:</p>
        <p><a href="{reset_link}">{reset_link}</a></p>
        <p>This link expires in {expiry_minutes} minutes.</p>
        <p>If you didn't request this, you can ignore this email.</p>
        """
        return cls._send_email(email, "Password Reset Request", html)

    @classmethod
    def send_password_changed_notification(
        cls,
        email: str,
        first_name: str | None = None,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> bool:
        """Notify user their password was changed."""
        greeting = f"Hi {escape(first_name)}," if first_name else "Hi,"
        changed_at = datetime.now(UTC).strftime("%B %d, %Y %H:%M UTC")
        html = f"""
        <h2>Password Changed</h2>
        <p>{greeting}</p>
        <p>Your password was successfully changed on {changed_at}.</p>
        <p>Device: {escape(device_info or "Not available")}<br>
        IP address: {escape(ip_address or "Not available")}</p>
        <p>If you didn't make this change, please contact support immediately.</p>
        """
        return cls._send_email(email, "Your Password Was Changed", html)
