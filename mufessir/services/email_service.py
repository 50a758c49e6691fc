"""
Transactional email delivery.

Delivery order: Resend when RESEND_API_KEY is set, SMTP when SMTP_HOST is
set, otherwise the message is written to the log so local development
works without credentials.
"""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from starlette.concurrency import run_in_threadpool

from mufessir.config import Settings, get_settings

logger = logging.getLogger(__name__)

RESET_SUBJECT = "Your Mufessir password reset code"

# Lazy-loaded Resend module
_resend = None


def get_resend(api_key: Optional[str]):
    """Lazy-load the Resend client to avoid import-time errors."""
    global _resend
    if not api_key:
        return None
    if _resend is None:
        import resend
        _resend = resend
    _resend.api_key = api_key
    return _resend


def render_password_reset_email(code: str, app_url: str, expire_minutes: int):
    reset_url = f"{app_url.rstrip('/')}/reset-password"
    text = (
        f"Your password reset code is {code}.\n\n"
        f"Enter it at {reset_url} within {expire_minutes} minutes.\n"
        "If you did not request a reset you can ignore this email."
    )
    html = f"""
    <h2>Password reset</h2>
    <p>Your password reset code is:</p>
    <p style="font-size:28px;letter-spacing:6px;font-weight:bold">{code}</p>
    <p>Enter it at <a href="{reset_url}">{reset_url}</a> within {expire_minutes} minutes.</p>
    <p style="font-size:13px;color:#555">If you did not request a reset you can ignore this email.</p>
    """
    return text, html


class EmailService:
    """
    Email service for transactional messages.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def provider(self) -> str:
        if self.settings.resend_api_key:
            return "resend"
        if self.settings.smtp_host:
            return "smtp"
        return "console"

    async def send_password_reset_code(self, to_email: str, code: str) -> bool:
        """Send a reset code. Returns True if the message was handed off."""
        text, html = render_password_reset_email(
            code,
            self.settings.app_url,
            self.settings.password_reset_expire_minutes,
        )
        return await self._send(to_email, RESET_SUBJECT, text, html)

    async def _send(self, to_email: str, subject: str, text_body: str, html_body: str) -> bool:
        provider = self.provider
        if provider == "console":
            logger.info(f"[email:console] to={to_email} subject={subject!r}\n{text_body}")
            return True

        sender = self._send_resend if provider == "resend" else self._send_smtp
        try:
            await run_in_threadpool(sender, to_email, subject, text_body, html_body)
        except Exception as e:
            logger.error(f"Failed to send email via {provider} to {to_email}: {e}")
            return False

        logger.info(f"Email sent via {provider}: {subject!r} to {to_email}")
        return True

    def _send_resend(self, to_email: str, subject: str, text_body: str, html_body: str):
        resend = get_resend(self.settings.resend_api_key)
        resend.Emails.send({
            "from": self.settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_body,
            "text": text_body,
        })

    def _send_smtp(self, to_email: str, subject: str, text_body: str, html_body: str):
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.email_from
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        host, port = self.settings.smtp_host, self.settings.smtp_port
        if port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(host, port, context=context, timeout=30) as s:
                if self.settings.smtp_user:
                    s.login(self.settings.smtp_user, self.settings.smtp_pass or "")
                s.sendmail(self.settings.email_from, [to_email], msg.as_string())
        else:
            with smtplib.SMTP(host, port, timeout=30) as s:
                s.ehlo()
                if s.has_extn("starttls"):
                    s.starttls(context=ssl.create_default_context())
                    s.ehlo()
                if self.settings.smtp_user:
                    s.login(self.settings.smtp_user, self.settings.smtp_pass or "")
                s.sendmail(self.settings.email_from, [to_email], msg.as_string())


# Singleton instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get the singleton EmailService instance (also used as a dependency)."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
