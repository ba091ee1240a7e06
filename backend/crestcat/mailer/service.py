"""
Email Service Module

Sends the transactional emails of the investment lifecycle (deposit and
withdrawal receipts, closure updates) over SMTP, rendered from Jinja2
templates.
"""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from jinja2 import Environment, FileSystemLoader
from tenacity import retry, stop_after_attempt, wait_exponential

from crestcat.core.logging import get_logger
from crestcat.core.settings import settings

# Initialize logger
logger = get_logger(__name__)

# Initialize Jinja2 environment
template_dir = Path(__file__).parent / "templates"
env = Environment(
    loader=FileSystemLoader(template_dir),
    autoescape=True
)


def render_template(template_name: str, data: Optional[Dict[str, Any]] = None) -> str:
    """Render ``<template_name>.html`` with the shared footer variables."""
    template = env.get_template(f"{template_name}.html")
    return template.render(
        app_name=settings.app.TITLE,
        currency=settings.ledger.CURRENCY,
        **(data or {})
    )


class EmailService:
    """Service for sending transactional emails."""

    def __init__(self, config=None):
        config = config or settings.notify
        self.enabled = config.EMAIL_ENABLED
        self.smtp_host = config.SMTP_HOST
        self.smtp_port = config.SMTP_PORT
        self.smtp_user = config.SMTP_USER
        self.smtp_password = config.SMTP_PASSWORD.get_secret_value()
        self.from_email = config.SMTP_FROM_EMAIL

    async def _send_smtp(
        self,
        to_emails: List[str],
        subject: str,
        html_body: str
    ) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = ", ".join(to_emails)
        msg.attach(MIMEText(html_body, "html"))

        # smtplib blocks; keep it off the event loop
        await asyncio.to_thread(self._send_message, msg)

    def _send_message(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
            server.starttls()
            if self.smtp_user:
                server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True
    )
    async def send_email(
        self,
        to_emails: Union[str, List[str]],
        subject: str,
        template_name: str,
        template_data: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Render a template and send it.

        Args:
            to_emails: Recipient email(s)
            subject: Email subject
            template_name: Template name without the ``.html`` suffix
            template_data: Template variables

        Returns:
            False when email delivery is disabled, True once sent

        Raises:
            jinja2.TemplateNotFound: Unknown template
            smtplib.SMTPException: If sending fails after retries
        """
        if isinstance(to_emails, str):
            to_emails = [to_emails]

        if not self.enabled:
            logger.info(
                "Email delivery disabled, skipping",
                extra={"to": to_emails, "subject": subject, "template": template_name}
            )
            return False

        try:
            html_body = render_template(template_name, template_data)
            await self._send_smtp(to_emails, subject, html_body)
        except Exception as e:
            logger.error(
                "Failed to send email",
                exc_info=True,
                extra={
                    "to": to_emails,
                    "subject": subject,
                    "template": template_name,
                    "error": str(e)
                }
            )
            raise

        logger.info(
            "Email sent successfully",
            extra={"to": to_emails, "subject": subject, "template": template_name}
        )
        return True


# Create singleton instance
email_service = EmailService()
