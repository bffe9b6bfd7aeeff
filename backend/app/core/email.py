"""
Email notification service using SendGrid or SMTP.
"""

from typing import Optional, Dict, Any, List
from enum import Enum
import asyncio
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content
import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from .config import settings
from .logger import logger


class EmailTemplate(str, Enum):
    """Email template types."""
    ADMIN_INFO_UPDATE_REQUEST = "admin_info_update_request"
    RESIDENT_INFO_UPDATE_APPROVED = "resident_info_update_approved"
    RESIDENT_INFO_UPDATE_REJECTED = "resident_info_update_rejected"


TEMPLATES = {
    EmailTemplate.ADMIN_INFO_UPDATE_REQUEST: {
        "subject": "Information Update Request - {resident_name}",
        "body": """
        <h2>New Information Update Request</h2>
        <p>{resident_name} ({resident_id}) asked to update their profile on {requested_at}.</p>
        <p><strong>Fields:</strong></p>
        <ul>{field_list}</ul>
        <p><a href="{review_link}">Review the request</a></p>
        """
    },
    EmailTemplate.RESIDENT_INFO_UPDATE_APPROVED: {
        "subject": "Your information update was approved",
        "body": """
        <h2>Information Update Approved</h2>
        <p>Dear {resident_name},</p>
        <p>Your request from {requested_at} has been approved and your profile has been updated.</p>
        <p><a href="{profile_link}">View your profile</a></p>
        """
    },
    EmailTemplate.RESIDENT_INFO_UPDATE_REJECTED: {
        "subject": "Your information update was not approved",
        "body": """
        <h2>Information Update Rejected</h2>
        <p>Dear {resident_name},</p>
        <p>Your request from {requested_at} was reviewed and not approved.</p>
        <p><strong>Notes:</strong> {review_notes}</p>
        <p>Please contact the barangay office for details.</p>
        """
    },
}


class EmailService:
    """
    Service for sending email notifications.
    Supports both SendGrid and SMTP backends.
    """

    def __init__(self):
        """Initialize email service with configured provider."""
        self._use_sendgrid = bool(settings.SENDGRID_API_KEY)

        if self._use_sendgrid:
            self._sendgrid_client = SendGridAPIClient(settings.SENDGRID_API_KEY)

    @property
    def enabled(self) -> bool:
        """True when SendGrid or SMTP credentials are configured."""
        return self._use_sendgrid or bool(settings.SMTP_USERNAME)

    def render(self, template: EmailTemplate, data: Dict[str, Any]) -> Dict[str, str]:
        """Interpolate template data into subject and body."""
        template_data = TEMPLATES[template]
        return {
            "subject": template_data["subject"].format(**data),
            "body": template_data["body"].format(**data),
        }

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        to_name: Optional[str] = None
    ) -> bool:
        """
        Send an email using the configured provider.

        Returns:
            True if email was sent successfully
        """
        if not self.enabled:
            logger.debug(f"Email disabled, skipping message to {to_email}")
            return False

        if self._use_sendgrid:
            return await self._send_via_sendgrid(to_email, subject, html_content, to_name)
        return await self._send_via_smtp(to_email, subject, html_content, to_name)

    async def _send_via_sendgrid(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        to_name: Optional[str] = None
    ) -> bool:
        """Send email via SendGrid."""
        try:
            message = Mail(
                from_email=Email(settings.FROM_EMAIL, settings.FROM_NAME),
                to_emails=To(to_email, to_name),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            # sendgrid client is synchronous
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                None,
                lambda: self._sendgrid_client.send(message)
            )
            return True

        except Exception as e:
            logger.warning(f"SendGrid email error for {to_email}: {e}")
            return False

    async def _send_via_smtp(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        to_name: Optional[str] = None
    ) -> bool:
        """Send email via SMTP."""
        try:
            message = MIMEMultipart("alternative")
            message["Subject"] = subject
            message["From"] = f"{settings.FROM_NAME} <{settings.FROM_EMAIL}>"
            message["To"] = f"{to_name} <{to_email}>" if to_name else to_email
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                username=settings.SMTP_USERNAME,
                password=settings.SMTP_PASSWORD,
                start_tls=True,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            )
            return True

        except Exception as e:
            logger.warning(f"SMTP email error for {to_email}: {e}")
            return False

    async def send_template_email(
        self,
        to_email: str,
        template: EmailTemplate,
        data: Dict[str, Any],
        to_name: Optional[str] = None
    ) -> bool:
        """Send an email using a predefined template."""
        content = self.render(template, data)
        return await self.send_email(
            to_email=to_email,
            subject=content["subject"],
            html_content=content["body"],
            to_name=to_name
        )

    async def send_bulk_emails(
        self,
        recipients: List[Dict[str, Any]],
        template: EmailTemplate,
        common_data: Dict[str, Any]
    ) -> Dict[str, bool]:
        """
        Send the same template email to multiple recipients.

        Args:
            recipients: List of dicts with 'email' and optional 'name' keys

        Returns:
            Dictionary mapping email addresses to send success status
        """
        results = {}
        for recipient in recipients:
            email = recipient.get("email")
            results[email] = await self.send_template_email(
                to_email=email,
                template=template,
                data=common_data,
                to_name=recipient.get("name")
            )
        return results


# Singleton instance
email_service = EmailService()
