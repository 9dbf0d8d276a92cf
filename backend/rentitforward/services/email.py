# backend/rentitforward/services/email.py
"""
Email Service for the Rent It Forward platform

Sends transactional email through Resend. With ``EMAIL_PROVIDER=console``
(the development default) or no Resend key, messages are written to the log
instead so the booking flow can run without a provider account.
"""

import logging
import re
from typing import Any, Dict, Optional

import resend
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ServiceException
from .base import BaseService

logger = logging.getLogger(__name__)


class EmailService(BaseService):
    """Service for sending emails using the Resend API."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.from_email = settings.from_email
        self.use_resend = settings.email_provider == "resend" and bool(settings.resend_api_key)
        if self.use_resend:
            resend.api_key = settings.resend_api_key
        elif settings.email_provider == "resend":
            self.logger.warning("Resend selected but RESEND_API_KEY is missing; logging emails instead")

    def _html_to_text(self, html_content: str) -> str:
        """Convert HTML content to plain text for better deliverability"""
        text = re.sub(r"<[^>]+>", "", html_content)
        text = re.sub(r"\s+", " ", text)
        return text.strip()

    @BaseService.measure_operation("send_email")
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send one email.

        Replies go to ``reply_to`` when given, otherwise to the sender.

        Returns:
            The provider response (``{"id": "console"}`` when logging only)

        Raises:
            ServiceException: If the provider rejects the message
        """
        if not text_content:
            text_content = self._html_to_text(html_content)

        if not self.use_resend:
            self.logger.info(f"[console email] to={to_email} subject={subject}\n{text_content}")
            return {"id": "console"}

        email_data: Dict[str, Any] = {
            "from": self.from_email,
            "to": to_email,
            "subject": subject,
            "html": html_content,
            "text": text_content,
        }
        if reply_to:
            email_data["reply_to"] = reply_to
        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            error_msg = str(e) or "Unknown error"
            self.logger.error(f"Failed to send email to {to_email}: {error_msg}")
            self.log_operation("email_failed", to_email=to_email, subject=subject, error=error_msg)
            raise ServiceException(f"Email sending failed: {error_msg}")

        self.log_operation("email_sent", to_email=to_email, subject=subject)
        return dict(response) if response else {}
