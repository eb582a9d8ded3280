"""
Account lifecycle emails sent on behalf of the identity provider.

The identity provider owns accounts and tokens; it calls into this service
with a ready-made link whenever a user must verify an address or reset a
password. Nothing here raises: a failed send is logged and reported as
``False`` so sign-up and reset flows never break on mail trouble.
"""

import logging
from typing import Any, Dict, Optional

from .email_service import EmailService
from .templates import get_email_template

logger = logging.getLogger(__name__)


class AccountEmailService:
    def __init__(
        self,
        email_service: EmailService,
        app_name: str = "NephroCare",
        app_base_url: str = "http://localhost:3000",
        support_email: Optional[str] = None,
    ):
        self.email_service = email_service
        self.app_name = app_name
        self.app_base_url = app_base_url.rstrip("/")
        self.support_email = support_email

    async def _send(self, template_type: str, to_email: str, **context: Any) -> bool:
        template = get_email_template(template_type)
        subject, html_body, text_body = template(
            app_name=self.app_name,
            support_email=self.support_email,
            **context,
        )
        sent = await self.email_service.send_email(to_email, subject, html_body, text_body)
        if not sent:
            logger.warning("%s email to %s was not delivered", template_type, to_email)
        return sent

    async def send_verification_email(
        self, email: str, url: str, user_name: Optional[str] = None
    ) -> bool:
        return await self._send("email_verification", email, url=url, user_name=user_name)

    async def send_password_reset_email(
        self, email: str, url: str, user_name: Optional[str] = None
    ) -> bool:
        return await self._send("password_reset", email, url=url, user_name=user_name)

    async def send_notification_email(
        self,
        email: str,
        notification: Dict[str, Any],
        user_name: Optional[str] = None,
    ) -> bool:
        """Mirror a stored notification (camelCase record) by email."""
        action_url = notification.get("actionUrl")
        if action_url and action_url.startswith("/"):
            action_url = f"{self.app_base_url}{action_url}"
        return await self._send(
            "notification",
            email,
            title=notification.get("title", ""),
            message=notification.get("message", ""),
            action_url=action_url,
            user_name=user_name,
        )
