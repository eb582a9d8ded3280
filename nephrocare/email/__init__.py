from .account_emails import AccountEmailService
from .email_service import EmailService

__all__ = ["AccountEmailService", "EmailService"]
