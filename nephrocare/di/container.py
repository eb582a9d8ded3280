import logging
from typing import Optional

from nephrocare.alert_rules import NotificationRulesEngine, RuleSessionStore
from nephrocare.cache import CacheClient
from nephrocare.config import Settings
from nephrocare.database.connection import Database, connect_redis
from nephrocare.email import AccountEmailService, EmailService
from nephrocare.rate_limit import FixedWindowRateLimiter
from nephrocare.security import SessionValidator
from nephrocare.services import AlertService, NotificationService, PatientService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Process-wide handles built once at startup and injected into routes.

    Any handle assigned before ``startup()`` is kept as-is, which lets tests
    supply a temporary database or an in-memory Redis double.
    """

    def __init__(self, settings: Settings, *, create_schema: bool = False) -> None:
        self.settings = settings
        self.create_schema = create_schema

        self.database: Optional[Database] = None
        self.redis = None
        self.cache: Optional[CacheClient] = None
        self.rate_limiter: Optional[FixedWindowRateLimiter] = None
        self.session_validator: Optional[SessionValidator] = None
        self.notification_service: Optional[NotificationService] = None
        self.alert_service: Optional[AlertService] = None
        self.patient_service: Optional[PatientService] = None
        self.rules_engine: Optional[NotificationRulesEngine] = None
        self.rule_sessions: Optional[RuleSessionStore] = None
        self.email_service: Optional[EmailService] = None
        self.account_emails: Optional[AccountEmailService] = None

    async def startup(self) -> None:
        self.settings.validate()

        if self.database is None:
            logger.info("Connecting to database...")
            self.database = Database(self.settings.database_url, echo=self.settings.debug)
        if self.create_schema:
            await self.database.create_all()

        if self.redis is None:
            self.redis = await connect_redis(self.settings.redis_url)

        if self.cache is None:
            self.cache = CacheClient(self.redis, default_ttl=self.settings.cache_default_ttl_seconds)
        if self.rate_limiter is None:
            self.rate_limiter = FixedWindowRateLimiter(self.redis)
        if self.session_validator is None:
            self.session_validator = SessionValidator(
                self.settings.session_secret, issuer=self.settings.session_issuer
            )

        if self.notification_service is None:
            self.notification_service = NotificationService(self.database, self.cache)
        if self.alert_service is None:
            self.alert_service = AlertService(self.database, self.cache)
        if self.patient_service is None:
            self.patient_service = PatientService(self.database, self.cache)

        if self.rules_engine is None:
            self.rules_engine = NotificationRulesEngine(self.notification_service.create)
        if self.rule_sessions is None:
            self.rule_sessions = RuleSessionStore(
                ttl_seconds=self.settings.rule_session_ttl_seconds,
                max_sessions=self.settings.rule_session_max_entries,
            )

        if self.email_service is None:
            self.email_service = EmailService.from_settings(self.settings)
        if self.account_emails is None:
            self.account_emails = AccountEmailService(
                self.email_service,
                app_name=self.settings.smtp_from_name,
                app_base_url=self.settings.app_base_url,
                support_email=self.settings.support_email,
            )

        logger.info(
            "✓ Service container initialized (cache %s)",
            "enabled" if self.cache.available else "disabled",
        )

    async def shutdown(self) -> None:
        if self.redis is not None:
            try:
                await self.redis.aclose()
            except Exception as e:
                logger.warning(f"Error closing Redis connection: {e}")
            self.redis = None

        if self.database is not None:
            await self.database.dispose()
