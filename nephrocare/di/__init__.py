from .container import ServiceContainer
from .deps import (
    get_alert_service,
    get_container,
    get_notification_service,
    get_patient_service,
    get_rule_sessions,
    get_rules_engine,
    optional_user,
    require_user,
)

__all__ = [
    "ServiceContainer",
    "get_container",
    "get_notification_service",
    "get_alert_service",
    "get_patient_service",
    "get_rules_engine",
    "get_rule_sessions",
    "optional_user",
    "require_user",
]
