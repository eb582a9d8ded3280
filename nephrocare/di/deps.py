from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials

from nephrocare.alert_rules import NotificationRulesEngine, RuleSessionStore
from nephrocare.errors import UnauthorizedError
from nephrocare.security import SessionUser, bearer_scheme
from nephrocare.services import AlertService, NotificationService, PatientService
from .container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if not container:
        raise RuntimeError("Service container not initialized")
    return container


def get_notification_service(
    container: ServiceContainer = Depends(get_container),
) -> NotificationService:
    service = container.notification_service
    if service is None:
        raise RuntimeError("Notification service not initialized")
    return service


def get_alert_service(container: ServiceContainer = Depends(get_container)) -> AlertService:
    service = container.alert_service
    if service is None:
        raise RuntimeError("Alert service not initialized")
    return service


def get_patient_service(container: ServiceContainer = Depends(get_container)) -> PatientService:
    service = container.patient_service
    if service is None:
        raise RuntimeError("Patient service not initialized")
    return service


def get_rules_engine(
    container: ServiceContainer = Depends(get_container),
) -> NotificationRulesEngine:
    engine = container.rules_engine
    if engine is None:
        raise RuntimeError("Rules engine not initialized")
    return engine


def get_rule_sessions(container: ServiceContainer = Depends(get_container)) -> RuleSessionStore:
    store = container.rule_sessions
    if store is None:
        raise RuntimeError("Rule session store not initialized")
    return store


def optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    container: ServiceContainer = Depends(get_container),
) -> Optional[SessionUser]:
    """Session user when a bearer token is present; invalid tokens still fail."""
    if credentials is None or not credentials.credentials:
        return None
    if container.session_validator is None:
        raise RuntimeError("Session validator not initialized")
    return container.session_validator.validate(credentials.credentials)


def require_user(user: Optional[SessionUser] = Depends(optional_user)) -> SessionUser:
    if user is None:
        raise UnauthorizedError()
    return user
