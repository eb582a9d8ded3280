from .alert_service import AlertService
from .notification_service import NotificationService
from .patient_service import PatientService

__all__ = ["AlertService", "NotificationService", "PatientService"]
