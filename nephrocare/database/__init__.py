"""
Database module for the CKD follow-up backend.

Provides connection management and ORM models.
"""

from .connection import Database, connect_redis, normalize_database_url
from .models import (
    Base, User, Patient, MedicalInfo, Historique, Notification, NotificationPreference
)

__all__ = [
    "Database",
    "connect_redis",
    "normalize_database_url",
    "Base",
    "User",
    "Patient",
    "MedicalInfo",
    "Historique",
    "Notification",
    "NotificationPreference",
]
