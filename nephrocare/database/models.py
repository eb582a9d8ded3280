"""
SQLAlchemy models for the CKD follow-up database.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Clinician account mirrored from the identity provider."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True)
    firstname = Column(String(255), nullable=False)
    lastname = Column(String(255), nullable=False, index=True)
    birthdate = Column(String(10), nullable=False)
    email = Column(String(255), nullable=False)
    sex = Column(String(1), nullable=False)
    phone = Column(String(50), nullable=False)
    address = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    medical_info = relationship(
        "MedicalInfo", back_populates="patient", uselist=False, cascade="all, delete-orphan"
    )


class MedicalInfo(Base):
    """Current CKD metrics for a patient with the value each one replaced."""

    __tablename__ = "medical_info"

    id = Column(String(36), primary_key=True)
    patient_id = Column(
        String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    stage = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="stable", index=True)
    medecin = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    dfg = Column(Integer, nullable=False, default=0)
    previous_dfg = Column(Integer, nullable=False, default=0)
    proteinurie = Column(Float, nullable=False, default=0)
    previous_proteinurie = Column(Float, nullable=False, default=0)
    last_visit = Column(DateTime(timezone=True))
    next_visit = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    patient = relationship("Patient", back_populates="medical_info")


class Historique(Base):
    """Patient history entry; entries of type ``alert`` are clinical alerts."""

    __tablename__ = "historique"

    id = Column(String(36), primary_key=True)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    description = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)
    alert_type = Column(String(50))
    medecin = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), index=True)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)
    category = Column(String(50), nullable=False)
    priority = Column(String(20), nullable=False, default="normal")
    status = Column(String(20), nullable=False, default="pending")
    read = Column(Boolean, nullable=False, default=False)
    action_required = Column(Boolean, nullable=False, default=False)
    action_type = Column(String(50))
    action_url = Column(Text)
    scheduled_for = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True))
    notification_metadata = Column("metadata", JSON)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "read"),
        Index("idx_notifications_user_created", "user_id", "created_at"),
    )


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category = Column(String(50), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    push_enabled = Column(Boolean, nullable=False, default=True)
    sms_enabled = Column(Boolean, nullable=False, default=False)
    min_priority = Column(String(20), nullable=False, default="normal")
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_preferences_user_category", "user_id", "category", unique=True),
    )
