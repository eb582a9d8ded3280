"""Pydantic request and response models.

Payloads use camelCase on the wire, matching the web client, while Python
code uses snake_case attribute names.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

Priority = Literal["low", "normal", "high", "urgent"]
NotificationStatus = Literal["pending", "in_progress", "completed", "dismissed"]
PatientStatus = Literal["stable", "improving", "worsening", "critical"]
SortField = Literal["createdAt", "priority", "scheduledFor", "expiresAt"]

PRIORITY_RANK = {"low": 0, "normal": 1, "high": 2, "urgent": 3}


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive timestamps; they are stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ==================== Notifications ====================


class NotificationCreate(CamelModel):
    patient_id: Optional[str] = None
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    priority: Priority = "normal"
    status: NotificationStatus = "pending"
    action_required: bool = False
    action_type: Optional[str] = None
    action_url: Optional[str] = None
    scheduled_for: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("title", "message", "type", "category")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class NotificationRead(CamelModel):
    id: str
    user_id: str
    patient_id: Optional[str] = None
    title: str
    message: str
    type: str
    category: str
    priority: str
    status: str
    read: bool
    action_required: bool
    action_type: Optional[str] = None
    action_url: Optional[str] = None
    scheduled_for: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("notification_metadata", "metadata"),
        serialization_alias="metadata",
    )
    created_at: datetime
    updated_at: datetime

    _utc = field_validator("scheduled_for", "expires_at", "created_at", "updated_at")(as_utc)


class NotificationFilters(CamelModel):
    patient_id: Optional[str] = None
    type: Optional[List[str]] = None
    category: Optional[List[str]] = None
    priority: Optional[List[str]] = None
    status: Optional[List[str]] = None
    read: Optional[bool] = None
    action_required: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: SortField = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"

    @field_validator("type", "category", "priority", "status", mode="before")
    @classmethod
    def split_csv(cls, value):
        if value is None:
            return None
        if isinstance(value, str):
            value = [value]
        items = [part.strip() for item in value for part in str(item).split(",") if part.strip()]
        return items or None

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("startDate must be before endDate")
        return self


class Pagination(CamelModel):
    page: int
    limit: int
    total_items: int
    total_pages: int


class NotificationPage(CamelModel):
    data: List[NotificationRead]
    pagination: Pagination


class NotificationSkipped(CamelModel):
    skipped: bool = True
    reason: str


class NotificationStatusUpdate(CamelModel):
    status: NotificationStatus


class NotificationStats(CamelModel):
    total: int
    unread: int
    action_required: int
    by_priority: Dict[str, int]
    by_category: Dict[str, int]


class PreferenceUpdate(CamelModel):
    category: str = Field(..., min_length=1)
    enabled: Optional[bool] = None
    email_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
    sms_enabled: Optional[bool] = None
    min_priority: Optional[Priority] = None


class PreferenceRead(CamelModel):
    id: str
    user_id: str
    category: str
    enabled: bool
    email_enabled: bool
    push_enabled: bool
    sms_enabled: bool
    min_priority: str


class SuccessResponse(CamelModel):
    success: bool = True


class MarkAllReadResponse(SuccessResponse):
    updated: int


# ==================== Alerts ====================


class AlertRead(CamelModel):
    id: str
    patient_id: str
    title: str
    date: datetime
    description: str
    type: str
    alert_type: Optional[str] = None
    medecin: str
    is_resolved: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    _utc = field_validator("date", "created_at", "updated_at")(as_utc)


# ==================== Patients ====================


class MedicalInfoUpdate(CamelModel):
    stage: Optional[int] = Field(None, ge=1, le=5)
    status: Optional[PatientStatus] = None
    dfg: Optional[int] = Field(None, ge=0)
    proteinurie: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def require_one_field(self):
        if all(v is None for v in (self.stage, self.status, self.dfg, self.proteinurie)):
            raise ValueError("at least one of stage, status, dfg or proteinurie is required")
        return self


class PatientSnapshotRead(CamelModel):
    patient_id: str
    firstname: str
    lastname: str
    stage: int
    status: str
    dfg: int
    previous_dfg: Optional[int] = None
    proteinurie: float
    previous_proteinurie: Optional[float] = None


class CriticalPatient(CamelModel):
    id: str
    firstname: str
    lastname: str
    stage: int
    status: str
    dfg: int
    proteinurie: float
    last_visit: Optional[datetime] = None
    next_visit: Optional[datetime] = None


class RuleFailure(CamelModel):
    key: str
    error: str


class EvaluationResponse(CamelModel):
    patient: PatientSnapshotRead
    notifications: List[NotificationRead]
    suppressed: List[str]
    filtered: List[str]
    failures: List[RuleFailure]


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float
    timestamp: str
    database: str
    cache: str
    cache_stats: Optional[Dict[str, Any]] = None
