import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import ValidationError

from nephrocare.di import get_notification_service, require_user
from nephrocare.errors import ValidationFailed
from nephrocare.schemas import (
    MarkAllReadResponse,
    NotificationCreate,
    NotificationFilters,
    NotificationPage,
    NotificationRead,
    NotificationSkipped,
    NotificationStats,
    NotificationStatusUpdate,
    PreferenceRead,
    PreferenceUpdate,
)
from nephrocare.security import SessionUser
from nephrocare.services import NotificationService
from nephrocare.utils.error_responses import format_validation_errors

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_filters(**values: Any) -> NotificationFilters:
    try:
        return NotificationFilters(**{k: v for k, v in values.items() if v is not None})
    except ValidationError as exc:
        raise ValidationFailed(details=format_validation_errors(exc.errors())) from exc


@router.get("/notifications", response_model=NotificationPage)
async def list_notifications(
    page: int = Query(1),
    limit: int = Query(20),
    patient_id: Optional[str] = Query(None, alias="patientId"),
    type: Optional[List[str]] = Query(None),
    category: Optional[List[str]] = Query(None),
    priority: Optional[List[str]] = Query(None),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    read: Optional[bool] = Query(None),
    action_required: Optional[bool] = Query(None, alias="actionRequired"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    user: SessionUser = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    """
    Paginated inbox for the current clinician.

    List filters accept repeated parameters or comma-separated values
    (``?priority=high,urgent``).
    """
    filters = _build_filters(
        page=page,
        limit=limit,
        patient_id=patient_id,
        type=type,
        category=category,
        priority=priority,
        status=status_filter,
        read=read,
        action_required=action_required,
        start_date=start_date,
        end_date=end_date,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return await service.list(user.user_id, filters)


@router.post(
    "/notifications",
    status_code=status.HTTP_201_CREATED,
    response_model=Union[NotificationRead, NotificationSkipped],
)
async def create_notification(
    payload: NotificationCreate,
    response: Response,
    user: SessionUser = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    result = await service.create(user.user_id, payload)
    if result.get("skipped"):
        response.status_code = status.HTTP_200_OK
    return result


@router.post("/notifications/read-all", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(
    user: SessionUser = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    return MarkAllReadResponse(updated=await service.mark_all_read(user.user_id))


@router.get("/notifications/unread-count")
async def unread_count(
    user: SessionUser = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
) -> Dict[str, int]:
    return {"count": await service.unread_count(user.user_id)}


@router.get("/notifications/stats", response_model=NotificationStats)
async def notification_stats(
    user: SessionUser = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.stats(user.user_id)


@router.get("/notifications/preferences", response_model=List[PreferenceRead])
async def get_preferences(
    user: SessionUser = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.get_preferences(user.user_id)


@router.put("/notifications/preferences", response_model=PreferenceRead)
async def update_preferences(
    payload: PreferenceUpdate,
    user: SessionUser = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.update_preferences(user.user_id, payload)


@router.get("/notifications/{notification_id}", response_model=NotificationRead)
async def get_notification(
    notification_id: str,
    user: SessionUser = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.get(notification_id, user.user_id)


@router.post("/notifications/{notification_id}/read", response_model=NotificationRead)
async def mark_notification_read(
    notification_id: str,
    user: SessionUser = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.mark_read(notification_id, user.user_id)


@router.patch("/notifications/{notification_id}/status", response_model=NotificationRead)
async def update_notification_status(
    notification_id: str,
    payload: NotificationStatusUpdate,
    user: SessionUser = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.update_status(notification_id, user.user_id, payload.status)
