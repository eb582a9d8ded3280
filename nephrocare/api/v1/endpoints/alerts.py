from fastapi import APIRouter, Depends

from nephrocare.di import get_alert_service, require_user
from nephrocare.schemas import AlertRead
from nephrocare.security import SessionUser
from nephrocare.services import AlertService

router = APIRouter()


# The web client resolves alerts by fetching this URL, so GET performs the
# resolution. The POST form is the one new clients should use.
@router.get("/alerts/{alert_id}", response_model=AlertRead)
@router.post("/alerts/{alert_id}/resolve", response_model=AlertRead)
async def resolve_alert(
    alert_id: str,
    user: SessionUser = Depends(require_user),
    service: AlertService = Depends(get_alert_service),
):
    return await service.resolve(alert_id, user)
