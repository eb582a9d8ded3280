import logging
from dataclasses import asdict
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from nephrocare.alert_rules import (
    EvaluationOutcome,
    NotificationRulesEngine,
    PatientSnapshot,
    RuleSessionStore,
)
from nephrocare.di import (
    get_patient_service,
    get_rule_sessions,
    get_rules_engine,
    require_user,
)
from nephrocare.schemas import (
    CriticalPatient,
    EvaluationResponse,
    MedicalInfoUpdate,
    PatientSnapshotRead,
)
from nephrocare.security import SessionUser
from nephrocare.services import PatientService

logger = logging.getLogger(__name__)

router = APIRouter()


def _evaluation_payload(snapshot: PatientSnapshot, outcome: EvaluationOutcome) -> Dict[str, Any]:
    return {
        "patient": PatientSnapshotRead(**asdict(snapshot)).model_dump(mode="json", by_alias=True),
        "notifications": outcome.delivered,
        "suppressed": outcome.suppressed,
        "filtered": outcome.filtered,
        "failures": [asdict(failure) for failure in outcome.failures],
    }


@router.get("/patients/critical", response_model=List[CriticalPatient])
async def critical_patients(
    user: SessionUser = Depends(require_user),
    service: PatientService = Depends(get_patient_service),
):
    return await service.get_critical_patients()


@router.patch("/patients/{patient_id}/medical-info", response_model=EvaluationResponse)
async def update_medical_info(
    patient_id: str,
    payload: MedicalInfoUpdate,
    user: SessionUser = Depends(require_user),
    service: PatientService = Depends(get_patient_service),
    engine: NotificationRulesEngine = Depends(get_rules_engine),
    sessions: RuleSessionStore = Depends(get_rule_sessions),
):
    """Update a patient's metrics, then notify the clinician of any rule that fires."""
    snapshot = await service.update_medical_info(patient_id, user, payload)
    outcome = await engine.run(snapshot, sessions.get(user.user_id, patient_id), user.user_id)
    return _evaluation_payload(snapshot, outcome)


@router.post("/patients/{patient_id}/alerts/evaluate", response_model=EvaluationResponse)
async def evaluate_patient_alerts(
    patient_id: str,
    user: SessionUser = Depends(require_user),
    service: PatientService = Depends(get_patient_service),
    engine: NotificationRulesEngine = Depends(get_rules_engine),
    sessions: RuleSessionStore = Depends(get_rule_sessions),
):
    snapshot = await service.get_snapshot(patient_id)
    outcome = await engine.run(snapshot, sessions.get(user.user_id, patient_id), user.user_id)
    return _evaluation_payload(snapshot, outcome)
