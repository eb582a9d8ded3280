"""
Patient metric snapshots read by the rules engine.

Updating a metric copies the value it replaces into the matching
``previous_*`` column, so the rules always compare against the measurement
that was current just before.
"""

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import select

from nephrocare.alert_rules import PatientSnapshot
from nephrocare.cache import CacheClient
from nephrocare.database.connection import Database
from nephrocare.database.models import Historique, MedicalInfo, Patient, utcnow
from nephrocare.errors import NotFoundError, UnauthorizedError
from nephrocare.schemas import CriticalPatient, MedicalInfoUpdate
from nephrocare.security import SessionUser

logger = logging.getLogger(__name__)

CRITICAL_LIST_TTL = 60

_FIELD_LABELS = {
    "stage": "Stade",
    "status": "Statut",
    "dfg": "DFG",
    "proteinurie": "Protéinurie",
}


def _to_snapshot(patient: Patient, info: MedicalInfo) -> PatientSnapshot:
    return PatientSnapshot(
        patient_id=patient.id,
        firstname=patient.firstname,
        lastname=patient.lastname,
        status=info.status,
        dfg=info.dfg,
        proteinurie=info.proteinurie,
        previous_dfg=info.previous_dfg,
        previous_proteinurie=info.previous_proteinurie,
        stage=info.stage,
    )


class PatientService:
    def __init__(self, database: Database, cache: CacheClient):
        self.database = database
        self.cache = cache

    async def _load(self, session, patient_id: str):
        result = await session.execute(
            select(Patient, MedicalInfo)
            .join(MedicalInfo, MedicalInfo.patient_id == Patient.id)
            .where(Patient.id == patient_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError(f"Patient {patient_id} not found")
        return row

    async def get_snapshot(self, patient_id: str) -> PatientSnapshot:
        key = f"patients:{patient_id}"
        cached = await self.cache.get(key)
        if cached is not None:
            return PatientSnapshot(**cached)

        async with self.database.session() as session:
            patient, info = await self._load(session, patient_id)
            snapshot = _to_snapshot(patient, info)

        await self.cache.set(key, asdict(snapshot))
        return snapshot

    async def get_critical_patients(self) -> List[Dict[str, Any]]:
        """Patients whose status is critical, by stage then last name."""

        async def _query() -> List[Dict[str, Any]]:
            async with self.database.session() as session:
                result = await session.execute(
                    select(Patient, MedicalInfo)
                    .join(MedicalInfo, MedicalInfo.patient_id == Patient.id)
                    .where(MedicalInfo.status == "critical")
                    .order_by(MedicalInfo.stage, Patient.lastname)
                )
                return [
                    CriticalPatient(
                        id=patient.id,
                        firstname=patient.firstname,
                        lastname=patient.lastname,
                        stage=info.stage,
                        status=info.status,
                        dfg=info.dfg,
                        proteinurie=info.proteinurie,
                        last_visit=info.last_visit,
                        next_visit=info.next_visit,
                    ).model_dump(mode="json", by_alias=True)
                    for patient, info in result.all()
                ]

        return await self.cache.with_cache("patients:list:critical", _query, CRITICAL_LIST_TTL)

    async def update_medical_info(
        self,
        patient_id: str,
        caller: Optional[SessionUser],
        changes: MedicalInfoUpdate,
    ) -> PatientSnapshot:
        """Apply metric changes, keeping the replaced values as the new baseline."""
        if caller is None:
            raise UnauthorizedError()

        async with self.database.session() as session:
            patient, info = await self._load(session, patient_id)

            described = []
            for field_name, value in changes.model_dump(exclude_none=True).items():
                current = getattr(info, field_name)
                if current == value:
                    continue
                if field_name == "dfg":
                    info.previous_dfg = current
                elif field_name == "proteinurie":
                    info.previous_proteinurie = current
                setattr(info, field_name, value)
                described.append(f"{_FIELD_LABELS[field_name]}: {current} → {value}")

            now = utcnow()
            if described:
                info.updated_at = now
                session.add(
                    Historique(
                        id=str(uuid4()),
                        patient_id=patient_id,
                        title="Mise à jour des paramètres médicaux",
                        date=now,
                        description="; ".join(described),
                        type="consultation",
                        medecin=caller.user_id,
                        is_resolved=False,
                        created_at=now,
                        updated_at=now,
                    )
                )
            await session.flush()
            snapshot = _to_snapshot(patient, info)

        await self.cache.delete(f"patients:{patient_id}")
        await self.cache.delete_by_pattern("patients:list:*")
        logger.info(
            "Medical info updated for patient %s by %s (%d changes)",
            patient_id,
            caller.user_id,
            len(described),
        )
        return snapshot
