"""
Patient Test Fixtures
Seed helpers writing realistic but fake CKD records into a test database.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from nephrocare.database import Database, Historique, MedicalInfo, Patient, User


FIRST_NAMES = ["Marie", "Jean", "Claire", "Luc", "Sophie", "Paul", "Camille", "Hugo"]
LAST_NAMES = ["Martin", "Bernard", "Dubois", "Thomas", "Robert", "Petit", "Durand", "Leroy"]


class PatientFactory:
    """Factory for generating test clinicians, patients and alerts."""

    _counter = 0

    @classmethod
    def reset(cls):
        """Reset the counter for deterministic test runs."""
        cls._counter = 0

    @classmethod
    def _next(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    async def clinician(
        cls,
        database: Database,
        user_id: Optional[str] = None,
        name: str = "Dr Test",
        email: Optional[str] = None,
    ) -> str:
        n = cls._next()
        user_id = user_id or f"clinician-{n}"
        async with database.session() as session:
            session.add(User(id=user_id, name=name, email=email or f"{user_id}@example.org"))
        return user_id

    @classmethod
    async def patient(
        cls,
        database: Database,
        medecin: str,
        firstname: Optional[str] = None,
        lastname: Optional[str] = None,
        status: str = "stable",
        stage: int = 3,
        dfg: int = 45,
        previous_dfg: int = 0,
        proteinurie: float = 0.3,
        previous_proteinurie: float = 0,
    ) -> str:
        n = cls._next()
        patient_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        async with database.session() as session:
            session.add(
                Patient(
                    id=patient_id,
                    firstname=firstname or FIRST_NAMES[n % len(FIRST_NAMES)],
                    lastname=lastname or LAST_NAMES[n % len(LAST_NAMES)],
                    birthdate="1960-04-12",
                    email=f"patient{n}@example.org",
                    sex="F" if n % 2 else "M",
                    phone="+33 6 00 00 00 00",
                    address="1 rue de la Paix, Paris",
                )
            )
            session.add(
                MedicalInfo(
                    id=str(uuid.uuid4()),
                    patient_id=patient_id,
                    stage=stage,
                    status=status,
                    medecin=medecin,
                    dfg=dfg,
                    previous_dfg=previous_dfg,
                    proteinurie=proteinurie,
                    previous_proteinurie=previous_proteinurie,
                    last_visit=now - timedelta(days=30),
                    next_visit=now + timedelta(days=60),
                )
            )
        return patient_id

    @classmethod
    async def alert(
        cls,
        database: Database,
        patient_id: str,
        medecin: str,
        is_resolved: bool = False,
        title: str = "Hyperkaliémie",
    ) -> str:
        alert_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        async with database.session() as session:
            session.add(
                Historique(
                    id=alert_id,
                    patient_id=patient_id,
                    title=title,
                    date=now,
                    description="Potassium à 6.2 mmol/L",
                    type="alert",
                    alert_type="lab",
                    medecin=medecin,
                    is_resolved=is_resolved,
                    created_at=now,
                    updated_at=now,
                )
            )
        return alert_id
