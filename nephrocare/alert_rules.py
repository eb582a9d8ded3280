"""Rule evaluation turning patient metric changes into clinician notifications.

Three independent rules look at a patient's current metrics and the values
they replaced:

* status: the patient is ``critical`` or ``worsening``;
* DFG drop: the filtration rate fell by more than 10% relative to the
  previous measurement;
* proteinuria rise: proteinuria rose by more than 50% and is above 1 g/24h.

A rule only fires once per dedup key within an evaluation session. Keys embed
the current value (``dfg_decrease_85``), so a metric coming back to a value
already notified in the same session stays silent while any new value fires
again. Sessions live in process memory only; a restart starts from scratch.

Deliveries for one pass run concurrently and are joined all-settled: one
failing delivery is logged and reported without cancelling the others.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from nephrocare.schemas import NotificationCreate

logger = logging.getLogger(__name__)

DFG_DROP_RATIO = 0.9
PROTEINURIA_RISE_RATIO = 1.5
PROTEINURIA_FLOOR = 1

Deliver = Callable[[str, NotificationCreate], Awaitable[Dict[str, Any]]]


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _has_baseline(value: Optional[float]) -> bool:
    # The store defaults previous values to 0, which means "never measured".
    return value is not None and value != 0


@dataclass(frozen=True)
class PatientSnapshot:
    """Metrics the rules read, as stored on the patient's medical info."""

    patient_id: str
    firstname: str
    lastname: str
    status: str
    dfg: int
    proteinurie: float
    previous_dfg: Optional[int] = None
    previous_proteinurie: Optional[float] = None
    stage: int = 1

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}"


@dataclass
class NotificationDraft:
    dedup_key: str
    rule: str
    payload: NotificationCreate


@dataclass
class RuleFailure:
    key: str
    error: str


@dataclass
class EvaluationOutcome:
    delivered: List[Dict[str, Any]] = field(default_factory=list)
    suppressed: List[str] = field(default_factory=list)
    filtered: List[str] = field(default_factory=list)
    failures: List[RuleFailure] = field(default_factory=list)


class RuleSession:
    """Keys already notified during one evaluation session."""

    def __init__(self) -> None:
        self._fired: Set[str] = set()
        self.last_access = datetime.now(timezone.utc)

    def has_fired(self, key: str) -> bool:
        return key in self._fired

    def mark_fired(self, key: str) -> None:
        self._fired.add(key)

    @property
    def fired_keys(self) -> frozenset:
        return frozenset(self._fired)

    def touch(self) -> None:
        self.last_access = datetime.now(timezone.utc)


class RuleSessionStore:
    """Keep one ``RuleSession`` per (clinician, patient) with idle expiry."""

    def __init__(self, *, ttl_seconds: int = 3600, max_sessions: int = 1000) -> None:
        self.ttl_seconds = max(ttl_seconds, 0)
        self.max_sessions = max(max_sessions, 1)
        self._sessions: Dict[Tuple[str, str], RuleSession] = {}

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _prune_stale(self) -> None:
        if self.ttl_seconds <= 0:
            return

        cutoff = self._now() - timedelta(seconds=self.ttl_seconds)
        for key, session in list(self._sessions.items()):
            if session.last_access < cutoff:
                self._sessions.pop(key, None)

    def _evict_if_needed(self) -> None:
        if len(self._sessions) <= self.max_sessions:
            return

        oldest_first = sorted(self._sessions.items(), key=lambda item: item[1].last_access)
        for key, _ in oldest_first:
            if len(self._sessions) <= self.max_sessions:
                break
            self._sessions.pop(key, None)

    def get(self, user_id: str, patient_id: str) -> RuleSession:
        self._prune_stale()
        key = (user_id, patient_id)
        session = self._sessions.get(key)
        if session is None:
            session = RuleSession()
            self._sessions[key] = session
            self._evict_if_needed()
        session.touch()
        return session

    def reset(self, user_id: str, patient_id: str) -> None:
        self._sessions.pop((user_id, patient_id), None)

    def __len__(self) -> int:
        return len(self._sessions)


class NotificationRulesEngine:
    """Evaluate patient snapshots and deliver the resulting notifications."""

    def __init__(self, deliver: Optional[Deliver] = None) -> None:
        self.deliver = deliver

    # ==================== Rules ====================

    @staticmethod
    def _status_rule(snapshot: PatientSnapshot) -> Optional[NotificationDraft]:
        if snapshot.status not in ("critical", "worsening"):
            return None

        critical = snapshot.status == "critical"
        return NotificationDraft(
            dedup_key=f"status_{snapshot.status}",
            rule="status_change",
            payload=NotificationCreate(
                patient_id=snapshot.patient_id,
                title="Changement d'état du patient",
                message=(
                    f"L'état de {snapshot.full_name} est maintenant "
                    f"{'critique' if critical else 'en détérioration'}. "
                    "Une attention particulière est requise."
                ),
                type="critical" if critical else "warning",
                category="patient_status",
                priority="urgent" if critical else "high",
                action_required=True,
                action_type="view",
                action_url=f"/patients/{snapshot.patient_id}",
            ),
        )

    @staticmethod
    def _dfg_rule(snapshot: PatientSnapshot) -> Optional[NotificationDraft]:
        if not _has_baseline(snapshot.previous_dfg):
            return None
        if not snapshot.dfg < snapshot.previous_dfg * DFG_DROP_RATIO:
            return None

        return NotificationDraft(
            dedup_key=f"dfg_decrease_{_fmt(snapshot.dfg)}",
            rule="dfg_drop",
            payload=NotificationCreate(
                patient_id=snapshot.patient_id,
                title="Baisse significative du DFG",
                message=(
                    f"Le DFG de {snapshot.full_name} a diminué de plus de 10% "
                    f"({_fmt(snapshot.previous_dfg)} → {_fmt(snapshot.dfg)})."
                ),
                type="warning",
                category="lab_results",
                priority="high",
                action_required=True,
                action_type="view",
                action_url=f"/patients/{snapshot.patient_id}/analyse",
            ),
        )

    @staticmethod
    def _proteinuria_rule(snapshot: PatientSnapshot) -> Optional[NotificationDraft]:
        if not _has_baseline(snapshot.previous_proteinurie):
            return None
        if not snapshot.proteinurie > snapshot.previous_proteinurie * PROTEINURIA_RISE_RATIO:
            return None
        if not snapshot.proteinurie > PROTEINURIA_FLOOR:
            return None

        return NotificationDraft(
            dedup_key=f"proteinurie_increase_{_fmt(snapshot.proteinurie)}",
            rule="proteinuria_rise",
            payload=NotificationCreate(
                patient_id=snapshot.patient_id,
                title="Augmentation de la protéinurie",
                message=(
                    f"La protéinurie de {snapshot.full_name} a augmenté significativement "
                    f"({_fmt(snapshot.previous_proteinurie)} → {_fmt(snapshot.proteinurie)})."
                ),
                type="warning",
                category="lab_results",
                priority="high",
                action_required=True,
                action_type="view",
                action_url=f"/patients/{snapshot.patient_id}/analyse",
            ),
        )

    def candidate_drafts(self, snapshot: PatientSnapshot) -> List[NotificationDraft]:
        """All drafts the snapshot qualifies for, ignoring dedup state."""
        rules = (self._status_rule, self._dfg_rule, self._proteinuria_rule)
        return [draft for draft in (rule(snapshot) for rule in rules) if draft is not None]

    def evaluate(self, snapshot: PatientSnapshot, session: RuleSession) -> List[NotificationDraft]:
        """Drafts that qualify and have not fired yet in ``session``."""
        return [
            draft
            for draft in self.candidate_drafts(snapshot)
            if not session.has_fired(draft.dedup_key)
        ]

    # ==================== Dispatch ====================

    async def run(
        self,
        snapshot: PatientSnapshot,
        session: RuleSession,
        user_id: str,
    ) -> EvaluationOutcome:
        """Evaluate ``snapshot`` and deliver every new notification to ``user_id``."""
        if self.deliver is None:
            raise RuntimeError("NotificationRulesEngine has no delivery callable configured")

        outcome = EvaluationOutcome()
        pending = []
        for draft in self.candidate_drafts(snapshot):
            if session.has_fired(draft.dedup_key):
                outcome.suppressed.append(draft.dedup_key)
            else:
                pending.append(draft)

        if not pending:
            return outcome

        results = await asyncio.gather(
            *(self.deliver(user_id, draft.payload) for draft in pending),
            return_exceptions=True,
        )

        for draft, result in zip(pending, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(
                    "Notification rule %s failed for patient %s: %s",
                    draft.dedup_key,
                    snapshot.patient_id,
                    result,
                )
                outcome.failures.append(RuleFailure(key=draft.dedup_key, error=str(result)))
                continue

            session.mark_fired(draft.dedup_key)
            if isinstance(result, dict) and result.get("skipped"):
                outcome.filtered.append(draft.dedup_key)
            else:
                outcome.delivered.append(result)

        logger.info(
            "Rules evaluated for patient %s: %d delivered, %d suppressed, %d filtered, %d failed",
            snapshot.patient_id,
            len(outcome.delivered),
            len(outcome.suppressed),
            len(outcome.filtered),
            len(outcome.failures),
        )
        return outcome
