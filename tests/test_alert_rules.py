"""
Tests for the notification rules engine.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from nephrocare.alert_rules import (
    NotificationRulesEngine,
    PatientSnapshot,
    RuleSession,
    RuleSessionStore,
)


def make_snapshot(**overrides) -> PatientSnapshot:
    values = dict(
        patient_id="p1",
        firstname="Marie",
        lastname="Martin",
        status="stable",
        dfg=60,
        previous_dfg=60,
        proteinurie=0.3,
        previous_proteinurie=0.3,
    )
    values.update(overrides)
    return PatientSnapshot(**values)


def keys(drafts):
    return sorted(draft.dedup_key for draft in drafts)


@pytest.fixture
def engine():
    return NotificationRulesEngine()


class TestStatusRule:
    def test_stable_patient_raises_nothing(self, engine):
        assert engine.evaluate(make_snapshot(), RuleSession()) == []

    def test_critical_is_urgent(self, engine):
        [draft] = engine.evaluate(make_snapshot(status="critical"), RuleSession())

        assert draft.dedup_key == "status_critical"
        assert draft.payload.type == "critical"
        assert draft.payload.priority == "urgent"
        assert draft.payload.category == "patient_status"
        assert draft.payload.action_type == "view"
        assert draft.payload.action_url == "/patients/p1"
        assert "Marie Martin" in draft.payload.message

    def test_worsening_is_high_warning(self, engine):
        [draft] = engine.evaluate(make_snapshot(status="worsening"), RuleSession())

        assert draft.dedup_key == "status_worsening"
        assert draft.payload.type == "warning"
        assert draft.payload.priority == "high"

    def test_improving_raises_nothing(self, engine):
        assert engine.evaluate(make_snapshot(status="improving"), RuleSession()) == []


class TestDfgRule:
    def test_drop_of_exactly_ten_percent_does_not_fire(self, engine):
        assert engine.evaluate(make_snapshot(previous_dfg=100, dfg=90), RuleSession()) == []

    def test_drop_above_ten_percent_fires(self, engine):
        [draft] = engine.evaluate(make_snapshot(previous_dfg=100, dfg=89), RuleSession())

        assert draft.dedup_key == "dfg_decrease_89"
        assert draft.payload.priority == "high"
        assert draft.payload.category == "lab_results"
        assert draft.payload.action_url == "/patients/p1/analyse"
        assert "100 → 89" in draft.payload.message

    def test_increase_does_not_fire(self, engine):
        assert engine.evaluate(make_snapshot(previous_dfg=40, dfg=55), RuleSession()) == []

    @pytest.mark.parametrize("previous", [None, 0])
    def test_no_baseline_does_not_fire(self, engine, previous):
        assert engine.evaluate(make_snapshot(previous_dfg=previous, dfg=10), RuleSession()) == []


class TestProteinuriaRule:
    def test_rise_below_floor_does_not_fire(self, engine):
        assert engine.evaluate(make_snapshot(previous_proteinurie=0.4, proteinurie=0.7), RuleSession()) == []

    def test_small_rise_above_floor_does_not_fire(self, engine):
        assert engine.evaluate(make_snapshot(previous_proteinurie=1.0, proteinurie=1.5), RuleSession()) == []

    def test_large_rise_above_floor_fires(self, engine):
        [draft] = engine.evaluate(
            make_snapshot(previous_proteinurie=1.0, proteinurie=2.0), RuleSession()
        )

        assert draft.dedup_key == "proteinurie_increase_2"
        assert draft.payload.type == "warning"
        assert draft.payload.action_url == "/patients/p1/analyse"

    def test_no_baseline_does_not_fire(self, engine):
        assert engine.evaluate(make_snapshot(previous_proteinurie=0, proteinurie=3.0), RuleSession()) == []


def test_rules_fire_independently(engine):
    snapshot = make_snapshot(
        status="critical", previous_dfg=100, dfg=50, previous_proteinurie=1.0, proteinurie=3.5
    )
    assert keys(engine.evaluate(snapshot, RuleSession())) == [
        "dfg_decrease_50",
        "proteinurie_increase_3.5",
        "status_critical",
    ]


def test_evaluate_skips_fired_keys(engine):
    session = RuleSession()
    session.mark_fired("status_critical")

    drafts = engine.evaluate(make_snapshot(status="critical", previous_dfg=100, dfg=85), session)

    assert keys(drafts) == ["dfg_decrease_85"]


@pytest.mark.anyio
async def test_critical_patient_with_dfg_drop_gets_two_notifications():
    deliver = AsyncMock(side_effect=lambda user_id, payload: {"id": payload.title})
    engine = NotificationRulesEngine(deliver)

    outcome = await engine.run(
        make_snapshot(status="critical", previous_dfg=100, dfg=85), RuleSession(), "doc-1"
    )

    assert len(outcome.delivered) == 2
    sent = sorted((call.args[1].category, call.args[1].priority) for call in deliver.await_args_list)
    assert sent == [("lab_results", "high"), ("patient_status", "urgent")]
    assert all(call.args[0] == "doc-1" for call in deliver.await_args_list)


@pytest.mark.anyio
async def test_same_dfg_fires_once_per_session_new_value_fires_again():
    deliver = AsyncMock(return_value={"id": "n"})
    engine = NotificationRulesEngine(deliver)
    session = RuleSession()

    await engine.run(make_snapshot(previous_dfg=100, dfg=85), session, "doc-1")
    repeat = await engine.run(make_snapshot(previous_dfg=100, dfg=85), session, "doc-1")
    lower = await engine.run(make_snapshot(previous_dfg=85, dfg=70), session, "doc-1")

    assert deliver.await_count == 2
    assert repeat.suppressed == ["dfg_decrease_85"]
    assert [len(repeat.delivered), len(lower.delivered)] == [0, 1]


@pytest.mark.anyio
async def test_failed_delivery_does_not_block_siblings_and_is_retried():
    async def deliver(user_id, payload):
        if payload.category == "patient_status":
            raise ConnectionError("database unavailable")
        return {"id": "ok"}

    engine = NotificationRulesEngine(deliver)
    session = RuleSession()
    snapshot = make_snapshot(status="critical", previous_dfg=100, dfg=85)

    outcome = await engine.run(snapshot, session, "doc-1")

    assert outcome.delivered == [{"id": "ok"}]
    assert [failure.key for failure in outcome.failures] == ["status_critical"]
    assert "database unavailable" in outcome.failures[0].error
    assert session.fired_keys == frozenset({"dfg_decrease_85"})

    retry = await engine.run(snapshot, session, "doc-1")
    assert [failure.key for failure in retry.failures] == ["status_critical"]
    assert retry.suppressed == ["dfg_decrease_85"]


@pytest.mark.anyio
async def test_preference_skips_count_as_fired():
    deliver = AsyncMock(return_value={"skipped": True, "reason": "disabled"})
    engine = NotificationRulesEngine(deliver)
    session = RuleSession()

    outcome = await engine.run(make_snapshot(status="worsening"), session, "doc-1")

    assert outcome.delivered == []
    assert outcome.filtered == ["status_worsening"]
    assert session.has_fired("status_worsening")


@pytest.mark.anyio
async def test_run_without_delivery_is_a_configuration_error():
    with pytest.raises(RuntimeError):
        await NotificationRulesEngine().run(make_snapshot(status="critical"), RuleSession(), "doc-1")


class TestRuleSessionStore:
    def test_same_pair_returns_same_session(self):
        store = RuleSessionStore()
        assert store.get("doc-1", "p1") is store.get("doc-1", "p1")
        assert store.get("doc-1", "p1") is not store.get("doc-2", "p1")

    def test_oldest_session_evicted_past_capacity(self):
        store = RuleSessionStore(max_sessions=2)
        first = store.get("doc", "p1")
        store.get("doc", "p2")
        store.get("doc", "p3")

        assert len(store) == 2
        assert store.get("doc", "p1") is not first

    def test_idle_sessions_expire(self):
        store = RuleSessionStore(ttl_seconds=60)
        session = store.get("doc", "p1")
        session.mark_fired("status_critical")
        session.last_access -= timedelta(minutes=5)

        assert store.get("doc", "p1").has_fired("status_critical") is False

    def test_reset_forgets_fired_keys(self):
        store = RuleSessionStore()
        store.get("doc", "p1").mark_fired("status_critical")
        store.reset("doc", "p1")
        assert not store.get("doc", "p1").has_fired("status_critical")
