from datetime import UTC, datetime, timedelta

import pytest

from services.risk_engine.alert_store import InMemoryAlertStore, SqlAlertStore
from services.risk_engine.exceptions import AlertNotFoundError
from services.risk_engine.schemas import Alert, AlertKind, AlertSeverity, AlertState

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


def make_alert(alert_id, severity, minutes=0, tenant_id="notaria-1", state=AlertState.PENDING):
    return Alert(
        id=alert_id,
        kind=AlertKind.UNDERVALUATION,
        severity=severity,
        title=f"alert {alert_id}",
        description="test alert",
        details={"declared_value": 1200.0, "reason": "below floor"},
        state=state,
        operation_id=f"op-{alert_id}",
        tenant_id=tenant_id,
        created_at=T0 + timedelta(minutes=minutes),
    )


@pytest.fixture(params=["memory", "sql"])
def alert_store(request):
    if request.param == "memory":
        return InMemoryAlertStore()
    return SqlAlertStore("sqlite:///:memory:")


class TestAlertStore:
    def test_create_and_get(self, alert_store):
        alert = make_alert("a-1", AlertSeverity.HIGH)
        alert_store.create(alert)
        assert alert_store.get("a-1") == alert

    def test_get_missing(self, alert_store):
        with pytest.raises(AlertNotFoundError):
            alert_store.get("nope")

    def test_update(self, alert_store):
        alert = make_alert("a-1", AlertSeverity.HIGH)
        alert_store.create(alert)
        reviewed = alert.model_copy(
            update={
                "state": AlertState.FALSE_POSITIVE,
                "reviewed_by": "u-1",
                "reviewed_at": T0 + timedelta(days=1),
                "review_comment": "known client",
            }
        )
        alert_store.update(reviewed)
        assert alert_store.get("a-1") == reviewed

    def test_update_missing(self, alert_store):
        with pytest.raises(AlertNotFoundError):
            alert_store.update(make_alert("ghost", AlertSeverity.LOW))

    def test_list_by_operation(self, alert_store):
        alert_store.create(make_alert("a-1", AlertSeverity.HIGH))
        alert_store.create(make_alert("a-2", AlertSeverity.LOW))
        assert [a.id for a in alert_store.list_by_operation("op-a-2")] == ["a-2"]

    def test_pending_ordering(self, alert_store):
        alert_store.create(make_alert("medium-old", AlertSeverity.MEDIUM, minutes=1))
        alert_store.create(make_alert("critical-old", AlertSeverity.CRITICAL, minutes=2))
        alert_store.create(make_alert("low", AlertSeverity.LOW, minutes=10))
        alert_store.create(make_alert("critical-new", AlertSeverity.CRITICAL, minutes=5))
        alert_store.create(make_alert("medium-new", AlertSeverity.MEDIUM, minutes=8))

        pending = alert_store.list_pending("notaria-1")

        assert [a.id for a in pending] == [
            "critical-new",
            "critical-old",
            "medium-new",
            "medium-old",
            "low",
        ]

    def test_pending_filters_tenant_and_state(self, alert_store):
        alert_store.create(make_alert("mine", AlertSeverity.HIGH))
        alert_store.create(make_alert("other", AlertSeverity.HIGH, tenant_id="notaria-2"))
        alert_store.create(make_alert("done", AlertSeverity.HIGH, state=AlertState.CONFIRMED))
        alert_store.create(make_alert("working", AlertSeverity.HIGH, state=AlertState.IN_ANALYSIS))
        assert [a.id for a in alert_store.list_pending("notaria-1")] == ["mine"]


def test_sql_store_keeps_timezone():
    store = SqlAlertStore("sqlite:///:memory:")
    store.create(make_alert("a-1", AlertSeverity.HIGH))
    loaded = store.get("a-1")
    assert loaded.created_at.tzinfo is not None
    assert loaded.created_at == T0
    assert loaded.details == {"declared_value": 1200.0, "reason": "below floor"}
