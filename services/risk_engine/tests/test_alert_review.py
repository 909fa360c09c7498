from datetime import UTC, datetime

import pytest

from services.risk_engine.alerts import can_transition, review_alert
from services.risk_engine.exceptions import (
    AlertNotFoundError,
    AlertTransitionError,
    ReviewerNotAuthorizedError,
)
from services.risk_engine.schemas import (
    Alert,
    AlertKind,
    AlertSeverity,
    AlertState,
    ReviewAction,
    Reviewer,
)

OFFICER = Reviewer(id="u-10", role="COMPLIANCE_OFFICER")
NOW = datetime(2025, 3, 12, 15, 30, tzinfo=UTC)


def make_alert(alert_id="a-1", state=AlertState.PENDING):
    return Alert(
        id=alert_id,
        kind=AlertKind.CASH_LIMIT_BREACH,
        severity=AlertSeverity.CRITICAL,
        title="Cash payment exceeds the legal limit",
        description="test",
        state=state,
        operation_id="op-1",
        tenant_id="notaria-1",
    )


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        (AlertState.PENDING, AlertState.IN_ANALYSIS, True),
        (AlertState.PENDING, AlertState.CONFIRMED, True),
        (AlertState.PENDING, AlertState.REPORTED, True),
        (AlertState.PENDING, AlertState.PENDING, False),
        (AlertState.IN_ANALYSIS, AlertState.FALSE_POSITIVE, True),
        (AlertState.IN_ANALYSIS, AlertState.PENDING, False),
        (AlertState.IN_ANALYSIS, AlertState.IN_ANALYSIS, False),
        (AlertState.CONFIRMED, AlertState.REPORTED, False),
        (AlertState.FALSE_POSITIVE, AlertState.IN_ANALYSIS, False),
        (AlertState.REPORTED, AlertState.PENDING, False),
    ],
)
def test_transition_table(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_review_records_reviewer_and_time(store):
    store.create(make_alert())

    reviewed = review_alert(
        store, "a-1", OFFICER, ReviewAction(decision=AlertState.IN_ANALYSIS, comment="checking"), now=NOW
    )

    assert reviewed.state == AlertState.IN_ANALYSIS
    assert reviewed.reviewed_by == "u-10"
    assert reviewed.reviewed_at == NOW
    assert reviewed.review_comment == "checking"
    assert store.get("a-1") == reviewed


def test_full_lifecycle(store):
    store.create(make_alert())
    review_alert(store, "a-1", OFFICER, ReviewAction(decision=AlertState.IN_ANALYSIS))
    admin = Reviewer(id="u-1", role="SYSTEM_ADMIN")
    final = review_alert(store, "a-1", admin, ReviewAction(decision=AlertState.REPORTED))
    assert final.state == AlertState.REPORTED
    assert final.reviewed_by == "u-1"


def test_terminal_state_is_final(store):
    store.create(make_alert(state=AlertState.CONFIRMED))
    with pytest.raises(AlertTransitionError):
        review_alert(store, "a-1", OFFICER, ReviewAction(decision=AlertState.FALSE_POSITIVE))
    assert store.get("a-1").state == AlertState.CONFIRMED


def test_unauthorized_role(store):
    store.create(make_alert())
    notary = Reviewer(id="u-2", role="NOTARY")
    with pytest.raises(ReviewerNotAuthorizedError):
        review_alert(store, "a-1", notary, ReviewAction(decision=AlertState.CONFIRMED))
    assert store.get("a-1").state == AlertState.PENDING


def test_custom_reviewer_roles(store):
    store.create(make_alert())
    notary = Reviewer(id="u-2", role="NOTARY")
    reviewed = review_alert(
        store,
        "a-1",
        notary,
        ReviewAction(decision=AlertState.CONFIRMED),
        reviewer_roles=("NOTARY",),
    )
    assert reviewed.state == AlertState.CONFIRMED


def test_unknown_alert(store):
    with pytest.raises(AlertNotFoundError):
        review_alert(store, "missing", OFFICER, ReviewAction(decision=AlertState.CONFIRMED))


def test_other_alerts_untouched(store):
    store.create(make_alert("a-1"))
    store.create(make_alert("a-2"))
    review_alert(store, "a-1", OFFICER, ReviewAction(decision=AlertState.FALSE_POSITIVE))
    other = store.get("a-2")
    assert other.state == AlertState.PENDING
    assert other.reviewed_by is None
