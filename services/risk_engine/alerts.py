"""
Alert rule engine.

Each rule reads the operation snapshot and writes at most its own alerts.
Persistence is best-effort per rule: a failed insert is logged and the
remaining rules still run.
"""

import uuid
from collections.abc import Callable, Mapping
from datetime import datetime
from decimal import Decimal

import structlog

from notaria_common.compliance import ComplianceSettings

from . import metrics
from .alert_store import AlertStore
from .exceptions import AlertTransitionError, ReviewerNotAuthorizedError
from .schemas import (
    ActType,
    Alert,
    AlertKind,
    AlertSeverity,
    AlertState,
    OperationSnapshot,
    PartyRecord,
    PartyRole,
    ReviewAction,
    Reviewer,
    VerificationReport,
    utcnow,
)

log = structlog.get_logger(__name__)

TERMINAL_STATES = frozenset(
    {AlertState.CONFIRMED, AlertState.FALSE_POSITIVE, AlertState.REPORTED}
)

ALLOWED_TRANSITIONS: dict[AlertState, frozenset[AlertState]] = {
    AlertState.PENDING: frozenset({AlertState.IN_ANALYSIS}) | TERMINAL_STATES,
    AlertState.IN_ANALYSIS: TERMINAL_STATES,
    AlertState.CONFIRMED: frozenset(),
    AlertState.FALSE_POSITIVE: frozenset(),
    AlertState.REPORTED: frozenset(),
}

# Sale-type acts subject to the undervaluation heuristic
SALE_ACTS = frozenset({ActType.SALE})


def _new_alert(
    snapshot: OperationSnapshot,
    kind: AlertKind,
    severity: AlertSeverity,
    title: str,
    description: str,
    details: dict,
) -> Alert:
    return Alert(
        id=str(uuid.uuid4()),
        kind=kind,
        severity=severity,
        title=title,
        description=description,
        details=details,
        operation_id=snapshot.id,
        tenant_id=snapshot.tenant_id,
    )


class AlertRuleEngine:
    """Evaluates the statutory and heuristic rules over a finalized operation."""

    def __init__(
        self,
        store: AlertStore,
        *,
        cash_limit: Decimal = ComplianceSettings.CASH_LIMIT,
        undervaluation_floor: Decimal = ComplianceSettings.UNDERVALUATION_FLOOR,
        income_multiple: int = ComplianceSettings.INCOME_MULTIPLE,
        urgency_window_hours: int = ComplianceSettings.URGENCY_WINDOW_HOURS,
    ):
        self.store = store
        self.cash_limit = Decimal(cash_limit)
        self.undervaluation_floor = Decimal(undervaluation_floor)
        self.income_multiple = income_multiple
        self.urgency_window_hours = urgency_window_hours

    # ---------- rules ----------
    def check_cash_limit(self, snapshot: OperationSnapshot) -> list[Alert]:
        cash = snapshot.cash_amount or Decimal(0)
        if cash < self.cash_limit:
            return []
        return [
            _new_alert(
                snapshot,
                AlertKind.CASH_LIMIT_BREACH,
                AlertSeverity.CRITICAL,
                "Cash payment exceeds the legal limit",
                f"Operation paid with ${cash:,.2f} in cash. "
                f"The legal limit is ${self.cash_limit:,.2f}.",
                {
                    "cash_amount": float(cash),
                    "legal_limit": float(self.cash_limit),
                    "excess": float(cash - self.cash_limit),
                },
            )
        ]

    def check_undervaluation(self, snapshot: OperationSnapshot) -> list[Alert]:
        if snapshot.act_type not in SALE_ACTS:
            return []
        if snapshot.declared_value >= self.undervaluation_floor:
            return []
        return [
            _new_alert(
                snapshot,
                AlertKind.UNDERVALUATION,
                AlertSeverity.HIGH,
                "Possible undervaluation of the property",
                f"Declared value (${snapshot.declared_value:,.2f}) looks unusually "
                f"low for a sale.",
                {
                    "declared_value": float(snapshot.declared_value),
                    "floor": float(self.undervaluation_floor),
                    "reason": f"Sale declared below ${self.undervaluation_floor:,.0f}",
                },
            )
        ]

    def check_incompatible_profile(self, snapshot: OperationSnapshot) -> list[Alert]:
        income = snapshot.buyer.monthly_income
        if not income:
            return []
        annual_income = income * 12
        value = snapshot.declared_value
        if value <= annual_income * self.income_multiple:
            return []
        ratio = (value / annual_income).quantize(Decimal("0.01"))
        return [
            _new_alert(
                snapshot,
                AlertKind.INCOMPATIBLE_PROFILE,
                AlertSeverity.HIGH,
                "Economic profile incompatible with the transaction",
                f"Transaction value (${value:,.2f}) exceeds {self.income_multiple}x "
                f"the buyer's declared annual income (${annual_income:,.2f}).",
                {
                    "transaction_value": float(value),
                    "annual_income": float(annual_income),
                    "ratio": float(ratio),
                    "multiple": self.income_multiple,
                },
            )
        ]

    def check_excessive_urgency(self, snapshot: OperationSnapshot) -> list[Alert]:
        if snapshot.executed_at is None:
            return []
        elapsed = snapshot.executed_at - snapshot.created_at
        hours = elapsed.total_seconds() / 3600
        if hours >= self.urgency_window_hours:
            return []
        return [
            _new_alert(
                snapshot,
                AlertKind.EXCESSIVE_URGENCY,
                AlertSeverity.MEDIUM,
                "Excessive urgency in the operation",
                f"Operation executed less than {self.urgency_window_hours} hours after "
                f"first contact ({hours:.1f} hours).",
                {
                    "elapsed_hours": round(hours, 1),
                    "created_at": snapshot.created_at.isoformat(),
                    "executed_at": snapshot.executed_at.isoformat(),
                },
            )
        ]

    def check_watchlists(
        self,
        snapshot: OperationSnapshot,
        reports: Mapping[PartyRole, VerificationReport],
    ) -> list[Alert]:
        alerts = []
        for role, party in ((PartyRole.SELLER, snapshot.seller), (PartyRole.BUYER, snapshot.buyer)):
            report = reports.get(role)
            if report is None or not report.has_match():
                continue
            alerts.append(self._watchlist_alert(snapshot, role, party, report))
        return alerts

    def _watchlist_alert(
        self,
        snapshot: OperationSnapshot,
        role: PartyRole,
        party: PartyRecord,
        report: VerificationReport,
    ) -> Alert:
        sources = report.matching_sources()
        matches = [
            m.model_dump(mode="json")
            for key in sources
            for m in report.results[key].matches
        ]
        return _new_alert(
            snapshot,
            AlertKind.WATCHLIST_MATCH,
            AlertSeverity.CRITICAL,
            f"Watchlist match: {', '.join(s.upper() for s in sources)}",
            f"{role.value.capitalize()} {party.full_name} matches an entry on "
            f"{', '.join(s.upper() for s in sources)}.",
            {
                "party_role": role.value,
                "party_name": party.full_name,
                "identification": party.identification,
                "sources": sources,
                "matches": matches,
            },
        )

    # ---------- evaluation ----------
    def rules(
        self, reports: Mapping[PartyRole, VerificationReport] | None = None
    ) -> list[tuple[str, Callable[[OperationSnapshot], list[Alert]]]]:
        rules = [
            ("cash_limit", self.check_cash_limit),
            ("undervaluation", self.check_undervaluation),
            ("incompatible_profile", self.check_incompatible_profile),
            ("excessive_urgency", self.check_excessive_urgency),
        ]
        if reports is not None:
            rules.append(("watchlist", lambda s: self.check_watchlists(s, reports)))
        return rules

    def evaluate(
        self,
        snapshot: OperationSnapshot,
        reports: Mapping[PartyRole, VerificationReport] | None = None,
    ) -> list[Alert]:
        """Run every rule and persist what triggers. Returns the persisted alerts."""
        created: list[Alert] = []
        for rule_name, rule in self.rules(reports):
            for alert in rule(snapshot):
                if self._persist(alert, rule_name):
                    created.append(alert)

        log.info(
            "Alert rules evaluated",
            action="alert_rules_evaluated",
            operation_id=snapshot.id,
            alerts=len(created),
            watchlist_checked=reports is not None,
        )
        return created

    def _persist(self, alert: Alert, rule_name: str) -> bool:
        try:
            self.store.create(alert)
        except Exception as e:
            metrics.alert_persist_failures_total.labels(kind=alert.kind.value).inc()
            log.error(
                "Failed to persist alert",
                action="alert_persist_failed",
                rule=rule_name,
                kind=alert.kind.value,
                operation_id=alert.operation_id,
                error=str(e),
            )
            return False

        metrics.alerts_created_total.labels(
            kind=alert.kind.value, severity=alert.severity.value
        ).inc()
        log.info(
            "Alert created",
            action="alert_created",
            alert_id=alert.id,
            kind=alert.kind.value,
            severity=alert.severity.value,
            operation_id=alert.operation_id,
        )
        return True


def can_transition(current: AlertState, target: AlertState) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def review_alert(
    store: AlertStore,
    alert_id: str,
    reviewer: Reviewer,
    action: ReviewAction,
    *,
    reviewer_roles: tuple[str, ...] = ComplianceSettings.REVIEWER_ROLES,
    now: datetime | None = None,
) -> Alert:
    """Apply a reviewer decision. Only this alert is touched."""
    if reviewer.role not in reviewer_roles:
        raise ReviewerNotAuthorizedError(reviewer.id, reviewer.role)

    alert = store.get(alert_id)
    if not can_transition(alert.state, action.decision):
        raise AlertTransitionError(alert.state.value, action.decision.value)

    reviewed = alert.model_copy(
        update={
            "state": action.decision,
            "reviewed_by": reviewer.id,
            "reviewed_at": now or utcnow(),
            "review_comment": action.comment,
        }
    )
    store.update(reviewed)

    metrics.alert_reviews_total.labels(decision=action.decision.value).inc()
    log.info(
        "Alert reviewed",
        action="alert_reviewed",
        alert_id=alert_id,
        previous_state=alert.state.value,
        decision=action.decision.value,
        reviewer_id=reviewer.id,
    )
    return reviewed
