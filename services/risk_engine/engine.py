"""
Compliance decision engine.

All collaborators (rules, alert store, verifier) are injected; build_engine()
assembles the production wiring from an EngineConfig.
"""

import asyncio

import httpx
import structlog

from notaria_common.audit_logger import get_audit_logger
from notaria_common.compliance import ComplianceSettings

from . import metrics
from .alert_store import AlertStore, SqlAlertStore
from .alerts import AlertRuleEngine, review_alert
from .cache import InMemoryReportCache, RedisReportCache, ReportCache
from .config import EngineConfig
from .diligence import classify
from .providers import HttpWatchlistProvider, ProviderRegistry, simulated_providers
from .rules import RiskRules, load_rules
from .schemas import (
    Alert,
    OperationRiskInput,
    OperationSnapshot,
    PartyIdentity,
    PartyRole,
    ReviewAction,
    Reviewer,
    RiskAssessment,
    TwoPartyVerification,
    VerificationReport,
)
from .scoring import risk_level, score
from .verification import CachedVerifier, WatchlistAggregator, verify_parties

log = structlog.get_logger(__name__)
audit_logger = get_audit_logger("risk-engine")


class ComplianceEngine:
    def __init__(
        self,
        rules: RiskRules,
        store: AlertStore,
        verifier: CachedVerifier | WatchlistAggregator,
        *,
        alert_engine: AlertRuleEngine | None = None,
        reviewer_roles: tuple[str, ...] = ComplianceSettings.REVIEWER_ROLES,
    ):
        self.rules = rules
        self.store = store
        self.verifier = verifier
        self.alert_engine = alert_engine or AlertRuleEngine(
            store, cash_limit=rules.thresholds.cash_limit
        )
        self.reviewer_roles = reviewer_roles
        self._closers = []

    def assess(self, operation: OperationRiskInput) -> RiskAssessment:
        value, factors = score(operation, self.rules)
        assessment = RiskAssessment(
            score=value,
            level=risk_level(value),
            factors=factors,
            dd_tier=classify(operation, value, self.rules),
        )
        metrics.risk_assessments_total.labels(
            risk_level=assessment.level.value, dd_tier=assessment.dd_tier.value
        ).inc()
        log.info(
            "Risk assessment computed",
            action="risk_assessed",
            act_type=operation.act_type.value,
            score=assessment.score,
            level=assessment.level.value,
            dd_tier=assessment.dd_tier.value,
            factors=[f.kind.value for f in factors],
        )
        return assessment

    def preview(self, operation: OperationRiskInput) -> RiskAssessment:
        """Pre-commit assessment; nothing is persisted."""
        return self.assess(operation)

    async def verify_person(self, identification: str, full_name: str) -> VerificationReport:
        return await self.verifier.check_person(identification, full_name)

    async def verify_parties(
        self, seller: PartyIdentity, buyer: PartyIdentity
    ) -> TwoPartyVerification:
        return await verify_parties(self.verifier, seller, buyer)

    async def evaluate_operation(
        self, snapshot: OperationSnapshot, verify: bool = True
    ) -> tuple[RiskAssessment, list[Alert]]:
        """Post-commit flow: assess, optionally verify both parties, run the alert rules."""
        assessment = self.assess(snapshot.risk_input())

        reports = None
        if verify:
            seller_report, buyer_report = await asyncio.gather(
                self.verifier.check_person(
                    snapshot.seller.identification, snapshot.seller.full_name
                ),
                self.verifier.check_person(
                    snapshot.buyer.identification, snapshot.buyer.full_name
                ),
            )
            reports = {PartyRole.SELLER: seller_report, PartyRole.BUYER: buyer_report}

        alerts = self.alert_engine.evaluate(snapshot, reports)

        audit_logger.info(
            "operation_evaluated",
            extra={
                "operation_id": snapshot.id,
                "tenant_id": snapshot.tenant_id,
                "risk_level": assessment.level.value,
                "score": assessment.score,
            },
        )
        for alert in alerts:
            audit_logger.info(
                "alert_created",
                extra={
                    "operation_id": alert.operation_id,
                    "alert_id": alert.id,
                    "alert_kind": alert.kind.value,
                    "severity": alert.severity.value,
                },
            )
        return assessment, alerts

    def review_alert(self, alert_id: str, reviewer: Reviewer, action: ReviewAction) -> Alert:
        alert = review_alert(
            self.store, alert_id, reviewer, action, reviewer_roles=self.reviewer_roles
        )
        audit_logger.info(
            "alert_reviewed",
            extra={
                "operation_id": alert.operation_id,
                "alert_id": alert.id,
                "alert_kind": alert.kind.value,
                "reviewer_id": reviewer.id,
                "decision": action.decision.value,
            },
        )
        return alert

    def pending_alerts(self, tenant_id: str) -> list[Alert]:
        return self.store.list_pending(tenant_id)

    def on_close(self, closer) -> None:
        self._closers.append(closer)

    async def aclose(self) -> None:
        for closer in reversed(self._closers):
            try:
                await closer()
            except Exception as e:
                log.warning("Error while closing engine resource", error=str(e))
        self._closers.clear()


def build_cache(config: EngineConfig) -> ReportCache:
    url = config.verification.redis_url
    if url.startswith("memory://"):
        return InMemoryReportCache()
    return RedisReportCache.from_url(url)


def build_engine(config: EngineConfig) -> ComplianceEngine:
    rules = load_rules(config.rules_path)
    vcfg = config.verification

    registry = ProviderRegistry()
    if vcfg.simulation:
        for provider in simulated_providers(simulate_latency=vcfg.simulate_latency):
            registry.register(provider)

    http_client = None
    if vcfg.http_providers:
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(vcfg.provider_timeout_seconds),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        for source, url in vcfg.http_providers.items():
            registry.register(HttpWatchlistProvider(source, url, http_client))

    if not len(registry):
        log.warning("No watchlist providers registered", action="no_providers")

    cache = build_cache(config)
    verifier = CachedVerifier(
        WatchlistAggregator(registry, timeout=vcfg.provider_timeout_seconds),
        cache,
        ttl_seconds=vcfg.cache_ttl_seconds,
        error_ttl_seconds=vcfg.error_cache_ttl_seconds,
    )
    engine = ComplianceEngine(
        rules,
        SqlAlertStore(config.database_url),
        verifier,
        reviewer_roles=config.reviewer_roles,
    )
    engine.on_close(cache.close)
    if http_client is not None:
        engine.on_close(http_client.aclose)
    return engine
