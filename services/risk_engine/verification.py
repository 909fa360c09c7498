"""
Watchlist verification.

WatchlistAggregator fans one identity out to every registered provider and
waits for all of them; CachedVerifier layers a cache-aside lookup on top of it.
Concurrent misses for the same identity may both hit the providers; checks
are idempotent, so the duplicate only costs time.
"""

import asyncio
import time
from datetime import UTC, datetime

import structlog
from pydantic import ValidationError

from notaria_common.compliance import ComplianceSettings

from . import metrics
from .cache import ReportCache, cache_key
from .providers import ProviderRegistry, WatchlistProvider
from .schemas import (
    CheckStatus,
    CombinedListResult,
    ComplianceCheckResult,
    PartyIdentity,
    PartyVerification,
    TwoPartyVerification,
    VerificationReport,
)

log = structlog.get_logger(__name__)

DEFAULT_PROVIDER_TIMEOUT = 5.0


class WatchlistAggregator:
    def __init__(self, registry: ProviderRegistry, timeout: float = DEFAULT_PROVIDER_TIMEOUT):
        self.registry = registry
        self.timeout = timeout

    async def _run_provider(
        self, provider: WatchlistProvider, identification: str, full_name: str
    ) -> ComplianceCheckResult:
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                provider.check_person(identification, full_name), timeout=self.timeout
            )
        except TimeoutError:
            error = f"Provider timed out after {self.timeout:g}s"
            log.error(
                "Watchlist provider timeout",
                action="provider_timeout",
                source=provider.source,
                timeout=self.timeout,
            )
            result = self._error_result(provider, started, error)
        except Exception as e:
            log.error(
                "Watchlist provider failed",
                action="provider_error",
                source=provider.source,
                error=str(e),
                error_type=type(e).__name__,
            )
            result = self._error_result(provider, started, str(e) or type(e).__name__)

        elapsed = time.perf_counter() - started
        metrics.watchlist_checks_total.labels(
            source=provider.key, status=result.status.value
        ).inc()
        metrics.watchlist_check_duration.labels(source=provider.key).observe(elapsed)
        return result

    @staticmethod
    def _error_result(
        provider: WatchlistProvider, started: float, error: str
    ) -> ComplianceCheckResult:
        return ComplianceCheckResult(
            source=provider.source,
            status=CheckStatus.ERROR,
            matches=[],
            timestamp=datetime.now(UTC),
            execution_time_ms=int((time.perf_counter() - started) * 1000),
            error=error,
        )

    async def check_person(self, identification: str, full_name: str) -> VerificationReport:
        """One entry per registered provider, failed ones included as ERROR."""
        providers = list(self.registry)
        log.info(
            "Starting watchlist checks",
            action="watchlist_check_start",
            identification=identification,
            providers=[p.source for p in providers],
        )
        results = await asyncio.gather(
            *(self._run_provider(p, identification, full_name) for p in providers)
        )
        return VerificationReport(
            identification=identification,
            results={p.key: r for p, r in zip(providers, results, strict=True)},
        )


class CachedVerifier:
    """Cache-aside decorator around WatchlistAggregator.check_person."""

    def __init__(
        self,
        aggregator: WatchlistAggregator,
        cache: ReportCache,
        ttl_seconds: int = ComplianceSettings.VERIFICATION_CACHE_TTL_SECONDS,
        error_ttl_seconds: int = ComplianceSettings.VERIFICATION_ERROR_CACHE_TTL_SECONDS,
    ):
        self.aggregator = aggregator
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.error_ttl_seconds = min(error_ttl_seconds, ttl_seconds)

    async def _read(self, key: str) -> VerificationReport | None:
        try:
            cached = await self.cache.get(key)
        except Exception as e:
            metrics.verification_cache_total.labels(result="error").inc()
            log.warning("Failed to read verification cache", action="cache_error", key=key, error=str(e))
            return None
        if cached is None:
            return None
        try:
            return VerificationReport.model_validate_json(cached)
        except ValidationError as e:
            metrics.verification_cache_total.labels(result="error").inc()
            log.warning("Discarding unreadable cache entry", action="cache_corrupt", key=key, error=str(e))
            return None

    def _is_current(self, report: VerificationReport) -> bool:
        return set(report.results) == set(self.aggregator.registry.sources)

    async def _write(self, key: str, report: VerificationReport) -> None:
        # reports with failed sources are retried sooner
        ttl = self.error_ttl_seconds if report.has_errors() else self.ttl_seconds
        try:
            await self.cache.set(key, report.model_dump_json(), ttl)
        except Exception as e:
            log.warning("Failed to save verification cache", action="cache_save_error", key=key, error=str(e))
        else:
            log.debug("Saved verification to cache", key=key, ttl=ttl)

    async def check_person(self, identification: str, full_name: str) -> VerificationReport:
        start_time = time.time()
        key = cache_key(identification)

        report = await self._read(key)
        if report is not None and not self._is_current(report):
            metrics.verification_cache_total.labels(result="stale").inc()
            log.info(
                "Cached verification does not match registered providers",
                action="verification_cache_stale",
                identification=identification,
                cached_sources=sorted(report.results),
            )
            report = None
        if report is not None:
            metrics.verification_cache_total.labels(result="hit").inc()
            log.info(
                "Cache hit for watchlist verification",
                action="verification_cache_hit",
                identification=identification,
                latency_ms=int((time.time() - start_time) * 1000),
            )
            return report

        metrics.verification_cache_total.labels(result="miss").inc()
        report = await self.aggregator.check_person(identification, full_name)
        await self._write(key, report)

        log.info(
            "Completed watchlist verification",
            action="verification_completed",
            identification=identification,
            matches=report.matching_sources(),
            errors=report.has_errors(),
            latency_ms=int((time.time() - start_time) * 1000),
        )
        return report


def party_verification(report: VerificationReport) -> PartyVerification:
    return PartyVerification(
        global_status=CheckStatus.MATCH if report.has_match() else CheckStatus.CLEAN,
        has_errors=report.has_errors(),
        report=report,
    )


def _describe(result: ComplianceCheckResult) -> str:
    if result.matches:
        return "; ".join(f"{m.name} ({m.percentage:g}%): {m.details}" for m in result.matches)
    return f"match on {result.source}"


def combine_parties(
    seller: VerificationReport, buyer: VerificationReport
) -> list[CombinedListResult]:
    """Per source: MATCH if either party matched, else ERROR if either errored, else CLEAN."""
    combined = []
    for source in sorted(set(seller.results) | set(buyer.results)):
        entries = (("Seller", seller.results.get(source)), ("Buyer", buyer.results.get(source)))
        matched = [
            f"{label}: {_describe(r)}"
            for label, r in entries
            if r is not None and r.status == CheckStatus.MATCH
        ]
        errored = [
            f"{label}: {r.error or 'check failed'}"
            for label, r in entries
            if r is not None and r.status == CheckStatus.ERROR
        ]
        if matched:
            status, message = CheckStatus.MATCH, " | ".join(matched)
        elif errored:
            status, message = CheckStatus.ERROR, " | ".join(errored)
        else:
            status, message = CheckStatus.CLEAN, "No matches"
        combined.append(CombinedListResult(source=source, status=status, message=message))
    return combined


async def verify_parties(
    verifier: CachedVerifier | WatchlistAggregator,
    seller: PartyIdentity,
    buyer: PartyIdentity,
) -> TwoPartyVerification:
    seller_report, buyer_report = await asyncio.gather(
        verifier.check_person(seller.identification, seller.full_name),
        verifier.check_person(buyer.identification, buyer.full_name),
    )
    return TwoPartyVerification(
        seller=party_verification(seller_report),
        buyer=party_verification(buyer_report),
        combined=combine_parties(seller_report, buyer_report),
    )
