"""
Simulated watchlist providers.

Deterministic triggers make them usable as fixtures:
- UAFE: identification containing "666" -> MATCH, "999" -> ERROR
- OFAC: name containing "SANCTION" or "LADEN" -> MATCH
- ONU: name containing "TERROR" -> MATCH
Nothing here reflects a real list.
"""

import asyncio
import random
import time
from datetime import UTC, datetime

import structlog

from ..schemas import CheckStatus, ComplianceCheckResult, ComplianceMatch
from .base import WatchlistProvider

log = structlog.get_logger(__name__)


class SimulatedProvider(WatchlistProvider):
    # seconds, (min, max)
    default_latency: tuple[float, float] = (0.1, 0.5)

    def __init__(self, latency: tuple[float, float] | None = None, simulate_latency: bool = True):
        self.latency = latency or self.default_latency
        self.simulate_latency = simulate_latency

    async def _network_delay(self) -> None:
        if self.simulate_latency:
            await asyncio.sleep(random.uniform(*self.latency))  # nosec B311

    def _result(self, started: float, status=CheckStatus.CLEAN, matches=None, error=None):
        return ComplianceCheckResult(
            source=self.source,
            status=status,
            matches=matches or [],
            timestamp=datetime.now(UTC),
            execution_time_ms=int((time.perf_counter() - started) * 1000),
            error=error,
        )

    def _reference(self, *parts: str) -> str:
        return "-".join((self.source, *parts, str(int(time.time() * 1000))))


class UafeSimProvider(SimulatedProvider):
    source = "UAFE"
    # government portal, slow
    default_latency = (1.5, 3.0)

    async def check_person(self, identification: str, full_name: str) -> ComplianceCheckResult:
        started = time.perf_counter()
        await self._network_delay()

        if "666" in identification:
            log.warning("Simulated UAFE match", source=self.source, identification=identification)
            match = ComplianceMatch(
                source=self.source,
                name=full_name.upper(),
                percentage=100,
                details="Reported in the compliance system (simulation), suspicious activity report required",
                reference_id=self._reference(identification),
            )
            result = self._result(started, CheckStatus.MATCH, [match])
        elif "999" in identification:
            log.error("Simulated UAFE outage", source=self.source, identification=identification)
            result = self._result(
                started,
                CheckStatus.ERROR,
                error="UAFE service timeout / connection refused (simulated)",
            )
        else:
            result = self._result(started)

        log.info(
            "Simulated check completed",
            source=self.source,
            status=result.status.value,
            latency_ms=result.execution_time_ms,
        )
        return result


class _NameTriggerProvider(SimulatedProvider):
    triggers: tuple[str, ...] = ()
    percentage: float = 100
    details: str = ""

    async def check_person(self, identification: str, full_name: str) -> ComplianceCheckResult:
        started = time.perf_counter()
        await self._network_delay()

        name = full_name.upper()
        if any(trigger in name for trigger in self.triggers):
            log.warning("Simulated list match", source=self.source, name=name)
            match = ComplianceMatch(
                source=self.source,
                name=name,
                percentage=self.percentage,
                details=self.details,
                reference_id=self._reference(),
            )
            result = self._result(started, CheckStatus.MATCH, [match])
        else:
            result = self._result(started)

        log.info(
            "Simulated check completed",
            source=self.source,
            status=result.status.value,
            latency_ms=result.execution_time_ms,
        )
        return result


class OfacSimProvider(_NameTriggerProvider):
    source = "OFAC"
    triggers = ("SANCTION", "LADEN")
    percentage = 95
    details = "SDN List Match - Specially Designated National"


class UnSimProvider(_NameTriggerProvider):
    source = "ONU"
    triggers = ("TERROR",)
    percentage = 99
    details = "UN Security Council Consolidated List Match"


def simulated_providers(simulate_latency: bool = True) -> list[WatchlistProvider]:
    return [
        UafeSimProvider(simulate_latency=simulate_latency),
        OfacSimProvider(simulate_latency=simulate_latency),
        UnSimProvider(simulate_latency=simulate_latency),
    ]
