import time
from datetime import UTC, datetime

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..schemas import CheckStatus, ComplianceCheckResult, ComplianceMatch
from .base import WatchlistProvider

log = structlog.get_logger(__name__)


class WatchlistLookupError(Exception):
    """Custom exception for watchlist lookup errors"""


class RetryableLookupError(WatchlistLookupError):
    """Transient failure worth another attempt (timeouts, 429, 5xx)"""


class HttpWatchlistProvider(WatchlistProvider):
    """
    Generic JSON watchlist lookup.

    GET {base_url}/check?identification=...&name=...
    -> {"matches": [{"name": ..., "percentage": ..., "details": ..., "reference_id": ...}]}

    404 means the person is not listed. Failures raise; the aggregator turns
    them into ERROR results.
    """

    def __init__(self, source: str, base_url: str, http_client: httpx.AsyncClient):
        self.source = source.upper()
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client

    @retry(
        retry=retry_if_exception_type(RetryableLookupError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _lookup(self, identification: str, full_name: str) -> list[dict]:
        url = f"{self.base_url}/check"
        try:
            response = await self.http_client.get(
                url, params={"identification": identification, "name": full_name}
            )
        except httpx.TimeoutException:
            log.error("Watchlist API timeout", source=self.source, url=url)
            raise RetryableLookupError("API timeout") from None
        except httpx.RequestError as e:
            log.error("Watchlist API request error", source=self.source, url=url, error=str(e))
            raise RetryableLookupError(f"API request failed: {e}") from e

        if response.status_code == 200:
            payload = response.json()
            return list(payload.get("matches") or [])
        if response.status_code == 404:
            return []
        if response.status_code == 429 or response.status_code >= 500:
            log.warning(
                "Watchlist API transient error",
                source=self.source,
                response_status=response.status_code,
            )
            raise RetryableLookupError(f"API returned status {response.status_code}")

        log.error(
            "Watchlist API returned error status",
            source=self.source,
            response_status=response.status_code,
            response_text=response.text,
        )
        raise WatchlistLookupError(f"API returned status {response.status_code}")

    async def check_person(self, identification: str, full_name: str) -> ComplianceCheckResult:
        started = time.perf_counter()
        raw_matches = await self._lookup(identification, full_name)

        matches = [
            ComplianceMatch(
                source=self.source,
                name=m.get("name") or full_name.upper(),
                percentage=float(m.get("percentage", 100)),
                details=m.get("details", ""),
                reference_id=m.get("reference_id"),
            )
            for m in raw_matches
        ]
        return ComplianceCheckResult(
            source=self.source,
            status=CheckStatus.MATCH if matches else CheckStatus.CLEAN,
            matches=matches,
            timestamp=datetime.now(UTC),
            execution_time_ms=int((time.perf_counter() - started) * 1000),
        )
