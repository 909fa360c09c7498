"""Business metrics for risk-engine service."""

import os

import structlog
from prometheus_client import Counter, Histogram, start_http_server

log = structlog.get_logger(__name__)

# ===========================================
# Business Metrics
# ===========================================

risk_assessments_total = Counter(
    "risk_assessments_total",
    "Total risk assessments performed",
    ["risk_level", "dd_tier"],
)

alerts_created_total = Counter(
    "compliance_alerts_created_total",
    "Alerts persisted by the alert rule engine",
    ["kind", "severity"],
)

alert_persist_failures_total = Counter(
    "compliance_alert_persist_failures_total",
    "Alerts that triggered but could not be persisted",
    ["kind"],
)

alert_reviews_total = Counter(
    "compliance_alert_reviews_total",
    "Alert review transitions applied",
    ["decision"],
)

watchlist_checks_total = Counter(
    "watchlist_checks_total",
    "Watchlist provider checks by outcome",
    ["source", "status"],
)

watchlist_check_duration = Histogram(
    "watchlist_check_duration_seconds",
    "Watchlist provider call duration",
    ["source"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 3, 5, 10),
)

verification_cache_total = Counter(
    "verification_cache_total",
    "Verification cache lookups",
    ["result"],
)


# ===========================================
# Metrics HTTP Server
# ===========================================

def init_metrics_server(port: int = 9102):
    """
    Start Prometheus metrics HTTP server on specified port.

    Args:
        port: Port to expose metrics endpoint (default: 9102)
    """
    try:
        start_http_server(port)
        log.info("Prometheus metrics server started", port=port)
    except OSError as e:
        if "Address already in use" in str(e):
            log.warning("Metrics server already running", port=port)
        else:
            raise


if os.getenv("METRICS_PORT"):
    init_metrics_server(int(os.getenv("METRICS_PORT", "9102")))
