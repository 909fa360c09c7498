"""
Global pytest configuration for the notarial compliance services.

Keeps the test run offline: in-memory cache and database, simulated watchlist
providers without artificial latency.
"""

import os

os.environ.update({
    "REDIS_URL": "memory://",
    "DATABASE_URL": "sqlite:///:memory:",
    "WATCHLIST_SIMULATION": "true",
    "SIMULATED_LATENCY": "false",
    "WATCHLIST_HTTP_PROVIDERS": "",
    "LOG_LEVEL": "WARNING",
})
os.environ.pop("METRICS_PORT", None)
