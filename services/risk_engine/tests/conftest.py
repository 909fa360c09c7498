"""
Fixtures for risk-engine tests.

Everything runs offline: in-memory alert store and cache, simulated watchlist
providers with latency disabled.
"""

import pytest
from fastapi.testclient import TestClient

from services.risk_engine.alert_store import InMemoryAlertStore
from services.risk_engine.cache import InMemoryReportCache
from services.risk_engine.engine import ComplianceEngine
from services.risk_engine.main import create_app
from services.risk_engine.providers import ProviderRegistry, simulated_providers
from services.risk_engine.rules import load_rules
from services.risk_engine.verification import CachedVerifier, WatchlistAggregator


@pytest.fixture
def rules():
    return load_rules()


@pytest.fixture
def store():
    return InMemoryAlertStore()


@pytest.fixture
def engine(rules, store):
    registry = ProviderRegistry(simulated_providers(simulate_latency=False))
    verifier = CachedVerifier(WatchlistAggregator(registry, timeout=1.0), InMemoryReportCache())
    return ComplianceEngine(rules, store, verifier)


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine=engine))
