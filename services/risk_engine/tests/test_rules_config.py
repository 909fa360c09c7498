from decimal import Decimal

import pytest

from services.risk_engine.cache import InMemoryReportCache, RedisReportCache
from services.risk_engine.config import EngineConfig, VerificationConfig, parse_provider_urls
from services.risk_engine.engine import build_cache, build_engine
from services.risk_engine.exceptions import ConfigurationError
from services.risk_engine.rules import RiskRules, load_rules, normalize_country


class TestRules:
    def test_packaged_rules(self):
        rules = load_rules()
        assert rules.version == "2025.1"
        assert rules.weights.pep == 40
        assert rules.thresholds.cash_limit == Decimal("10000")
        assert rules.home_jurisdiction == "Ecuador"
        assert rules.is_high_risk("irán")
        assert not rules.is_high_risk("Ecuador")

    def test_missing_keys_fall_back_to_defaults(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("high_risk_jurisdictions: [Narnia]\n", encoding="utf-8")
        rules = load_rules(path)
        assert rules.weights.cash_limit == 30
        assert rules.thresholds.high_value == Decimal("100000")
        assert rules.is_high_risk("NARNIA")

    @pytest.mark.parametrize(
        "content",
        [
            "weights: {pep: -5}\n",
            "thresholds: {cash_limit: lots}\n",
            "home_jurisdiction: ''\n",
            "- just\n- a list\n",
            "weights: [unclosed\n",
        ],
    )
    def test_invalid_files(self, tmp_path, content):
        path = tmp_path / "rules.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_rules(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_rules(tmp_path / "absent.yaml")

    @pytest.mark.parametrize(
        "raw, expected",
        [("Irán", "iran"), ("  AFGANISTÁN ", "afganistan"), (None, ""), ("", "")],
    )
    def test_normalize_country(self, raw, expected):
        assert normalize_country(raw) == expected

    def test_empty_country_is_never_high_risk(self):
        rules = RiskRules(high_risk_jurisdictions=["Siria"])
        assert not rules.is_high_risk(None)
        assert not rules.is_high_risk("   ")


class TestEngineConfig:
    def test_defaults(self, monkeypatch):
        for name in (
            "REDIS_URL",
            "DATABASE_URL",
            "RISK_RULES_PATH",
            "LOG_LEVEL",
            "REVIEWER_ROLES",
            "VERIFICATION_CACHE_TTL_SECONDS",
            "VERIFICATION_ERROR_CACHE_TTL_SECONDS",
            "PROVIDER_TIMEOUT_SECONDS",
            "WATCHLIST_SIMULATION",
            "SIMULATED_LATENCY",
            "WATCHLIST_HTTP_PROVIDERS",
        ):
            monkeypatch.delenv(name, raising=False)

        config = EngineConfig.from_env()

        assert config.verification.cache_ttl_seconds == 86400
        assert config.verification.error_cache_ttl_seconds == 300
        assert config.verification.provider_timeout_seconds == 5.0
        assert config.verification.simulation is True
        assert config.reviewer_roles == ("COMPLIANCE_OFFICER", "SYSTEM_ADMIN")
        assert config.rules_path is None

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
        monkeypatch.setenv("VERIFICATION_CACHE_TTL_SECONDS", "3600")
        monkeypatch.setenv("VERIFICATION_ERROR_CACHE_TTL_SECONDS", "120")
        monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("WATCHLIST_SIMULATION", "false")
        monkeypatch.setenv("WATCHLIST_HTTP_PROVIDERS", "ofac=https://ofac.test, UN=http://un.test")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("REVIEWER_ROLES", "COMPLIANCE_OFFICER, NOTARY")

        config = EngineConfig.from_env()

        assert config.verification.redis_url == "redis://cache:6379/2"
        assert config.verification.cache_ttl_seconds == 3600
        assert config.verification.error_cache_ttl_seconds == 120
        assert config.verification.provider_timeout_seconds == 2.5
        assert config.verification.simulation is False
        assert config.verification.http_providers == {
            "OFAC": "https://ofac.test",
            "UN": "http://un.test",
        }
        assert config.log_level == "DEBUG"
        assert config.reviewer_roles == ("COMPLIANCE_OFFICER", "NOTARY")

    @pytest.mark.parametrize(
        "name, value",
        [
            ("VERIFICATION_CACHE_TTL_SECONDS", "0"),
            ("VERIFICATION_CACHE_TTL_SECONDS", "a day"),
            ("VERIFICATION_ERROR_CACHE_TTL_SECONDS", "0"),
            ("PROVIDER_TIMEOUT_SECONDS", "-1"),
            ("REDIS_URL", "http://localhost:6379"),
            ("LOG_LEVEL", "LOUD"),
            ("WATCHLIST_HTTP_PROVIDERS", "OFAC"),
            ("WATCHLIST_HTTP_PROVIDERS", "OFAC=ftp://x"),
        ],
    )
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError):
            EngineConfig.from_env()

    def test_parse_provider_urls_skips_blanks(self):
        assert parse_provider_urls(" , OFAC=https://a ,") == {"OFAC": "https://a"}


class TestBuildEngine:
    def test_build_cache(self):
        memory = EngineConfig(verification=VerificationConfig(redis_url="memory://"))
        assert isinstance(build_cache(memory), InMemoryReportCache)
        assert isinstance(build_cache(EngineConfig()), RedisReportCache)

    @pytest.mark.asyncio
    async def test_offline_wiring(self):
        config = EngineConfig(
            database_url="sqlite:///:memory:",
            verification=VerificationConfig(
                redis_url="memory://",
                simulate_latency=False,
                http_providers={"PEP": "https://pep.test"},
            ),
        )

        engine = build_engine(config)

        assert engine.verifier.aggregator.registry.sources == ["uafe", "ofac", "onu", "pep"]
        assert engine.rules.version == "2025.1"
        await engine.aclose()

    def test_simulation_disabled(self):
        config = EngineConfig(
            database_url="sqlite:///:memory:",
            verification=VerificationConfig(redis_url="memory://", simulation=False),
        )
        assert len(build_engine(config).verifier.aggregator.registry) == 0
