"""
Risk-engine configuration from environment variables.
"""

import os

from pydantic import BaseModel, Field, ValidationError, field_validator

from notaria_common.compliance import ComplianceSettings

from .exceptions import ConfigurationError


class VerificationConfig(BaseModel):
    """Watchlist verification settings"""

    redis_url: str = Field(default="redis://localhost:6379/0")
    cache_ttl_seconds: int = Field(
        default=ComplianceSettings.VERIFICATION_CACHE_TTL_SECONDS, ge=1
    )
    error_cache_ttl_seconds: int = Field(
        default=ComplianceSettings.VERIFICATION_ERROR_CACHE_TTL_SECONDS, ge=1
    )
    provider_timeout_seconds: float = Field(default=5.0, gt=0, le=120)
    simulation: bool = True
    simulate_latency: bool = True
    http_providers: dict[str, str] = Field(default_factory=dict)

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v):
        if not v.startswith(("redis://", "rediss://", "unix://", "memory://")):
            raise ValueError("REDIS_URL must be a redis:// URL or memory://")
        return v

    @field_validator("http_providers")
    @classmethod
    def validate_http_providers(cls, v):
        for source, url in v.items():
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"Provider {source} URL must start with http:// or https://")
        return v


class EngineConfig(BaseModel):
    """Main risk-engine configuration"""

    database_url: str = Field(default="sqlite:///./risk_engine.db")
    rules_path: str | None = None
    log_level: str = Field(default="INFO")
    reviewer_roles: tuple[str, ...] = ComplianceSettings.REVIEWER_ROLES
    verification: VerificationConfig = Field(default_factory=VerificationConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be a standard logging level")
        return v.upper()

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create configuration from environment variables"""
        try:
            roles = os.getenv("REVIEWER_ROLES")
            return cls(
                database_url=os.getenv("DATABASE_URL", "sqlite:///./risk_engine.db"),
                rules_path=os.getenv("RISK_RULES_PATH") or None,
                log_level=os.getenv("LOG_LEVEL", "INFO"),
                reviewer_roles=(
                    tuple(r.strip() for r in roles.split(",") if r.strip())
                    if roles
                    else ComplianceSettings.REVIEWER_ROLES
                ),
                verification=VerificationConfig(
                    redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
                    cache_ttl_seconds=int(
                        os.getenv(
                            "VERIFICATION_CACHE_TTL_SECONDS",
                            str(ComplianceSettings.VERIFICATION_CACHE_TTL_SECONDS),
                        )
                    ),
                    error_cache_ttl_seconds=int(
                        os.getenv(
                            "VERIFICATION_ERROR_CACHE_TTL_SECONDS",
                            str(ComplianceSettings.VERIFICATION_ERROR_CACHE_TTL_SECONDS),
                        )
                    ),
                    provider_timeout_seconds=float(
                        os.getenv("PROVIDER_TIMEOUT_SECONDS", "5")
                    ),
                    simulation=_flag("WATCHLIST_SIMULATION", True),
                    simulate_latency=_flag("SIMULATED_LATENCY", True),
                    http_providers=parse_provider_urls(
                        os.getenv("WATCHLIST_HTTP_PROVIDERS", "")
                    ),
                ),
            )
        except (ValueError, ValidationError) as e:
            raise ConfigurationError(f"Invalid risk-engine configuration: {e}") from e


def _flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_provider_urls(raw: str) -> dict[str, str]:
    """'OFAC=https://a,UN=https://b' -> {'OFAC': 'https://a', 'UN': 'https://b'}"""
    providers = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        source, sep, url = item.partition("=")
        if not sep or not source.strip() or not url.strip():
            raise ValueError(f"Malformed provider entry: {item!r}")
        providers[source.strip().upper()] = url.strip()
    return providers
