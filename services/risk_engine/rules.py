import os
import unicodedata
from decimal import Decimal
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from notaria_common.compliance import ComplianceSettings

from .exceptions import ConfigurationError

log = structlog.get_logger(__name__)

DEFAULT_RULES_PATH = Path(__file__).with_name("rules.yaml")


def normalize_country(name: str | None) -> str:
    """Casefolded, accent-free, trimmed country name ("Irán" == "iran")."""
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFKD", name.strip())
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


class RiskWeights(BaseModel):
    high_value: int = Field(default=15, gt=0)
    cash_limit: int = Field(default=30, gt=0)
    pep: int = Field(default=40, gt=0)
    foreign_entity: int = Field(default=25, gt=0)
    high_risk_jurisdiction: int = Field(default=35, gt=0)


class RiskThresholds(BaseModel):
    high_value: Decimal = Field(default=ComplianceSettings.HIGH_VALUE_THRESHOLD, gt=0)
    cash_limit: Decimal = Field(default=ComplianceSettings.CASH_LIMIT, gt=0)


class RiskRules(BaseModel):
    version: str = "builtin"
    weights: RiskWeights = Field(default_factory=RiskWeights)
    thresholds: RiskThresholds = Field(default_factory=RiskThresholds)
    home_jurisdiction: str = ComplianceSettings.HOME_JURISDICTION
    high_risk_jurisdictions: list[str] = Field(default_factory=list)

    @field_validator("home_jurisdiction")
    @classmethod
    def validate_home(cls, v):
        if not v or not v.strip():
            raise ValueError("home_jurisdiction must not be empty")
        return v.strip()

    def is_home(self, country: str | None) -> bool:
        return normalize_country(country) == normalize_country(self.home_jurisdiction)

    def is_high_risk(self, country: str | None) -> bool:
        key = normalize_country(country)
        if not key:
            return False
        return key in {normalize_country(c) for c in self.high_risk_jurisdictions}


def load_rules(path: str | os.PathLike | None = None) -> RiskRules:
    """Read and validate the scoring rules file."""
    rules_path = Path(path) if path else DEFAULT_RULES_PATH
    try:
        with open(rules_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read rules file {rules_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Rules file {rules_path} must contain a mapping")

    try:
        rules = RiskRules(**raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid rules file {rules_path}: {e}") from e

    log.info(
        "Risk rules loaded",
        action="rules_loaded",
        path=str(rules_path),
        version=rules.version,
        high_risk_jurisdictions=len(rules.high_risk_jurisdictions),
    )
    return rules
