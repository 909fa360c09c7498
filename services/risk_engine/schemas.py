"""
Domain models for the risk-engine service.

Enums are closed tag sets; the scoring and alerting modules match over them
exhaustively.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(UTC)


class ActType(str, Enum):
    MARITAL_PROPERTY_LIQUIDATION = "MARITAL_PROPERTY_LIQUIDATION"
    MORTGAGE_CANCELLATION = "MORTGAGE_CANCELLATION"
    MORTGAGE = "MORTGAGE"
    POWER_OF_ATTORNEY = "POWER_OF_ATTORNEY"
    WILL = "WILL"
    SALE = "SALE"
    DONATION = "DONATION"
    COMPANY_FORMATION = "COMPANY_FORMATION"
    OTHER = "OTHER"


class PersonType(str, Enum):
    NATURAL = "NATURAL"
    LEGAL_ENTITY = "LEGAL_ENTITY"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


class DiligenceTier(str, Enum):
    SIMPLIFIED = "SIMPLIFIED"
    STANDARD = "STANDARD"
    REINFORCED = "REINFORCED"
    INTENSIFIED = "INTENSIFIED"


class RiskFactorKind(str, Enum):
    ACT_TYPE = "ACT_TYPE"
    HIGH_VALUE = "HIGH_VALUE"
    CASH_LIMIT = "CASH_LIMIT"
    SELLER_PEP = "SELLER_PEP"
    BUYER_PEP = "BUYER_PEP"
    SELLER_FOREIGN_ENTITY = "SELLER_FOREIGN_ENTITY"
    BUYER_FOREIGN_ENTITY = "BUYER_FOREIGN_ENTITY"
    HIGH_RISK_JURISDICTION = "HIGH_RISK_JURISDICTION"


class AlertKind(str, Enum):
    CASH_LIMIT_BREACH = "CASH_LIMIT_BREACH"
    UNDERVALUATION = "UNDERVALUATION"
    INCOMPATIBLE_PROFILE = "INCOMPATIBLE_PROFILE"
    EXCESSIVE_URGENCY = "EXCESSIVE_URGENCY"
    WATCHLIST_MATCH = "WATCHLIST_MATCH"


class AlertSeverity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    AlertSeverity.CRITICAL: 4,
    AlertSeverity.HIGH: 3,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.LOW: 1,
}


class AlertState(str, Enum):
    PENDING = "PENDING"
    IN_ANALYSIS = "IN_ANALYSIS"
    CONFIRMED = "CONFIRMED"
    FALSE_POSITIVE = "FALSE_POSITIVE"
    REPORTED = "REPORTED"


class CheckStatus(str, Enum):
    CLEAN = "CLEAN"
    MATCH = "MATCH"
    ERROR = "ERROR"


class PartyRole(str, Enum):
    SELLER = "SELLER"
    BUYER = "BUYER"


# ---------- risk input ----------
class PartySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    person_type: PersonType
    country: str | None = Field(
        default=None, description="Country of incorporation (legal entities)"
    )
    is_pep: bool = False


class OperationRiskInput(BaseModel):
    """Attributes the scoring model reads. Act type and declared value are required."""

    model_config = ConfigDict(frozen=True)

    act_type: ActType
    declared_value: Decimal = Field(..., gt=0)
    cash_amount: Decimal | None = Field(default=None, ge=0)
    seller: PartySummary
    buyer: PartySummary

    @property
    def parties(self) -> tuple[tuple[PartyRole, PartySummary], ...]:
        return ((PartyRole.SELLER, self.seller), (PartyRole.BUYER, self.buyer))


class RiskFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: RiskFactorKind
    description: str
    weight: int = Field(..., gt=0)


class RiskAssessment(BaseModel):
    score: int = Field(..., ge=0, le=100)
    level: RiskLevel
    factors: list[RiskFactor]
    dd_tier: DiligenceTier


# ---------- operation snapshot ----------
class PartyRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    person_type: PersonType
    identification: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    country: str | None = None
    is_pep: bool = False
    monthly_income: Decimal | None = Field(default=None, ge=0)

    def summary(self) -> PartySummary:
        return PartySummary(
            person_type=self.person_type, country=self.country, is_pep=self.is_pep
        )


class OperationSnapshot(BaseModel):
    """Finalized operation plus loaded party records."""

    model_config = ConfigDict(frozen=True)

    id: str
    tenant_id: str
    act_type: ActType
    declared_value: Decimal = Field(..., gt=0)
    cash_amount: Decimal | None = Field(default=None, ge=0)
    created_at: datetime
    executed_at: datetime | None = None
    seller: PartyRecord
    buyer: PartyRecord

    @field_validator("created_at", "executed_at")
    @classmethod
    def assume_utc(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @model_validator(mode="after")
    def executed_after_created(self):
        if self.executed_at is not None and self.executed_at < self.created_at:
            raise ValueError("executed_at must not be earlier than created_at")
        return self

    def risk_input(self) -> OperationRiskInput:
        return OperationRiskInput(
            act_type=self.act_type,
            declared_value=self.declared_value,
            cash_amount=self.cash_amount,
            seller=self.seller.summary(),
            buyer=self.buyer.summary(),
        )


# ---------- alerts ----------
class Alert(BaseModel):
    id: str
    kind: AlertKind
    severity: AlertSeverity
    title: str
    description: str
    details: dict = Field(default_factory=dict)
    state: AlertState = AlertState.PENDING
    operation_id: str
    tenant_id: str
    created_at: datetime = Field(default_factory=utcnow)
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_comment: str | None = None


class Reviewer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)


class ReviewAction(BaseModel):
    decision: AlertState
    comment: str | None = Field(default=None, max_length=2000)


# ---------- watchlist verification ----------
class ComplianceMatch(BaseModel):
    source: str
    name: str
    percentage: float = Field(..., ge=0, le=100)
    details: str
    reference_id: str | None = None


class ComplianceCheckResult(BaseModel):
    source: str
    status: CheckStatus
    matches: list[ComplianceMatch] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)
    execution_time_ms: int = Field(default=0, ge=0)
    error: str | None = None


class VerificationReport(BaseModel):
    """One result per registered provider, keyed by lower-cased source."""

    identification: str
    results: dict[str, ComplianceCheckResult]

    @field_validator("results")
    @classmethod
    def lower_case_keys(cls, v):
        return {key.lower(): value for key, value in v.items()}

    def matching_sources(self) -> list[str]:
        return sorted(
            key for key, r in self.results.items() if r.status == CheckStatus.MATCH
        )

    def has_match(self) -> bool:
        return any(r.status == CheckStatus.MATCH for r in self.results.values())

    def has_errors(self) -> bool:
        return any(r.status == CheckStatus.ERROR for r in self.results.values())


class PartyIdentity(BaseModel):
    identification: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)


class CombinedListResult(BaseModel):
    source: str
    status: CheckStatus
    message: str


class PartyVerification(BaseModel):
    global_status: CheckStatus
    has_errors: bool
    report: VerificationReport


class TwoPartyVerification(BaseModel):
    seller: PartyVerification
    buyer: PartyVerification
    combined: list[CombinedListResult]
