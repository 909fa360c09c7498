"""
Deterministic risk-scoring model (Enfoque Basado en Riesgos).

Weights are additive and independent; the score is the sum of all triggered
factors clamped to 100.
"""

from .rules import RiskRules
from .schemas import (
    ActType,
    OperationRiskInput,
    PartyRole,
    PersonType,
    RiskFactor,
    RiskFactorKind,
    RiskLevel,
)

MAX_SCORE = 100

ACT_TYPE_RISK: dict[ActType, tuple[int, str]] = {
    ActType.MARITAL_PROPERTY_LIQUIDATION: (5, "Marital property liquidation (low risk)"),
    ActType.MORTGAGE_CANCELLATION: (5, "Mortgage cancellation (low risk)"),
    ActType.MORTGAGE: (10, "Mortgage (medium risk)"),
    ActType.POWER_OF_ATTORNEY: (10, "Power of attorney (medium risk)"),
    ActType.WILL: (10, "Will (medium risk)"),
    ActType.SALE: (15, "Sale (medium-high risk)"),
    ActType.DONATION: (20, "Donation (high risk, possible concealment)"),
    ActType.COMPANY_FORMATION: (20, "Company formation (high risk)"),
    ActType.OTHER: (15, "Other notarial act"),
}

_unhandled = set(ActType) - set(ACT_TYPE_RISK)
if _unhandled:
    raise RuntimeError(
        f"Act types without a risk weight: {sorted(a.value for a in _unhandled)}"
    )

_PEP_KIND = {
    PartyRole.SELLER: RiskFactorKind.SELLER_PEP,
    PartyRole.BUYER: RiskFactorKind.BUYER_PEP,
}
_FOREIGN_KIND = {
    PartyRole.SELLER: RiskFactorKind.SELLER_FOREIGN_ENTITY,
    PartyRole.BUYER: RiskFactorKind.BUYER_FOREIGN_ENTITY,
}


def act_type_factor(act_type: ActType) -> RiskFactor:
    weight, description = ACT_TYPE_RISK[act_type]
    return RiskFactor(kind=RiskFactorKind.ACT_TYPE, description=description, weight=weight)


def is_foreign_entity(person_type: PersonType, country: str | None, rules: RiskRules) -> bool:
    return person_type == PersonType.LEGAL_ENTITY and not rules.is_home(country)


def identify_factors(operation: OperationRiskInput, rules: RiskRules) -> list[RiskFactor]:
    w = rules.weights
    th = rules.thresholds
    factors = [act_type_factor(operation.act_type)]

    if operation.declared_value >= th.high_value:
        factors.append(
            RiskFactor(
                kind=RiskFactorKind.HIGH_VALUE,
                description=f"High-value transaction: ${operation.declared_value:,.2f}",
                weight=w.high_value,
            )
        )

    cash = operation.cash_amount or 0
    if cash >= th.cash_limit:
        factors.append(
            RiskFactor(
                kind=RiskFactorKind.CASH_LIMIT,
                description=f"Cash payment >= ${th.cash_limit:,.0f}: ${cash:,.2f}",
                weight=w.cash_limit,
            )
        )

    for role, party in operation.parties:
        label = role.value.capitalize()
        if party.is_pep:
            factors.append(
                RiskFactor(
                    kind=_PEP_KIND[role],
                    description=f"{label} is a politically exposed person",
                    weight=w.pep,
                )
            )
        if is_foreign_entity(party.person_type, party.country, rules):
            factors.append(
                RiskFactor(
                    kind=_FOREIGN_KIND[role],
                    description=f"{label} is a foreign legal entity: {party.country or 'unknown country'}",
                    weight=w.foreign_entity,
                )
            )

    for _, party in operation.parties:
        if rules.is_high_risk(party.country):
            factors.append(
                RiskFactor(
                    kind=RiskFactorKind.HIGH_RISK_JURISDICTION,
                    description=f"High-risk jurisdiction: {party.country}",
                    weight=w.high_risk_jurisdiction,
                )
            )

    return factors


def score(operation: OperationRiskInput, rules: RiskRules) -> tuple[int, list[RiskFactor]]:
    """Returns the clamped score and the triggered factors. Pure, no I/O."""
    factors = identify_factors(operation, rules)
    total = sum(f.weight for f in factors)
    return min(total, MAX_SCORE), factors


def risk_level(value: int) -> RiskLevel:
    if value >= 70:
        return RiskLevel.VERY_HIGH
    if value >= 50:
        return RiskLevel.HIGH
    if value >= 30:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW
