from .rules import RiskRules
from .schemas import DiligenceTier, OperationRiskInput
from .scoring import is_foreign_entity


def classify(operation: OperationRiskInput, score: int, rules: RiskRules) -> DiligenceTier:
    """Required due-diligence intensity; first matching rule wins."""
    parties = (operation.seller, operation.buyer)

    # PEPs always require intensified diligence, whatever the score
    if any(p.is_pep for p in parties):
        return DiligenceTier.INTENSIFIED

    if any(is_foreign_entity(p.person_type, p.country, rules) for p in parties):
        return DiligenceTier.INTENSIFIED if score >= 70 else DiligenceTier.REINFORCED

    if score >= 70:
        return DiligenceTier.INTENSIFIED
    if score >= 50:
        return DiligenceTier.REINFORCED
    if score >= 30:
        return DiligenceTier.STANDARD
    return DiligenceTier.SIMPLIFIED
