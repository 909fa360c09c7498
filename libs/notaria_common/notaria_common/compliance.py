from decimal import Decimal


class ComplianceSettings:
    # Ley Orgánica de Prevención de Lavado de Activos: límite de efectivo por operación
    CASH_LIMIT = Decimal("10000")
    HIGH_VALUE_THRESHOLD = Decimal("100000")  # operaciones de alto valor
    UNDERVALUATION_FLOOR = Decimal("5000")  # compraventa por debajo: posible subvaloración
    INCOME_MULTIPLE = 5  # valor > 5x ingreso anual declarado del comprador
    URGENCY_WINDOW_HOURS = 48  # creación -> escritura
    HOME_JURISDICTION = "Ecuador"
    VERIFICATION_CACHE_TTL_SECONDS = 24 * 60 * 60
    VERIFICATION_ERROR_CACHE_TTL_SECONDS = 5 * 60  # informes con fuentes caídas
    REVIEWER_ROLES = (
        "COMPLIANCE_OFFICER",
        "SYSTEM_ADMIN",
    )
