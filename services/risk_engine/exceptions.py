"""
Domain exceptions and centralized exception handlers for risk-engine.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = logging.getLogger("risk-engine")


class RiskEngineError(Exception):
    """Base class for risk-engine errors"""


class ConfigurationError(RiskEngineError):
    """Invalid rules file or environment configuration"""


class CacheError(RiskEngineError):
    """Verification cache read/write failure"""


class ProviderRegistrationError(RiskEngineError):
    """Watchlist provider could not be registered"""


class AlertNotFoundError(RiskEngineError):
    def __init__(self, alert_id: str):
        super().__init__(f"Alert {alert_id} not found")
        self.alert_id = alert_id


class AlertTransitionError(RiskEngineError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Transition {current} -> {target} is not allowed")
        self.current = current
        self.target = target


class ReviewerNotAuthorizedError(RiskEngineError):
    def __init__(self, reviewer_id: str, role: str):
        super().__init__(f"Reviewer {reviewer_id} with role {role} may not review alerts")
        self.reviewer_id = reviewer_id
        self.role = role


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Centralized handler for Pydantic validation errors (422).
    Returns standardized error format.
    """
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({"field": field, "message": error["msg"], "type": error["type"]})

    log.warning(
        f"Validation error on {request.url.path}: {len(errors)} error(s)",
        extra={"errors": errors},
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "errors": errors,
        },
    )


async def rate_limit_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handler for rate limit exceeded (429).
    """
    log.warning(
        f"Rate limit exceeded on {request.url.path}",
        extra={"client": request.client.host if request.client else None},
    )

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": "Too Many Requests",
            "message": "Rate limit exceeded. Please try again later.",
        },
    )


_STATUS_BY_ERROR = {
    AlertNotFoundError: status.HTTP_404_NOT_FOUND,
    AlertTransitionError: status.HTTP_409_CONFLICT,
    ReviewerNotAuthorizedError: status.HTTP_403_FORBIDDEN,
}


async def risk_engine_error_handler(
    request: Request, exc: RiskEngineError
) -> JSONResponse:
    """Maps domain errors to HTTP status codes; anything unmapped is a 500."""
    status_code = _STATUS_BY_ERROR.get(
        type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    if status_code >= 500:
        log.error(f"Unhandled risk-engine error on {request.url.path}: {exc}")
        detail = "Internal server error"
    else:
        log.warning(f"{type(exc).__name__} on {request.url.path}: {exc}")
        detail = str(exc)

    return JSONResponse(status_code=status_code, content={"detail": detail})
