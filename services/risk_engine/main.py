import time
import uuid
from typing import Annotated

import structlog
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import Response

from notaria_common.fastapi.metrics import add_prometheus_middleware
from notaria_common.logging import setup_logging

from .config import EngineConfig
from .engine import ComplianceEngine, build_engine
from .exceptions import (
    RiskEngineError,
    rate_limit_handler,
    risk_engine_error_handler,
    validation_exception_handler,
)
from .schemas import (
    Alert,
    OperationRiskInput,
    OperationSnapshot,
    PartyIdentity,
    ReviewAction,
    Reviewer,
    RiskAssessment,
    TwoPartyVerification,
    VerificationReport,
)

SERVICE_NAME = "risk-engine"

log = structlog.get_logger(SERVICE_NAME)

limiter = Limiter(key_func=get_remote_address)


def _rid(x: str | None) -> str:
    try:
        return str(uuid.UUID(x)) if x else str(uuid.uuid4())
    except ValueError:
        return str(uuid.uuid4())


def get_engine(request: Request) -> ComplianceEngine:
    return request.app.state.engine


EngineDep = Annotated[ComplianceEngine, Depends(get_engine)]


# ---------- request/response models ----------
class EvaluateRequest(BaseModel):
    operation: OperationSnapshot
    verify: bool = Field(default=True, description="Check both parties against watchlists")


class EvaluateResponse(BaseModel):
    assessment: RiskAssessment
    alerts: list[Alert]


class VerifyPartiesRequest(BaseModel):
    seller: PartyIdentity
    buyer: PartyIdentity


def create_app(
    engine: ComplianceEngine | None = None, config: EngineConfig | None = None
) -> FastAPI:
    app = FastAPI(
        title="Notarial risk-engine",
        version="1.0.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
    )
    app.state.engine = engine
    app.state.limiter = limiter

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(RiskEngineError, risk_engine_error_handler)
    add_prometheus_middleware(app, SERVICE_NAME)

    @app.on_event("startup")
    async def _startup():
        if app.state.engine is None:
            cfg = config or EngineConfig.from_env()
            setup_logging(SERVICE_NAME, cfg.log_level)
            app.state.engine = build_engine(cfg)
            log.info("Risk engine started", rules_version=app.state.engine.rules.version)

    @app.on_event("shutdown")
    async def _shutdown():
        if app.state.engine is not None:
            await app.state.engine.aclose()

    @app.middleware("http")
    async def mid(request: Request, call_next):
        rid = _rid(request.headers.get("X-Request-Id"))
        request.state.rid = rid
        resp = await call_next(request)
        resp.headers["X-Request-Id"] = rid
        return resp

    @app.get("/health")
    def health():
        return {"status": "ok", "service": SERVICE_NAME}

    @app.get("/info")
    def info(engine: EngineDep):
        return {
            "service": SERVICE_NAME,
            "version": app.version,
            "rules_version": engine.rules.version,
            "watchlist_sources": _sources(engine),
        }

    @app.post("/risk/preview", response_model=RiskAssessment)
    def risk_preview(req: OperationRiskInput, engine: EngineDep):
        return engine.preview(req)

    @app.post("/risk/operations/evaluate", response_model=EvaluateResponse)
    async def evaluate_operation(req: EvaluateRequest, request: Request, engine: EngineDep):
        start_time = time.time()
        assessment, alerts = await engine.evaluate_operation(req.operation, verify=req.verify)
        log.info(
            "Operation evaluated",
            action="operation_evaluated",
            operation_id=req.operation.id,
            score=assessment.score,
            alerts=len(alerts),
            latency_ms=int((time.time() - start_time) * 1000),
            request_id=request.state.rid,
        )
        return EvaluateResponse(assessment=assessment, alerts=alerts)

    @app.get("/compliance/check/{identification}", response_model=VerificationReport)
    async def check_person(
        identification: str,
        engine: EngineDep,
        full_name: Annotated[str, Query(min_length=1)],
    ):
        return await engine.verify_person(identification, full_name)

    @app.post("/compliance/verify", response_model=TwoPartyVerification)
    @limiter.limit("30/minute")
    async def verify_parties(req: VerifyPartiesRequest, request: Request, engine: EngineDep):
        start_time = time.time()
        result = await engine.verify_parties(req.seller, req.buyer)
        latency_ms = int((time.time() - start_time) * 1000)
        log.info(
            "Two-party verification completed",
            action="verification_completed",
            seller_status=result.seller.global_status.value,
            buyer_status=result.buyer.global_status.value,
            latency_ms=latency_ms,
            request_id=request.state.rid,
        )
        return result

    @app.get("/alerts/pending", response_model=list[Alert])
    def pending_alerts(engine: EngineDep, tenant_id: Annotated[str, Query(min_length=1)]):
        return engine.pending_alerts(tenant_id)

    @app.patch("/alerts/{alert_id}/review", response_model=Alert)
    def review(
        alert_id: str,
        action: ReviewAction,
        engine: EngineDep,
        x_reviewer_id: Annotated[str, Header(alias="X-Reviewer-Id", min_length=1)],
        x_reviewer_role: Annotated[str, Header(alias="X-Reviewer-Role", min_length=1)],
    ):
        reviewer = Reviewer(id=x_reviewer_id, role=x_reviewer_role)
        return engine.review_alert(alert_id, reviewer, action)

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


def _sources(engine: ComplianceEngine) -> list[str]:
    aggregator = getattr(engine.verifier, "aggregator", engine.verifier)
    return aggregator.registry.sources


app = create_app()
