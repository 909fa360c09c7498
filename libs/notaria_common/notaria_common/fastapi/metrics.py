from __future__ import annotations

import time
from collections.abc import Iterable, Sequence

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from notaria_common.metrics import record_request


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collects request/response metrics for FastAPI endpoints."""

    def __init__(
        self,
        app,
        service_name: str,
        *,
        skip_paths: Iterable[str] | None = None,
    ) -> None:
        super().__init__(app)
        self._service = service_name
        self._skip_paths = tuple(skip_paths or ("/metrics", "/health"))

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self._skip_paths:
            return await call_next(request)

        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path)
            record_request(
                self._service,
                request.method,
                endpoint,
                response.status_code if response else 500,
                time.perf_counter() - start,
            )


def add_prometheus_middleware(
    app, service_name: str, skip_paths: Sequence[str] | None = None
) -> None:
    """Helper to add Prometheus middleware to FastAPI app."""

    app.add_middleware(
        PrometheusMiddleware, service_name=service_name, skip_paths=skip_paths
    )
