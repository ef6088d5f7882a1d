"""Request instrumentation for the inference API."""

from __future__ import annotations

import time
from typing import Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from voicetask.telemetry import REQUESTS_IN_FLIGHT, observe_request

UNMATCHED_ROUTE = "unmatched"
DEFAULT_EXCLUDED_PATHS = ("/metrics", "/health")


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Count and time API requests, labelled by route template.

    Scrape and liveness paths are left out so polling does not drown the
    job traffic. Requests that match no route share one label.
    """

    def __init__(
        self,
        app: ASGIApp,
        excluded_paths: Iterable[str] = DEFAULT_EXCLUDED_PATHS,
    ) -> None:
        super().__init__(app)
        self._excluded_paths = frozenset(excluded_paths)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in self._excluded_paths:
            return await call_next(request)

        method = request.method
        in_flight = REQUESTS_IN_FLIGHT.labels(method=method)
        in_flight.inc()
        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            in_flight.dec()
            # Routing fills scope["route"] during call_next.
            observe_request(
                method,
                route_template(request),
                status_code,
                time.perf_counter() - start_time,
            )


def route_template(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or UNMATCHED_ROUTE


__all__ = ["TelemetryMiddleware", "route_template"]
