"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    ),
)

REQUESTS_IN_FLIGHT = Gauge(
    "http_requests_in_flight",
    "HTTP requests currently being served",
    ("method",),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

JOB_COUNTER = Counter(
    "inference_jobs_total",
    "Inference jobs finished, by outcome",
    ("outcome",),
)

JOB_DURATION = Histogram(
    "inference_job_duration_seconds",
    "Wall-clock duration of inference jobs",
    ("mode",),
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

MODE_OVERRIDES = Counter(
    "inference_mode_overrides_total",
    "Jobs whose processing mode was constrained by power state",
    ("constraint",),
)

GENERATION_ATTEMPTS = Counter(
    "extraction_generation_attempts_total",
    "Generation calls issued by the extraction stage",
    ("attempt",),
)

VALIDATION_FALLBACKS = Counter(
    "validation_fallbacks_total",
    "Results degraded to the fallback shape, by failure code",
    ("stage", "reason"),
)

VALIDATION_RETRIES = Counter(
    "validation_regenerations_total",
    "Regeneration callbacks invoked by the validation stage",
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def observe_job(outcome: str, mode: str, duration_seconds: float | None) -> None:
    """Record a finished inference job."""

    JOB_COUNTER.labels(outcome=outcome).inc()
    if duration_seconds is not None:
        JOB_DURATION.labels(mode=mode).observe(max(duration_seconds, 0.0))


def record_mode_override(constraint: str) -> None:
    MODE_OVERRIDES.labels(constraint=constraint).inc()


def record_generation_attempt(attempt: int) -> None:
    GENERATION_ATTEMPTS.labels(attempt="retry" if attempt > 1 else "initial").inc()


def record_fallback(stage: str, code: str) -> None:
    VALIDATION_FALLBACKS.labels(stage=stage, reason=code).inc()


def record_regeneration() -> None:
    VALIDATION_RETRIES.inc()
