"""Telemetry helpers and metrics."""

from .metrics import (
    ERROR_COUNTER,
    GENERATION_ATTEMPTS,
    JOB_COUNTER,
    JOB_DURATION,
    MODE_OVERRIDES,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    REQUESTS_IN_FLIGHT,
    VALIDATION_FALLBACKS,
    VALIDATION_RETRIES,
    observe_job,
    observe_request,
    record_fallback,
    record_generation_attempt,
    record_mode_override,
    record_regeneration,
)

__all__ = [
    "ERROR_COUNTER",
    "GENERATION_ATTEMPTS",
    "JOB_COUNTER",
    "JOB_DURATION",
    "MODE_OVERRIDES",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "REQUESTS_IN_FLIGHT",
    "VALIDATION_FALLBACKS",
    "VALIDATION_RETRIES",
    "observe_job",
    "observe_request",
    "record_fallback",
    "record_generation_attempt",
    "record_mode_override",
    "record_regeneration",
]
