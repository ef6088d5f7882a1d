"""Persistence helpers for the final stage of the inference pipeline."""

from __future__ import annotations

from typing import Any

from .types import InferenceJob

_METADATA_FIELDS = (
    "requested_mode",
    "actual_mode",
    "transcription_model",
    "extraction_model",
    "token_budget",
    "battery_at_start",
    "power_constraints",
)


def build_note_metadata(job: InferenceJob) -> dict[str, Any]:
    """Build the metadata persisted alongside each note for audit/debug purposes."""

    metrics = job.to_metrics()
    base = {k: metrics[k] for k in _METADATA_FIELDS if metrics.get(k) is not None}
    base["input_ref"] = job.input_ref
    base["processed_at"] = job.start_time.isoformat()
    return base


__all__ = ["build_note_metadata"]
