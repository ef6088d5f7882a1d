"""Pydantic schemas for the inference endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from voicetask.pipelines.inference.types import InferenceJob, ProcessingMode


class ProcessRequest(BaseModel):
    """Request schema for running one inference job."""

    input_ref: str = Field(..., min_length=1, description="Path of the recorded audio file")
    mode: ProcessingMode = Field(
        default=ProcessingMode.BATCH, description="Requested processing mode"
    )
    job_id: Optional[str] = Field(
        default=None, description="Caller-supplied job identifier"
    )


class NormalizeRequest(BaseModel):
    text: str
    partial: bool = Field(
        default=False, description="Only collapse whitespace, as for live text"
    )


class NormalizeResponse(BaseModel):
    text: str


class ValidateRequest(BaseModel):
    """Raw model output to validate against the task schema."""

    raw_text: str
    original_input: str = Field(
        ..., description="Text returned as fallback transcript when validation fails"
    )


class JobSummary(BaseModel):
    """Snapshot of an active or finished job."""

    job_id: str
    input_ref: str
    state: str
    requested_mode: ProcessingMode
    actual_mode: ProcessingMode
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_ms: Optional[int] = None
    transcription_model: Optional[str] = None
    extraction_model: Optional[str] = None
    token_budget: Optional[int] = None
    battery_at_start: Optional[int] = None
    battery_at_end: Optional[int] = None
    power_constraints: list[str] = Field(default_factory=list)
    success: bool = False
    cancelled: bool = False
    error: Optional[str] = None
    task_count: Optional[int] = None

    @classmethod
    def from_job(cls, job: InferenceJob) -> "JobSummary":
        return cls(start_time=job.start_time, end_time=job.end_time, **job.to_metrics())


class CancelResponse(BaseModel):
    job_id: str
    cancelled: bool


__all__ = [
    "CancelResponse",
    "JobSummary",
    "NormalizeRequest",
    "NormalizeResponse",
    "ProcessRequest",
    "ValidateRequest",
]


class StageResponse(BaseModel):
    """One step of the job pipeline, in execution order."""

    order: int
    name: str
    module: str = Field(..., description="Module that implements the stage")
    summary: str
