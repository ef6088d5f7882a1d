"""Inference endpoints: run, inspect and cancel jobs, plus standalone stages."""

from typing import Any

from fastapi import APIRouter, HTTPException, status

from voicetask.controllers.dependencies import NormalizerDep, OrchestratorDep
from voicetask.pipelines.inference import InferencePipeline, ValidationStage
from voicetask.views import (
    CancelResponse,
    ErrorResponse,
    JobSummary,
    NormalizeRequest,
    NormalizeResponse,
    ProcessRequest,
    StageResponse,
    ValidateRequest,
)

router = APIRouter(prefix="/inference", tags=["inference"])


@router.post("/jobs")
async def process_job(
    payload: ProcessRequest,
    orchestrator: OrchestratorDep,
) -> dict[str, Any]:
    """Run one job to completion and return the wire-format result."""

    result = await orchestrator.process_input(
        payload.input_ref,
        requested_mode=payload.mode,
        job_id=payload.job_id,
    )
    return result.to_wire()


@router.get("/stages", response_model=list[StageResponse])
async def list_stages() -> list[StageResponse]:
    """Stages every job passes through, in order."""

    return [
        StageResponse(
            order=stage.order, name=stage.name, module=stage.module, summary=stage.summary
        )
        for stage in InferencePipeline.describe()
    ]


@router.get("/jobs", response_model=list[JobSummary])
async def list_active_jobs(orchestrator: OrchestratorDep) -> list[JobSummary]:
    return [JobSummary.from_job(job) for job in orchestrator.active_jobs()]


@router.get("/jobs/history", response_model=list[JobSummary])
async def list_recent_jobs(orchestrator: OrchestratorDep) -> list[JobSummary]:
    """Most recent finished jobs, oldest first."""

    return [JobSummary.from_job(job) for job in orchestrator.recent_jobs()]


@router.delete(
    "/jobs/{job_id}",
    response_model=CancelResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def cancel_job(job_id: str, orchestrator: OrchestratorDep) -> CancelResponse:
    if not orchestrator.cancel_job(job_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )
    return CancelResponse(job_id=job_id, cancelled=True)


@router.post("/normalize", response_model=NormalizeResponse)
async def normalize_text(
    payload: NormalizeRequest,
    normalizer: NormalizerDep,
) -> NormalizeResponse:
    if payload.partial:
        return NormalizeResponse(text=normalizer.normalize_partial(payload.text))
    return NormalizeResponse(text=normalizer.normalize(payload.text))


@router.post("/validate")
async def validate_output(payload: ValidateRequest) -> dict[str, Any]:
    """Validate raw model output without regeneration."""

    result = await ValidationStage().validate_and_fallback(
        payload.raw_text, payload.original_input
    )
    return result.to_wire()
