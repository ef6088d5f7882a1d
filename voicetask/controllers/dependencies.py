"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from voicetask.pipelines.inference import Orchestrator, TextNormalizer


def get_orchestrator(request: Request) -> Orchestrator:
    """Return the orchestrator created for this application instance."""

    return request.app.state.orchestrator


OrchestratorDep = Annotated[Orchestrator, Depends(get_orchestrator)]


def get_normalizer(orchestrator: OrchestratorDep) -> TextNormalizer:
    return orchestrator.context.normalizer


NormalizerDep = Annotated[TextNormalizer, Depends(get_normalizer)]
