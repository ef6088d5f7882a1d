"""High-level orchestration map for the inference pipeline.

``orchestrator.Orchestrator.process_input`` contains the asynchronous
choreography; this module lists the execution order it follows. The list is
served at ``GET /inference/stages`` and logged once at startup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class PipelineStage:
    """Human-readable description of one stage in the inference pipeline."""

    order: int
    name: str
    module: str
    summary: str


class InferencePipeline:
    """Ordered stage list for the `process_input` flow."""

    _STAGES: List[PipelineStage] = [
        PipelineStage(
            1,
            "Debounce",
            "voicetask.pipelines.inference.orchestrator",
            "Space out repeated starts for the same input by the configured window.",
        ),
        PipelineStage(
            2,
            "Power Adaptation",
            "voicetask.pipelines.inference.orchestrator",
            "Read battery and model configuration; force batch mode and halve the token budget on low power.",
        ),
        PipelineStage(
            3,
            "Transcription",
            "voicetask.pipelines.inference.transcription",
            "Load the speech model, transcribe the file, unload; retry once on the fallback model.",
        ),
        PipelineStage(
            4,
            "Cleaning",
            "voicetask.pipelines.inference.normalizer",
            "Remove fillers, canonicalise times, repair punctuation and collapse repeats.",
        ),
        PipelineStage(
            5,
            "Extraction",
            "voicetask.pipelines.inference.extraction",
            "Acquire the model slot, prompt the local model for JSON tasks, retry once on malformed output.",
        ),
        PipelineStage(
            6,
            "Validation",
            "voicetask.pipelines.inference.validation",
            "Re-check the raw model output against the task schema and degrade to the fallback shape.",
        ),
        PipelineStage(
            7,
            "Persistence",
            "voicetask.pipelines.inference.persistence",
            "Save the transcript, extracted JSON and job metadata through the storage backend.",
        ),
    ]

    @classmethod
    def describe(cls) -> Iterable[PipelineStage]:
        """Return the stages in execution order."""

        return tuple(cls._STAGES)


__all__ = ["InferencePipeline", "PipelineStage"]
