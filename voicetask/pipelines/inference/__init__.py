"""Adaptive inference pipeline package.

Modules are organised by the order in which `Orchestrator.process_input`
executes:

1. `transcription` – load the speech model, transcribe, unload.
2. `normalizer` – deterministic cleanup of the raw transcript.
3. `extraction` – prompt the local model for JSON tasks under the model slot.
4. `validation` – re-check raw model output and degrade to the fallback shape.
5. `persistence` – metadata saved alongside each note.
6. `flow` – human-readable description of the end-to-end stages.

`orchestrator` ties the stages together; `context` carries the collaborators
each job needs.
"""

from .context import InferenceContext, build_default_context
from .extraction import ExtractionStage
from .flow import InferencePipeline, PipelineStage
from .normalizer import TextNormalizer, normalize_transcript
from .orchestrator import InferenceError, Orchestrator
from .resources import ModelSlot
from .transcription import transcribe_input
from .types import (
    ExtractionOutcome,
    GenerationParameters,
    InferenceJob,
    JobState,
    ModelConfiguration,
    ProcessingMode,
    Quantization,
    StageOutcome,
)
from .validation import ValidationStage

__all__ = [
    "ExtractionOutcome",
    "ExtractionStage",
    "GenerationParameters",
    "InferenceContext",
    "InferenceError",
    "InferenceJob",
    "InferencePipeline",
    "JobState",
    "ModelConfiguration",
    "ModelSlot",
    "Orchestrator",
    "PipelineStage",
    "ProcessingMode",
    "Quantization",
    "StageOutcome",
    "TextNormalizer",
    "ValidationStage",
    "build_default_context",
    "normalize_transcript",
    "transcribe_input",
]
