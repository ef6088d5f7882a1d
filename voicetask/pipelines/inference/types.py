"""Typed containers shared across the inference pipeline.

These live in their own module so the stages (`normalizer`, `extraction`,
`validation`, `orchestrator`) can import them without creating circular
dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace as dataclass_replace
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Mapping, Optional, TypeVar

from voicetask.services.response_contract import ExtractionResult

T = TypeVar("T")


class ProcessingMode(str, Enum):
    BATCH = "batch"
    INTERACTIVE = "interactive"


class Quantization(str, Enum):
    FOUR_BIT = "4bit"
    EIGHT_BIT = "8bit"


class JobState(str, Enum):
    CREATED = "created"
    DEBOUNCED = "debounced"
    TRANSCRIBING = "transcribing"
    CLEANING = "cleaning"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ModelConfiguration:
    """Model selection for one job, as decided by the device profiler."""

    transcription_model: str
    extraction_model: str
    quantization: Quantization = Quantization.FOUR_BIT
    max_tokens: int = 128
    mode: ProcessingMode = ProcessingMode.BATCH

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantization", Quantization(self.quantization))
        object.__setattr__(self, "mode", ProcessingMode(self.mode))
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")

    @classmethod
    def fallback(cls) -> "ModelConfiguration":
        """Entry-level configuration used when profiling fails."""

        return cls(
            transcription_model="moonshine-tiny",
            extraction_model="tinyllama-q4",
            quantization=Quantization.FOUR_BIT,
            max_tokens=128,
            mode=ProcessingMode.BATCH,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ModelConfiguration":
        return cls(
            transcription_model=str(data["transcription_model"]),
            extraction_model=str(data["extraction_model"]),
            quantization=data.get("quantization", Quantization.FOUR_BIT),
            max_tokens=int(data.get("max_tokens", 128)),
            mode=data.get("mode", ProcessingMode.BATCH),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "transcription_model": self.transcription_model,
            "extraction_model": self.extraction_model,
            "quantization": self.quantization.value,
            "max_tokens": self.max_tokens,
            "mode": self.mode.value,
        }


@dataclass(frozen=True)
class GenerationParameters:
    """Sampling parameters handed to the generation backend for one attempt."""

    temperature: float = 0.3
    top_p: float = 0.9
    top_k: Optional[int] = None
    max_tokens: int = 256
    repetition_penalty: float = 1.1
    stop_sequences: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("temperature must be within [0, 2]")
        if not 0.0 < self.top_p <= 1.0:
            raise ValueError("top_p must be within (0, 1]")
        if self.top_k is not None and self.top_k < 0:
            raise ValueError("top_k must not be negative")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if self.repetition_penalty < 1.0:
            raise ValueError("repetition_penalty must be >= 1.0")
        # Ordered set semantics: keep first occurrence only.
        object.__setattr__(
            self, "stop_sequences", tuple(dict.fromkeys(self.stop_sequences))
        )

    @classmethod
    def structured_extraction(cls) -> "GenerationParameters":
        return cls(
            temperature=0.3,
            top_p=0.9,
            max_tokens=256,
            repetition_penalty=1.1,
            stop_sequences=("}",),
        )

    @classmethod
    def strict(cls) -> "GenerationParameters":
        return cls(
            temperature=0.2,
            top_p=0.8,
            max_tokens=128,
            repetition_penalty=1.2,
            stop_sequences=("}",),
        )

    def replace(self, **changes: Any) -> "GenerationParameters":
        return dataclass_replace(self, **changes)

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_tokens": self.max_tokens,
            "repetition_penalty": self.repetition_penalty,
            "stop_sequences": list(self.stop_sequences),
        }
        if self.top_k is not None:
            payload["top_k"] = self.top_k
        return payload


@dataclass(frozen=True)
class StageOutcome(Generic[T]):
    """Explicit success/failure value returned by a stage to the orchestrator."""

    value: Optional[T] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, value: T) -> "StageOutcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: str) -> "StageOutcome[T]":
        return cls(reason=reason)


@dataclass(frozen=True)
class ExtractionOutcome:
    """Result of one extraction call plus the raw text it was derived from."""

    result: ExtractionResult
    raw_text: Optional[str] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.result.validated


@dataclass
class InferenceJob:
    """Lifecycle record for one `process_input` call, owned by the orchestrator."""

    job_id: str
    input_ref: str
    requested_mode: ProcessingMode
    actual_mode: ProcessingMode
    start_time: datetime
    state: JobState = JobState.CREATED
    end_time: Optional[datetime] = None
    transcription_model: Optional[str] = None
    extraction_model: Optional[str] = None
    battery_at_start: Optional[int] = None
    battery_at_end: Optional[int] = None
    power_constraints: list[str] = field(default_factory=list)
    token_budget: Optional[int] = None
    success: bool = False
    cancelled: bool = False
    error: Optional[str] = None
    result: Optional[ExtractionResult] = None

    @property
    def duration_ms(self) -> Optional[int]:
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    @property
    def models_used(self) -> tuple[str, ...]:
        return tuple(
            model
            for model in (self.transcription_model, self.extraction_model)
            if model
        )

    def to_metrics(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "input_ref": self.input_ref,
            "state": self.state.value,
            "requested_mode": self.requested_mode.value,
            "actual_mode": self.actual_mode.value,
            "duration_ms": self.duration_ms,
            "transcription_model": self.transcription_model,
            "extraction_model": self.extraction_model,
            "token_budget": self.token_budget,
            "battery_at_start": self.battery_at_start,
            "battery_at_end": self.battery_at_end,
            "power_constraints": list(self.power_constraints),
            "success": self.success,
            "cancelled": self.cancelled,
            "error": self.error,
            "task_count": self.result.task_count if self.result else None,
        }


__all__ = [
    "ExtractionOutcome",
    "GenerationParameters",
    "InferenceJob",
    "JobState",
    "ModelConfiguration",
    "ProcessingMode",
    "Quantization",
    "StageOutcome",
]
