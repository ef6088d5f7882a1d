"""Contracts for the engines and collaborators the inference core consumes.

The neural engines, the device profiler and the encrypted store are owned by
other teams; the pipeline only depends on the protocols below so tests and
platform integrations can plug in their own implementations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol

if TYPE_CHECKING:
    from voicetask.pipelines.inference.types import (  # pragma: no cover
        GenerationParameters,
        ModelConfiguration,
    )


class BackendError(RuntimeError):
    """Base class for failures raised by external engines and collaborators."""


class ModelLoadError(BackendError):
    """Raised when a model file is missing, corrupt or cannot be loaded."""


class TranscriptionError(BackendError):
    """Raised when the speech-to-text engine fails to process audio."""


class GenerationError(BackendError):
    """Raised when the language model fails to produce output."""


class StorageError(BackendError):
    """Raised when a processed note cannot be persisted."""


@dataclass(frozen=True)
class TranscriptionResult:
    """Structured transcription outcome returned by the STT engine."""

    text: str
    language: Optional[str] = None
    duration_seconds: Optional[float] = None


@dataclass(frozen=True)
class GenerationResult:
    """Raw text produced by one generation call."""

    text: str
    tokens_generated: Optional[int] = None
    duration_ms: Optional[int] = None


class TranscriptionBackend(Protocol):
    async def load(self, model_path: str) -> None:
        ...

    async def transcribe_file(self, path: str) -> TranscriptionResult:
        ...

    async def unload(self) -> None:
        ...


class GenerationBackend(Protocol):
    async def load(self, model_path: str) -> None:
        ...

    async def generate(
        self, prompt: str, params: "GenerationParameters"
    ) -> GenerationResult:
        ...

    async def unload(self) -> None:
        ...


class DeviceProfileProvider(Protocol):
    """Supplies the active model configuration and the current battery level."""

    async def get_model_configuration(self) -> "ModelConfiguration":
        ...

    async def get_battery_level(self) -> int:
        ...


class StorageBackend(Protocol):
    async def save(
        self,
        job_id: str,
        transcript: str,
        extracted_json: Mapping[str, Any],
        metadata: Mapping[str, Any],
    ) -> None:
        ...


class UnavailableBackend:
    """Placeholder engine used when no factory is configured.

    Loading always fails, which the stages convert into a degraded result
    instead of an error surfaced to the caller.
    """

    def __init__(self, kind: str) -> None:
        self._kind = kind

    async def load(self, model_path: str) -> None:
        raise ModelLoadError(
            f"No {self._kind} backend configured (requested model: {model_path})"
        )

    async def transcribe_file(self, path: str) -> TranscriptionResult:
        raise TranscriptionError(f"No {self._kind} backend configured")

    async def generate(self, prompt: str, params: Any) -> GenerationResult:
        raise GenerationError(f"No {self._kind} backend configured")

    async def unload(self) -> None:
        return None


__all__ = [
    "BackendError",
    "DeviceProfileProvider",
    "GenerationBackend",
    "GenerationError",
    "GenerationResult",
    "ModelLoadError",
    "StorageBackend",
    "StorageError",
    "TranscriptionBackend",
    "TranscriptionError",
    "TranscriptionResult",
    "UnavailableBackend",
]
