"""Explicitly constructed collaborators shared by the inference stages.

Callers own the context and pass it to the orchestrator; nothing in the
pipeline reaches for process-wide singletons, so tests can build a fresh
context per case and tear it down deterministically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from voicetask.config.settings import InferenceConfig, Settings, settings
from voicetask.services.backends import (
    DeviceProfileProvider,
    GenerationBackend,
    StorageBackend,
    TranscriptionBackend,
    UnavailableBackend,
)
from voicetask.services.device_profile import StaticDeviceProfile
from voicetask.services.note_store import InMemoryNoteStore

from .normalizer import TextNormalizer
from .resources import ModelSlot

TranscriptionFactory = Callable[[], TranscriptionBackend]
GenerationFactory = Callable[[], GenerationBackend]


@dataclass
class InferenceContext:
    """Everything a job needs besides its input."""

    device_profile: DeviceProfileProvider
    storage: StorageBackend
    transcription_factory: TranscriptionFactory
    generation_factory: GenerationFactory
    config: InferenceConfig = field(default_factory=InferenceConfig)
    normalizer: TextNormalizer = field(default_factory=TextNormalizer)
    model_slot: ModelSlot = field(default_factory=ModelSlot)
    models_dir: Optional[str] = None

    def model_path(self, model_id: str) -> str:
        """Resolve a model identifier to the path handed to ``load``."""

        if not self.models_dir:
            return model_id
        return str(Path(self.models_dir) / model_id)


def build_default_context(app_settings: Settings = settings) -> InferenceContext:
    """Assemble a context from settings; unset engines degrade instead of failing."""

    backends = app_settings.backends

    transcription_factory = backends.transcription_factory or (
        lambda: UnavailableBackend("transcription")
    )
    generation_factory = backends.generation_factory or (
        lambda: UnavailableBackend("generation")
    )
    storage = backends.storage_factory() if backends.storage_factory else InMemoryNoteStore()

    return InferenceContext(
        device_profile=StaticDeviceProfile.from_config(app_settings.device),
        storage=storage,
        transcription_factory=transcription_factory,
        generation_factory=generation_factory,
        config=app_settings.inference,
        normalizer=TextNormalizer(app_settings.normalizer.fillers),
        models_dir=app_settings.device.models_dir,
    )


__all__ = [
    "GenerationFactory",
    "InferenceContext",
    "TranscriptionFactory",
    "build_default_context",
]
