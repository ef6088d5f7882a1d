"""Shared fakes for the inference pipeline tests."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Callable, Iterable, Optional

import pytest

from voicetask.config.settings import InferenceConfig
from voicetask.pipelines.inference import (
    InferenceContext,
    ModelConfiguration,
    ModelSlot,
    Orchestrator,
    TextNormalizer,
)
from voicetask.services.backends import (
    GenerationResult,
    StorageError,
    TranscriptionResult,
)

VALID_TASKS_JSON = (
    '{"tasks":[{"title":"Call John","due_time":"tomorrow 3pm","priority":"high"}]}'
)


class FakeTranscriptionBackend:
    def __init__(self, text: str = "Um, remind me to call John tomorrow at 3 pm") -> None:
        self.text = text
        self.errors: deque[Exception] = deque()
        self.loaded: list[str] = []
        self.transcribed: list[str] = []
        self.unload_calls = 0
        self.gate: Optional[asyncio.Event] = None
        self.on_transcribe: Optional[Callable[[str], Any]] = None

    async def load(self, model_path: str) -> None:
        self.loaded.append(model_path)

    async def transcribe_file(self, path: str) -> TranscriptionResult:
        self.transcribed.append(path)
        if self.on_transcribe is not None:
            self.on_transcribe(path)
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.popleft()
        return TranscriptionResult(text=self.text, language="en")

    async def unload(self) -> None:
        self.unload_calls += 1


class FakeGenerationBackend:
    def __init__(self, responses: Iterable[Any] = (VALID_TASKS_JSON,)) -> None:
        self.responses: deque[Any] = deque(responses)
        self.load_error: Optional[Exception] = None
        self.unload_error: Optional[Exception] = None
        self.loaded: list[str] = []
        self.prompts: list[str] = []
        self.params: list[Any] = []
        self.unload_calls = 0
        self.gate: Optional[asyncio.Event] = None

    async def load(self, model_path: str) -> None:
        self.loaded.append(model_path)
        if self.load_error is not None:
            raise self.load_error

    async def generate(self, prompt: str, params: Any) -> GenerationResult:
        self.prompts.append(prompt)
        self.params.append(params)
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses.popleft() if self.responses else '{"tasks":[]}'
        if isinstance(response, Exception):
            raise response
        return GenerationResult(text=response, tokens_generated=len(response.split()))

    async def unload(self) -> None:
        self.unload_calls += 1
        if self.unload_error is not None:
            raise self.unload_error

    @property
    def generate_calls(self) -> int:
        return len(self.prompts)


class FakeDeviceProfile:
    def __init__(self, battery: int = 100, configuration: Optional[ModelConfiguration] = None) -> None:
        self.battery = battery
        self.configuration = configuration or ModelConfiguration(
            transcription_model="whisper-base",
            extraction_model="phi-mini-q4",
            max_tokens=128,
            mode="interactive",
        )
        self.fail = False

    async def get_model_configuration(self) -> ModelConfiguration:
        if self.fail:
            raise RuntimeError("profiler offline")
        return self.configuration

    async def get_battery_level(self) -> int:
        return self.battery


class FakeStorage:
    def __init__(self) -> None:
        self.saved: list[dict[str, Any]] = []
        self.fail = False
        self.on_save: Optional[Callable[[str], Any]] = None

    async def save(self, job_id, transcript, extracted_json, metadata) -> None:
        if self.on_save is not None:
            self.on_save(job_id)
        if self.fail:
            raise StorageError("disk full")
        self.saved.append(
            {
                "job_id": job_id,
                "transcript": transcript,
                "extracted_json": extracted_json,
                "metadata": metadata,
            }
        )


class FakeClock:
    """Monotonic clock that only moves when told to (or when the fake sleep runs)."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def transcription_backend() -> FakeTranscriptionBackend:
    return FakeTranscriptionBackend()


@pytest.fixture
def generation_backend() -> FakeGenerationBackend:
    return FakeGenerationBackend()


@pytest.fixture
def device_profile() -> FakeDeviceProfile:
    return FakeDeviceProfile()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def inference_config() -> InferenceConfig:
    return InferenceConfig(debounce_seconds=2.0, job_history_size=10)


@pytest.fixture
def context(
    transcription_backend: FakeTranscriptionBackend,
    generation_backend: FakeGenerationBackend,
    device_profile: FakeDeviceProfile,
    storage: FakeStorage,
    inference_config: InferenceConfig,
) -> InferenceContext:
    return InferenceContext(
        device_profile=device_profile,
        storage=storage,
        transcription_factory=lambda: transcription_backend,
        generation_factory=lambda: generation_backend,
        config=inference_config,
        normalizer=TextNormalizer(),
        model_slot=ModelSlot(),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def orchestrator(context: InferenceContext, clock: FakeClock) -> Orchestrator:
    return Orchestrator(context, clock=clock, sleep=clock.sleep)

