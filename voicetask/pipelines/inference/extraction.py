"""Task-extraction stage backed by a local generation model.

The model is loaded only for the duration of one call and is always unloaded
on the way out, whatever happened in between. Malformed output earns exactly
one retry with a reinforced prompt; anything still unusable degrades to the
empty fallback shape instead of raising.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from voicetask.services.backends import GenerationBackend
from voicetask.services.response_contract import (
    ExtractionResult,
    is_valid_json_object,
    parse_task_payload,
    reason_code,
)
from voicetask.telemetry import record_fallback, record_generation_attempt

from .context import GenerationFactory
from .prompts import build_extraction_prompt, build_reinforced_prompt
from .resources import ModelSlot
from .types import ExtractionOutcome, GenerationParameters

logger = logging.getLogger("voicetask.pipeline")

_MAX_GENERATIONS = 2  # Initial attempt plus one reinforced retry.


class ExtractionReason:
    IN_PROGRESS = "extraction_in_progress"
    MODEL_BUSY = "model_busy"
    MODEL_LOAD_ERROR = "model_load_error"
    GENERATION_ERROR = "generation_error"


class ExtractionStage:
    """Turn cleaned transcript text into a validated task list."""

    def __init__(
        self,
        backend_factory: GenerationFactory,
        model_path: str,
        *,
        params: Optional[GenerationParameters] = None,
        model_slot: Optional[ModelSlot] = None,
        owner: Optional[str] = None,
    ) -> None:
        self._backend_factory = backend_factory
        self.model_path = model_path
        self.params = params or GenerationParameters.structured_extraction()
        self._model_slot = model_slot or ModelSlot()
        self._owner = owner or f"extraction-{uuid4().hex[:8]}"
        self._backend: Optional[GenerationBackend] = None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def extract(self, cleaned_text: str) -> ExtractionResult:
        """Extract tasks; never raises."""

        outcome = await self.run(cleaned_text)
        return outcome.result

    async def run(self, cleaned_text: str) -> ExtractionOutcome:
        """Extract tasks and keep the raw model text for later validation."""

        if not cleaned_text or not cleaned_text.strip():
            logger.warning("Empty transcript provided, skipping model load")
            return self._fallback(cleaned_text or "", "empty_input")

        if self._in_flight:
            logger.warning("Extraction already in progress owner=%s", self._owner)
            return self._fallback(cleaned_text, ExtractionReason.IN_PROGRESS)

        if not self._model_slot.try_acquire(self._owner):
            return self._fallback(cleaned_text, ExtractionReason.MODEL_BUSY)

        self._in_flight = True
        raw_text: Optional[str] = None
        attempts = 0
        try:
            backend = self._backend_factory()
            self._backend = backend
            logger.info("Loading extraction model %s", self.model_path)
            try:
                await backend.load(self.model_path)
            except Exception as exc:
                logger.error("Extraction model failed to load: %s", exc)
                return self._fallback(
                    cleaned_text, f"{ExtractionReason.MODEL_LOAD_ERROR}: {exc}"
                )

            prompt = build_extraction_prompt(cleaned_text)
            try:
                for attempt in range(1, _MAX_GENERATIONS + 1):
                    attempts = attempt
                    record_generation_attempt(attempt)
                    generated = await backend.generate(prompt, self.params)
                    raw_text = generated.text or ""
                    logger.info(
                        "Generation attempt=%s tokens=%s chars=%s",
                        attempt,
                        generated.tokens_generated,
                        len(raw_text),
                    )
                    if is_valid_json_object(raw_text):
                        break
                    if attempt < _MAX_GENERATIONS:
                        logger.warning("Model returned invalid JSON, retrying once")
                        prompt = build_reinforced_prompt(prompt)
            except Exception as exc:
                logger.error("Generation failed on attempt %s: %s", attempts, exc)
                return self._fallback(
                    cleaned_text,
                    f"{ExtractionReason.GENERATION_ERROR}: {exc}",
                    raw_text=None,
                    attempts=attempts,
                )

            parsed = parse_task_payload(raw_text)
            if not parsed.ok:
                logger.warning("Extraction output rejected: %s", parsed.reason)
                return self._fallback(
                    cleaned_text, parsed.reason, raw_text=raw_text, attempts=attempts
                )

            logger.info("Extraction complete tasks=%s attempts=%s", len(parsed.tasks), attempts)
            return ExtractionOutcome(
                result=ExtractionResult.success(parsed.tasks, cleaned_text),
                raw_text=raw_text,
                attempts=attempts,
            )
        except Exception as exc:
            logger.exception("Unexpected extraction failure")
            return self._fallback(cleaned_text, f"extraction_failed: {exc}", attempts=attempts)
        finally:
            await self._unload()
            self._model_slot.release(self._owner)
            self._in_flight = False

    async def _unload(self) -> None:
        backend, self._backend = self._backend, None
        if backend is None:
            return
        try:
            await backend.unload()
            logger.info("Extraction model unloaded")
        except Exception as exc:
            logger.warning("Error unloading extraction model: %s", exc)

    @staticmethod
    def _fallback(
        text: str,
        reason: str,
        *,
        raw_text: Optional[str] = None,
        attempts: int = 0,
    ) -> ExtractionOutcome:
        record_fallback("extraction", reason_code(reason))
        return ExtractionOutcome(
            result=ExtractionResult.fallback(text, reason),
            raw_text=raw_text,
            attempts=attempts,
        )


__all__ = ["ExtractionReason", "ExtractionStage"]
