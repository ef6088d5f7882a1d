"""Job scheduler for the offline inference pipeline.

``Orchestrator.process_input`` sequences transcription, cleaning, extraction,
validation and persistence for one input, adapts the processing mode to the
device's power state and always hands back a well-formed result. Failures at
any stage degrade to the fallback shape; nothing is raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Deque, Optional
from uuid import uuid4

from voicetask.services.response_contract import ExtractionResult
from voicetask.telemetry import observe_job, record_mode_override

from .context import InferenceContext
from .extraction import ExtractionStage
from .persistence import build_note_metadata
from .transcription import transcribe_input
from .types import (
    GenerationParameters,
    InferenceJob,
    JobState,
    ModelConfiguration,
    ProcessingMode,
)
from .validation import ValidationStage

logger = logging.getLogger("voicetask.pipeline")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

LOW_BATTERY = "low_battery"
CRITICAL_BATTERY = "critical_battery"
JOB_CANCELLED = "job_cancelled"
DUPLICATE_JOB_ID = "duplicate_job_id"
TRANSCRIPTION_UNAVAILABLE = "[Transcription unavailable]"


class InferenceError(Exception):
    """Internal signal that aborts a job at a stage boundary."""

    def __init__(self, reason: str, phase: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.phase = phase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Orchestrator:
    """Run inference jobs against an explicitly constructed context."""

    def __init__(
        self,
        context: InferenceContext,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._context = context
        self._clock = clock
        self._sleep = sleep
        self._active: dict[str, InferenceJob] = {}
        self._last_start: dict[str, float] = {}
        self._history: Deque[InferenceJob] = deque(
            maxlen=context.config.job_history_size
        )
        self._validation = ValidationStage()

    @property
    def context(self) -> InferenceContext:
        return self._context

    async def process_input(
        self,
        input_ref: str,
        requested_mode: str | ProcessingMode = ProcessingMode.BATCH,
        job_id: Optional[str] = None,
    ) -> ExtractionResult:
        """Process one recording end to end. Never raises."""

        job_id = job_id or uuid4().hex
        mode = self._coerce_mode(requested_mode)
        if job_id in self._active:
            logger.warning(
                "Job %s already running, rejecting duplicate input=%s", job_id, input_ref
            )
            observe_job("rejected", mode.value, None)
            return ExtractionResult.fallback(
                self._fallback_transcript(input_ref, None), DUPLICATE_JOB_ID, job_id=job_id
            )

        job = InferenceJob(
            job_id=job_id,
            input_ref=input_ref,
            requested_mode=mode,
            actual_mode=mode,
            start_time=_utcnow(),
        )
        self._active[job_id] = job
        slot_owner = f"{job_id}-{uuid4().hex[:8]}"
        logger.info("Job %s started input=%s mode=%s", job_id, input_ref, mode.value)

        cleaned: Optional[str] = None
        try:
            await self._debounce(job)

            configuration = await self._model_configuration()
            battery = await self._battery_level()
            job.start_time = _utcnow()
            job.battery_at_start = battery
            job.transcription_model = configuration.transcription_model
            job.extraction_model = configuration.extraction_model
            self._adapt_mode(job, battery)
            job.token_budget = self._token_budget(configuration, battery)

            self._checkpoint(job, JobState.TRANSCRIBING)
            transcription = await transcribe_input(
                self._context.transcription_factory,
                self._context.model_path(configuration.transcription_model),
                input_ref,
                fallback_model_path=self._context.model_path(
                    self._context.config.fallback_transcription_model
                ),
            )
            if not transcription.ok:
                raise InferenceError(transcription.reason or "transcription_failed", "transcription")

            self._checkpoint(job, JobState.CLEANING)
            transcript = transcription.value.text
            cleaned = self._context.normalizer.normalize(transcript)
            if not cleaned:
                raise InferenceError("empty_transcript", "cleaning")

            self._checkpoint(job, JobState.EXTRACTING)
            stage = ExtractionStage(
                self._context.generation_factory,
                self._context.model_path(configuration.extraction_model),
                params=GenerationParameters.structured_extraction().replace(
                    max_tokens=job.token_budget
                ),
                model_slot=self._context.model_slot,
                owner=slot_owner,
            )
            extraction = await stage.run(cleaned)

            self._checkpoint(job, JobState.VALIDATING)
            if extraction.raw_text is not None:
                result = await self._validation.validate_and_fallback(
                    extraction.raw_text, cleaned
                )
            else:
                result = extraction.result
            result = result.with_job_id(job_id)

            self._checkpoint(job, JobState.PERSISTING)
            await self._persist(job, cleaned, result)
            self._checkpoint(job, JobState.COMPLETED)

            job.success = job.error is None
            job.result = result
            logger.info(
                "Job %s completed validated=%s tasks=%s",
                job_id,
                result.validated,
                result.task_count,
            )
            return result
        except InferenceError as exc:
            logger.warning("Job %s aborted during %s: %s", job_id, exc.phase, exc.reason)
            return self._fail(job, exc.reason, cleaned)
        except asyncio.CancelledError:
            job.cancelled = True
            job.error = JOB_CANCELLED
            raise
        except Exception as exc:
            logger.exception("Job %s failed unexpectedly", job_id)
            return self._fail(job, f"unexpected_error: {exc}", cleaned)
        finally:
            await self._cleanup(job, slot_owner)

    def cancel_job(self, job_id: str) -> bool:
        """Mark an active job cancelled; it aborts at its next stage boundary.

        A backend call or storage save already in flight still completes; the
        job result is discarded once it returns.
        """

        job = self._active.pop(job_id, None)
        if job is None:
            return False
        job.cancelled = True
        job.success = False
        job.error = JOB_CANCELLED
        logger.info("Job %s cancelled", job_id)
        return True

    def active_jobs(self) -> list[InferenceJob]:
        return list(self._active.values())

    def recent_jobs(self) -> list[InferenceJob]:
        return list(self._history)

    def is_active(self, job_id: str) -> bool:
        return job_id in self._active

    async def shutdown(self) -> int:
        """Cancel every active job; returns how many were cancelled."""

        cancelled = 0
        for job_id in list(self._active):
            if self.cancel_job(job_id):
                cancelled += 1
        if cancelled:
            logger.info("Orchestrator shutdown cancelled %s job(s)", cancelled)
        return cancelled

    async def _debounce(self, job: InferenceJob) -> None:
        window = self._context.config.debounce_seconds
        now = self._clock()
        last = self._last_start.get(job.input_ref)
        effective = now
        if last is not None and last + window > now:
            effective = last + window
        # Reserve before sleeping so simultaneous duplicates queue behind it.
        self._last_start[job.input_ref] = effective

        wait = effective - now
        if wait > 0:
            job.state = JobState.DEBOUNCED
            logger.info("Debouncing %s for %.2fs", job.input_ref, wait)
            await self._sleep(wait)

    def _prune_debounce(self, now: float) -> None:
        window = self._context.config.debounce_seconds
        for input_ref, stamp in list(self._last_start.items()):
            if stamp + window <= now:
                del self._last_start[input_ref]

    async def _model_configuration(self) -> ModelConfiguration:
        try:
            return await self._context.device_profile.get_model_configuration()
        except Exception as exc:
            logger.warning("Device profiling failed, using fallback configuration: %s", exc)
            return ModelConfiguration.fallback()

    async def _battery_level(self) -> int:
        try:
            return int(await self._context.device_profile.get_battery_level())
        except Exception as exc:
            logger.warning("Battery level unavailable: %s", exc)
            return self._context.config.default_battery_level

    def _adapt_mode(self, job: InferenceJob, battery: int) -> None:
        config = self._context.config
        if battery < config.low_battery_threshold:
            if job.actual_mode is not ProcessingMode.BATCH:
                logger.info("Low battery (%s%%), forcing batch mode", battery)
            job.actual_mode = ProcessingMode.BATCH
            job.power_constraints.append(LOW_BATTERY)
            record_mode_override(LOW_BATTERY)
        if battery < config.critical_battery_threshold:
            logger.warning("Critical battery (%s%%), batch mode enforced", battery)
            job.actual_mode = ProcessingMode.BATCH
            job.power_constraints.append(CRITICAL_BATTERY)
            record_mode_override(CRITICAL_BATTERY)

    def _token_budget(self, configuration: ModelConfiguration, battery: int) -> int:
        if battery < self._context.config.low_battery_threshold:
            return max(1, configuration.max_tokens // 2)
        return configuration.max_tokens

    def _checkpoint(self, job: InferenceJob, state: JobState) -> None:
        if job.cancelled:
            raise InferenceError(JOB_CANCELLED, job.state.value)
        job.state = state

    async def _persist(
        self, job: InferenceJob, transcript: str, result: ExtractionResult
    ) -> None:
        try:
            await self._context.storage.save(
                job.job_id,
                transcript,
                result.to_wire(),
                build_note_metadata(job),
            )
        except Exception as exc:
            logger.error("Job %s storage failed: %s", job.job_id, exc)
            job.error = f"storage_failed: {exc}"

    def _fail(
        self, job: InferenceJob, reason: str, cleaned: Optional[str]
    ) -> ExtractionResult:
        job.success = False
        if job.error is None:
            job.error = reason
        result = ExtractionResult.fallback(
            self._fallback_transcript(job.input_ref, cleaned),
            reason,
            job_id=job.job_id,
        )
        job.result = result
        return result

    @staticmethod
    def _fallback_transcript(input_ref: str, cleaned: Optional[str]) -> str:
        if cleaned:
            return cleaned
        if input_ref and Path(input_ref).exists():
            return f"[Audio file: {input_ref}]"
        return TRANSCRIPTION_UNAVAILABLE

    async def _cleanup(self, job: InferenceJob, slot_owner: str) -> None:
        self._context.model_slot.release(slot_owner)
        now = self._clock()
        self._last_start[job.input_ref] = max(self._last_start.get(job.input_ref, 0.0), now)
        self._prune_debounce(now)
        if self._active.get(job.job_id) is job:
            del self._active[job.job_id]

        job.end_time = _utcnow()
        try:
            job.battery_at_end = int(await self._context.device_profile.get_battery_level())
        except Exception as exc:
            logger.debug("Battery level unavailable at job end: %s", exc)

        if job.cancelled:
            outcome = "cancelled"
        elif not job.success:
            outcome = "failed"
        elif job.result is not None and not job.result.validated:
            outcome = "degraded"
        else:
            outcome = "success"
        duration_ms = job.duration_ms
        observe_job(
            outcome,
            job.actual_mode.value,
            duration_ms / 1000 if duration_ms is not None else None,
        )
        self._history.append(job)
        logger.info("Job %s finished outcome=%s metrics=%s", job.job_id, outcome, job.to_metrics())

    @staticmethod
    def _coerce_mode(requested_mode: str | ProcessingMode) -> ProcessingMode:
        try:
            return ProcessingMode(requested_mode)
        except ValueError:
            logger.warning("Unknown processing mode %r, using batch", requested_mode)
            return ProcessingMode.BATCH


__all__ = ["InferenceError", "Orchestrator"]
