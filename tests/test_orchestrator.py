"""Tests for job orchestration: power adaptation, debounce, failures and cancellation."""

from __future__ import annotations

import asyncio

import pytest

from conftest import VALID_TASKS_JSON
from voicetask.config.settings import InferenceConfig
from voicetask.pipelines.inference import (
    JobState,
    ModelSlot,
    Orchestrator,
    ProcessingMode,
)
from voicetask.services.backends import GenerationError, TranscriptionError


@pytest.mark.asyncio
async def test_happy_path_persists_validated_result(orchestrator, storage, transcription_backend):
    result = await orchestrator.process_input("memo.wav", job_id="job-1")

    assert result.validated is True
    assert result.job_id == "job-1"
    assert result.tasks[0].title == "Call John"
    assert transcription_backend.loaded == ["whisper-base"]
    assert transcription_backend.unload_calls == 1

    assert len(storage.saved) == 1
    saved = storage.saved[0]
    assert saved["job_id"] == "job-1"
    assert saved["transcript"] == "Remind me to call John tomorrow at 3pm."
    assert saved["extracted_json"]["task_count"] == 1
    assert saved["metadata"]["extraction_model"] == "phi-mini-q4"

    assert orchestrator.active_jobs() == []
    [job] = orchestrator.recent_jobs()
    assert job.success is True
    assert job.state is JobState.COMPLETED
    assert job.end_time is not None


@pytest.mark.asyncio
async def test_low_battery_forces_batch_and_halves_token_budget(
    orchestrator, device_profile, generation_backend
):
    device_profile.battery = 20

    await orchestrator.process_input("memo.wav", requested_mode="interactive")

    [job] = orchestrator.recent_jobs()
    assert job.requested_mode is ProcessingMode.INTERACTIVE
    assert job.actual_mode is ProcessingMode.BATCH
    assert job.power_constraints == ["low_battery"]
    assert job.token_budget == 64
    assert generation_backend.params[0].max_tokens == 64


@pytest.mark.asyncio
async def test_critical_battery_records_both_constraints(orchestrator, device_profile):
    device_profile.battery = 10

    await orchestrator.process_input("memo.wav", requested_mode="interactive")

    [job] = orchestrator.recent_jobs()
    assert job.actual_mode is ProcessingMode.BATCH
    assert job.power_constraints == ["low_battery", "critical_battery"]
    assert job.battery_at_start == 10


@pytest.mark.asyncio
async def test_healthy_battery_keeps_requested_mode(orchestrator, generation_backend):
    await orchestrator.process_input("memo.wav", requested_mode="interactive")

    [job] = orchestrator.recent_jobs()
    assert job.actual_mode is ProcessingMode.INTERACTIVE
    assert job.power_constraints == []
    assert generation_backend.params[0].max_tokens == 128


@pytest.mark.asyncio
async def test_second_call_within_window_is_delayed(orchestrator, clock):
    await orchestrator.process_input("memo.wav")
    clock.advance(0.5)

    await orchestrator.process_input("memo.wav")

    assert clock.sleeps == [pytest.approx(1.5)]


@pytest.mark.asyncio
async def test_simultaneous_duplicates_are_spaced_out(orchestrator, clock):
    await asyncio.gather(
        orchestrator.process_input("memo.wav"),
        orchestrator.process_input("memo.wav"),
    )

    assert clock.sleeps == [pytest.approx(2.0)]


@pytest.mark.asyncio
async def test_different_inputs_are_not_debounced(orchestrator, clock):
    await orchestrator.process_input("a.wav")
    await orchestrator.process_input("b.wav")

    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_transcription_retries_with_fallback_model(orchestrator, transcription_backend):
    transcription_backend.errors.append(TranscriptionError("decoder crashed"))

    result = await orchestrator.process_input("memo.wav")

    assert result.validated is True
    assert transcription_backend.loaded == ["whisper-base", "tiny.en"]
    assert transcription_backend.unload_calls == 2


@pytest.mark.asyncio
async def test_transcription_failure_degrades_without_extraction(
    orchestrator, transcription_backend, generation_backend, storage
):
    transcription_backend.errors.extend(
        [TranscriptionError("decoder crashed"), TranscriptionError("still crashed")]
    )

    result = await orchestrator.process_input("missing.wav", job_id="job-x")

    assert result.validated is False
    assert result.job_id == "job-x"
    assert result.fallback_reason.startswith("transcription_failed")
    assert result.fallback_transcript == "[Transcription unavailable]"
    assert generation_backend.loaded == []
    assert storage.saved == []
    [job] = orchestrator.recent_jobs()
    assert job.success is False


@pytest.mark.asyncio
async def test_existing_audio_file_is_referenced_in_fallback(
    orchestrator, transcription_backend, tmp_path
):
    audio = tmp_path / "memo.wav"
    audio.write_bytes(b"RIFF")
    transcription_backend.errors.extend([TranscriptionError("a"), TranscriptionError("b")])

    result = await orchestrator.process_input(str(audio))

    assert result.fallback_transcript == f"[Audio file: {audio}]"


@pytest.mark.asyncio
async def test_empty_transcript_is_a_hard_failure(orchestrator, transcription_backend):
    transcription_backend.text = "   "

    result = await orchestrator.process_input("memo.wav")

    assert result.validated is False
    assert result.fallback_reason == "empty_transcript"


@pytest.mark.asyncio
async def test_extraction_failure_keeps_cleaned_transcript(orchestrator, generation_backend, storage):
    generation_backend.responses.clear()
    generation_backend.responses.append(GenerationError("oom"))

    result = await orchestrator.process_input("memo.wav")

    assert result.validated is False
    assert result.fallback_reason.startswith("generation_error")
    assert result.fallback_transcript == "Remind me to call John tomorrow at 3pm."
    assert storage.saved[0]["extracted_json"]["validated"] is False


@pytest.mark.asyncio
async def test_malformed_model_output_goes_through_validation(orchestrator, generation_backend):
    generation_backend.responses.clear()
    generation_backend.responses.extend(["not json", "still not json"])

    result = await orchestrator.process_input("memo.wav")

    assert generation_backend.generate_calls == 2
    assert result.validated is False
    assert result.fallback_reason.startswith("json_parse_error")


@pytest.mark.asyncio
async def test_busy_model_slot_degrades(context, orchestrator, generation_backend):
    context.model_slot.try_acquire("someone-else")

    result = await orchestrator.process_input("memo.wav")

    assert result.fallback_reason == "model_busy"
    assert generation_backend.loaded == []
    assert context.model_slot.owner == "someone-else"


@pytest.mark.asyncio
async def test_storage_failure_keeps_result_but_fails_job(orchestrator, storage):
    storage.fail = True

    result = await orchestrator.process_input("memo.wav")

    assert result.validated is True
    [job] = orchestrator.recent_jobs()
    assert job.success is False
    assert job.error.startswith("storage_failed")


@pytest.mark.asyncio
async def test_profiler_failure_uses_fallback_configuration(
    orchestrator, device_profile, transcription_backend
):
    device_profile.fail = True

    result = await orchestrator.process_input("memo.wav")

    assert result.validated is True
    assert transcription_backend.loaded == ["moonshine-tiny"]


@pytest.mark.asyncio
async def test_cancel_aborts_at_next_stage_boundary(orchestrator, transcription_backend, storage):
    cancelled: list[bool] = []
    transcription_backend.on_transcribe = lambda path: cancelled.append(
        orchestrator.cancel_job("job-c")
    )

    result = await orchestrator.process_input("memo.wav", job_id="job-c")

    assert cancelled == [True]
    assert result.validated is False
    assert result.fallback_reason == "job_cancelled"
    assert storage.saved == []
    [job] = orchestrator.recent_jobs()
    assert job.cancelled is True


def test_cancel_unknown_job(orchestrator):
    assert orchestrator.cancel_job("nope") is False


@pytest.mark.asyncio
async def test_shutdown_cancels_active_jobs(orchestrator, transcription_backend, context):
    transcription_backend.gate = asyncio.Event()
    task = asyncio.create_task(orchestrator.process_input("memo.wav", job_id="job-s"))
    await asyncio.sleep(0)
    assert [job.job_id for job in orchestrator.active_jobs()] == ["job-s"]

    assert await orchestrator.shutdown() == 1
    transcription_backend.gate.set()
    result = await task

    assert result.fallback_reason == "job_cancelled"
    assert orchestrator.active_jobs() == []
    assert not context.model_slot.busy


@pytest.mark.asyncio
async def test_history_is_bounded(context, clock):
    context.config = InferenceConfig(job_history_size=2)
    orchestrator = Orchestrator(context, clock=clock, sleep=clock.sleep)

    for name in ("a.wav", "b.wav", "c.wav"):
        await orchestrator.process_input(name)

    assert [job.input_ref for job in orchestrator.recent_jobs()] == ["b.wav", "c.wav"]


@pytest.mark.asyncio
async def test_unknown_mode_defaults_to_batch(orchestrator):
    await orchestrator.process_input("memo.wav", requested_mode="turbo")

    [job] = orchestrator.recent_jobs()
    assert job.requested_mode is ProcessingMode.BATCH


@pytest.mark.asyncio
async def test_concurrent_jobs_share_one_model_slot(context, clock, generation_backend):
    generation_backend.gate = asyncio.Event()
    generation_backend.responses.append(VALID_TASKS_JSON)
    orchestrator = Orchestrator(context, clock=clock, sleep=clock.sleep)

    first = asyncio.create_task(orchestrator.process_input("a.wav", job_id="a"))
    await asyncio.sleep(0)
    assert context.model_slot.owner.startswith("a-")

    second = await orchestrator.process_input("b.wav", job_id="b")
    generation_backend.gate.set()
    first_result = await first

    assert second.fallback_reason == "model_busy"
    assert first_result.validated is True
    assert not context.model_slot.busy


@pytest.mark.asyncio
async def test_task_cancellation_propagates_after_cleanup(
    orchestrator, transcription_backend, context, storage
):
    transcription_backend.gate = asyncio.Event()
    task = asyncio.create_task(orchestrator.process_input("memo.wav", job_id="job-t"))
    await asyncio.sleep(0)
    assert orchestrator.is_active("job-t")

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert orchestrator.active_jobs() == []
    assert not context.model_slot.busy
    assert transcription_backend.unload_calls == 1
    assert storage.saved == []
    [job] = orchestrator.recent_jobs()
    assert job.cancelled is True
    assert job.error == "job_cancelled"
    assert job.end_time is not None


@pytest.mark.asyncio
async def test_cancel_during_save_discards_result(orchestrator, storage):
    cancelled: list[bool] = []
    storage.on_save = lambda job_id: cancelled.append(orchestrator.cancel_job(job_id))

    result = await orchestrator.process_input("memo.wav", job_id="job-p")

    assert cancelled == [True]
    assert len(storage.saved) == 1
    assert result.validated is False
    assert result.fallback_reason == "job_cancelled"
    assert result.fallback_transcript == "Remind me to call John tomorrow at 3pm."
    [job] = orchestrator.recent_jobs()
    assert job.cancelled is True
    assert job.success is False
    assert job.state is JobState.PERSISTING


@pytest.mark.asyncio
async def test_duplicate_job_id_is_rejected_while_running(
    orchestrator, transcription_backend, context
):
    transcription_backend.gate = asyncio.Event()
    first = asyncio.create_task(orchestrator.process_input("a.wav", job_id="same"))
    await asyncio.sleep(0)

    duplicate = await orchestrator.process_input("b.wav", job_id="same")

    assert duplicate.validated is False
    assert duplicate.fallback_reason == "duplicate_job_id"
    assert duplicate.job_id == "same"
    assert [(job.job_id, job.input_ref) for job in orchestrator.active_jobs()] == [
        ("same", "a.wav")
    ]
    assert transcription_backend.transcribed == ["a.wav"]

    transcription_backend.gate.set()
    result = await first

    assert result.validated is True
    assert orchestrator.active_jobs() == []
    assert [job.input_ref for job in orchestrator.recent_jobs()] == ["a.wav"]
    assert not context.model_slot.busy


@pytest.mark.asyncio
async def test_reused_id_after_cancel_keeps_its_own_slot(context, clock, generation_backend):
    generation_backend.gate = asyncio.Event()
    orchestrator = Orchestrator(context, clock=clock, sleep=clock.sleep)

    first = asyncio.create_task(orchestrator.process_input("a.wav", job_id="reused"))
    await asyncio.sleep(0)
    holder = context.model_slot.owner
    assert orchestrator.cancel_job("reused") is True

    second = await orchestrator.process_input("b.wav", job_id="reused")

    assert second.fallback_reason == "model_busy"
    assert context.model_slot.owner == holder
    assert orchestrator.active_jobs() == []

    generation_backend.gate.set()
    first_result = await first

    assert first_result.fallback_reason == "job_cancelled"
    assert not context.model_slot.busy


@pytest.mark.asyncio
async def test_stale_debounce_stamps_are_pruned(orchestrator, clock):
    await orchestrator.process_input("a.wav")
    clock.advance(5.0)

    await orchestrator.process_input("b.wav")

    assert "a.wav" not in orchestrator._last_start
    assert "b.wav" in orchestrator._last_start
