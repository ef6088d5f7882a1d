"""Transcription stage of the inference pipeline."""

from __future__ import annotations

import logging
from typing import Optional

from voicetask.services.backends import TranscriptionResult

from .context import TranscriptionFactory
from .types import StageOutcome

logger = logging.getLogger("voicetask.pipeline")


class TranscriptionReason:
    FAILED = "transcription_failed"
    EMPTY = "empty_transcript"


async def _transcribe_once(
    factory: TranscriptionFactory,
    model_path: str,
    input_ref: str,
) -> TranscriptionResult:
    backend = factory()
    try:
        await backend.load(model_path)
        return await backend.transcribe_file(input_ref)
    finally:
        try:
            await backend.unload()
        except Exception as exc:
            logger.warning("Error unloading transcription model %s: %s", model_path, exc)


async def transcribe_input(
    factory: TranscriptionFactory,
    model_path: str,
    input_ref: str,
    *,
    fallback_model_path: Optional[str] = None,
) -> StageOutcome[TranscriptionResult]:
    """Load, transcribe and unload; retry once on the fallback model if it raises."""

    logger.info("Transcribing %s with %s", input_ref, model_path)
    try:
        result = await _transcribe_once(factory, model_path, input_ref)
    except Exception as exc:
        if not fallback_model_path or fallback_model_path == model_path:
            logger.error("Transcription failed: %s", exc)
            return StageOutcome.failure(f"{TranscriptionReason.FAILED}: {exc}")
        logger.warning(
            "Transcription with %s failed (%s), retrying with %s",
            model_path,
            exc,
            fallback_model_path,
        )
        try:
            result = await _transcribe_once(factory, fallback_model_path, input_ref)
        except Exception as retry_exc:
            logger.error("Fallback transcription failed: %s", retry_exc)
            return StageOutcome.failure(f"{TranscriptionReason.FAILED}: {retry_exc}")

    if not result.text or not result.text.strip():
        logger.warning("Transcription produced no text for %s", input_ref)
        return StageOutcome.failure(TranscriptionReason.EMPTY)

    logger.info(
        "Transcription complete chars=%s language=%s", len(result.text), result.language
    )
    return StageOutcome.success(result)


__all__ = ["TranscriptionReason", "transcribe_input"]
