"""Second-line validation stage for raw model output.

Usable on its own whenever model text arrives through a channel other than
the extraction stage. Parses and validates the payload, optionally asks a
caller-supplied strategy to regenerate once, and otherwise degrades to the
fallback shape that keeps the original text.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from voicetask.services.response_contract import (
    ExtractionResult,
    ParsedPayload,
    parse_task_payload,
    reason_code,
)
from voicetask.telemetry import record_fallback, record_regeneration

from .prompts import build_strict_prompt

logger = logging.getLogger("voicetask.pipeline")

RegenerateFn = Callable[[str], Awaitable[str]]


def _truncate(value: str, max_length: int = 200) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


class ValidationStage:
    """Validate raw model text, with at most one regeneration attempt."""

    def __init__(self, regenerate: Optional[RegenerateFn] = None) -> None:
        self._regenerate = regenerate
        self._failures = 0
        self._retries = 0
        self._fallbacks = 0

    async def validate_and_fallback(
        self, raw_text: str, original_input: str
    ) -> ExtractionResult:
        """Return a validated result or the fallback shape. Never raises."""

        logger.info("Validating model output: %s", _truncate(raw_text or ""))

        parsed = parse_task_payload(raw_text)
        if parsed.ok:
            logger.info("Validation passed on first attempt tasks=%s", len(parsed.tasks))
            return ExtractionResult.success(parsed.tasks, original_input)

        self._failures += 1
        logger.warning("First validation failed: %s", parsed.reason)
        failure_reason = parsed.reason

        if self._regenerate is not None:
            retried = await self._attempt_regeneration(original_input)
            if retried is not None:
                if retried.ok:
                    logger.info("Validation passed after regeneration")
                    return ExtractionResult.success(retried.tasks, original_input)
                logger.warning("Regenerated output failed validation: %s", retried.reason)
                failure_reason = retried.reason

        self._fallbacks += 1
        record_fallback("validation", reason_code(failure_reason))
        logger.warning("Using fallback result reason=%s", failure_reason)
        return ExtractionResult.fallback(original_input, failure_reason or "validation_failed")

    async def _attempt_regeneration(self, original_input: str) -> ParsedPayload | None:
        self._retries += 1
        record_regeneration()
        try:
            regenerated = await self._regenerate(build_strict_prompt(original_input))
        except Exception as exc:
            logger.error("Regeneration callback failed: %s", exc)
            return None
        return parse_task_payload(regenerated or "")

    def statistics(self) -> dict[str, int]:
        return {
            "total_validation_failures": self._failures,
            "total_retry_attempts": self._retries,
            "total_fallbacks_used": self._fallbacks,
        }

    def reset_statistics(self) -> None:
        self._failures = 0
        self._retries = 0
        self._fallbacks = 0


__all__ = ["RegenerateFn", "ValidationStage"]
