"""Pydantic models and schema rules for the task-extraction JSON contract.

Both the extraction stage and the standalone validation stage run model output
through :func:`parse_task_payload` so downstream code receives normalized,
type-safe objects and a stable failure code when the payload is unusable.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Literal, Mapping, Optional

from pydantic import (
    BaseModel,
    Field,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_CANONICAL_PRIORITIES = {member.value for member in Priority}
_URGENCY_CUES = ("urgent", "asap", "important", "critical")


class FailureCode:
    """Stable ``fallback_reason`` prefixes that callers and tests key off."""

    EMPTY_INPUT = "empty_input"
    JSON_PARSE_ERROR = "json_parse_error"
    MISSING_TASKS_KEY = "missing_tasks_key"
    TASKS_NOT_LIST = "tasks_not_list"
    TASK_NOT_OBJECT = "task_not_object"
    TASK_MISSING_TITLE = "task_missing_title"
    TASK_TITLE_NOT_STRING = "task_title_not_string"
    TASK_EMPTY_TITLE = "task_empty_title"
    TASK_INVALID_DUE_TIME = "task_invalid_due_time"
    INVALID_PRIORITY = "invalid_priority"
    NO_TASKS_FOUND = "no_tasks_found"


def reason_code(reason: str | None) -> str:
    """Return the code part of a ``code: detail`` reason string."""

    if not reason:
        return "unknown"
    return reason.split(":", 1)[0].strip() or "unknown"


def normalize_priority(value: Any) -> Priority:
    """Map any priority-ish value onto the three canonical levels."""

    if value is None:
        return Priority.MEDIUM
    if isinstance(value, Priority):
        return value

    normalized = str(value).strip().lower()
    if normalized in _CANONICAL_PRIORITIES:
        return Priority(normalized)
    if any(cue in normalized for cue in _URGENCY_CUES):
        return Priority.HIGH
    return Priority.MEDIUM


class Task(BaseModel):
    title: str
    due_time: Optional[str] = None
    priority: Priority = Priority.MEDIUM

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("title must not be empty")
        return stripped

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, value: Any) -> Priority:
        return normalize_priority(value)


class ExtractionResult(BaseModel):
    """Wire-level result handed to storage and to API callers."""

    tasks: List[Task] = Field(default_factory=list)
    validated: bool = False
    task_count: int = 0
    fallback_transcript: Optional[str] = None
    fallback_reason: Optional[str] = None
    job_id: Optional[str] = None

    @model_validator(mode="after")
    def enforce_shape(self) -> "ExtractionResult":
        if not self.validated and self.tasks:
            self.tasks = []
        self.task_count = len(self.tasks)
        return self

    @classmethod
    def success(
        cls,
        tasks: List[Task],
        original_input: str,
        *,
        job_id: str | None = None,
    ) -> "ExtractionResult":
        """Build a validated result; an empty task list still keeps the transcript."""

        if tasks:
            return cls(tasks=tasks, validated=True, job_id=job_id)
        return cls(
            tasks=[],
            validated=True,
            fallback_transcript=original_input,
            fallback_reason=FailureCode.NO_TASKS_FOUND,
            job_id=job_id,
        )

    @classmethod
    def fallback(
        cls,
        original_input: str,
        reason: str,
        *,
        job_id: str | None = None,
    ) -> "ExtractionResult":
        """Build the degraded shape that preserves the original text."""

        return cls(
            tasks=[],
            validated=False,
            fallback_transcript=original_input,
            fallback_reason=reason,
            job_id=job_id,
        )

    def with_job_id(self, job_id: str) -> "ExtractionResult":
        return self.model_copy(update={"job_id": job_id})

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON shape consumed downstream."""

        payload = self.model_dump(mode="json")
        # Tasks keep ``due_time: null``; only top-level bookkeeping is optional.
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(frozen=True)
class ParsedPayload:
    """Outcome of validating one raw model response."""

    tasks: Optional[List[Task]] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.tasks is not None


def extract_json_object(payload: str) -> str:
    """Strip Markdown code fences and return the text between the first '{' and last '}'."""

    if not payload:
        return ""

    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return ""
    return cleaned[start : end + 1]


def is_valid_json_object(payload: str) -> bool:
    """True when the brace-bounded part of ``payload`` parses as JSON."""

    candidate = extract_json_object(payload)
    if not candidate:
        return False
    try:
        json.loads(candidate)
    except json.JSONDecodeError:
        return False
    return True


class RawTask(BaseModel):
    """One task exactly as the model emitted it, before normalization."""

    title: StrictStr
    due_time: Optional[StrictStr] = None
    priority: Optional[Literal["low", "medium", "high"]] = None

    @field_validator("title")
    @classmethod
    def require_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be empty")
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def fold_priority_case(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    def to_task(self) -> Task:
        return Task(title=self.title, due_time=self.due_time, priority=self.priority)


class TaskPayload(BaseModel):
    """Top-level object the extraction model must return."""

    tasks: List[RawTask]


_TITLE_ERROR_CODES = {
    "missing": FailureCode.TASK_MISSING_TITLE,
    "string_type": FailureCode.TASK_TITLE_NOT_STRING,
}
_FIELD_ERROR_CODES = {
    "due_time": FailureCode.TASK_INVALID_DUE_TIME,
    "priority": FailureCode.INVALID_PRIORITY,
}


def failure_reason(error: Mapping[str, Any]) -> str:
    """Map one pydantic error entry onto a ``code`` or ``code: task N`` reason."""

    loc = tuple(error.get("loc", ()))
    error_type = error.get("type")

    if not loc:
        return f"{FailureCode.JSON_PARSE_ERROR}: top-level value is not an object"
    if len(loc) == 1:
        if error_type == "missing":
            return FailureCode.MISSING_TASKS_KEY
        return FailureCode.TASKS_NOT_LIST

    index = loc[1]
    if len(loc) == 2:
        return f"{FailureCode.TASK_NOT_OBJECT}: task {index}"

    field = loc[2]
    if field == "title":
        code = _TITLE_ERROR_CODES.get(error_type, FailureCode.TASK_EMPTY_TITLE)
    else:
        code = _FIELD_ERROR_CODES.get(field, FailureCode.TASK_NOT_OBJECT)
    return f"{code}: task {index}"


def parse_task_payload(raw_text: str) -> ParsedPayload:
    """Parse, validate and normalize a raw model response."""

    if not raw_text or not raw_text.strip():
        return ParsedPayload(reason=FailureCode.EMPTY_INPUT)

    candidate = extract_json_object(raw_text)
    if not candidate:
        return ParsedPayload(
            reason=f"{FailureCode.JSON_PARSE_ERROR}: no JSON object found"
        )

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return ParsedPayload(reason=f"{FailureCode.JSON_PARSE_ERROR}: {exc.msg}")
    except RecursionError:
        return ParsedPayload(reason=f"{FailureCode.JSON_PARSE_ERROR}: nesting too deep")

    try:
        payload = TaskPayload.model_validate(data)
    except ValidationError as exc:
        # Errors come back in field order; the first one names the reason.
        return ParsedPayload(reason=failure_reason(exc.errors()[0]))

    return ParsedPayload(tasks=[raw.to_task() for raw in payload.tasks])


__all__ = [
    "ExtractionResult",
    "FailureCode",
    "ParsedPayload",
    "Priority",
    "RawTask",
    "Task",
    "TaskPayload",
    "extract_json_object",
    "failure_reason",
    "is_valid_json_object",
    "normalize_priority",
    "parse_task_payload",
    "reason_code",
]
