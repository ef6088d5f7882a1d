"""Prompt templates for the task-extraction model."""

from __future__ import annotations

TASK_SCHEMA_HINT = '{"tasks":[{"title":"...","due_time":"...","priority":"..."}]}'

_EXTRACTION_PREAMBLE = """You are an information extraction engine.

Extract actionable tasks from the text below.

Rules:
- Output ONLY valid JSON.
- Do NOT include explanations.
- Do NOT include markdown.
- Do NOT include backticks.
- If no tasks exist, return: {"tasks":[]}
- All keys must exist: title, due_time, priority.
- due_time must be null if not specified.
- priority must be one of: low, medium, high.
- Schema: %s
- No trailing text after closing brace.""" % TASK_SCHEMA_HINT

_STRICT_PREAMBLE = """You are an information extraction engine.

Extract actionable tasks from the text below.

CRITICAL RULES:
- Return ONLY valid JSON.
- NO explanations.
- NO markdown.
- NO backticks.
- MUST be valid JSON format: %s
- due_time can be null.
- priority MUST be: low, medium, or high.""" % TASK_SCHEMA_HINT

_JSON_REMINDER = "Reminder: Output valid JSON only."


def build_extraction_prompt(text: str) -> str:
    """Instructional preamble, the cleaned transcript and a ``JSON:`` cue."""

    return f"{_EXTRACTION_PREAMBLE}\n\nText:\n{text.strip()}\n\nJSON:"


def build_reinforced_prompt(prompt: str) -> str:
    """Original prompt plus an explicit JSON-only reminder for the single retry."""

    return f"{prompt}\n\n{_JSON_REMINDER}\nJSON:"


def build_strict_prompt(original_input: str) -> str:
    """Stricter prompt handed to a regeneration callback."""

    return f"{_STRICT_PREAMBLE}\n\nText:\n{original_input.strip()}\n\nJSON ONLY:"


__all__ = [
    "TASK_SCHEMA_HINT",
    "build_extraction_prompt",
    "build_reinforced_prompt",
    "build_strict_prompt",
]
