"""Transcript normalization stage.

Deterministic string rewrites applied to raw speech-to-text output before it
reaches the extraction model. No I/O, no model calls; the same input always
produces the same output and a second pass over cleaned text is a no-op.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

DEFAULT_FILLERS: tuple[str, ...] = (
    "um",
    "uh",
    "like",
    "you know",
    "i mean",
    "sort of",
    "kind of",
)

_WHITESPACE = re.compile(r"\s+")
_LEADING_COMMAS = re.compile(r"^[,\s]+")
_TRAILING_COMMAS = re.compile(r"[,\s]+$")
_DOUBLE_COMMAS = re.compile(r",\s*,+")
_COMMA_BEFORE_END = re.compile(r",\s*([.!?])")

_MERIDIEM = re.compile(
    r"\b(\d{1,2})\s*([ap])(?:\.\s*m\b\.?|\s*m\b)", re.IGNORECASE
)
_OCLOCK = re.compile(r"\b(\d{1,2})\s*o['’]?clock\b", re.IGNORECASE)
_HOUR_MINUTE = re.compile(r"\b(\d{1,2})\s+(\d{2})\b")

_SPACE_BEFORE_PUNCT = re.compile(r"\s+([.,!?;:])")
_MULTI_PERIOD = re.compile(r"\.{2,}")
_PUNCT_FOLLOWED = re.compile(r"([.,!?;:])(?=\S)")
_CONJUNCTION = re.compile(r"\b(\w+)\s+(and)\s+(?=\w)")

_SENTENCE_END = (".", "!", "?")
_PUNCTUATION = ".,!?;:"
_MAX_REPEAT_RUN = 5


def _collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _filler_pattern(filler: str) -> re.Pattern[str]:
    words = [re.escape(word) for word in filler.split()]
    return re.compile(r"\b" + r"\s+".join(words) + r"\b", re.IGNORECASE)


def _repeat_pattern(run_length: int) -> re.Pattern[str]:
    return re.compile(
        r"\b(\w+)" + r"(?:\s+\1\b)" + "{" + str(run_length - 1) + "}",
        re.IGNORECASE,
    )


_REPEAT_PATTERNS = tuple(
    _repeat_pattern(length) for length in range(_MAX_REPEAT_RUN, 1, -1)
)


class TextNormalizer:
    """Clean raw transcripts so the extraction model sees tidy sentences."""

    def __init__(self, fillers: Optional[Iterable[str]] = None) -> None:
        selected = DEFAULT_FILLERS if fillers is None else tuple(fillers)
        # Longest fillers first so "you know" is removed before a bare "you" entry.
        ordered = sorted(
            {filler.strip().lower() for filler in selected if filler.strip()},
            key=lambda filler: (-len(filler), filler),
        )
        self.fillers: tuple[str, ...] = tuple(ordered)
        self._filler_patterns = tuple(_filler_pattern(filler) for filler in ordered)

    def normalize(self, raw: str) -> str:
        """Run the full rewrite pipeline over a finished transcript."""

        if not raw:
            return ""

        text = _collapse_whitespace(raw)
        text = self._remove_fillers(text)
        if not text:
            return ""
        text = self._normalize_times(text)
        text = self._repair_punctuation(text)
        text = self._remove_repeats(text)
        return _collapse_whitespace(text)

    def normalize_partial(self, partial: str) -> str:
        """Whitespace-only cleanup for live text that is still being spoken."""

        if not partial:
            return ""
        return _collapse_whitespace(partial)

    def _remove_fillers(self, text: str) -> str:
        for pattern in self._filler_patterns:
            text = pattern.sub("", text)

        text = _collapse_whitespace(text)
        text = _LEADING_COMMAS.sub("", text)
        text = _TRAILING_COMMAS.sub("", text)
        text = _DOUBLE_COMMAS.sub(",", text)
        return _COMMA_BEFORE_END.sub(r"\1", text)

    @staticmethod
    def _normalize_times(text: str) -> str:
        text = _MERIDIEM.sub(
            lambda match: f"{match.group(1)}{match.group(2).lower()}m", text
        )
        text = _OCLOCK.sub(lambda match: f"{match.group(1)}oclock", text)

        def _clock(match: re.Match[str]) -> str:
            hour, minute = int(match.group(1)), int(match.group(2))
            if 0 <= hour <= 23 and 0 <= minute <= 59:
                return f"{match.group(1)}:{match.group(2)}"
            return match.group(0)

        return _HOUR_MINUTE.sub(_clock, text)

    @staticmethod
    def _repair_punctuation(text: str) -> str:
        text = text[0].upper() + text[1:]
        if not text.endswith(_SENTENCE_END):
            text = f"{text}."

        text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
        text = _MULTI_PERIOD.sub("...", text)

        def _space_after(match: re.Match[str]) -> str:
            source, index = match.string, match.start()
            following = source[match.end()] if match.end() < len(source) else ""
            preceding = source[index - 1] if index > 0 else ""
            if following in _PUNCTUATION:
                return match.group(1)
            # Keep clock times, decimals and thousands separators intact.
            if preceding.isdigit() and following.isdigit():
                return match.group(1)
            return f"{match.group(1)} "

        text = _PUNCT_FOLLOWED.sub(_space_after, text)
        return _CONJUNCTION.sub(r"\1, \2 ", text)

    @staticmethod
    def _remove_repeats(text: str) -> str:
        for pattern in _REPEAT_PATTERNS:
            text = pattern.sub(r"\1", text)
        return _collapse_whitespace(text)


_DEFAULT_NORMALIZER = TextNormalizer()


def normalize_transcript(raw: str) -> str:
    """Normalize with the default filler list."""

    return _DEFAULT_NORMALIZER.normalize(raw)


__all__ = ["DEFAULT_FILLERS", "TextNormalizer", "normalize_transcript"]
