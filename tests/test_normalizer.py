"""Tests for the transcript normalizer."""

from __future__ import annotations

import pytest

from voicetask.pipelines.inference import TextNormalizer, normalize_transcript


@pytest.fixture
def normalizer() -> TextNormalizer:
    return TextNormalizer()


def test_removes_leading_filler_and_canonicalises_time(normalizer: TextNormalizer):
    raw = "Um, remind me to call John tomorrow at 3 pm"

    assert normalizer.normalize(raw) == "Remind me to call John tomorrow at 3pm."


@pytest.mark.parametrize(
    "raw",
    [
        "Um, remind me to call John tomorrow at 3 pm",
        "buy eggs and milk",
        "meet at 3 30 then lunch at 12 p.m.",
        "call the the doctor",
        "Remind me to call John tomorrow at 3pm.",
        "wait... what? ok",
    ],
)
def test_normalize_is_idempotent(normalizer: TextNormalizer, raw: str):
    once = normalizer.normalize(raw)

    assert normalizer.normalize(once) == once


@pytest.mark.parametrize("raw", ["", "um", "um uh, like", "  you   know  "])
def test_filler_only_or_empty_input_yields_empty_string(normalizer: TextNormalizer, raw: str):
    assert normalizer.normalize(raw) == ""


def test_fillers_are_whole_words_and_case_insensitive(normalizer: TextNormalizer):
    assert normalizer.normalize("UM I likely will call mom") == "I likely will call mom."


def test_multi_word_filler_matches_any_whitespace(normalizer: TextNormalizer):
    assert normalizer.normalize("you \t know send the report") == "Send the report."


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("lunch at 12 p.m.", "Lunch at 12pm."),
        ("wake up at 7 AM", "Wake up at 7am."),
        ("wake up at 7 o'clock", "Wake up at 7oclock."),
        ("meet at 3 30", "Meet at 3:30."),
        ("room 25 99 is free", "Room 25 99 is free."),
    ],
)
def test_time_canonicalisation(normalizer: TextNormalizer, raw: str, expected: str):
    assert normalizer.normalize(raw) == expected


def test_punctuation_repair(normalizer: TextNormalizer):
    assert normalizer.normalize("hello , world ..... really") == "Hello, world... really."


def test_existing_sentence_end_is_kept(normalizer: TextNormalizer):
    assert normalizer.normalize("is it done?") == "Is it done?"


def test_digits_around_punctuation_stay_joined(normalizer: TextNormalizer):
    assert normalizer.normalize("pay 3.5 dollars at 15:00") == "Pay 3.5 dollars at 15:00."


def test_comma_inserted_before_conjunction(normalizer: TextNormalizer):
    assert normalizer.normalize("buy eggs and milk") == "Buy eggs, and milk."


def test_consecutive_repeats_collapse_keeping_first_spelling(normalizer: TextNormalizer):
    assert normalizer.normalize("Call call CALL mom") == "Call mom."
    assert normalizer.normalize("send the the report") == "Send the report."


def test_partial_text_only_collapses_whitespace(normalizer: TextNormalizer):
    assert normalizer.normalize_partial("  um   hello\nthere ") == "um hello there"
    assert normalizer.normalize_partial("") == ""


def test_custom_filler_list_replaces_defaults():
    normalizer = TextNormalizer(["basically"])

    assert normalizer.normalize("basically um call mom") == "Um call mom."


def test_module_level_helper_uses_default_fillers():
    assert normalize_transcript("uh send it") == "Send it."
