"""Tests for script cleaning, speech chunking and display segmentation."""

from __future__ import annotations

import pytest

from uncloud.errors import EmptyInputError
from uncloud.services.narration.text_segmenter import (
    clean_script_for_voice,
    estimate_total_minutes,
    segment_for_display,
    segment_for_speech,
)


def test_clean_strips_markup_and_emoji():
    text = "**Welcome** 🌟 to *calm* (2 minutes)\n\nBreathe in... and out [pause 5 seconds]"
    assert clean_script_for_voice(text) == "Welcome to calm. Breathe in. and out"


def test_clean_leaves_no_markers_or_double_spaces():
    cleaned = clean_script_for_voice("A  *soft*   voice...\n\n\n**Rest** now.")
    assert "*" not in cleaned
    assert "  " not in cleaned
    assert ".." not in cleaned
    assert cleaned.startswith("A soft voice")


def test_clean_drops_leading_stops():
    assert clean_script_for_voice("... hello") == "hello"


def test_short_text_is_single_chunk():
    assert segment_for_speech("Hello world. This is a test.") == [
        "Hello world. This is a test."
    ]


def test_chunks_respect_limit_and_rejoin_to_cleaned_text():
    sentences = [f"Sentence number {i} is here." for i in range(40)]
    text = " ".join(sentences)

    chunks = segment_for_speech(text, max_chars=100)

    assert len(chunks) > 1
    assert all(len(chunk) <= 100 for chunk in chunks)
    assert " ".join(chunks) == clean_script_for_voice(text)


def test_oversized_sentence_stays_whole():
    long_sentence = "word " * 50 + "end."
    chunks = segment_for_speech(f"Short one. {long_sentence} Tail.", max_chars=40)
    assert chunks[0] == "Short one."
    assert chunks[1] == long_sentence.strip()
    assert chunks[2] == "Tail."


def test_packing_is_greedy():
    assert segment_for_speech("One. Two. Three.", max_chars=9) == ["One. Two.", "Three."]
    assert segment_for_speech("One. Two. Three.", max_chars=5) == ["One.", "Two.", "Three."]


@pytest.mark.parametrize("text", ["", "   ", "🌟 ✨", "**  **", "(3 minutes)"])
def test_empty_after_cleaning_raises(text):
    with pytest.raises(EmptyInputError):
        segment_for_speech(text)


def test_non_positive_limit_rejected():
    with pytest.raises(ValueError):
        segment_for_speech("Hi.", max_chars=0)


def test_bold_headings_make_segments():
    segments = segment_for_display("**Intro**\nWelcome.\n**Body**\nRelax.")

    assert [s.title for s in segments] == ["Intro", "Body"]
    assert [s.start_minute for s in segments] == [0, 1]
    assert [s.duration for s in segments] == ["1 minute", "1 minute"]
    assert segments[0].content == "Welcome."


def test_heading_duration_annotation_is_used():
    text = "## Grounding (3-5 minutes)\n" + "Feel your feet. " * 30 + "\n## Rest\nStay here."
    segments = segment_for_display(text)

    assert segments[0].title == "Grounding"
    assert segments[0].duration == "3-5 minutes"
    assert segments[1].start_minute == segments[0].estimated_minutes


def test_timeline_is_contiguous():
    text = "\n".join(
        f"**Part {i}**\n" + "Slow breath in and out. " * (10 * i) for i in range(1, 5)
    )
    segments = segment_for_display(text)

    elapsed = 0
    for segment in segments:
        assert segment.start_minute == elapsed
        assert segment.estimated_minutes >= 1
        elapsed += segment.estimated_minutes
    assert estimate_total_minutes(segments) == elapsed


def test_caps_and_emoji_headings():
    segments = segment_for_display("BODY SCAN\nNotice your shoulders.\n🌙 Sleep\nDrift off.")
    assert [s.title for s in segments] == ["BODY SCAN", "Sleep"]


def test_preamble_becomes_introduction():
    segments = segment_for_display("Settle in.\n**Breath**\nBreathe slowly.")
    assert [s.title for s in segments] == ["Introduction", "Breath"]


def test_headings_without_body_are_dropped():
    segments = segment_for_display("**Empty**\n**Full**\nSomething here.")
    assert [s.title for s in segments] == ["Full"]


def test_no_headings_gives_single_segment():
    text = "Just breathe. " * 30
    segments = segment_for_display(text, title="Evening Calm")

    assert len(segments) == 1
    assert segments[0].title == "Evening Calm"
    assert segments[0].start_minute == 0
    assert segments[0].estimated_minutes == 3
    assert segments[0].content == clean_script_for_voice(text)


def test_single_segment_default_title():
    segments = segment_for_display("Just breathe.")
    assert segments[0].title == "Complete Meditation"
    assert segments[0].duration == "1 minute"


def test_display_rejects_blank_text():
    with pytest.raises(EmptyInputError):
        segment_for_display("\n  \n")


@pytest.mark.parametrize("title", ["   ", "\t\n"])
def test_blank_titles_fall_back_to_defaults(title):
    single = segment_for_display("Just breathe.", title=title)
    sectioned = segment_for_display("Settle in.\n**Breath**\nBreathe slowly.", title=title)

    assert single[0].title == "Complete Meditation"
    assert [s.title for s in sectioned] == ["Introduction", "Breath"]


def test_supplied_title_is_trimmed():
    assert segment_for_display("Just breathe.", title="  Evening Calm ")[0].title == "Evening Calm"
