"""
Text Segmenter for Narration Playback.

Produces two independent views of the same script:

- Speech chunks: cleaned text packed into sentence-aligned pieces no longer
  than the speech backend's input limit (4000 characters by default).
- Display segments: titled sections found by scanning for headings, each
  placed on an estimated timeline so playback progress can be mapped back
  to the section being narrated.

Both functions are pure and deterministic, so the engine can re-derive the
same chunk/segment alignment for a restart.

Usage:
    chunks = segment_for_speech(script.text, max_chars=4000)
    segments = segment_for_display(script.text, title=script.title)
"""

import math
import re
from typing import List, Optional

from uncloud.errors import EmptyInputError

from .models import Segment

DEFAULT_MAX_CHARS = 4000
DISPLAY_CHARS_PER_MINUTE = 200
FALLBACK_CHARS_PER_MINUTE = 150
FALLBACK_SEGMENT_TITLE = "Complete Meditation"
PREAMBLE_SEGMENT_TITLE = "Introduction"
MAX_HEADING_CHARS = 80
MAX_CAPS_HEADING_CHARS = 60

_EMOJI = re.compile(
    "["
    "\U0001F300-\U0001FAFF"  # pictographs, emoticons, transport, supplemental
    "\u2600-\u27BF"  # misc symbols and dingbats
    "\uFE0F"  # variation selector
    "\u200D"  # zero-width joiner
    "]+"
)
_BOLD = re.compile(r"\*\*(.*?)\*\*")
_ITALIC = re.compile(r"\*(.*?)\*")
_TIMING = re.compile(
    r"\(\s*\d+(?:\s*-\s*\d+)?\s*(?:minutes?|mins?|seconds?|secs?)\s*\)",
    re.IGNORECASE,
)
_CUE = re.compile(
    r"\[[^\]\n]*(?:\d|pause|breath|silence)[^\]\n]*\]",
    re.IGNORECASE,
)
_ELLIPSIS = re.compile(r"\.{3,}|…")
_BLANK_LINES = re.compile(r"\s*\n\s*\n")
_WHITESPACE = re.compile(r"\s+")
_REPEATED_STOPS = re.compile(r"([.!?])(?:\s*\.)+")
_LEADING_STOPS = re.compile(r"^[\s.]+")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")

_DURATION = re.compile(r"\((\d+(?:\s*-\s*\d+)?)\s*minutes?\)", re.IGNORECASE)
_MARKDOWN_HEADING = re.compile(r"^#{1,6}\s+(.+)$")
_BOLD_HEADING = re.compile(r"^\*\*(.+?)\*\*:?$")


def clean_script_for_voice(text: str) -> str:
    """
    Strip display markup from a script so it reads naturally aloud.

    Removes bold/italic markers, emoji, timing annotations and bracketed
    cues, turns ellipses and blank lines into sentence pauses, and collapses
    whitespace to single spaces.
    """
    cleaned = _BOLD.sub(r"\1", text)
    cleaned = _ITALIC.sub(r"\1", cleaned)
    cleaned = cleaned.replace("*", "")
    cleaned = _EMOJI.sub("", cleaned)
    cleaned = _TIMING.sub("", cleaned)
    cleaned = _CUE.sub("", cleaned)
    cleaned = _ELLIPSIS.sub(". ", cleaned.strip())
    cleaned = _BLANK_LINES.sub(". ", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned)
    cleaned = _REPEATED_STOPS.sub(r"\1", cleaned)
    cleaned = _LEADING_STOPS.sub("", cleaned)
    return cleaned.strip()


def split_sentences(cleaned: str) -> List[str]:
    """Split cleaned text at sentence terminators followed by whitespace."""
    return [part for part in _SENTENCE_BREAK.split(cleaned) if part]


def segment_for_speech(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> List[str]:
    """
    Split a script into speakable chunks.

    Sentences are packed greedily; a chunk never exceeds ``max_chars`` unless
    it consists of a single sentence that is longer than the limit on its
    own. Joining the chunks with single spaces reproduces the cleaned text.

    Raises:
        EmptyInputError: if nothing speakable remains after cleaning.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be positive")

    cleaned = clean_script_for_voice(text)
    if not cleaned:
        raise EmptyInputError("Narration text is empty after cleaning")

    chunks: List[str] = []
    current = ""
    for sentence in split_sentences(cleaned):
        if not current:
            current = sentence
        elif len(current) + 1 + len(sentence) <= max_chars:
            current = f"{current} {sentence}"
        else:
            chunks.append(current)
            current = sentence
    if current:
        chunks.append(current)

    return chunks


def _heading_core(line: str) -> str:
    """Reduce a line to the text a heading check looks at."""
    core = _EMOJI.sub("", line)
    core = _DURATION.sub("", core)
    return core.strip()


def _heading_title(line: str) -> Optional[str]:
    """Return the heading title if ``line`` looks like a section heading."""
    if len(line) > MAX_HEADING_CHARS:
        return None

    core = _heading_core(line)
    if not core:
        return None

    markdown = _MARKDOWN_HEADING.match(core)
    if markdown:
        title = markdown.group(1)
    else:
        bold = _BOLD_HEADING.match(core)
        if bold:
            title = bold.group(1)
        elif _EMOJI.match(line.lstrip()) and not core.endswith((".", "!", "?")):
            title = core
        else:
            letters = [ch for ch in core if ch.isalpha()]
            is_caps = (
                len(letters) >= 2
                and core == core.upper()
                and len(core) <= MAX_CAPS_HEADING_CHARS
            )
            if not is_caps:
                return None
            title = core

    title = title.replace("*", "").strip().rstrip(":").strip()
    return title or None


def _duration_label(minutes: int) -> str:
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


def _annotation_label(line: str) -> Optional[str]:
    match = _DURATION.search(line)
    if not match:
        return None
    value = re.sub(r"\s*-\s*", "-", match.group(1))
    return f"{value} minute" if value == "1" else f"{value} minutes"


def _estimate_minutes(content: str, chars_per_minute: int) -> int:
    return max(1, math.ceil(len(content) / chars_per_minute))


def segment_for_display(text: str, title: Optional[str] = None) -> List[Segment]:
    """
    Split a script into titled display segments.

    Headings are markdown bold lines, ``#`` headings, emoji-prefixed short
    lines, or short ALL-CAPS lines. Lines before the first heading form an
    introduction segment; headings without body lines are dropped. When no
    usable heading exists the cleaned script becomes a single segment.

    Raises:
        EmptyInputError: if the script is blank, or has no headings and
            nothing speakable.
    """
    title = (title or "").strip() or None
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        raise EmptyInputError("Narration text is empty")

    preamble: List[str] = []
    sections: List[tuple[str, Optional[str], List[str]]] = []

    for line in lines:
        heading = _heading_title(line)
        if heading is not None:
            sections.append((heading, _annotation_label(line), []))
        elif sections:
            sections[-1][2].append(line)
        else:
            preamble.append(line)

    drafts: List[tuple[str, Optional[str], str]] = []
    if sections and preamble:
        drafts.append((title or PREAMBLE_SEGMENT_TITLE, None, "\n".join(preamble)))
    for heading, label, body in sections:
        if body:
            drafts.append((heading, label, "\n".join(body)))

    if not sections or not drafts:
        content = clean_script_for_voice(text)
        if not content:
            raise EmptyInputError("Narration text is empty after cleaning")
        minutes = _estimate_minutes(content, FALLBACK_CHARS_PER_MINUTE)
        return [
            Segment(
                title=title or FALLBACK_SEGMENT_TITLE,
                content=content,
                start_minute=0,
                estimated_minutes=minutes,
                duration=_duration_label(minutes),
            )
        ]

    segments: List[Segment] = []
    elapsed = 0
    for heading, label, content in drafts:
        minutes = _estimate_minutes(content, DISPLAY_CHARS_PER_MINUTE)
        segments.append(
            Segment(
                title=heading,
                content=content,
                start_minute=elapsed,
                estimated_minutes=minutes,
                duration=label or _duration_label(minutes),
            )
        )
        elapsed += minutes
    return segments


def estimate_total_minutes(segments: List[Segment]) -> int:
    """Total length of the estimated timeline, in minutes."""
    return sum(segment.estimated_minutes for segment in segments)


__all__ = [
    "DEFAULT_MAX_CHARS",
    "clean_script_for_voice",
    "split_sentences",
    "segment_for_speech",
    "segment_for_display",
    "estimate_total_minutes",
]
