"""
Voice selection for local speech synthesis.

Installed voices differ per platform, so selection is a best-effort ranked
match on voice names and languages. There is no guarantee that any voice
matches; callers keep the engine default when ``select_voice`` returns None.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

# Soft, younger-sounding voices across Windows, macOS and espeak installs
PREFERRED_VOICE_NAMES = ("jenny", "aria", "samantha", "girl", "child", "zira", "eva")

_EXCLUDED_FEMALE_VENDORS = ("microsoft", "adult")
_MALE_MARKERS = re.compile(
    r"\b(?:male|man|adult|mature|deep|david|mark|james)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class VoiceInfo:
    """Platform-neutral view of an installed voice."""

    id: str
    name: str
    language: str = ""


VoicePredicate = Callable[[VoiceInfo], bool]


def _name(voice: VoiceInfo) -> str:
    return voice.name.lower()


def _is_preferred_name(voice: VoiceInfo) -> bool:
    return any(token in _name(voice) for token in PREFERRED_VOICE_NAMES)


def _is_soft_female(voice: VoiceInfo) -> bool:
    name = _name(voice)
    return "female" in name and not any(v in name for v in _EXCLUDED_FEMALE_VENDORS)


def _is_neutral_english(voice: VoiceInfo) -> bool:
    if not voice.language.lower().startswith("en"):
        return False
    name = _name(voice)
    if "microsoft" in name and "female" not in name:
        return False
    return not _MALE_MARKERS.search(name)


DEFAULT_VOICE_PREFERENCES: Sequence[VoicePredicate] = (
    _is_preferred_name,
    _is_soft_female,
    _is_neutral_english,
)


def select_voice(
    voices: Iterable[VoiceInfo],
    preferences: Sequence[VoicePredicate] = DEFAULT_VOICE_PREFERENCES,
) -> Optional[VoiceInfo]:
    """Return the first voice matching the highest-ranked preference."""
    candidates: List[VoiceInfo] = list(voices)
    for predicate in preferences:
        for voice in candidates:
            if predicate(voice):
                return voice
    return None


def normalize_language(value: object) -> str:
    """
    Normalize a platform language tag to a plain string like ``en-us``.

    espeak reports languages as bytes prefixed with a priority byte.
    """
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value or "")
    return "".join(ch for ch in text if ch.isprintable()).strip().lower().replace("_", "-")


__all__ = [
    "PREFERRED_VOICE_NAMES",
    "DEFAULT_VOICE_PREFERENCES",
    "VoiceInfo",
    "select_voice",
    "normalize_language",
]
