"""Error taxonomy for narration playback and voice input."""

from __future__ import annotations


class NarrationError(Exception):
    """Base class for all narration and voice-input errors."""


class EmptyInputError(NarrationError):
    """The script has nothing speakable after cleaning."""


class AlreadyPlayingError(NarrationError):
    """`start` was called while the engine still owns a live session."""


class AbortedError(NarrationError):
    """Playback was cancelled by stop, supersession, or shutdown.

    This is an expected outcome and must never be shown to the user.
    """


class PlaybackError(NarrationError):
    """Both the primary and the fallback speech backends failed."""


class TranscriptionError(NarrationError):
    """Speech recognition is unavailable or returned no text."""


class MicrophoneAccessError(NarrationError):
    """The audio input device could not be opened."""


class RecordingError(NarrationError):
    """A recording operation was requested in the wrong state."""


__all__ = [
    "NarrationError",
    "EmptyInputError",
    "AlreadyPlayingError",
    "AbortedError",
    "PlaybackError",
    "TranscriptionError",
    "MicrophoneAccessError",
    "RecordingError",
]
