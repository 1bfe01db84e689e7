"""Value types shared by the narration pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class NarrationScript:
    """Raw script handed to the engine by a caller."""

    text: str
    title: Optional[str] = None
    target_duration: Optional[str] = None


@dataclass(frozen=True)
class Segment:
    """A titled section of a script, used for display and progress mapping."""

    title: str
    content: str
    start_minute: int
    estimated_minutes: int
    duration: str

    @property
    def start_seconds(self) -> int:
        return self.start_minute * 60


@dataclass(frozen=True)
class SpeechOptions:
    """Voice settings applied to every chunk of one narration."""

    voice: str = "nova"
    speed: float = 1.1
    volume: float = 0.8
    rate: float = 1.0
    pitch: float = 1.1


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in (PlaybackState.LOADING, PlaybackState.PLAYING, PlaybackState.PAUSED)

    @property
    def is_terminal(self) -> bool:
        return self in (PlaybackState.STOPPED, PlaybackState.COMPLETED, PlaybackState.FAILED)


__all__ = ["NarrationScript", "Segment", "SpeechOptions", "PlaybackState"]
