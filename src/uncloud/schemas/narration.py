"""Narration API schemas."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from uncloud.services.narration.models import PlaybackState


class NarrationRequest(BaseModel):
    """Payload for starting a narration."""

    text: str = Field(..., description="Script to narrate; markdown and emoji are allowed.")
    title: Optional[str] = Field(default=None, description="Shown when the script has no headings.")
    voice: Optional[str] = Field(default=None, description="Cloud voice name, e.g. 'nova'.")
    speed: Optional[float] = Field(default=None, ge=0.25, le=4.0)
    volume: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @field_validator("title")
    @classmethod
    def _blank_title_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


class SegmentView(BaseModel):
    title: str
    duration: str
    start_minute: int


class PlaybackSnapshot(BaseModel):
    """Read-only view of the playback engine."""

    state: PlaybackState
    title: Optional[str] = None
    chunk_index: int = 0
    total_chunks: int = 0
    segment_index: int = 0
    segments: List[SegmentView] = Field(default_factory=list)
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    elapsed_seconds: float = 0.0
    total_seconds: float = 0.0
    backend: Optional[str] = None
    fallback_engaged: bool = False


__all__ = ["NarrationRequest", "SegmentView", "PlaybackSnapshot"]
