"""
Narration Playback Package.

Speaks long-form meditation scripts aloud, one chunk at a time:

- text_segmenter: Cleans scripts for speech and splits them into chunks and display segments
- engine: PlaybackEngine state machine with pause/resume/stop/restart
- arbiter: PlaybackArbiter guaranteeing a single audible narration
- backends: Cloud (OpenAI) and local (pyttsx3) speech backends
- cancellation: CancellationSource shared by engine, backends and arbiter

Architecture Overview:

    ┌─────────────┐     ┌───────────────┐     ┌────────────────┐
    │   Script    │────▶│ TextSegmenter │────▶│ chunks/segments│
    └─────────────┘     └───────────────┘     └────────────────┘
                                                       │
                                                       ▼
    ┌─────────────┐  acquire/release   ┌────────────────────────┐
    │   Arbiter   │◀──────────────────▶│     PlaybackEngine     │
    └─────────────┘                    └────────────────────────┘
                                          │                 │
                                   primary▼         fallback▼
                                 ┌──────────────┐  ┌──────────────┐
                                 │ OpenAI + PCM │  │   pyttsx3    │
                                 └──────────────┘  └──────────────┘

Only one narration is audible at a time:
1. Every start acquires the arbiter, which cancels the previous owner
2. Cancelling a token silences its backend synchronously
3. A backend failure switches the session to the fallback for its remaining chunks
"""

from .arbiter import PlaybackArbiter
from .cancellation import CancellationSource
from .models import NarrationScript, PlaybackState, Segment, SpeechOptions
from .text_segmenter import clean_script_for_voice, segment_for_display, segment_for_speech

__all__ = [
    "CancellationSource",
    "NarrationScript",
    "PlaybackArbiter",
    "PlaybackState",
    "Segment",
    "SpeechOptions",
    "clean_script_for_voice",
    "segment_for_display",
    "segment_for_speech",
]
