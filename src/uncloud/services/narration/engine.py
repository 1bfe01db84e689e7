"""
Playback Engine for Narration.

Drives sequential narration of speech chunks through a speech backend:

    NarrationScript → segment_for_speech() → chunks ─┐
                    → segment_for_display() → segments ─┤
                                                         ▼
    PlaybackArbiter.acquire(token) ──────────────▶ PlaybackEngine._narrate()
                                                         │  chunk 0..N-1, strictly in order
                                                         ▼
                                            SpeechBackend.speak(chunk, options, utterance)

State machine:

    idle → loading → playing ⇄ paused → completed
    idle/loading/playing/paused → stopped
    loading/playing → failed

``stopped``, ``completed`` and ``failed`` are terminal; a new ``begin`` always
starts a fresh session. Pause cancels only the current utterance and resume
replays the same chunk, because speech backends cannot seek mid-utterance.

Segment tracking is approximate: chunk and segment boundaries partition the
text independently, so the current segment is derived from the estimated
elapsed time (chunk ratio × estimated total duration).
"""

import asyncio
import itertools
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from uncloud.errors import AbortedError, AlreadyPlayingError, EmptyInputError, PlaybackError
from uncloud.schemas.narration import PlaybackSnapshot, SegmentView

from .arbiter import PlaybackArbiter
from .backends import SpeechBackend
from .cancellation import CancellationSource
from .models import NarrationScript, PlaybackState, Segment, SpeechOptions
from .text_segmenter import (
    DEFAULT_MAX_CHARS,
    estimate_total_minutes,
    segment_for_display,
    segment_for_speech,
)

logger = logging.getLogger(__name__)


@dataclass
class PlaybackObserver:
    """Callbacks invoked synchronously, in chunk order, by the engine."""

    on_progress: Optional[Callable[[float], None]] = None
    on_chunk_start: Optional[Callable[[int, int], None]] = None
    on_segment_change: Optional[Callable[[int], None]] = None
    on_state_change: Optional[Callable[[PlaybackState], None]] = None


@dataclass
class PlaybackSession:
    """Mutable state of one narration, owned by a single engine."""

    script: NarrationScript
    options: SpeechOptions
    chunks: List[str]
    segments: List[Segment]
    token: CancellationSource
    backend: SpeechBackend
    total_seconds: float
    chunk_index: int = 0
    segment_index: int = 0
    progress: float = 0.0
    announced_index: int = -1
    fallback_engaged: bool = False
    utterance: Optional[CancellationSource] = field(default=None, repr=False)

    @property
    def elapsed_seconds(self) -> float:
        return self.progress / 100.0 * self.total_seconds


class PlaybackEngine:
    """
    Narrates one script at a time with pause/resume/stop/restart.

    Args:
        arbiter: Shared arbiter; ownership is acquired on every start.
        primary: Preferred backend (cloud synthesis). May be None when not
                 configured, in which case sessions start on the fallback.
        fallback: Backend used for the rest of a session once the primary
                  fails (local synthesis).
        observer: Progress/chunk/segment/state callbacks.
        max_chunk_chars: Chunk size limit passed to the segmenter.
        inter_chunk_pause: Seconds of silence between chunks.
    """

    def __init__(
        self,
        arbiter: PlaybackArbiter,
        primary: Optional[SpeechBackend],
        fallback: Optional[SpeechBackend] = None,
        *,
        observer: Optional[PlaybackObserver] = None,
        max_chunk_chars: int = DEFAULT_MAX_CHARS,
        inter_chunk_pause: float = 0.5,
        name: str = "narration",
    ):
        if primary is None and fallback is None:
            raise ValueError("PlaybackEngine needs at least one speech backend")
        self._arbiter = arbiter
        self._primary = primary
        self._fallback = fallback
        self.observer = observer or PlaybackObserver()
        self.max_chunk_chars = max_chunk_chars
        self.inter_chunk_pause = inter_chunk_pause
        self.name = name

        self._state = PlaybackState.IDLE
        self._session: Optional[PlaybackSession] = None
        self._task: Optional[asyncio.Task] = None
        self._resume = asyncio.Event()
        self._resume.set()
        self._last_request: Optional[tuple[NarrationScript, SpeechOptions]] = None
        self._sequence = itertools.count(1)

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def begin(
        self,
        script: NarrationScript,
        options: Optional[SpeechOptions] = None,
    ) -> asyncio.Task:
        """
        Validate ``script``, take audio ownership, and start narrating.

        Input is validated before arbitration, so a bad request never
        silences the narration that is currently playing.

        Returns:
            The narration task. It finishes when playback completes, and
            raises AbortedError (stop/supersession) or PlaybackError.

        Raises:
            AlreadyPlayingError: if this engine's session is still live.
            EmptyInputError: if the script has nothing speakable.
        """
        if self._state.is_active:
            raise AlreadyPlayingError(f"{self.name} is already {self._state.value}")

        options = options or SpeechOptions()
        chunks = segment_for_speech(script.text, self.max_chunk_chars)
        segments = segment_for_display(script.text, script.title)

        token = CancellationSource(f"{self.name}-{next(self._sequence)}")
        self._arbiter.acquire(token)

        session = PlaybackSession(
            script=script,
            options=options,
            chunks=chunks,
            segments=segments,
            token=token,
            backend=self._primary or self._fallback,
            total_seconds=float(estimate_total_minutes(segments) * 60),
        )
        self._session = session
        self._last_request = (script, options)
        self._resume.set()
        logger.info(
            f"Starting {token.name}: {len(chunks)} chunks, {len(segments)} segments, "
            f"~{session.total_seconds / 60:.0f} min via {session.backend.name}"
        )
        self._set_state(PlaybackState.LOADING)
        self._task = asyncio.create_task(self._run(session), name=token.name)
        return self._task

    async def start(
        self,
        script: NarrationScript,
        options: Optional[SpeechOptions] = None,
    ) -> None:
        """Narrate ``script`` and return once playback completes."""
        await self.begin(script, options)

    def pause(self) -> None:
        """Silence the current chunk but keep the position. No-op unless playing."""
        if self._state is not PlaybackState.PLAYING or self._session is None:
            return
        session = self._session
        self._resume.clear()
        self._set_state(PlaybackState.PAUSED)
        if session.utterance is not None:
            session.utterance.cancel("paused")
        logger.info(f"Paused {session.token.name} at chunk {session.chunk_index}")

    def resume(self) -> None:
        """Continue from the paused chunk. No-op unless paused."""
        if self._state is not PlaybackState.PAUSED:
            return
        self._set_state(PlaybackState.PLAYING)
        self._resume.set()

    def stop(self) -> None:
        """Cancel playback, release ownership, and reset the session. Idempotent."""
        if self._state.is_terminal:
            return
        session, self._session = self._session, None
        self._resume.set()
        if session is not None:
            session.token.cancel("stopped")
            self._arbiter.release(session.token)
        self._set_state(PlaybackState.STOPPED)

    def begin_restart(self) -> asyncio.Task:
        """Stop and immediately start again with the last script and options."""
        if self._last_request is None:
            raise EmptyInputError("Nothing has been narrated yet")
        script, options = self._last_request
        self.stop()
        return self.begin(script, options)

    async def restart(self) -> None:
        await self.begin_restart()

    async def shutdown(self) -> None:
        """Stop playback and wait for the narration task to unwind."""
        self.stop()
        task = self._task
        if task is not None and not task.done():
            with suppress(AbortedError):
                await task

    def snapshot(self) -> PlaybackSnapshot:
        session = self._session
        if session is None:
            completed = self._state is PlaybackState.COMPLETED
            return PlaybackSnapshot(state=self._state, progress=100.0 if completed else 0.0)
        return PlaybackSnapshot(
            state=self._state,
            title=session.script.title,
            chunk_index=session.chunk_index,
            total_chunks=len(session.chunks),
            segment_index=session.segment_index,
            segments=[
                SegmentView(title=s.title, duration=s.duration, start_minute=s.start_minute)
                for s in session.segments
            ],
            progress=session.progress,
            elapsed_seconds=session.elapsed_seconds,
            total_seconds=session.total_seconds,
            backend=session.backend.name,
            fallback_engaged=session.fallback_engaged,
        )

    # ------------------------------------------------------------------
    # Sequencing
    # ------------------------------------------------------------------

    async def _run(self, session: PlaybackSession) -> None:
        try:
            await self._narrate(session)
        except AbortedError as exc:
            logger.debug(f"Narration {session.token.name} aborted: {exc}")
            self._finish(session, PlaybackState.STOPPED)
            raise
        except asyncio.CancelledError:
            session.token.cancel("cancelled")
            self._finish(session, PlaybackState.STOPPED)
            raise
        except PlaybackError as exc:
            logger.error(f"Narration {session.token.name} failed: {exc}")
            session.token.cancel("failed")
            self._finish(session, PlaybackState.FAILED)
            raise
        except Exception as exc:
            logger.error(f"Narration {session.token.name} crashed: {exc}", exc_info=True)
            session.token.cancel("failed")
            self._finish(session, PlaybackState.FAILED)
            raise PlaybackError(f"Narration failed: {exc}") from exc
        else:
            self._finish(session, PlaybackState.COMPLETED)
            logger.info(f"Narration {session.token.name} completed")

    async def _narrate(self, session: PlaybackSession) -> None:
        total = len(session.chunks)
        while session.chunk_index < total:
            if not self._arbiter.holds(session.token):
                session.token.cancel("superseded")
            session.token.raise_if_cancelled()
            if not self._resume.is_set():
                await session.token.run(self._resume.wait())

            index = session.chunk_index
            if self._state is PlaybackState.LOADING:
                self._set_state(PlaybackState.PLAYING)
            if session.announced_index < index:
                session.announced_index = index
                self._announce_chunk(session, index)

            session.utterance = session.token.child(f"{session.token.name}#{index}")
            try:
                await self._speak_chunk(session, index)
            except AbortedError:
                if session.token.cancelled:
                    raise
                logger.debug(f"Chunk {index} of {session.token.name} interrupted by pause")
                continue
            finally:
                session.utterance = None

            session.chunk_index = index + 1
            if session.chunk_index < total:
                await session.token.sleep(self.inter_chunk_pause)

        self._report_progress(session, 100.0)
        self._update_segment(session, len(session.segments) - 1)

    async def _speak_chunk(self, session: PlaybackSession, index: int) -> None:
        text = session.chunks[index]
        utterance = session.utterance
        backend = session.backend
        logger.info(
            f"Narrating chunk {index + 1}/{len(session.chunks)} via {backend.name} "
            f"({len(text)} chars)"
        )
        try:
            await backend.speak(text, session.options, utterance)
            return
        except AbortedError:
            raise
        except Exception as exc:
            if backend is self._fallback or self._fallback is None:
                raise PlaybackError(f"Speech backend {backend.name} failed: {exc}") from exc
            logger.warning(
                f"Speech backend {backend.name} failed on chunk {index + 1}: {exc}; "
                f"using {self._fallback.name} for the rest of {session.token.name}"
            )
            backend.cancel_all()
            session.backend = self._fallback
            session.fallback_engaged = True

        try:
            await session.backend.speak(text, session.options, utterance)
        except AbortedError:
            raise
        except Exception as exc:
            raise PlaybackError(f"Fallback backend {session.backend.name} failed: {exc}") from exc

    def _announce_chunk(self, session: PlaybackSession, index: int) -> None:
        total = len(session.chunks)
        self._emit("on_chunk_start", index, total)
        self._report_progress(session, index / total * 100.0)
        if len(session.segments) > 1:
            estimated = index / total * session.total_seconds
            current = 0
            for position, segment in enumerate(session.segments):
                if estimated >= segment.start_seconds:
                    current = position
                else:
                    break
            self._update_segment(session, current)

    def _report_progress(self, session: PlaybackSession, value: float) -> None:
        session.progress = max(session.progress, min(100.0, value))
        self._emit("on_progress", session.progress)

    def _update_segment(self, session: PlaybackSession, index: int) -> None:
        if index == session.segment_index:
            return
        session.segment_index = index
        self._emit("on_segment_change", index)

    def _finish(self, session: PlaybackSession, state: PlaybackState) -> None:
        self._arbiter.release(session.token)
        if self._session is not session:
            return
        self._session = None
        self._set_state(state)

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        logger.info(f"{self.name}: {self._state.value} -> {state.value}")
        self._state = state
        self._emit("on_state_change", state)

    def _emit(self, name: str, *args: Any) -> None:
        callback = getattr(self.observer, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as exc:
            logger.error(f"Playback observer {name} failed: {exc}", exc_info=True)


__all__ = ["PlaybackEngine", "PlaybackObserver", "PlaybackSession"]
