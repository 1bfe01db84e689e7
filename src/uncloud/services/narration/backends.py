"""
Speech backends for narration playback.

Two implementations share one contract:

- OpenAISpeechBackend: cloud synthesis via the OpenAI speech endpoint, played
  through an AudioOutput. Primary backend when an API key is configured.
- LocalSpeechBackend: platform synthesis via pyttsx3. Used as the fallback,
  or as the only backend when no API key is configured.

Every backend must stop emitting audio when the token passed to ``speak``
is cancelled, and raise AbortedError in that case.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence

import openai
import pyttsx3

from uncloud.errors import PlaybackError

from .audio_output import AudioOutput, pcm16_to_float
from .cancellation import CancellationSource
from .models import SpeechOptions
from .voices import (
    DEFAULT_VOICE_PREFERENCES,
    VoiceInfo,
    VoicePredicate,
    normalize_language,
    select_voice,
)

logger = logging.getLogger(__name__)


class SpeechBackend(ABC):
    """Speaks one chunk of text at a time on the shared audio output."""

    name: str = "speech"

    @abstractmethod
    async def speak(
        self,
        text: str,
        options: SpeechOptions,
        token: CancellationSource,
    ) -> None:
        """Speak ``text`` and return once its audio has finished playing."""

    @abstractmethod
    def cancel_all(self) -> None:
        """Silence everything this backend is playing or has queued."""

    async def aclose(self) -> None:
        """Release backend resources. Call on app shutdown."""


class OpenAISpeechBackend(SpeechBackend):
    """Cloud text-to-speech using OpenAI's streaming speech endpoint."""

    name = "openai"
    SAMPLE_RATE = 24000  # OpenAI PCM is fixed at 24kHz

    def __init__(
        self,
        client: openai.AsyncOpenAI,
        output: AudioOutput,
        model: str = "tts-1-hd",
        chunk_size: int = 16 * 1024,
    ):
        self._client = client
        self._output = output
        self.model = model
        self.chunk_size = chunk_size

    async def synthesize(self, text: str, options: SpeechOptions) -> bytes:
        """Fetch raw 16-bit PCM audio for ``text``."""
        buffer = bytearray()
        async with self._client.audio.speech.with_streaming_response.create(
            model=self.model,
            voice=options.voice,
            input=text,
            speed=options.speed,
            response_format="pcm",
        ) as response:
            async for audio_chunk in response.iter_bytes(self.chunk_size):
                buffer.extend(audio_chunk)
        logger.info(f"OpenAI TTS synthesized {len(buffer)} bytes for text: {text[:50]}...")
        return bytes(buffer)

    async def speak(
        self,
        text: str,
        options: SpeechOptions,
        token: CancellationSource,
    ) -> None:
        token.raise_if_cancelled()
        audio = await token.run(self.synthesize(text, options))
        if not audio:
            raise PlaybackError("OpenAI TTS returned no audio")
        samples = pcm16_to_float(audio, options.volume)
        await self._output.play(samples, self.SAMPLE_RATE, token)

    def cancel_all(self) -> None:
        self._output.stop()

    async def aclose(self) -> None:
        await self._client.close()


class LocalSpeechBackend(SpeechBackend):
    """
    Platform speech synthesis through pyttsx3.

    pyttsx3 blocks while speaking, so utterances run on one dedicated worker
    thread and are serialized. The only call made from another thread is
    ``engine.stop()`` from ``cancel_all``; a lock keeps it consistent with the
    worker marking an utterance as started. pyttsx3 has no portable pitch
    property, so ``SpeechOptions.pitch`` is ignored here.
    """

    name = "local"

    def __init__(
        self,
        rate_wpm: int = 175,
        preferences: Sequence[VoicePredicate] = DEFAULT_VOICE_PREFERENCES,
        engine_factory: Optional[Callable[[], Any]] = None,
    ):
        self.rate_wpm = rate_wpm
        self._preferences = preferences
        self._engine_factory = engine_factory or pyttsx3.init
        self._engine: Any = None
        self._voice: Optional[VoiceInfo] = None
        self._speaking = False
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="local-tts")

    @property
    def voice(self) -> Optional[VoiceInfo]:
        return self._voice

    def list_voices(self) -> List[VoiceInfo]:
        engine = self._ensure_engine()
        voices = []
        for voice in engine.getProperty("voices") or []:
            languages = getattr(voice, "languages", None) or [""]
            voices.append(
                VoiceInfo(
                    id=voice.id,
                    name=voice.name or voice.id,
                    language=normalize_language(languages[0]),
                )
            )
        return voices

    def _ensure_engine(self) -> Any:
        if self._engine is None:
            self._engine = self._engine_factory()
            self._voice = select_voice(self.list_voices(), self._preferences)
            if self._voice:
                logger.info(f"Local TTS voice selected: {self._voice.name}")
            else:
                logger.info("No preferred local TTS voice found, using engine default")
        return self._engine

    def _speak_blocking(self, text: str, options: SpeechOptions, token: CancellationSource) -> None:
        engine = self._ensure_engine()
        engine.setProperty("rate", int(self.rate_wpm * options.rate * options.speed))
        engine.setProperty("volume", options.volume)
        if self._voice is not None:
            engine.setProperty("voice", self._voice.id)

        with self._lock:
            if token.cancelled:
                return
            self._speaking = True
        try:
            engine.say(text)
            if token.cancelled:
                # drop the queued utterance
                engine.stop()
                return
            engine.runAndWait()
        finally:
            with self._lock:
                self._speaking = False

    async def speak(
        self,
        text: str,
        options: SpeechOptions,
        token: CancellationSource,
    ) -> None:
        token.raise_if_cancelled()
        loop = asyncio.get_running_loop()
        remove = token.add_callback(self.cancel_all)
        try:
            await token.run(
                loop.run_in_executor(self._executor, self._speak_blocking, text, options, token)
            )
        finally:
            remove()

    def cancel_all(self) -> None:
        with self._lock:
            if self._engine is None or not self._speaking:
                return
            self._engine.stop()
        logger.debug("Local TTS cancelled")

    async def aclose(self) -> None:
        self.cancel_all()
        self._executor.shutdown(wait=False, cancel_futures=True)


__all__ = ["SpeechBackend", "OpenAISpeechBackend", "LocalSpeechBackend"]
