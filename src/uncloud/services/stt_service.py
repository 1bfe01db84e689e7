"""
Speech recognition for voice input.

Recorded audio is sent to OpenAI's transcription endpoint in one request.
Any failure surfaces as TranscriptionError so the caller can ask the user
to type instead.
"""

import logging
from typing import Optional

import openai

from uncloud.errors import TranscriptionError

logger = logging.getLogger(__name__)


class TranscriptionService:
    """Transcribes short WAV recordings with Whisper."""

    def __init__(
        self,
        client: Optional[openai.AsyncOpenAI],
        model: str = "whisper-1",
        language: str = "en",
    ):
        self._client = client
        self.model = model
        self.language = language

    @property
    def available(self) -> bool:
        return self._client is not None

    async def transcribe(self, audio: bytes, filename: str = "audio.wav") -> str:
        if self._client is None:
            raise TranscriptionError("Speech recognition is not configured")
        if not audio:
            raise TranscriptionError("No audio to transcribe")

        logger.info(f"Transcribing {len(audio)} bytes with {self.model}")
        try:
            result = await self._client.audio.transcriptions.create(
                file=(filename, audio),
                model=self.model,
                language=self.language,
                response_format="text",
            )
        except openai.APIError as exc:
            logger.error(f"Transcription request failed: {exc}")
            raise TranscriptionError(f"Transcription failed: {exc}") from exc

        # response_format="text" returns a plain string; older clients wrap it
        text = result if isinstance(result, str) else getattr(result, "text", "")
        text = (text or "").strip()
        if not text:
            raise TranscriptionError("No speech detected")
        logger.debug(f"Transcript: {text[:80]}")
        return text


__all__ = ["TranscriptionService"]
