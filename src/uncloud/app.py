"""Application factory for the narration service."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .routers.narration import router as narration_router
from .routers.stt import router as stt_router
from .services.narration import PlaybackArbiter, SpeechOptions
from .services.narration.audio_output import SoundDeviceOutput
from .services.narration.backends import LocalSpeechBackend, OpenAISpeechBackend, SpeechBackend
from .services.narration.engine import PlaybackEngine
from .services.openai_client import create_openai_client
from .services.recording import AudioRecorder
from .services.stt_service import TranscriptionService
from .services.voice_session import NarrationConnectionManager

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _configure_logging(settings: Settings) -> None:
    """Configure logging from LOG_LEVEL and LOG_FILE."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        handlers.append(file_handler)

    # Always add console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("uncloud").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # Quiet down noisy third-party libraries
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("openai").setLevel(logging.WARNING)


def create_app(
    settings: Optional[Settings] = None,
    *,
    primary: Optional[SpeechBackend] = None,
    fallback: Optional[SpeechBackend] = None,
    transcription_service: Optional[TranscriptionService] = None,
    recorder: Optional[AudioRecorder] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Backends and voice-input services are created from settings unless
    passed in explicitly (tests inject fakes this way).
    """
    # Load .env from the working directory before settings are read
    load_dotenv()
    settings = settings or get_settings()
    _configure_logging(settings)

    openai_client = create_openai_client(settings)

    if primary is None and fallback is None:
        fallback = LocalSpeechBackend(rate_wpm=settings.local_tts_rate_wpm)
        if openai_client is not None:
            primary = OpenAISpeechBackend(
                openai_client,
                SoundDeviceOutput(),
                model=settings.tts_model,
            )

    local_synthesis = fallback if isinstance(fallback, LocalSpeechBackend) else None
    arbiter = PlaybackArbiter(local_synthesis=local_synthesis)
    manager = NarrationConnectionManager()
    engine = PlaybackEngine(
        arbiter,
        primary,
        fallback,
        observer=manager.observer(),
        max_chunk_chars=settings.max_chunk_chars,
        inter_chunk_pause=settings.inter_chunk_pause_seconds,
    )

    if transcription_service is None:
        transcription_service = TranscriptionService(
            openai_client,
            model=settings.transcription_model,
            language=settings.transcription_language,
        )
    if recorder is None:
        recorder = AudioRecorder(sample_rate=settings.recording_sample_rate)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager.start()
        logger.info(
            f"Narration ready: primary={primary.name if primary else None}, "
            f"fallback={fallback.name if fallback else None}"
        )
        try:
            yield
        finally:
            arbiter.global_cleanup()
            try:
                await asyncio.wait_for(engine.shutdown(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("Playback engine shutdown timed out after 5s")
            except Exception as exc:
                logger.warning(f"Error during playback engine shutdown: {exc}")
            recorder.cancel()
            await manager.stop()
            if fallback is not None:
                await fallback.aclose()
            if openai_client is not None:
                await openai_client.close()

    app = FastAPI(
        title="Uncloud Narration Service",
        version="0.1.0",
        description="Guided meditation narration with cloud and local speech synthesis.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.playback_arbiter = arbiter
    app.state.playback_engine = engine
    app.state.narration_manager = manager
    app.state.speech_options = SpeechOptions(
        voice=settings.tts_voice,
        speed=settings.tts_speed,
        volume=settings.tts_volume,
    )
    app.state.transcription_service = transcription_service
    app.state.audio_recorder = recorder

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(narration_router)
    app.include_router(stt_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | None]:
        return {
            "status": "ok",
            "state": engine.state.value,
            "primary_backend": primary.name if primary else None,
        }

    return app


__all__ = ["create_app"]
