"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenAI (optional; without it narration runs on local synthesis only)
    openai_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    tts_model: str = Field(
        default="tts-1-hd",
        validation_alias=AliasChoices("TTS_MODEL", "tts_model"),
    )
    tts_voice: str = Field(
        default="nova",
        validation_alias=AliasChoices("TTS_VOICE", "tts_voice"),
    )
    tts_speed: float = Field(
        default=1.1,
        ge=0.25,
        le=4.0,
        validation_alias=AliasChoices("TTS_SPEED", "tts_speed"),
    )
    tts_volume: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        validation_alias=AliasChoices("TTS_VOLUME", "tts_volume"),
    )
    local_tts_rate_wpm: int = Field(
        default=175,
        ge=50,
        le=400,
        validation_alias=AliasChoices("LOCAL_TTS_RATE_WPM", "local_tts_rate_wpm"),
    )

    # Chunking and pacing
    max_chunk_chars: int = Field(
        default=4000,
        ge=1,
        validation_alias=AliasChoices("MAX_CHUNK_CHARS", "max_chunk_chars"),
    )
    inter_chunk_pause_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=5.0,
        validation_alias=AliasChoices(
            "INTER_CHUNK_PAUSE_SECONDS",
            "inter_chunk_pause_seconds",
        ),
    )

    # Speech recognition
    transcription_model: str = Field(
        default="whisper-1",
        validation_alias=AliasChoices("TRANSCRIPTION_MODEL", "transcription_model"),
    )
    transcription_language: str = Field(
        default="en",
        validation_alias=AliasChoices(
            "TRANSCRIPTION_LANGUAGE",
            "transcription_language",
        ),
    )
    recording_sample_rate: int = Field(
        default=16000,
        ge=8000,
        le=48000,
        validation_alias=AliasChoices("RECORDING_SAMPLE_RATE", "recording_sample_rate"),
    )

    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "log_level"),
    )
    log_file: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("LOG_FILE", "log_file"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
