"""Tests for environment-driven settings."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from uncloud.app import _configure_logging
from uncloud.config import Settings, get_settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    settings = Settings(_env_file=None)

    assert settings.openai_api_key is None
    assert settings.tts_model == "tts-1-hd"
    assert settings.tts_voice == "nova"
    assert settings.tts_speed == 1.1
    assert settings.tts_volume == 0.8
    assert settings.max_chunk_chars == 4000
    assert settings.inter_chunk_pause_seconds == 0.5
    assert settings.transcription_model == "whisper-1"


def test_env_aliases(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("TTS_VOICE", "shimmer")
    monkeypatch.setenv("MAX_CHUNK_CHARS", "500")
    monkeypatch.setenv("INTER_CHUNK_PAUSE_SECONDS", "0")
    settings = Settings(_env_file=None)

    assert settings.openai_api_key.get_secret_value() == "sk-test"
    assert settings.tts_voice == "shimmer"
    assert settings.max_chunk_chars == 500
    assert settings.inter_chunk_pause_seconds == 0


def test_out_of_range_speed_rejected(monkeypatch):
    monkeypatch.setenv("TTS_SPEED", "9")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()


def test_configure_logging_writes_log_file(tmp_path):
    log_path = tmp_path / "logs" / "narration.log"
    _configure_logging(Settings(_env_file=None, log_level="DEBUG", log_file=log_path))

    logging.getLogger("uncloud.test").debug("hello log")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger("uncloud").level == logging.DEBUG
    assert "[DEBUG] uncloud.test: hello log" in log_path.read_text(encoding="utf-8")

    _configure_logging(Settings(_env_file=None))
    assert logging.getLogger("httpx").level == logging.WARNING
