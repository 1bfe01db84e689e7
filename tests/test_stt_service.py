"""Tests for Whisper transcription and microphone recording."""

from __future__ import annotations

import io
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import numpy as np
import openai
import pytest
import soundfile as sf

from uncloud.errors import MicrophoneAccessError, RecordingError, TranscriptionError
from uncloud.services.recording import AudioRecorder
from uncloud.services.stt_service import TranscriptionService


def _client(result=None, side_effect=None):
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(return_value=result, side_effect=side_effect)
    return client


@pytest.mark.asyncio
async def test_transcribe_returns_stripped_text():
    client = _client(result="  I feel anxious today \n")
    service = TranscriptionService(client)

    text = await service.transcribe(b"RIFF....", "clip.wav")

    assert text == "I feel anxious today"
    client.audio.transcriptions.create.assert_awaited_once_with(
        file=("clip.wav", b"RIFF...."),
        model="whisper-1",
        language="en",
        response_format="text",
    )


@pytest.mark.asyncio
async def test_transcribe_accepts_object_results():
    service = TranscriptionService(_client(result=SimpleNamespace(text="hello")))
    assert await service.transcribe(b"audio") == "hello"


@pytest.mark.asyncio
async def test_transcribe_without_client_raises():
    service = TranscriptionService(None)
    assert not service.available
    with pytest.raises(TranscriptionError):
        await service.transcribe(b"audio")


@pytest.mark.asyncio
async def test_transcribe_backend_failure_raises():
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1"))
    service = TranscriptionService(_client(side_effect=error))
    with pytest.raises(TranscriptionError):
        await service.transcribe(b"audio")


@pytest.mark.asyncio
@pytest.mark.parametrize("result", ["", "   "])
async def test_transcribe_empty_result_raises(result):
    service = TranscriptionService(_client(result=result))
    with pytest.raises(TranscriptionError):
        await service.transcribe(b"audio")


@pytest.mark.asyncio
async def test_transcribe_empty_audio_raises():
    client = _client(result="text")
    with pytest.raises(TranscriptionError):
        await TranscriptionService(client).transcribe(b"")
    client.audio.transcriptions.create.assert_not_awaited()


class _PortAudioError(Exception):
    pass


def _fake_sounddevice(stream=None, error=None):
    fake = MagicMock()
    fake.PortAudioError = _PortAudioError
    if error is not None:
        fake.InputStream.side_effect = error
    else:
        fake.InputStream.return_value = stream or MagicMock()
    return fake


def test_recorder_captures_wav():
    stream = MagicMock()
    fake_sd = _fake_sounddevice(stream)
    recorder = AudioRecorder(sample_rate=16000)

    with patch.dict(sys.modules, {"sounddevice": fake_sd}):
        recorder.start()
        assert recorder.recording
        callback = fake_sd.InputStream.call_args.kwargs["callback"]
        callback(np.ones((160, 1), dtype=np.int16), 160, None, None)
        callback(np.ones((160, 1), dtype=np.int16), 160, None, None)
        audio = recorder.stop()

    stream.start.assert_called_once()
    stream.close.assert_called_once()
    assert not recorder.recording
    data, rate = sf.read(io.BytesIO(audio), dtype="int16")
    assert rate == 16000
    assert len(data) == 320


def test_recorder_denied_microphone():
    fake_sd = _fake_sounddevice(error=_PortAudioError("no device"))
    recorder = AudioRecorder()

    with patch.dict(sys.modules, {"sounddevice": fake_sd}):
        with pytest.raises(MicrophoneAccessError):
            recorder.start()
    assert not recorder.recording


def test_recorder_misuse():
    recorder = AudioRecorder()
    with pytest.raises(RecordingError):
        recorder.stop()

    with patch.dict(sys.modules, {"sounddevice": _fake_sounddevice()}):
        recorder.start()
        with pytest.raises(RecordingError):
            recorder.start()
        recorder.cancel()
    assert not recorder.recording
    recorder.cancel()
