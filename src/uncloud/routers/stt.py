"""API routes for voice input: upload transcription and server-side recording."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from ..errors import MicrophoneAccessError, RecordingError, TranscriptionError
from ..services.recording import AudioRecorder
from ..services.stt_service import TranscriptionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/stt", tags=["stt"])

TRANSCRIPTION_FAILED = "Failed to transcribe audio, please type instead."


class Transcript(BaseModel):
    text: str


class RecordingStatus(BaseModel):
    recording: bool


def get_transcriber(request: Request) -> TranscriptionService:
    service = getattr(request.app.state, "transcription_service", None)
    if service is None:  # pragma: no cover - defensive
        raise RuntimeError("Transcription service is not configured")
    return service


def get_recorder(request: Request) -> AudioRecorder:
    recorder = getattr(request.app.state, "audio_recorder", None)
    if recorder is None:  # pragma: no cover - defensive
        raise RuntimeError("Audio recorder is not configured")
    return recorder


async def _transcribe(service: TranscriptionService, audio: bytes, filename: str) -> Transcript:
    try:
        text = await service.transcribe(audio, filename)
    except TranscriptionError as exc:
        logger.error(f"Transcription failed: {exc}")
        raise HTTPException(status_code=502, detail=TRANSCRIPTION_FAILED) from exc
    return Transcript(text=text)


@router.post("/transcribe", response_model=Transcript)
async def transcribe_upload(
    file: UploadFile = File(...),
    service: TranscriptionService = Depends(get_transcriber),
) -> Transcript:
    audio = await file.read()
    logger.info(f"Transcription upload received: {file.filename} ({len(audio)} bytes)")
    return await _transcribe(service, audio, file.filename or "audio.wav")


@router.post("/record/start", response_model=RecordingStatus)
async def start_recording(recorder: AudioRecorder = Depends(get_recorder)) -> RecordingStatus:
    try:
        recorder.start()
    except MicrophoneAccessError as exc:
        raise HTTPException(status_code=403, detail="Microphone access denied") from exc
    except RecordingError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return RecordingStatus(recording=True)


@router.post("/record/stop", response_model=Transcript)
async def stop_recording(
    recorder: AudioRecorder = Depends(get_recorder),
    service: TranscriptionService = Depends(get_transcriber),
) -> Transcript:
    try:
        audio = recorder.stop()
    except RecordingError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return await _transcribe(service, audio, "recording.wav")


@router.post("/record/cancel", response_model=RecordingStatus)
async def cancel_recording(recorder: AudioRecorder = Depends(get_recorder)) -> RecordingStatus:
    recorder.cancel()
    return RecordingStatus(recording=False)
