"""API routes for narration playback control and events."""

from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect, status

from ..errors import AbortedError, AlreadyPlayingError, EmptyInputError, PlaybackError
from ..schemas.narration import NarrationRequest, PlaybackSnapshot
from ..services.narration.engine import PlaybackEngine
from ..services.narration.models import NarrationScript, SpeechOptions
from ..services.voice_session import NarrationConnectionManager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/narration", tags=["narration"])


def get_playback_engine(request: Request) -> PlaybackEngine:
    engine = getattr(request.app.state, "playback_engine", None)
    if engine is None:  # pragma: no cover - defensive
        raise RuntimeError("Playback engine is not configured")
    return engine


def get_connection_manager(request: Request) -> NarrationConnectionManager:
    manager = getattr(request.app.state, "narration_manager", None)
    if manager is None:  # pragma: no cover - defensive
        raise RuntimeError("Narration connection manager is not configured")
    return manager


def get_default_options(request: Request) -> SpeechOptions:
    return getattr(request.app.state, "speech_options", None) or SpeechOptions()


def _watch(task: asyncio.Task, manager: NarrationConnectionManager) -> None:
    """Surface the narration outcome once its task finishes."""

    def _done(finished: asyncio.Task) -> None:
        if finished.cancelled():
            return
        exc = finished.exception()
        if exc is None:
            return
        if isinstance(exc, AbortedError):
            logger.debug(f"Narration ended early: {exc}")
        elif isinstance(exc, PlaybackError):
            logger.error(f"Narration playback failed: {exc}")
            manager.publish_error()
        else:  # pragma: no cover - the engine wraps everything else
            logger.error(f"Unexpected narration failure: {exc}", exc_info=exc)
            manager.publish_error()

    task.add_done_callback(_done)


@router.get("", response_model=PlaybackSnapshot)
async def read_playback(engine: PlaybackEngine = Depends(get_playback_engine)) -> PlaybackSnapshot:
    return engine.snapshot()


@router.post("/play", response_model=PlaybackSnapshot, status_code=status.HTTP_202_ACCEPTED)
async def play(
    payload: NarrationRequest,
    engine: PlaybackEngine = Depends(get_playback_engine),
    manager: NarrationConnectionManager = Depends(get_connection_manager),
    defaults: SpeechOptions = Depends(get_default_options),
) -> PlaybackSnapshot:
    """Start narrating a script; returns immediately while audio plays."""
    options = SpeechOptions(
        voice=payload.voice or defaults.voice,
        speed=payload.speed if payload.speed is not None else defaults.speed,
        volume=payload.volume if payload.volume is not None else defaults.volume,
        rate=defaults.rate,
        pitch=defaults.pitch,
    )
    script = NarrationScript(text=payload.text, title=payload.title)
    try:
        task = engine.begin(script, options)
    except AlreadyPlayingError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except EmptyInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    _watch(task, manager)
    return engine.snapshot()


@router.post("/pause", response_model=PlaybackSnapshot)
async def pause(engine: PlaybackEngine = Depends(get_playback_engine)) -> PlaybackSnapshot:
    engine.pause()
    return engine.snapshot()


@router.post("/resume", response_model=PlaybackSnapshot)
async def resume(engine: PlaybackEngine = Depends(get_playback_engine)) -> PlaybackSnapshot:
    engine.resume()
    return engine.snapshot()


@router.post("/stop", response_model=PlaybackSnapshot)
async def stop(engine: PlaybackEngine = Depends(get_playback_engine)) -> PlaybackSnapshot:
    engine.stop()
    return engine.snapshot()


@router.post("/restart", response_model=PlaybackSnapshot)
async def restart(
    engine: PlaybackEngine = Depends(get_playback_engine),
    manager: NarrationConnectionManager = Depends(get_connection_manager),
) -> PlaybackSnapshot:
    try:
        task = engine.begin_restart()
    except EmptyInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    _watch(task, manager)
    return engine.snapshot()


@router.websocket("/ws")
async def narration_events(websocket: WebSocket):
    """Stream ordered playback events to the client."""
    manager = getattr(websocket.app.state, "narration_manager", None)
    if manager is None:
        logger.error("Narration manager not initialized")
        await websocket.close(code=1000, reason="Server not ready")
        return

    client_id = websocket.query_params.get("client_id") or uuid.uuid4().hex[:8]
    await manager.connect(websocket, client_id)
    engine = getattr(websocket.app.state, "playback_engine", None)
    if engine is not None:
        await manager.send_message(client_id, {"type": "snapshot", **engine.snapshot().model_dump(mode="json")})
    try:
        while True:
            # Listeners only receive; incoming messages are ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(client_id)
