"""WebSocket fan-out of narration events."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import WebSocket

from uncloud.services.narration.engine import PlaybackObserver
from uncloud.services.narration.models import PlaybackState

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ListenerSession:
    """Tracks a single connected event listener."""

    client_id: str
    websocket: WebSocket
    connected_at: datetime = field(default_factory=_utcnow)
    messages_sent: int = 0


class NarrationConnectionManager:
    """
    Manages WebSocket listeners and delivers narration events in order.

    Engine callbacks are synchronous, so they only ``publish`` into a queue;
    the ``run`` task drains it and broadcasts each event to every listener.
    """

    def __init__(self):
        self.active_connections: Dict[str, ListenerSession] = {}
        self._queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    async def connect(self, websocket: WebSocket, client_id: str):
        """Accept a new WebSocket connection and create a session."""
        await websocket.accept()
        self.active_connections[client_id] = ListenerSession(client_id=client_id, websocket=websocket)
        logger.info(f"Narration listener connected: {client_id}")

    def disconnect(self, client_id: str):
        if self.active_connections.pop(client_id, None) is not None:
            logger.info(f"Narration listener disconnected: {client_id}")

    async def send_message(self, client_id: str, message: dict):
        """Send a JSON message to a specific client."""
        session = self.active_connections.get(client_id)
        if session:
            try:
                await session.websocket.send_json(message)
                session.messages_sent += 1
            except Exception as e:
                logger.warning(f"Error sending to {client_id}: {e}")
                self.disconnect(client_id)

    async def broadcast(self, message: dict):
        """Broadcast a message to all connected clients."""
        clients = list(self.active_connections.keys())
        logger.debug(f"Broadcasting {message.get('type')} to {len(clients)} clients")
        for client_id in clients:
            await self.send_message(client_id, message)

    def publish(self, message: Dict[str, Any]) -> None:
        """Queue an event for broadcast without blocking the caller."""
        self._queue.put_nowait(message)

    async def run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.broadcast(message)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="narration-events")

    async def drain(self) -> None:
        """Wait until every queued event has been broadcast."""
        await self._queue.join()

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def observer(self) -> PlaybackObserver:
        """Build engine callbacks that publish events to listeners."""

        def on_state_change(state: PlaybackState) -> None:
            self.publish({"type": "state", "state": state.value})
            if state is PlaybackState.COMPLETED:
                self.publish({"type": "completed"})

        return PlaybackObserver(
            on_progress=lambda value: self.publish({"type": "progress", "progress": round(value, 1)}),
            on_chunk_start=lambda index, total: self.publish(
                {"type": "chunk_start", "index": index, "total": total}
            ),
            on_segment_change=lambda index: self.publish({"type": "segment_change", "index": index}),
            on_state_change=on_state_change,
        )

    def publish_error(self, message: str = "Failed to play narration") -> None:
        self.publish({"type": "error", "message": message})


__all__ = ["NarrationConnectionManager", "ListenerSession"]
