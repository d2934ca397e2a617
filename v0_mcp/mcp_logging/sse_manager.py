# v0_mcp/mcp_logging/sse_manager.py
import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..settings import settings

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000


def format_sse_data(payload: Any) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


def format_sse_event(event: str, payload: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, default=str)}\n\n"


class SSEChannelClosed(Exception):
    """Raised when writing to a channel that has been closed."""
    pass


class SSEConnection:
    """
    One push channel. Producers write frames into a bounded queue; the
    streaming response drains it through next_frame() and drain().
    """

    _CLOSE = object()

    def __init__(self, session_id: str, max_queue_size: int = DEFAULT_QUEUE_SIZE):
        self.session_id = session_id
        self.connected_at = datetime.now(timezone.utc)
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, frame: str) -> None:
        if self._closed:
            raise SSEChannelClosed(f"SSE channel for session {self.session_id} is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            raise SSEChannelClosed(f"SSE channel for session {self.session_id} is not being drained")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(self._CLOSE)
        except asyncio.QueueFull:
            # reader is gone; nothing will drain the sentinel
            pass

    async def next_frame(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next queued frame, or None on close or timeout."""
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if item is self._CLOSE:
            # leave the sentinel for any other reader
            self._queue.put_nowait(item)
            return None
        return item

    def drain(self) -> List[str]:
        """Frames already queued, without waiting."""
        frames: List[str] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return frames
            if item is self._CLOSE:
                self._queue.put_nowait(item)
                return frames
            frames.append(item)


class SSEManager:
    """
    At most one live channel per session. Registering a second channel for
    the same session closes the first.
    """

    def __init__(self):
        self._connections: Dict[str, SSEConnection] = {}

    async def add_connection(self, session_id: str, connection: Optional[SSEConnection] = None) -> SSEConnection:
        await self.remove_connection(session_id)
        connection = connection or SSEConnection(session_id)
        self._connections[session_id] = connection
        logger.info(f"SSE connection added for session: {session_id}")
        return connection

    async def remove_connection(self, session_id: str, connection: Optional[SSEConnection] = None) -> None:
        """
        Closes and deregisters the session's channel. When connection is given,
        only that exact channel is removed, so a replaced channel cannot evict
        its successor.
        """
        current = self._connections.get(session_id)
        if current is None or (connection is not None and current is not connection):
            if connection is not None:
                await connection.close()
            return
        try:
            await current.close()
        except Exception as e:
            logger.warning(f"Error closing SSE connection for session {session_id}: {e}")
        self._connections.pop(session_id, None)
        logger.info(f"SSE connection removed for session: {session_id}")

    async def _write(self, session_id: str, frame: str) -> bool:
        connection = self._connections.get(session_id)
        if connection is None:
            return False
        try:
            await connection.write(frame)
            return True
        except SSEChannelClosed as e:
            logger.error(f"Failed to send SSE frame to session {session_id}: {e}")
            await self.remove_connection(session_id, connection)
            return False

    async def send_notification(self, session_id: str, notification: Dict[str, Any]) -> bool:
        return await self._write(session_id, format_sse_data(notification))

    async def send_event(self, session_id: str, event: str, data: Dict[str, Any]) -> bool:
        return await self._write(session_id, format_sse_event(event, data))

    def has_connection(self, session_id: str) -> bool:
        return session_id in self._connections

    def get_stats(self) -> Dict[str, Any]:
        return {
            "totalConnections": len(self._connections),
            "connectionsBySession": {
                sid: conn.connected_at.isoformat() for sid, conn in self._connections.items()
            },
        }

    async def cleanup(self, max_age_seconds: Optional[int] = None) -> int:
        max_age = max_age_seconds if max_age_seconds is not None else settings.sse_stale_connection_seconds
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=max_age)
        stale = [sid for sid, conn in self._connections.items() if conn.connected_at < cutoff]
        for session_id in stale:
            await self.remove_connection(session_id)
        if stale:
            logger.info(f"SSE cleanup removed {len(stale)} stale connection(s).")
        return len(stale)


sse_manager = SSEManager()
