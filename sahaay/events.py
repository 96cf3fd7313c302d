"""
Real-time fan-out of change events to connected dashboards.

Every connected WebSocket receives every event as
``{"event": <name>, "data": <document>}``. There is no topic filtering,
acknowledgement or replay: a client that reconnects re-fetches state over
the REST API.
"""

import asyncio
import json
import logging
from enum import StrEnum
from typing import Any

from fastapi import WebSocket
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Event(StrEnum):
    INCIDENT_CREATED = "incidentCreated"
    INCIDENT_UPDATED = "incidentUpdated"
    RESOURCE_UPDATED = "resourceUpdated"


def _encode(event: str, data: Any) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    return json.dumps({"event": str(event), "data": data})


class EventBroadcaster:
    """Tracks connected sockets and pushes each event to all of them."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
            total = len(self._connections)
        logger.info("Dashboard connected (total: %d)", total)
        await websocket.send_json({"event": "connected"})

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)
            total = len(self._connections)
        logger.info("Dashboard disconnected (total: %d)", total)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def broadcast(self, event: Event, data: Any) -> None:
        """Send one event to every connection; drop connections that fail."""
        async with self._lock:
            connections = list(self._connections)

        if not connections:
            return

        # Serialize once
        message = _encode(event, data)

        # Concurrent sends so one slow dashboard does not hold up the rest
        results = await asyncio.gather(
            *(websocket.send_text(message) for websocket in connections),
            return_exceptions=True,
        )

        failed = []
        for websocket, result in zip(connections, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Failed to send %s to dashboard: %s", event, result
                )
                failed.append(websocket)

        if failed:
            async with self._lock:
                for websocket in failed:
                    self._connections.discard(websocket)


_broadcaster: EventBroadcaster | None = None


def get_broadcaster() -> EventBroadcaster:
    """Get the global broadcaster instance."""
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = EventBroadcaster()
    return _broadcaster
