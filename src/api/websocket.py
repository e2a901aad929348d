"""WebSocket endpoint for real-time ingestion progress.

Subscribes a client to one progress room (``user-<id>`` or
``document-<id>``) through the :class:`ProgressTracker` listener mechanism
and relays every event as JSON ``{"event": ..., "room": ..., "data": ...}``.

# ─── HOW WEBSOCKET PROGRESS WORKS ─────────────────────────────────────
#
#   Client                              Backend (this file)
#   ──────                              ──────────────────
#   ws = new WebSocket(url)   ──────→   websocket.accept()
#                                        register_listener(room, callback)
#                             ←──────   initial status snapshot (document rooms)
#                                        ...DocumentProcessor runs...
#                             ←──────   document-progress
#                             ←──────   document-completed / document-error
#   ws.close()                ──────→   WebSocketDisconnect
#                                        unregister_listener(room, callback)
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import contextlib
from typing import Any

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from src.pipeline.progress_tracker import ProgressTracker
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_DOCUMENT_ROOM_PREFIX = "document-"


async def websocket_progress(websocket: WebSocket, room: str) -> None:
    """Stream the events of *room* to the client until it disconnects."""
    progress_tracker: ProgressTracker = websocket.app.state.progress_tracker

    await websocket.accept()
    _logger.info("websocket_connected", room=room)

    async def _on_event(event_room: str, event_name: str, payload: dict[str, Any]) -> None:
        # The socket may close between the check and the send; cleanup
        # happens in the finally block below.
        with contextlib.suppress(Exception):
            await websocket.send_json({"event": event_name, "room": event_room, "data": payload})

    progress_tracker.register_listener(room, _on_event)

    try:
        if room.startswith(_DOCUMENT_ROOM_PREFIX):
            document_id = room[len(_DOCUMENT_ROOM_PREFIX):]
            await websocket.send_json(
                {
                    "event": "status",
                    "room": room,
                    "data": {"document_id": document_id, **progress_tracker.get_status(document_id)},
                }
            )

        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        _logger.info("websocket_disconnected", room=room)

    finally:
        progress_tracker.unregister_listener(room, _on_event)
        _logger.debug("websocket_listener_cleaned_up", room=room)
