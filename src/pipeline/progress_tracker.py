"""Room-based progress broadcasting with callback listeners.

The document processor emits named events (``document-progress``,
``document-completed``, ``document-error``) to rooms such as
``user-<id>`` and ``document-<id>``.  :class:`ProgressTracker` remembers
the latest event per document and forwards each event to the callbacks
registered for that room.

# ─── HOW PROGRESS TRACKING WORKS ──────────────────────────────────────
#
# This implements the Observer pattern:
#
#   DocumentProcessor ──emit()──→ ProgressTracker ──callback()──→ WebSocket handler
#                                                             ──→ (any other listener)
#
#   1. The processor calls tracker.emit(room, event_name, payload)
#   2. ProgressTracker stores the snapshot under payload["document_id"];
#      only the most recent finished documents are retained
#   3. Every listener registered for the room is called
#   4. The WebSocket handler (a listener) pushes JSON to the browser
#
#   - Listener errors are caught and logged; one broken listener can't
#     block the pipeline or the other listeners
#   - Both sync and async callbacks are supported
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from src.interfaces.progress_sink import IProgressSink
from src.models.pipeline import EVENT_COMPLETED, EVENT_ERROR
from src.utils.logging import get_logger


@dataclass
class _DocumentStatus:
    """Latest event seen for one document (internal only)."""

    event: str
    payload: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime = field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class ProgressTracker(IProgressSink):
    """Fire-and-forget progress sink with per-room listeners.

    Listeners are callables accepting ``(room, event_name, payload)``;
    they may be sync or async.

    Parameters
    ----------
    max_finished:
        Completed or failed documents whose last status is kept for
        :meth:`get_status`.  Older finished entries are dropped first;
        documents still in progress are never evicted.
    """

    def __init__(self, max_finished: int = 256) -> None:
        self._statuses: dict[str, _DocumentStatus] = {}
        self._finished: OrderedDict[str, None] = OrderedDict()
        self._max_finished = max(0, max_finished)
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IProgressSink
    # ------------------------------------------------------------------

    async def emit(self, room: str, event_name: str, payload: dict[str, Any]) -> None:
        """Record *payload* and deliver it to every listener of *room*."""
        document_id = payload.get("document_id")
        if document_id:
            self._record(document_id, event_name, payload)

        self._logger.debug(
            "progress_event",
            room=room,
            event_name=event_name,
            document_id=document_id,
            progress=payload.get("progress"),
        )
        await self._notify_listeners(room, event_name, payload)

    # ------------------------------------------------------------------
    # Listener management
    # ------------------------------------------------------------------

    def register_listener(self, room: str, callback: Callable) -> None:
        """Register *callback* for events emitted to *room*."""
        listeners = self._listeners.setdefault(room, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                room=room,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, room: str, callback: Callable) -> None:
        listeners = self._listeners.get(room, [])
        if callback in listeners:
            listeners.remove(callback)
            self._logger.debug(
                "listener_unregistered",
                room=room,
                remaining_listeners=len(listeners),
            )
        if not listeners:
            self._listeners.pop(room, None)

    def listener_count(self, room: str) -> int:
        return len(self._listeners.get(room, []))

    def get_status(self, document_id: str) -> dict[str, Any]:
        """Return the latest known progress of *document_id*.

        Returns
        -------
        dict
            Keys ``event``, ``progress``, ``step``, ``message``, ``done`` and
            ``updated_at``.  Untracked documents report ``event=None`` and
            zero progress.
        """
        status = self._statuses.get(document_id)
        if status is None:
            return {
                "event": None,
                "progress": 0.0,
                "step": 0,
                "message": "",
                "done": False,
                "updated_at": None,
            }

        return {
            "event": status.event,
            "progress": status.payload.get("progress", 0.0),
            "step": status.payload.get("step", 0),
            "message": status.payload.get("message", ""),
            "done": status.event in (EVENT_COMPLETED, EVENT_ERROR),
            "updated_at": status.updated_at.isoformat(),
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _record(self, document_id: str, event_name: str, payload: dict[str, Any]) -> None:
        self._statuses[document_id] = _DocumentStatus(event=event_name, payload=dict(payload))
        self._finished.pop(document_id, None)
        if event_name not in (EVENT_COMPLETED, EVENT_ERROR):
            return

        self._finished[document_id] = None
        while len(self._finished) > self._max_finished:
            evicted, _ = self._finished.popitem(last=False)
            self._statuses.pop(evicted, None)

    async def _notify_listeners(
        self,
        room: str,
        event_name: str,
        payload: dict[str, Any],
    ) -> None:
        """Invoke all listeners of *room*, logging and skipping failures."""
        for callback in list(self._listeners.get(room, [])):
            try:
                result = callback(room, event_name, payload)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    room=room,
                    event_name=event_name,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
