"""Abstract base class for real-time progress notification.

Events are fire-and-forget: there is no acknowledgment and no retry.  The
persisted document status, not the event stream, is the source of truth
for whether a run completed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementation: ProgressTracker (src/pipeline/progress_tracker.py)
class IProgressSink(ABC):
    """Contract for broadcasting named events to a room of listeners."""

    @abstractmethod
    async def emit(self, room: str, event_name: str, payload: dict[str, Any]) -> None:
        """Deliver *payload* to every listener of *room*.

        Implementations must not raise on listener failure.
        """
