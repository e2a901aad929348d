"""Ingestion run models: processing phases, progress events and outcomes.

The document processor walks every upload through the phases in
:class:`ProcessingPhase` order and reports each one through the injected
progress sink as a :class:`ProgressEvent`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Event names emitted on the progress sink.
EVENT_PROGRESS = "document-progress"
EVENT_COMPLETED = "document-completed"
EVENT_ERROR = "document-error"


def user_room(user_id: str) -> str:
    return f"user-{user_id}"


def document_room(document_id: str) -> str:
    return f"document-{document_id}"


class ProcessingPhase(str, Enum):  # noqa: UP042
    """Phases of one ingestion run, in execution order."""

    UPLOAD = "UPLOAD"
    DOCUMENT = "DOCUMENT"
    EXTRACTION = "EXTRACTION"
    CHUNKING = "CHUNKING"
    EMBEDDING = "EMBEDDING"
    INDEXING = "INDEXING"
    GRAPH = "GRAPH"
    FINALIZE = "FINALIZE"

    @property
    def step(self) -> int:
        return list(ProcessingPhase).index(self) + 1


class ProgressEvent(BaseModel):
    """Payload of a ``document-progress`` event."""

    model_config = ConfigDict(frozen=True)

    document_id: str | None
    step: int = Field(ge=1)
    phase: ProcessingPhase
    progress: float = Field(ge=0.0, le=100.0)
    message: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    details: dict[str, Any] = Field(default_factory=dict)


class ProcessingResult(BaseModel):
    """Outcome of one :meth:`DocumentProcessor.process_document` call."""

    model_config = ConfigDict(frozen=True)

    success: bool
    filename: str
    document_id: str | None = None
    num_chunks: int = 0
    num_nodes: int = 0
    num_edges: int = 0
    text_length: int = 0
    extraction_metadata: dict[str, Any] = Field(default_factory=dict)
    warning: str | None = None
    error: str | None = None


class BatchProcessingResult(BaseModel):
    """Aggregate of processing several uploads in sequence."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    successful: int = 0
    failed: int = 0
    results: list[ProcessingResult] = Field(default_factory=list)
