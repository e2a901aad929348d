"""Document and chunk models.

A :class:`DocumentRecord` is the persisted row describing one upload and its
processing outcome.  :class:`Chunk` is the in-memory window produced by the
chunker; :class:`ChunkRecord` is the persisted form that links a chunk to
its vector-index entry.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DocumentStatus(str, Enum):  # noqa: UP042
    """Lifecycle status of an uploaded document.

    A document is created as ``PROCESSING`` and always ends in
    ``COMPLETED`` or ``FAILED``.
    """

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class DocumentRecord(BaseModel):
    """One uploaded document and the summary of its ingestion run."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    user_id: str
    filename: str
    file_url: str | None = None
    file_size: int = Field(default=0, ge=0)
    status: DocumentStatus = DocumentStatus.PROCESSING
    num_chunks: int = 0
    num_nodes: int = 0
    num_edges: int = 0
    error_message: str | None = None
    parsing_metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    processed_at: datetime | None = None


class Chunk(BaseModel):
    """A window of cleaned text.

    ``start`` and ``end`` are character offsets into the cleaned text;
    ``content`` is the trimmed slice, so it can be shorter than
    ``end - start``.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    index: int = Field(ge=0)


class ChunkRecord(BaseModel):
    """A persisted chunk, resolvable from its vector-index id."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    document_id: str
    content: str
    chunk_index: int = Field(ge=0)
    vector_id: str | None = None
    start_char: int = 0
    end_char: int = 0
