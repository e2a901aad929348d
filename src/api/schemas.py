"""Pydantic request/response schemas for the MemoryGraph API.

Graph payloads reuse the domain models (:class:`GraphResult`,
:class:`UserGraph`, :class:`RelatedConcepts`) directly; the schemas here
cover the upload, status, deletion, search, health and error bodies.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.models.document import ChunkRecord, DocumentRecord
from src.models.pipeline import ProcessingResult


class DocumentUploadResponse(BaseModel):
    """Returned after an upload is accepted."""

    document_id: str
    filename: str
    status: str
    file_info: dict[str, Any] = Field(default_factory=dict)
    result: ProcessingResult | None = Field(
        default=None,
        description="Present only when the upload was processed synchronously (wait=true)",
    )


class DocumentListResponse(BaseModel):
    """All documents owned by one user."""

    user_id: str
    documents: list[DocumentRecord]
    total: int


class DocumentStatusResponse(BaseModel):
    """Stored record plus the latest live progress snapshot."""

    document: DocumentRecord
    progress: dict[str, Any]


class DeleteDocumentResponse(BaseModel):
    success: bool
    document_id: str


class ChunkResponse(BaseModel):
    chunk: ChunkRecord


class SearchRequest(BaseModel):
    """Semantic search over one user's indexed chunks."""

    query: str = Field(min_length=1, max_length=2000)
    user_id: str = Field(min_length=1)
    top_k: int | None = Field(default=None, ge=1, le=50)
    document_id: str | None = None
    min_score: float = Field(default=0.0, ge=0.0, le=1.0)


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    services: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
