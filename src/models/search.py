"""Semantic search results over a user's indexed chunks.

Hits are grouped by source document; documents are ordered by their best
hit and chunks within a document by similarity.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from src.models.document import ChunkRecord


class SearchHit(BaseModel):
    """One indexed chunk matching the query."""

    model_config = ConfigDict(frozen=True)

    vector_id: str
    similarity: float = Field(ge=0.0, le=1.0)
    chunk: ChunkRecord


class DocumentSearchGroup(BaseModel):
    """All hits from one source document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    filename: str
    best_similarity: float = Field(ge=0.0, le=1.0)
    chunks: list[SearchHit] = Field(default_factory=list)


class SearchResult(BaseModel):
    """Outcome of :meth:`DocumentSearchService.search_documents`."""

    model_config = ConfigDict(frozen=True)

    query: str
    user_id: str
    total_hits: int = Field(default=0, ge=0)
    documents: list[DocumentSearchGroup] = Field(default_factory=list)
