"""Abstract base class for vector-index providers.

Stores one pre-computed embedding per chunk under the chunk's ``vector_id``
together with flat metadata (``document_id``, ``chunk_index``,
``content_preview``, ``user_id``).  The index dimension is fixed when the
provider is constructed; a mismatch with the embedding provider is a hard
failure at that point rather than a per-call error.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VectorMatch(BaseModel):
    """One ranked hit from :meth:`IVectorStoreProvider.query`."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-index services.

    **Filter syntax** accepted by :meth:`query` and :meth:`delete_by_filter`
    is a flat equality mapping, e.g. ``{"document_id": "abc"}`` or
    ``{"user_id": "u1", "document_id": "abc"}``.
    """

    @abstractmethod
    async def upsert(
        self,
        vector_id: str,
        vector: list[float],
        metadata: dict[str, Any],
    ) -> None:
        """Insert or replace a single vector.

        Raises
        ------
        src.utils.errors.RAGError
            If the vector has the wrong dimension or the store fails.
        """

    @abstractmethod
    async def upsert_batch(
        self,
        vector_ids: list[str],
        vectors: list[list[float]],
        metadatas: list[dict[str, Any]],
    ) -> int:
        """Insert or replace many vectors; returns the number written.

        Raises
        ------
        ValueError
            If the three lists differ in length.
        """

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        top_k: int = 5,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Return up to *top_k* matches ranked by similarity (descending)."""

    @abstractmethod
    async def delete_by_id(self, vector_id: str) -> None:
        """Remove one vector.  Unknown ids are ignored."""

    @abstractmethod
    async def delete_by_filter(self, filters: dict[str, Any]) -> int:
        """Remove every vector whose metadata matches *filters*."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the fixed vector dimension of the index."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""
