"""ChromaDB vector store provider adapter.

Wraps `chromadb.PersistentClient` to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search.  Fully local and Python-native;
no external service required.  Every collection call is blocking, so each
one runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.  ChromaDB's bundled
# PostHog client can clash with the installed posthog version, so all three
# switches are set: the env var, the posthog module flag and the client
# Settings below.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider, VectorMatch
from src.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)

_MetadataValue = str | int | float | bool


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Vectors are always computed by the embedding provider and passed in
    explicitly, so ChromaDB's built-in ONNX model is never needed.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "memorygraph uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Parameters
    ----------
    dimension:
        Fixed vector dimension of the index.
    persist_directory:
        On-disk location of the ChromaDB database.
    collection_name:
        Collection holding the chunk vectors.
    embedding_dimension:
        Dimension produced by the configured embedding provider.  A value
        different from *dimension* is rejected immediately.
    client:
        Pre-built ChromaDB client (e.g. ``chromadb.EphemeralClient()``).

    Raises
    ------
    RAGError
        If the embedding dimension or the dimension of vectors already in
        the collection disagrees with *dimension*.
    """

    def __init__(
        self,
        dimension: int,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "memorygraph_chunks",
        embedding_dimension: int | None = None,
        client: Any = None,
    ) -> None:
        if embedding_dimension is not None and embedding_dimension != dimension:
            raise RAGError(
                message=(
                    f"Embedding dimension mismatch: index is {dimension}-dim but the "
                    f"embedding provider produces {embedding_dimension}-dim vectors"
                ),
                provider_name="chromadb",
            )

        self._dimension = dimension
        self._collection_name = collection_name
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by older ChromaDB versions reject a different
        # embedding function; reopen with the persisted one in that case.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

        self._validate_stored_dimension()

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _validate_stored_dimension(self) -> None:
        """Compare one stored vector against the configured dimension."""
        if self._collection.count() == 0:
            return

        sample = self._collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return

        stored_dim = len(embeddings[0])
        if stored_dim != self._dimension:
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dim,
                expected_dim=self._dimension,
                collection=self._collection_name,
            )
            raise RAGError(
                message=(
                    f"Embedding dimension mismatch: collection '{self._collection_name}' "
                    f"holds {stored_dim}-dim vectors but {self._dimension} is configured"
                ),
                provider_name="chromadb",
            )

        logger.info("embedding_dimension_validated", dimension=stored_dim)

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(
        self,
        vector_id: str,
        vector: list[float],
        metadata: dict[str, Any],
    ) -> None:
        await self.upsert_batch([vector_id], [vector], [metadata])

    async def upsert_batch(
        self,
        vector_ids: list[str],
        vectors: list[list[float]],
        metadatas: list[dict[str, Any]],
    ) -> int:
        if not (len(vector_ids) == len(vectors) == len(metadatas)):
            raise ValueError(
                f"Batch length mismatch: {len(vector_ids)} ids, "
                f"{len(vectors)} vectors, {len(metadatas)} metadatas"
            )
        if not vector_ids:
            return 0

        for vector_id, vector in zip(vector_ids, vectors):
            self._check_dimension(vector, vector_id)

        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=list(vector_ids),
                embeddings=[list(v) for v in vectors],
                metadatas=[self._clean_metadata(m) for m in metadatas],
            )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("vectors_upserted", count=len(vector_ids), collection=self._collection_name)
        return len(vector_ids)

    async def query(
        self,
        vector: list[float],
        top_k: int = 5,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Return the *top_k* nearest vectors as similarity-ranked matches.

        Similarity is ``1 - cosine distance`` clamped to ``[0, 1]``.
        """
        self._check_dimension(vector, "query")
        kwargs: dict[str, Any] = {
            "query_embeddings": [list(vector)],
            "n_results": max(1, top_k),
            "include": ["metadatas", "distances"],
        }
        where = self._translate_filters(filters)
        if where:
            kwargs["where"] = where

        try:
            results = await asyncio.to_thread(self._collection.query, **kwargs)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = results["ids"][0] if results.get("ids") else []
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [0.0] * len(ids)

        matches = [
            VectorMatch(
                id=vector_id,
                score=max(0.0, min(1.0, 1.0 - distance)),
                metadata=dict(meta or {}),
            )
            for vector_id, meta, distance in zip(ids, metadatas, distances)
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    async def delete_by_id(self, vector_id: str) -> None:
        try:
            await asyncio.to_thread(self._collection.delete, ids=[vector_id])
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_by_filter(self, filters: dict[str, Any]) -> int:
        where = self._translate_filters(filters)
        if not where:
            raise ValueError("delete_by_filter requires at least one filter")

        try:
            existing = await asyncio.to_thread(self._collection.get, where=where)
            ids = existing.get("ids") or []
            if ids:
                await asyncio.to_thread(self._collection.delete, ids=ids)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("vectors_deleted", count=len(ids), filters=filters)
        return len(ids)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        try:
            self._client.heartbeat()
        except Exception:
            return False
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_dimension(self, vector: list[float], label: str) -> None:
        if len(vector) != self._dimension:
            raise RAGError(
                message=(
                    f"Vector '{label}' has dimension {len(vector)}, "
                    f"index expects {self._dimension}"
                ),
                provider_name=self.get_provider_name(),
            )

    @staticmethod
    def _clean_metadata(metadata: dict[str, Any]) -> dict[str, _MetadataValue]:
        """Drop ``None`` values and stringify anything ChromaDB cannot store."""
        cleaned: dict[str, _MetadataValue] = {}
        for key, value in metadata.items():
            if value is None:
                continue
            cleaned[key] = value if isinstance(value, (str, int, float, bool)) else str(value)
        return cleaned

    @staticmethod
    def _translate_filters(filters: dict[str, Any] | None) -> dict[str, Any] | None:
        """Turn a flat equality mapping into a ChromaDB ``where`` clause."""
        if not filters:
            return None
        clauses = [{key: value} for key, value in filters.items()]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
