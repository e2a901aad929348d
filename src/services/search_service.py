"""Semantic retrieval over a user's indexed document chunks.

The query is embedded with the same provider that embedded the chunks,
the vector index is searched with a ``user_id`` filter, and every hit is
resolved back to its persisted chunk row through the document store.
Results are grouped per source document.  No answer is generated; callers
get the raw passages with their similarity scores.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from src.models.search import DocumentSearchGroup, SearchHit, SearchResult

if TYPE_CHECKING:
    from src.interfaces.document_store_provider import IDocumentStoreProvider
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

_UNKNOWN_FILENAME = "Unknown"
_LOG_QUERY_CHARS = 50


class DocumentSearchService:
    """Embeds a query and returns matching chunks grouped by document.

    Parameters
    ----------
    embedding_provider:
        Produces the query vector.
    vector_store:
        Index holding one vector per chunk, with ``user_id`` and
        ``document_id`` metadata.
    document_store:
        Resolves vector ids to chunk rows and documents to filenames.
    default_top_k:
        Hits requested from the index when the caller gives no ``top_k``.
    max_top_k:
        Upper bound on ``top_k``.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        document_store: IDocumentStoreProvider,
        default_top_k: int = 10,
        max_top_k: int = 50,
    ) -> None:
        self._embeddings = embedding_provider
        self._vectors = vector_store
        self._documents = document_store
        self._max_top_k = max(1, max_top_k)
        self._default_top_k = min(max(1, default_top_k), self._max_top_k)

    async def search_documents(
        self,
        query: str,
        user_id: str,
        top_k: int | None = None,
        document_id: str | None = None,
        min_score: float = 0.0,
    ) -> SearchResult:
        """Find the chunks of *user_id*'s documents closest to *query*.

        Parameters
        ----------
        query:
            Free-text search query.  Blank queries return no hits without
            calling the embedding provider.
        user_id:
            Only this user's vectors are searched.
        top_k:
            Maximum number of hits, clamped to ``[1, max_top_k]``.
        document_id:
            Restrict the search to one document.
        min_score:
            Hits with a lower similarity are dropped.

        Raises
        ------
        RAGError
            If embedding the query or querying the index fails.
        """
        query = query.strip()
        if not query:
            return SearchResult(query=query, user_id=user_id)

        limit = self._default_top_k if top_k is None else min(max(1, top_k), self._max_top_k)
        filters: dict[str, Any] = {"user_id": user_id}
        if document_id:
            filters["document_id"] = document_id

        logger.info(
            "document_search_started",
            query=query[:_LOG_QUERY_CHARS],
            user_id=user_id,
            top_k=limit,
            document_id=document_id,
        )

        vector = await self._embeddings.embed_single(query)
        matches = await self._vectors.query(vector, top_k=limit, filters=filters)

        grouped: dict[str, list[SearchHit]] = {}
        for match in matches:
            if match.score < min_score:
                continue
            chunk = await self._documents.get_chunk_by_vector_id(match.id)
            if chunk is None:
                logger.warning("search_hit_without_chunk", vector_id=match.id)
                continue
            grouped.setdefault(chunk.document_id, []).append(
                SearchHit(vector_id=match.id, similarity=match.score, chunk=chunk)
            )

        groups: list[DocumentSearchGroup] = []
        for doc_id, hits in grouped.items():
            document = await self._documents.get_document(doc_id)
            if document is not None and document.user_id != user_id:
                logger.warning("search_hit_foreign_document", document_id=doc_id, user_id=user_id)
                continue
            hits.sort(key=lambda hit: hit.similarity, reverse=True)
            groups.append(
                DocumentSearchGroup(
                    document_id=doc_id,
                    filename=document.filename if document is not None else _UNKNOWN_FILENAME,
                    best_similarity=hits[0].similarity,
                    chunks=hits,
                )
            )
        groups.sort(key=lambda group: group.best_similarity, reverse=True)

        total_hits = sum(len(group.chunks) for group in groups)
        logger.info(
            "document_search_complete",
            user_id=user_id,
            matches=len(matches),
            hits=total_hits,
            documents=len(groups),
        )
        return SearchResult(
            query=query,
            user_id=user_id,
            total_hits=total_hits,
            documents=groups,
        )
