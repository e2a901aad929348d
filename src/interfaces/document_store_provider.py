"""Abstract base class for the document / chunk / graph record store.

Holds every persisted artifact of an ingestion run.  Chunks, nodes and
edges belong to their document: deleting a document's graph removes its
nodes and edges, and deleting the document removes its chunks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.document import ChunkRecord, DocumentRecord
from src.models.graph import GraphEdge, GraphNode


# Concrete implementation: SQLiteDocumentStore (src/providers/document_store/)
class IDocumentStoreProvider(ABC):
    """Contract for CRUD over documents, chunks, graph nodes and graph edges."""

    # -- documents -------------------------------------------------------

    @abstractmethod
    async def create_document(self, document: DocumentRecord) -> DocumentRecord:
        """Persist a new document record and return it."""

    @abstractmethod
    async def get_document(self, document_id: str) -> DocumentRecord | None:
        """Return the document, or ``None`` if it does not exist."""

    @abstractmethod
    async def update_document(self, document_id: str, **fields: Any) -> DocumentRecord:
        """Update the given columns and return the stored record.

        Raises
        ------
        src.utils.errors.StorageError
            If the document does not exist.
        """

    @abstractmethod
    async def delete_document(self, document_id: str) -> None:
        """Delete the document and its chunks."""

    @abstractmethod
    async def list_documents(self, user_id: str) -> list[DocumentRecord]:
        """Return every document owned by *user_id*, newest first."""

    # -- chunks ----------------------------------------------------------

    @abstractmethod
    async def create_chunk(self, chunk: ChunkRecord) -> ChunkRecord:
        """Persist one chunk."""

    @abstractmethod
    async def create_chunks(self, chunks: list[ChunkRecord]) -> int:
        """Persist many chunks in one transaction; returns the count."""

    @abstractmethod
    async def get_document_chunks(self, document_id: str) -> list[ChunkRecord]:
        """Return a document's chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def get_chunk_by_vector_id(self, vector_id: str) -> ChunkRecord | None:
        """Resolve a vector-index id back to its chunk."""

    # -- graph -----------------------------------------------------------

    @abstractmethod
    async def create_graph_node(self, node: GraphNode) -> GraphNode:
        """Persist one node."""

    @abstractmethod
    async def create_graph_edge(self, edge: GraphEdge) -> GraphEdge:
        """Persist one edge."""

    @abstractmethod
    async def get_document_graph(
        self, document_id: str,
    ) -> tuple[list[GraphNode], list[GraphEdge]]:
        """Return all nodes and edges of a document."""

    @abstractmethod
    async def delete_document_graph(self, document_id: str) -> None:
        """Delete all nodes and edges of a document."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite_documents"``."""
