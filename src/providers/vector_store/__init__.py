"""Vector store provider implementations.

ChromaDB stores one pre-computed embedding per chunk on disk and supports
cosine-similarity search with flat metadata filters.  Data persists at
CHROMADB_PERSIST_DIR (default: ./data/chromadb).

To swap ChromaDB for another vector database, create a new class
implementing IVectorStoreProvider and wire it in main.py.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
