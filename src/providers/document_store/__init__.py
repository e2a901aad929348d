"""Document store providers.

SQLiteDocumentStore persists document records, chunk rows (with their
vector-index ids) and per-document graph nodes and edges in
data/documents.db.
"""

from src.providers.document_store.sqlite_document_store import SQLiteDocumentStore

__all__ = ["SQLiteDocumentStore"]
