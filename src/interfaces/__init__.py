"""Public interface definitions for all external collaborators.

Every external service the ingestion pipeline touches is reached only
through the abstract base classes in this package.  Concrete adapters live
in ``src/providers/`` (and ``src/pipeline/`` for the progress sink) and are
wired together in ``src/main.py``.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementation
    ─────────────────────────────────────────────────────────────────────
    IOCRProvider               →  TesseractOCRProvider
    ILLMProvider               →  OpenAILLMProvider
    IEmbeddingProvider         →  OpenAIEmbeddingProvider
    IVectorStoreProvider       →  ChromaDBProvider
    IObjectStorageProvider     →  LocalStorageProvider
    IDocumentStoreProvider     →  SQLiteDocumentStore
    IProgressSink              →  ProgressTracker
"""

from __future__ import annotations

from src.interfaces.document_store_provider import IDocumentStoreProvider
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.interfaces.ocr_provider import IOCRProvider
from src.interfaces.progress_sink import IProgressSink
from src.interfaces.vector_store_provider import IVectorStoreProvider, VectorMatch

__all__ = [
    "IDocumentStoreProvider",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IOCRProvider",
    "IObjectStorageProvider",
    "IProgressSink",
    "IVectorStoreProvider",
    "VectorMatch",
]
