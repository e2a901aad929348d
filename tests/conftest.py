"""Shared pytest fixtures for the MemoryGraph test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.interfaces.ocr_provider import IOCRProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from src.services.extraction.file_parser import FileParser
from src.services.extraction.pdf_extractor import PDFExtractor
from src.services.extraction.text_extractor import TextExtractor
from src.utils.text_cleaner import TextCleaner

EMBEDDING_DIM = 8

# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_text() -> str:
    """A few paragraphs of ordinary prose, long enough to chunk several times."""
    paragraphs = [
        "Marie Curie conducted pioneering research on radioactivity in Paris. "
        "She worked with Pierre Curie at the University of Paris.",
        "Radioactivity became a central topic of twentieth century physics. "
        "The Nobel Prize recognized the discovery of polonium and radium.",
        "Later research at the Radium Institute extended the work on "
        "radioactivity into medicine and chemistry.",
    ]
    return "\n\n".join(paragraphs * 3)


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Return a minimal configuration dictionary for component assembly."""
    return {
        "app": {"name": "memorygraph", "version": "0.1.0"},
        "extraction": {
            "max_file_size": 1024 * 1024,
            "supported_extensions": [".pdf", ".txt", ".md", ".json"],
            "fallback_text_extensions": [".csv"],
            "pdf": {"direct_min_chars": 200},
        },
        "ocr": {"dpi": 100},
        "chunking": {"chunk_size": 200, "overlap": 20},
        "embedding": {"batch_size": 4, "batch_delay": 0},
        "graph": {"batch_size": 2, "batch_delay": 0},
        "storage": {},
    }


# ---------------------------------------------------------------------------
# Mock provider fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider that returns an empty entity list by default.

    Override with ``mock_llm_provider.complete.return_value = "..."`` or
    ``mock_llm_provider.complete.side_effect = [...]`` for specific tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value="[]")
    return mock


@pytest.fixture
def mock_embedding_provider() -> IEmbeddingProvider:
    """Mock IEmbeddingProvider returning one fixed-size vector per input text."""
    mock = MagicMock(spec=IEmbeddingProvider)
    mock.get_provider_name.return_value = "mock-embedding"
    mock.get_dimension.return_value = EMBEDDING_DIM
    mock.is_available.return_value = True
    mock.embed = AsyncMock(
        side_effect=lambda texts: [[float(i + 1)] * EMBEDDING_DIM for i in range(len(texts))]
    )
    mock.embed_single = AsyncMock(return_value=[0.5] * EMBEDDING_DIM)
    return mock


@pytest.fixture
def mock_vector_store() -> IVectorStoreProvider:
    """Mock IVectorStoreProvider that accepts every write."""
    mock = MagicMock(spec=IVectorStoreProvider)
    mock.get_provider_name.return_value = "mock-vectors"
    mock.get_dimension.return_value = EMBEDDING_DIM
    mock.upsert = AsyncMock(return_value=None)
    mock.upsert_batch = AsyncMock(side_effect=lambda ids, vectors, metas: len(ids))
    mock.query = AsyncMock(return_value=[])
    mock.delete_by_id = AsyncMock(return_value=None)
    mock.delete_by_filter = AsyncMock(return_value=0)
    return mock


@pytest.fixture
def mock_object_storage() -> IObjectStorageProvider:
    """Mock IObjectStorageProvider returning a file:// URL for every put."""
    mock = MagicMock(spec=IObjectStorageProvider)
    mock.get_provider_name.return_value = "mock-storage"
    mock.put = AsyncMock(side_effect=lambda data, path: f"file:///uploads/{path}")
    mock.delete = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def mock_ocr_provider() -> IOCRProvider:
    """Mock IOCRProvider whose recognize() returns a readable page of text."""
    mock = MagicMock(spec=IOCRProvider)
    mock.get_provider_name.return_value = "mock-ocr"
    mock.is_available.return_value = True
    mock.initialize = AsyncMock(return_value=None)
    mock.terminate = AsyncMock(return_value=None)
    mock.recognize = AsyncMock(
        return_value="Scanned page content with plenty of readable words on it. " * 2
    )
    return mock


# ---------------------------------------------------------------------------
# Real components
# ---------------------------------------------------------------------------


@pytest.fixture
def cleaner() -> TextCleaner:
    return TextCleaner()


@pytest.fixture
def mock_pdf_extractor() -> PDFExtractor:
    mock = MagicMock(spec=PDFExtractor)
    mock.extract = AsyncMock()
    mock.health_check.return_value = {
        "pymupdf": True,
        "pypdf": True,
        "ocr": False,
        "buffer_fallback": True,
    }
    return mock


@pytest.fixture
def file_parser(cleaner: TextCleaner, mock_pdf_extractor: PDFExtractor) -> FileParser:
    """FileParser with the real text path and a mocked PDF chain."""
    return FileParser(
        cleaner,
        mock_pdf_extractor,
        TextExtractor(cleaner),
        max_file_size=1024 * 1024,
    )


@pytest_asyncio.fixture
async def document_store(tmp_path: Path) -> SQLiteDocumentStore:
    """Initialized SQLite document store in a temporary directory."""
    store = SQLiteDocumentStore(db_path=tmp_path / "documents.db")
    await store.initialize()
    return store
