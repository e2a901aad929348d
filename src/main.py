"""MemoryGraph FastAPI application entry point.

Wires together all providers and services via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml``, configures
structured logging, and exposes the ingestion API plus the progress
WebSocket.

``build_components`` is also used by the CLI (``src/cli/ingest.py``) so
both entry points share one composition root.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.api.websocket import websocket_progress
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.ocr_provider import IOCRProvider
from src.models.pipeline import document_room, user_room
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.ocr.tesseract_provider import TesseractOCRProvider
from src.providers.storage.local_storage_provider import LocalStorageProvider
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.entity_extractor import EntityExtractor
from src.services.extraction.file_parser import FileParser
from src.services.extraction.pdf_extractor import PDFExtractor
from src.services.extraction.text_extractor import TextExtractor
from src.services.graph_builder import EntityGraphBuilder
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.document_processor import DocumentProcessor
from src.services.search_service import DocumentSearchService
from src.utils.logging import configure_logging, get_logger
from src.utils.text_cleaner import TextCleaner

_APP_VERSION = "0.1.0"

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_ocr_provider(app_settings: Settings) -> IOCRProvider | None:
    """Return Tesseract when its binary is reachable, else ``None``.

    Without an OCR provider the PDF chain skips straight from direct text
    extraction to the buffer scrape.
    """
    provider = TesseractOCRProvider(
        language=app_settings.tesseract_lang,
        tesseract_cmd=app_settings.tesseract_cmd,
    )
    if provider.is_available():
        return provider
    _logger.warning("ocr_provider_unavailable", provider=provider.get_provider_name())
    return None


def build_file_parser(app_settings: Settings, config: dict[str, Any]) -> FileParser:
    """Assemble the extraction chain (cleaner, PDF and text extractors)."""
    extraction_cfg = config.get("extraction", {})
    pdf_cfg = {**extraction_cfg.get("pdf", {}), "dpi": config.get("ocr", {}).get("dpi", 150)}

    cleaner = TextCleaner()
    pdf_extractor = PDFExtractor(
        cleaner,
        ocr_provider=_build_ocr_provider(app_settings),
        settings=pdf_cfg,
    )
    return FileParser(
        cleaner,
        pdf_extractor,
        TextExtractor(cleaner),
        max_file_size=extraction_cfg.get("max_file_size", app_settings.max_file_size),
        supported_extensions=extraction_cfg.get("supported_extensions", [".pdf", ".txt", ".md", ".json"]),
        fallback_text_extensions=extraction_cfg.get(
            "fallback_text_extensions", [".csv", ".xml", ".html", ".htm", ".rtf"],
        ),
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components; the web app stores them on
    ``app.state`` and the CLI uses them directly.
    """
    app_settings = app_settings or Settings()
    config = config if config is not None else load_config(settings=app_settings)

    extraction_cfg = config.get("extraction", {})
    chunking_cfg = config.get("chunking", {})
    embedding_cfg = config.get("embedding", {})
    graph_cfg = config.get("graph", {})
    storage_cfg = config.get("storage", {})
    vector_index_cfg = config.get("vector_index", {})

    # -- Extraction --
    file_parser = build_file_parser(app_settings, config)
    chunker = TextChunker(
        chunk_size=chunking_cfg.get("chunk_size", app_settings.chunk_size),
        overlap=chunking_cfg.get("overlap", app_settings.chunk_overlap),
        max_text_length=chunking_cfg.get("max_text_length", 1_000_000),
        max_chunks=chunking_cfg.get("max_chunks", 1000),
        min_chunk_chars=chunking_cfg.get("min_chunk_chars", 10),
    )

    # -- LLM, embeddings, vector index --
    llm_provider = OpenAILLMProvider(settings=app_settings)
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    vector_store = ChromaDBProvider(
        dimension=embedding_provider.get_dimension(),
        persist_directory=storage_cfg.get("chromadb_persist_dir", app_settings.chromadb_persist_dir),
        collection_name=storage_cfg.get("chromadb_collection", app_settings.chromadb_collection),
        embedding_dimension=embedding_provider.get_dimension(),
    )
    if not llm_provider.is_available():
        _logger.warning("llm_provider_not_configured", provider=llm_provider.get_provider_name())

    # -- Persistence --
    document_store = SQLiteDocumentStore(
        db_path=storage_cfg.get("document_db_path", app_settings.document_db_path),
    )
    object_storage = LocalStorageProvider(
        root_dir=storage_cfg.get("upload_dir", app_settings.storage_dir),
    )

    # -- Graph --
    entity_extractor = EntityExtractor(llm_provider=llm_provider)
    graph_builder = EntityGraphBuilder(
        entity_extractor=entity_extractor,
        llm_provider=llm_provider,
        document_store=document_store,
        min_entity_relevance=graph_cfg.get("min_entity_relevance", app_settings.min_entity_relevance),
        max_entities=graph_cfg.get("max_entities", app_settings.max_entities),
        min_cooccurrence=graph_cfg.get("min_cooccurrence", app_settings.min_cooccurrence),
        batch_size=graph_cfg.get("batch_size", app_settings.entity_batch_size),
        batch_delay=graph_cfg.get("batch_delay", app_settings.entity_batch_delay),
        semantic_fallback_min_edges=graph_cfg.get("semantic_fallback_min_edges", 5),
        semantic_fallback_top_nodes=graph_cfg.get("semantic_fallback_top_nodes", 10),
    )

    # -- Pipeline --
    progress_tracker = ProgressTracker(
        max_finished=config.get("progress", {}).get("max_finished", 256),
    )
    document_processor = DocumentProcessor(
        file_parser=file_parser,
        chunker=chunker,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        document_store=document_store,
        object_storage=object_storage,
        graph_builder=graph_builder,
        progress_sink=progress_tracker,
        embedding_batch_size=embedding_cfg.get("batch_size", app_settings.embedding_batch_size),
        embedding_batch_delay=embedding_cfg.get("batch_delay", app_settings.embedding_batch_delay),
        min_text_length=extraction_cfg.get("min_text_length", 10),
    )

    # -- Retrieval --
    search_service = DocumentSearchService(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        document_store=document_store,
        default_top_k=vector_index_cfg.get("top_k", 10),
        max_top_k=vector_index_cfg.get("max_top_k", 50),
    )

    return {
        "settings": app_settings,
        "file_parser": file_parser,
        "chunker": chunker,
        "llm_provider": llm_provider,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "document_store": document_store,
        "object_storage": object_storage,
        "graph_builder": graph_builder,
        "progress_tracker": progress_tracker,
        "document_processor": document_processor,
        "search_service": search_service,
    }


async def initialize_components(components: dict[str, Any]) -> None:
    """Run async start-up hooks (e.g. create database tables)."""
    document_store = components.get("document_store")
    if document_store is not None and hasattr(document_store, "initialize"):
        await document_store.initialize()


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    components: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Parameters
    ----------
    app_settings:
        Settings to use; read from the environment when omitted.
    components:
        Pre-built components (tests inject fakes here).  When omitted they
        are built by :func:`build_components` during start-up.
    """
    app_settings = app_settings or Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        resolved = components if components is not None else build_components(app_settings)
        for key, value in resolved.items():
            setattr(application.state, key, value)
        await initialize_components(resolved)

        _logger.info(
            "app_startup",
            version=_APP_VERSION,
            environment=app_settings.app_env,
            components=sorted(resolved),
        )
        yield
        _logger.info("app_shutdown")

    application = FastAPI(
        title="MemoryGraph API",
        version=_APP_VERSION,
        description=(
            "Upload documents, extract and chunk their text, index the chunks "
            "for semantic search and build a per-document entity knowledge graph."
        ),
        lifespan=_lifespan,
    )

    # Last added runs first.
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)

    @application.websocket("/ws/users/{user_id}")
    async def ws_user_progress(websocket: WebSocket, user_id: str) -> None:
        await websocket_progress(websocket, user_room(user_id))

    @application.websocket("/ws/documents/{document_id}")
    async def ws_document_progress(websocket: WebSocket, document_id: str) -> None:
        await websocket_progress(websocket, document_room(document_id))

    return application


if __name__ == "__main__":
    _settings = Settings()
    uvicorn.run(
        "src.main:create_app",
        factory=True,
        host=_settings.app_host,
        port=_settings.app_port,
        reload=(_settings.app_env == "development"),
    )
