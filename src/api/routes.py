"""FastAPI API routes for MemoryGraph ingestion.

Provides REST endpoints for document upload, status polling, deletion,
graph retrieval, chunk lookup and health checks.  Service dependencies are
resolved from ``app.state`` via FastAPI's ``Depends`` using the
``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                              Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/documents/upload              POST    Upload → ingest (background or wait)
# /api/v1/documents                     GET     List a user's documents
# /api/v1/documents/{id}/status         GET     Stored record + live progress
# /api/v1/documents/{id}                DELETE  Delete document and all artifacts
# /api/v1/documents/{id}/graph          GET     Per-document entity graph
# /api/v1/users/{user_id}/graph         GET     Merged graph across documents
# /api/v1/users/{user_id}/related       GET     Concepts related to a query
# /api/v1/chunks/{vector_id}            GET     Resolve a vector id to its chunk
# /api/v1/search                        POST    Semantic search, grouped by document
# /api/v1/health                        GET     Health check
#
# There is no authentication layer; ``user_id`` is supplied by the caller.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Form, Query, Request, UploadFile

from src.api.schemas import (
    ChunkResponse,
    DeleteDocumentResponse,
    DocumentListResponse,
    DocumentStatusResponse,
    DocumentUploadResponse,
    ErrorResponse,
    HealthResponse,
    SearchRequest,
)
from src.interfaces.document_store_provider import IDocumentStoreProvider
from src.models.document import DocumentRecord
from src.models.graph import GraphResult, RelatedConcepts, UserGraph
from src.models.search import SearchResult
from src.pipeline.progress_tracker import ProgressTracker
from src.services.extraction.file_parser import FileParser
from src.services.graph_builder import EntityGraphBuilder
from src.services.ingestion.document_processor import DocumentProcessor
from src.services.search_service import DocumentSearchService
from src.utils.errors import DocumentNotFoundError, PipelineError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_APP_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependencies (read from app.state, populated in main.py)
# ---------------------------------------------------------------------------


def _get_processor(request: Request) -> DocumentProcessor:
    return request.app.state.document_processor


def _get_file_parser(request: Request) -> FileParser:
    return request.app.state.file_parser


def _get_graph_builder(request: Request) -> EntityGraphBuilder:
    return request.app.state.graph_builder


def _get_document_store(request: Request) -> IDocumentStoreProvider:
    return request.app.state.document_store


def _get_progress_tracker(request: Request) -> ProgressTracker:
    return request.app.state.progress_tracker


def _get_search_service(request: Request) -> DocumentSearchService:
    return request.app.state.search_service


ProcessorDep = Annotated[DocumentProcessor, Depends(_get_processor)]
FileParserDep = Annotated[FileParser, Depends(_get_file_parser)]
GraphBuilderDep = Annotated[EntityGraphBuilder, Depends(_get_graph_builder)]
DocumentStoreDep = Annotated[IDocumentStoreProvider, Depends(_get_document_store)]
TrackerDep = Annotated[ProgressTracker, Depends(_get_progress_tracker)]
SearchServiceDep = Annotated[DocumentSearchService, Depends(_get_search_service)]


async def _run_ingestion(
    processor: DocumentProcessor,
    buffer: bytes,
    filename: str,
    user_id: str,
    document_id: str,
) -> None:
    """Background wrapper: a failed run is already persisted and broadcast."""
    try:
        await processor.process_document(buffer, filename, user_id, document_id=document_id)
    except PipelineError as exc:
        _logger.warning("background_ingestion_failed", document_id=document_id, error=exc.message)


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/documents/upload",
    response_model=DocumentUploadResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Upload a document for ingestion",
)
async def upload_document(
    file: UploadFile,
    background_tasks: BackgroundTasks,
    processor: ProcessorDep,
    file_parser: FileParserDep,
    document_store: DocumentStoreDep,
    user_id: Annotated[str, Form(min_length=1)],
    wait: Annotated[bool, Query()] = False,
) -> DocumentUploadResponse:
    """Validate the upload, then ingest it.

    By default the document record is created immediately and the run
    continues in the background; progress is available over the WebSocket
    and the status endpoint.  With ``wait=true`` the run completes before
    the response is sent.
    """
    buffer = await file.read()
    filename = file.filename or "upload.txt"
    file_parser.validate(buffer, filename)
    file_info = file_parser.get_file_info(buffer, filename)

    if wait:
        result = await processor.process_document(buffer, filename, user_id)
        return DocumentUploadResponse(
            document_id=result.document_id or "",
            filename=filename,
            status="completed",
            file_info=file_info,
            result=result,
        )

    record = await document_store.create_document(
        DocumentRecord(user_id=user_id, filename=filename, file_size=len(buffer))
    )
    background_tasks.add_task(_run_ingestion, processor, buffer, filename, user_id, record.id)
    _logger.info("document_upload_accepted", document_id=record.id, filename=filename)

    return DocumentUploadResponse(
        document_id=record.id,
        filename=filename,
        status=record.status.value,
        file_info=file_info,
    )


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List a user's documents",
)
async def list_documents(
    document_store: DocumentStoreDep,
    user_id: Annotated[str, Query(min_length=1)],
) -> DocumentListResponse:
    documents = await document_store.list_documents(user_id)
    return DocumentListResponse(user_id=user_id, documents=documents, total=len(documents))


@router.get(
    "/documents/{document_id}/status",
    response_model=DocumentStatusResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get the processing status of a document",
)
async def document_status(
    document_id: str,
    processor: ProcessorDep,
    tracker: TrackerDep,
) -> DocumentStatusResponse:
    document = await processor.get_processing_status(document_id)
    return DocumentStatusResponse(document=document, progress=tracker.get_status(document_id))


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteDocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document and all of its artifacts",
)
async def delete_document(
    document_id: str,
    processor: ProcessorDep,
    user_id: Annotated[str, Query(min_length=1)],
) -> DeleteDocumentResponse:
    result = await processor.delete_document(document_id, user_id)
    return DeleteDocumentResponse(**result)


@router.get(
    "/documents/{document_id}/graph",
    response_model=GraphResult,
    summary="Get the entity graph of one document",
)
async def document_graph(document_id: str, graph_builder: GraphBuilderDep) -> GraphResult:
    return await graph_builder.get_document_graph(document_id)


# ---------------------------------------------------------------------------
# User graph endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/users/{user_id}/graph",
    response_model=UserGraph,
    summary="Get the merged entity graph of all of a user's documents",
)
async def user_graph(user_id: str, graph_builder: GraphBuilderDep) -> UserGraph:
    return await graph_builder.get_user_graph(user_id)


@router.get(
    "/users/{user_id}/related",
    response_model=RelatedConcepts,
    summary="Find concepts related to a free-text query",
)
async def related_concepts(
    user_id: str,
    graph_builder: GraphBuilderDep,
    query: Annotated[str, Query(min_length=1, max_length=1000)],
) -> RelatedConcepts:
    return await graph_builder.find_related_concepts(query, user_id)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.post(
    "/search",
    response_model=SearchResult,
    responses={500: {"model": ErrorResponse}},
    summary="Semantic search over a user's documents",
)
async def search_documents(
    body: SearchRequest,
    search_service: SearchServiceDep,
) -> SearchResult:
    """Return the indexed chunks closest to the query, grouped by document."""
    return await search_service.search_documents(
        body.query,
        body.user_id,
        top_k=body.top_k,
        document_id=body.document_id,
        min_score=body.min_score,
    )


# ---------------------------------------------------------------------------
# Chunks & health
# ---------------------------------------------------------------------------


@router.get(
    "/chunks/{vector_id}",
    response_model=ChunkResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Resolve a vector-index id to its chunk",
)
async def get_chunk(vector_id: str, processor: ProcessorDep) -> ChunkResponse:
    chunk = await processor.get_chunk_by_vector_id(vector_id)
    if chunk is None:
        raise DocumentNotFoundError(f"No chunk for vector id {vector_id}")
    return ChunkResponse(chunk=chunk)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health_check(
    file_parser: FileParserDep,
    graph_builder: GraphBuilderDep,
) -> HealthResponse:
    """Report extraction and graph service health."""
    services = {
        "extraction": await file_parser.health_check(),
        "graph": await graph_builder.health_check(),
    }
    healthy = [bool(s.get("healthy")) for s in services.values()]
    if all(healthy):
        status = "healthy"
    elif any(healthy):
        status = "degraded"
    else:
        status = "unhealthy"
    return HealthResponse(status=status, version=_APP_VERSION, services=services)
