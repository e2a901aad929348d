"""Orchestrator for one document's ingestion run.

Pipeline stages: **upload -> record -> extract -> chunk -> embed -> index ->
graph -> finalize**.

The :class:`DocumentProcessor` coordinates the collaborators below without
any of them knowing about each other:

    1. IObjectStorageProvider -- keeps the original upload bytes
    2. IDocumentStoreProvider -- creates / updates the document record
    3. FileParser             -- validates and extracts cleaned text
    4. TextChunker            -- overlapping fixed-size windows
    5. IEmbeddingProvider     -- vectors, in rate-limited batches
    6. IVectorStoreProvider   -- one vector per chunk, then a chunk row
    7. EntityGraphBuilder     -- per-document entity co-occurrence graph
    8. IDocumentStoreProvider -- final status and counts

Input is validated before anything is stored; an invalid upload raises
:class:`~src.utils.errors.ExtractionValidationError` with no side effects.
Each later step reports through the injected :class:`IProgressSink`.  A fatal
error marks the document ``failed``, emits ``document-error`` and is
re-raised as :class:`~src.utils.errors.PipelineError`.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import PurePath
from typing import TYPE_CHECKING, Any

import structlog

from src.models.document import ChunkRecord, DocumentRecord, DocumentStatus
from src.models.pipeline import (
    EVENT_COMPLETED,
    EVENT_ERROR,
    EVENT_PROGRESS,
    BatchProcessingResult,
    ProcessingPhase,
    ProcessingResult,
    ProgressEvent,
    document_room,
    user_room,
)
from src.utils.concurrency import chunked
from src.utils.errors import (
    DocumentNotFoundError,
    ExtractionValidationError,
    MemoryGraphError,
    PipelineError,
    RAGError,
)

if TYPE_CHECKING:
    from src.interfaces.document_store_provider import IDocumentStoreProvider
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.object_storage_provider import IObjectStorageProvider
    from src.interfaces.progress_sink import IProgressSink
    from src.interfaces.vector_store_provider import IVectorStoreProvider
    from src.models.document import Chunk
    from src.services.extraction.file_parser import FileParser
    from src.services.graph_builder import EntityGraphBuilder
    from src.services.ingestion.chunker import TextChunker

logger = structlog.get_logger(logger_name=__name__)

_PREVIEW_CHARS = 100
_SUB_PROGRESS_EVERY = 5


def new_vector_id() -> str:
    """Return a fresh vector-index id of the form ``vec_<ms>_<random>``."""
    return f"vec_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def storage_path(user_id: str, document_id: str, filename: str) -> str:
    """Object-storage key of a document's original upload."""
    return f"{user_id}/{document_id}/{PurePath(filename).name}"


class DocumentProcessor:
    """Runs uploads through the full ingestion pipeline.

    Parameters
    ----------
    file_parser:
        Validation and text extraction facade.
    chunker:
        Splits cleaned text into overlapping windows.
    embedding_provider:
        Produces one vector per chunk.
    vector_store:
        Vector index the chunk vectors are written to.
    document_store:
        Persists documents, chunks and graph records.
    object_storage:
        Keeps the original file bytes.
    graph_builder:
        Builds the per-document entity graph.
    progress_sink:
        Receives ``document-progress`` / ``document-completed`` /
        ``document-error`` events.
    embedding_batch_size:
        Chunks embedded per request.
    embedding_batch_delay:
        Seconds to wait between embedding requests.
    min_text_length:
        Extracted text shorter than this (after stripping) aborts the run.
    """

    def __init__(
        self,
        file_parser: FileParser,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        document_store: IDocumentStoreProvider,
        object_storage: IObjectStorageProvider,
        graph_builder: EntityGraphBuilder,
        progress_sink: IProgressSink,
        embedding_batch_size: int = 10,
        embedding_batch_delay: float = 1.0,
        min_text_length: int = 10,
    ) -> None:
        self._parser = file_parser
        self._chunker = chunker
        self._embeddings = embedding_provider
        self._vectors = vector_store
        self._documents = document_store
        self._storage = object_storage
        self._graph = graph_builder
        self._sink = progress_sink
        self._batch_size = max(1, embedding_batch_size)
        self._batch_delay = embedding_batch_delay
        self._min_text_length = min_text_length

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_document(
        self,
        buffer: bytes,
        filename: str,
        user_id: str,
        document_id: str | None = None,
    ) -> ProcessingResult:
        """Ingest one file end to end.

        Parameters
        ----------
        buffer:
            Raw upload bytes.
        filename:
            Declared filename; selects the extractor.
        user_id:
            Owner of the document; also names the progress room.
        document_id:
            Id of an existing ``processing`` record to fill in.  When
            omitted a new record is created.

        Returns
        -------
        ProcessingResult
            Counts and extraction metadata of the completed run.

        Raises
        ------
        ExtractionValidationError
            If the file is empty, too large or of an unsupported type.
            Raised before anything is stored or recorded.
        PipelineError
            On any other fatal failure.  The document (if one exists by
            then) is marked ``failed`` before this is raised.
        """
        try:
            self._parser.validate(buffer, filename)
        except ExtractionValidationError as exc:
            logger.warning(
                "document_rejected", filename=filename, user_id=user_id, error=exc.message,
            )
            raise

        start = time.monotonic()
        logger.info(
            "document_processing_started",
            filename=filename,
            user_id=user_id,
            document_id=document_id,
        )

        try:
            # Step 1: keep the original bytes before anything can fail.
            await self._emit_progress(
                user_id, document_id, ProcessingPhase.UPLOAD, 10,
                "Uploading file to storage...",
                {"filename": filename, "size": len(buffer)},
            )
            record_id = document_id or str(uuid.uuid4())
            file_url = await self._storage.put(buffer, storage_path(user_id, record_id, filename))

            # Step 2: locate or create the document record.
            if document_id:
                existing = await self._documents.get_document(document_id)
                if existing is None:
                    raise DocumentNotFoundError(f"Document {document_id} not found")
                await self._documents.update_document(
                    document_id, file_url=file_url, file_size=len(buffer),
                )
            else:
                await self._emit_progress(
                    user_id, None, ProcessingPhase.DOCUMENT, 20, "Creating document record...",
                )
                created = await self._documents.create_document(
                    DocumentRecord(
                        id=record_id,
                        user_id=user_id,
                        filename=filename,
                        file_url=file_url,
                        file_size=len(buffer),
                    )
                )
                document_id = created.id

            # Step 3: extract.
            await self._emit_progress(
                user_id, document_id, ProcessingPhase.EXTRACTION, 30,
                "Extracting text from document...",
            )
            extraction = await self._parser.extract(buffer, filename)
            if not extraction.success:
                raise PipelineError(f"File parsing failed: {extraction.error or 'Unknown error'}")
            text = extraction.text
            if len(text.strip()) < self._min_text_length:
                raise PipelineError("Extracted text is too short or empty")
            await self._emit_progress(
                user_id, document_id, ProcessingPhase.EXTRACTION, 35,
                "Text extraction completed", {"text_length": len(text)},
            )

            # Step 4: chunk.
            await self._emit_progress(
                user_id, document_id, ProcessingPhase.CHUNKING, 40,
                "Splitting text into knowledge chunks...",
            )
            chunks = self._chunker.create_chunks(text)
            if not chunks:
                raise PipelineError("No chunks created from text")
            await self._emit_progress(
                user_id, document_id, ProcessingPhase.CHUNKING, 45,
                "Chunks created", {"num_chunks": len(chunks)},
            )

            # Step 5: embed.
            vectors = await self._embed_chunks(chunks, user_id, document_id)

            # Step 6: index vectors and persist chunk rows.
            records = await self._index_chunks(chunks, vectors, user_id, document_id)

            # Step 7: graph.
            await self._emit_progress(
                user_id, document_id, ProcessingPhase.GRAPH, 80, "Building knowledge graph...",
            )
            graph = await self._graph.build_graph_from_chunks(chunks, document_id)
            if graph.error:
                logger.warning("document_graph_degraded", document_id=document_id, error=graph.error)
            await self._emit_progress(
                user_id, document_id, ProcessingPhase.GRAPH, 85, "Knowledge graph built",
                {"nodes": len(graph.nodes), "edges": len(graph.edges)},
            )

            # Step 8: finalize.
            await self._emit_progress(
                user_id, document_id, ProcessingPhase.FINALIZE, 90, "Finalizing document...",
            )
            await self._documents.update_document(
                document_id,
                status=DocumentStatus.COMPLETED,
                num_chunks=len(records),
                num_nodes=len(graph.nodes),
                num_edges=len(graph.edges),
                processed_at=datetime.now(tz=timezone.utc),  # noqa: UP017
                parsing_metadata=extraction.metadata,
            )
            summary = {
                "chunks": len(records),
                "nodes": len(graph.nodes),
                "edges": len(graph.edges),
                "text_length": len(text),
            }
            await self._emit_progress(
                user_id, document_id, ProcessingPhase.FINALIZE, 100,
                "Document processing completed!", {"summary": summary},
            )
            await self._emit(
                user_room(user_id),
                EVENT_COMPLETED,
                {
                    "document_id": document_id,
                    "filename": filename,
                    "success": True,
                    "timestamp": _now_iso(),
                    "result": {
                        "num_chunks": len(records),
                        "num_nodes": len(graph.nodes),
                        "num_edges": len(graph.edges),
                    },
                },
            )
        except Exception as exc:
            message = exc.message if isinstance(exc, MemoryGraphError) else str(exc)
            logger.error(
                "document_processing_failed",
                filename=filename,
                document_id=document_id,
                error=message,
                error_type=type(exc).__name__,
            )
            await self._fail(user_id, document_id, filename, message)
            if isinstance(exc, PipelineError):
                raise
            raise PipelineError(message) from exc

        logger.info(
            "document_processing_complete",
            filename=filename,
            document_id=document_id,
            chunks=len(records),
            nodes=len(graph.nodes),
            edges=len(graph.edges),
            time_s=round(time.monotonic() - start, 2),
        )
        return ProcessingResult(
            success=True,
            filename=filename,
            document_id=document_id,
            num_chunks=len(records),
            num_nodes=len(graph.nodes),
            num_edges=len(graph.edges),
            text_length=len(text),
            extraction_metadata=extraction.metadata,
            warning=extraction.warning,
        )

    async def process_documents(
        self,
        files: list[tuple[bytes, str]],
        user_id: str,
        progress_callback: Callable[[dict[str, Any]], Any] | None = None,
    ) -> BatchProcessingResult:
        """Process several uploads one after another.

        A failed file is recorded in the result and does not stop the batch.
        *progress_callback* (sync or async) receives a dict with
        ``current``, ``total``, ``filename`` and ``status`` before and after
        each file.
        """
        results: list[ProcessingResult] = []
        total = len(files)

        for position, (buffer, filename) in enumerate(files, start=1):
            report = {"current": position, "total": total, "filename": filename}
            await _call(progress_callback, {**report, "status": "processing"})
            try:
                result = await self.process_document(buffer, filename, user_id)
            except (ExtractionValidationError, PipelineError) as exc:
                results.append(ProcessingResult(success=False, filename=filename, error=exc.message))
                await _call(progress_callback, {**report, "status": "failed", "error": exc.message})
                continue
            results.append(result)
            await _call(progress_callback, {**report, "status": "completed"})

        successful = sum(1 for r in results if r.success)
        logger.info("document_batch_complete", total=total, successful=successful)
        return BatchProcessingResult(
            total=total,
            successful=successful,
            failed=total - successful,
            results=results,
        )

    async def get_processing_status(self, document_id: str) -> DocumentRecord:
        """Return the stored record of *document_id*.

        Raises
        ------
        DocumentNotFoundError
            If no such document exists.
        """
        document = await self._documents.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    async def delete_document(self, document_id: str, user_id: str) -> dict[str, Any]:
        """Delete a document with its vectors, stored file, graph and chunks.

        Raises
        ------
        DocumentNotFoundError
            If the document is missing or owned by a different user.
        """
        logger.info("document_delete_started", document_id=document_id, user_id=user_id)

        document = await self._documents.get_document(document_id)
        if document is None or document.user_id != user_id:
            raise DocumentNotFoundError("Document not found or access denied")

        chunks = await self._documents.get_document_chunks(document_id)
        removed_vectors = 0
        for chunk in chunks:
            if chunk.vector_id:
                await self._vectors.delete_by_id(chunk.vector_id)
                removed_vectors += 1

        if document.file_url:
            await self._storage.delete(storage_path(user_id, document_id, document.filename))

        await self._graph.delete_document_graph(document_id)
        await self._documents.delete_document(document_id)

        logger.info(
            "document_deleted",
            document_id=document_id,
            vectors=removed_vectors,
            chunks=len(chunks),
        )
        return {"success": True, "document_id": document_id}

    async def get_chunk_by_vector_id(self, vector_id: str) -> ChunkRecord | None:
        """Resolve a vector-index hit back to its chunk row."""
        return await self._documents.get_chunk_by_vector_id(vector_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _embed_chunks(
        self,
        chunks: list[Chunk],
        user_id: str,
        document_id: str,
    ) -> list[list[float]]:
        total = len(chunks)
        await self._emit_progress(
            user_id, document_id, ProcessingPhase.EMBEDDING, 50,
            "Generating AI embeddings...", {"current": 0, "total": total},
        )

        vectors: list[list[float]] = []
        batches = chunked(chunks, self._batch_size)
        for batch_number, batch in enumerate(batches):
            embedded = await self._embeddings.embed([chunk.content for chunk in batch])
            if len(embedded) != len(batch):
                raise RAGError(
                    f"Embedding provider returned {len(embedded)} vectors for {len(batch)} chunks",
                    provider_name=self._embeddings.get_provider_name(),
                )

            first = len(vectors)
            vectors.extend(embedded)
            for i in range(first, len(vectors)):
                if i % _SUB_PROGRESS_EVERY == 0 or i == total - 1:
                    await self._emit_progress(
                        user_id, document_id, ProcessingPhase.EMBEDDING,
                        min(70.0, 50 + ((i + 1) / total) * 20),
                        "Generating embeddings...",
                        {
                            "current": i + 1,
                            "total": total,
                            "percentage": round((i + 1) / total * 100),
                        },
                    )

            if self._batch_delay > 0 and batch_number < len(batches) - 1:
                await asyncio.sleep(self._batch_delay)

        await self._emit_progress(
            user_id, document_id, ProcessingPhase.EMBEDDING, 70,
            "Embeddings generated successfully", {"total_chunks": total},
        )
        return vectors

    async def _index_chunks(
        self,
        chunks: list[Chunk],
        vectors: list[list[float]],
        user_id: str,
        document_id: str,
    ) -> list[ChunkRecord]:
        await self._emit_progress(
            user_id, document_id, ProcessingPhase.INDEXING, 75, "Indexing chunks...",
            {"total": len(chunks)},
        )

        records: list[ChunkRecord] = []
        for chunk, vector in zip(chunks, vectors):
            vector_id = new_vector_id()
            await self._vectors.upsert(
                vector_id,
                vector,
                {
                    "document_id": document_id,
                    "chunk_index": chunk.index,
                    "content_preview": chunk.content[:_PREVIEW_CHARS],
                    "user_id": user_id,
                },
            )
            record = await self._documents.create_chunk(
                ChunkRecord(
                    document_id=document_id,
                    content=chunk.content,
                    chunk_index=chunk.index,
                    vector_id=vector_id,
                    start_char=chunk.start,
                    end_char=chunk.end,
                )
            )
            records.append(record)

        logger.debug("chunks_indexed", document_id=document_id, count=len(records))
        return records

    async def _fail(
        self,
        user_id: str,
        document_id: str | None,
        filename: str,
        message: str,
    ) -> None:
        await self._emit(
            user_room(user_id),
            EVENT_ERROR,
            {
                "document_id": document_id,
                "filename": filename,
                "error": message,
                "timestamp": _now_iso(),
            },
        )
        if not document_id:
            return
        try:
            await self._documents.update_document(
                document_id, status=DocumentStatus.FAILED, error_message=message,
            )
        except MemoryGraphError as exc:
            logger.error("document_status_update_failed", document_id=document_id, error=str(exc))

    async def _emit_progress(
        self,
        user_id: str,
        document_id: str | None,
        phase: ProcessingPhase,
        progress: float,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        event = ProgressEvent(
            document_id=document_id,
            step=phase.step,
            phase=phase,
            progress=progress,
            message=message,
            details=details or {},
        )
        payload = event.model_dump(mode="json")
        await self._emit(user_room(user_id), EVENT_PROGRESS, payload)
        if document_id:
            await self._emit(document_room(document_id), EVENT_PROGRESS, payload)

    async def _emit(self, room: str, event_name: str, payload: dict[str, Any]) -> None:
        # Progress delivery must never abort a run.
        try:
            await self._sink.emit(room, event_name, payload)
        except Exception as exc:
            logger.warning("progress_emit_failed", room=room, event_name=event_name, error=str(exc))


async def _call(callback: Callable[[dict[str, Any]], Any] | None, report: dict[str, Any]) -> None:
    if callback is None:
        return
    result = callback(report)
    if asyncio.iscoroutine(result):
        await result


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()  # noqa: UP017
