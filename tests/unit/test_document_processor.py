"""Unit tests for DocumentProcessor: the eight-step ingestion run.

Extraction, chunking, the document store and the progress tracker are
real; embeddings, the vector index, object storage and the graph builder
are mocked.
"""

from __future__ import annotations

import re
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.document import DocumentRecord, DocumentStatus
from src.models.graph import EntityType, GraphNode, GraphResult, GraphSummary
from src.models.pipeline import EVENT_COMPLETED, EVENT_ERROR, EVENT_PROGRESS, user_room
from src.pipeline.progress_tracker import ProgressTracker
from src.services.graph_builder import EntityGraphBuilder
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.document_processor import (
    DocumentProcessor,
    new_vector_id,
    storage_path,
)
from src.utils.errors import DocumentNotFoundError, ExtractionValidationError, PipelineError

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_graph_builder() -> EntityGraphBuilder:
    node = GraphNode(document_id="doc", name="Marie Curie", type=EntityType.PERSON)
    mock = MagicMock(spec=EntityGraphBuilder)
    mock.build_graph_from_chunks = AsyncMock(
        return_value=GraphResult(nodes=[node], edges=[], summary=GraphSummary(document_id="doc"))
    )
    mock.delete_document_graph = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def tracker() -> ProgressTracker:
    return ProgressTracker()


@pytest.fixture
def events(tracker: ProgressTracker) -> list[tuple[str, dict]]:
    """Every event delivered to user u1's room, in order."""
    received: list[tuple[str, dict]] = []
    tracker.register_listener(
        user_room("u1"), lambda room, name, payload: received.append((name, payload)),
    )
    return received


@pytest.fixture
def processor(
    file_parser,
    mock_embedding_provider,
    mock_vector_store,
    document_store,
    mock_object_storage,
    mock_graph_builder,
    tracker,
) -> DocumentProcessor:
    return DocumentProcessor(
        file_parser=file_parser,
        chunker=TextChunker(chunk_size=100, overlap=10),
        embedding_provider=mock_embedding_provider,
        vector_store=mock_vector_store,
        document_store=document_store,
        object_storage=mock_object_storage,
        graph_builder=mock_graph_builder,
        progress_sink=tracker,
        embedding_batch_size=2,
        embedding_batch_delay=0,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_vector_id_format(self) -> None:
        assert re.fullmatch(r"vec_\d+_[0-9a-f]{9}", new_vector_id())
        assert new_vector_id() != new_vector_id()

    def test_storage_path_uses_basename(self) -> None:
        assert storage_path("u1", "d1", "../../etc/notes.txt") == "u1/d1/notes.txt"


# ---------------------------------------------------------------------------
# Successful runs
# ---------------------------------------------------------------------------


class TestProcessDocument:
    @pytest.mark.asyncio
    async def test_happy_path(
        self,
        processor: DocumentProcessor,
        document_store,
        mock_vector_store,
        mock_embedding_provider,
        mock_object_storage,
        sample_text: str,
        events,
    ) -> None:
        result = await processor.process_document(sample_text.encode(), "notes.txt", "u1")

        assert result.success
        assert result.num_chunks > 1
        assert result.num_nodes == 1
        assert result.extraction_metadata["method"] == "text"

        document = await document_store.get_document(result.document_id)
        assert document.status == DocumentStatus.COMPLETED
        assert document.num_chunks == result.num_chunks
        assert document.processed_at is not None
        assert document.parsing_metadata["filename"] == "notes.txt"

        chunks = await document_store.get_document_chunks(result.document_id)
        assert [c.chunk_index for c in chunks] == list(range(result.num_chunks))
        assert all(c.vector_id and c.vector_id.startswith("vec_") for c in chunks)

        assert mock_vector_store.upsert.await_count == result.num_chunks
        vector_id, vector, metadata = mock_vector_store.upsert.await_args_list[0].args
        assert vector_id == chunks[0].vector_id
        assert metadata["document_id"] == result.document_id
        assert metadata["user_id"] == "u1"
        assert metadata["content_preview"] == chunks[0].content[:100]

        for chunk in chunks:
            resolved = await processor.get_chunk_by_vector_id(chunk.vector_id)
            assert resolved is not None
            assert resolved.id == chunk.id

        expected_batches = -(-result.num_chunks // 2)
        assert mock_embedding_provider.embed.await_count == expected_batches

        mock_object_storage.put.assert_awaited_once()
        assert mock_object_storage.put.await_args.args[1] == (
            f"u1/{result.document_id}/notes.txt"
        )

    @pytest.mark.asyncio
    async def test_chunk_count_matches_chunker_on_cleaned_text(
        self, processor: DocumentProcessor, file_parser, sample_text: str,
    ) -> None:
        extraction = await file_parser.extract(sample_text.encode(), "notes.txt")
        expected = TextChunker(chunk_size=100, overlap=10).create_chunks(extraction.text)

        result = await processor.process_document(sample_text.encode(), "notes.txt", "u1")

        assert result.num_chunks == len(expected)
        assert result.text_length == len(extraction.text)

    @pytest.mark.asyncio
    async def test_progress_events(
        self, processor: DocumentProcessor, sample_text: str, events,
    ) -> None:
        result = await processor.process_document(sample_text.encode(), "notes.txt", "u1")

        progress = [p for name, p in events if name == EVENT_PROGRESS]
        values = [p["progress"] for p in progress]
        assert values == sorted(values)
        assert values[0] == 10
        assert values[-1] == 100
        assert {p["phase"] for p in progress} == {
            "UPLOAD", "DOCUMENT", "EXTRACTION", "CHUNKING", "EMBEDDING", "INDEXING", "GRAPH", "FINALIZE",
        }
        assert [p["step"] for p in progress] == sorted(p["step"] for p in progress)
        assert progress[0]["document_id"] is None

        embedding = [p for p in progress if p["phase"] == "EMBEDDING"]
        assert all(50 <= p["progress"] <= 70 for p in embedding)

        name, payload = events[-1]
        assert name == EVENT_COMPLETED
        assert payload["document_id"] == result.document_id
        assert payload["result"]["num_chunks"] == result.num_chunks

    @pytest.mark.asyncio
    async def test_existing_record_filled_in(
        self, processor: DocumentProcessor, document_store, sample_text: str,
    ) -> None:
        await document_store.create_document(
            DocumentRecord(id="doc-1", user_id="u1", filename="notes.txt")
        )
        result = await processor.process_document(
            sample_text.encode(), "notes.txt", "u1", document_id="doc-1",
        )

        assert result.document_id == "doc-1"
        document = await document_store.get_document("doc-1")
        assert document.file_url == "file:///uploads/u1/doc-1/notes.txt"
        assert document.status == DocumentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_graph_error_does_not_fail_document(
        self, processor: DocumentProcessor, mock_graph_builder, sample_text: str,
    ) -> None:
        mock_graph_builder.build_graph_from_chunks.return_value = GraphResult(error="llm down")
        result = await processor.process_document(sample_text.encode(), "notes.txt", "u1")

        assert result.success
        assert result.num_nodes == 0

    @pytest.mark.asyncio
    async def test_progress_sink_failure_ignored(
        self, processor: DocumentProcessor, sample_text: str,
    ) -> None:
        processor._sink = MagicMock()
        processor._sink.emit = AsyncMock(side_effect=RuntimeError("socket gone"))

        result = await processor.process_document(sample_text.encode(), "notes.txt", "u1")
        assert result.success


# ---------------------------------------------------------------------------
# Failed runs
# ---------------------------------------------------------------------------


class TestProcessDocumentFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("buffer", "filename", "message"),
        [
            (b"MZ\x90\x00", "setup.exe", "Unsupported file type"),
            (b"", "notes.txt", "File buffer is empty"),
        ],
    )
    async def test_invalid_upload_rejected_without_side_effects(
        self,
        processor: DocumentProcessor,
        document_store,
        mock_object_storage,
        events,
        buffer: bytes,
        filename: str,
        message: str,
    ) -> None:
        with pytest.raises(ExtractionValidationError, match=message):
            await processor.process_document(buffer, filename, "u1")

        mock_object_storage.put.assert_not_awaited()
        assert await document_store.list_documents("u1") == []
        assert events == []

    @pytest.mark.asyncio
    async def test_short_text_rejected(self, processor: DocumentProcessor, document_store) -> None:
        with pytest.raises(PipelineError, match="Extracted text is too short or empty"):
            await processor.process_document(b"Hi", "tiny.txt", "u1")

        documents = await document_store.list_documents("u1")
        assert documents[0].error_message == "Extracted text is too short or empty"

    @pytest.mark.asyncio
    async def test_embedding_count_mismatch(
        self, processor: DocumentProcessor, mock_embedding_provider, sample_text: str,
    ) -> None:
        mock_embedding_provider.embed.side_effect = None
        mock_embedding_provider.embed.return_value = []

        with pytest.raises(PipelineError, match="Embedding provider returned 0 vectors"):
            await processor.process_document(sample_text.encode(), "notes.txt", "u1")

    @pytest.mark.asyncio
    async def test_unknown_existing_record(
        self, processor: DocumentProcessor, sample_text: str, events,
    ) -> None:
        with pytest.raises(PipelineError, match="not found"):
            await processor.process_document(
                sample_text.encode(), "notes.txt", "u1", document_id="missing",
            )
        assert events[-1][0] == EVENT_ERROR


# ---------------------------------------------------------------------------
# Batch, status and deletion
# ---------------------------------------------------------------------------


class TestBatchAndLifecycle:
    @pytest.mark.asyncio
    async def test_batch_continues_after_failure(
        self, processor: DocumentProcessor, sample_text: str,
    ) -> None:
        reports: list[dict] = []
        batch = await processor.process_documents(
            [(b"MZ", "bad.exe"), (sample_text.encode(), "good.txt")],
            "u1",
            progress_callback=reports.append,
        )

        assert batch.total == 2
        assert batch.successful == 1
        assert batch.failed == 1
        assert batch.results[0].success is False
        assert [r["status"] for r in reports] == ["processing", "failed", "processing", "completed"]

    @pytest.mark.asyncio
    async def test_status_of_unknown_document(self, processor: DocumentProcessor) -> None:
        with pytest.raises(DocumentNotFoundError):
            await processor.get_processing_status("nope")

    @pytest.mark.asyncio
    async def test_delete_removes_every_artifact(
        self,
        processor: DocumentProcessor,
        document_store,
        mock_vector_store,
        mock_object_storage,
        mock_graph_builder,
        sample_text: str,
    ) -> None:
        result = await processor.process_document(sample_text.encode(), "notes.txt", "u1")
        chunks = await document_store.get_document_chunks(result.document_id)

        outcome = await processor.delete_document(result.document_id, "u1")

        assert outcome == {"success": True, "document_id": result.document_id}
        assert mock_vector_store.delete_by_id.await_count == len(chunks)
        mock_object_storage.delete.assert_awaited_once_with(f"u1/{result.document_id}/notes.txt")
        mock_graph_builder.delete_document_graph.assert_awaited_once_with(result.document_id)
        assert await document_store.get_document(result.document_id) is None
        assert await document_store.get_document_chunks(result.document_id) == []

    @pytest.mark.asyncio
    async def test_delete_by_other_user_denied(
        self, processor: DocumentProcessor, sample_text: str,
    ) -> None:
        result = await processor.process_document(sample_text.encode(), "notes.txt", "u1")
        with pytest.raises(DocumentNotFoundError, match="access denied"):
            await processor.delete_document(result.document_id, "intruder")

    @pytest.mark.asyncio
    async def test_chunk_lookup_by_vector_id(
        self, processor: DocumentProcessor, document_store, sample_text: str,
    ) -> None:
        result = await processor.process_document(sample_text.encode(), "notes.txt", "u1")
        chunks = await document_store.get_document_chunks(result.document_id)

        found = await processor.get_chunk_by_vector_id(chunks[1].vector_id)
        assert found.chunk_index == 1
        assert await processor.get_chunk_by_vector_id("vec_missing") is None
