"""Integration tests for the FastAPI endpoints using TestClient.

The app runs with real extraction, chunking, SQLite persistence, graph
building and progress tracking.  Only the LLM, embeddings, vector index
and object storage are mocked.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.config.settings import Settings
from src.interfaces.vector_store_provider import VectorMatch
from src.main import create_app
from src.pipeline.progress_tracker import ProgressTracker
from src.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from src.services.entity_extractor import EntityExtractor
from src.services.graph_builder import EntityGraphBuilder
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.document_processor import DocumentProcessor
from src.services.search_service import DocumentSearchService

_ENTITIES = [
    {"name": "Marie Curie", "type": "person", "relevance": 9},
    {"name": "radioactivity", "type": "concept", "relevance": 8},
    {"name": "Paris", "type": "location", "relevance": 6},
]


def _llm_router(user_prompt: str = "", **_kwargs) -> str:
    if user_prompt.startswith("Given these entities"):
        return "[]"
    return json.dumps(_ENTITIES)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def components(
    tmp_path: Path,
    file_parser,
    mock_llm_provider,
    mock_embedding_provider,
    mock_vector_store,
    mock_object_storage,
) -> dict:
    mock_llm_provider.complete.side_effect = _llm_router
    document_store = SQLiteDocumentStore(db_path=tmp_path / "documents.db")
    tracker = ProgressTracker()
    graph_builder = EntityGraphBuilder(
        entity_extractor=EntityExtractor(mock_llm_provider),
        llm_provider=mock_llm_provider,
        document_store=document_store,
        batch_delay=0,
    )
    processor = DocumentProcessor(
        file_parser=file_parser,
        chunker=TextChunker(chunk_size=120, overlap=20),
        embedding_provider=mock_embedding_provider,
        vector_store=mock_vector_store,
        document_store=document_store,
        object_storage=mock_object_storage,
        graph_builder=graph_builder,
        progress_sink=tracker,
        embedding_batch_delay=0,
    )
    return {
        "file_parser": file_parser,
        "vector_store": mock_vector_store,
        "document_store": document_store,
        "graph_builder": graph_builder,
        "progress_tracker": tracker,
        "document_processor": processor,
        "search_service": DocumentSearchService(
            embedding_provider=mock_embedding_provider,
            vector_store=mock_vector_store,
            document_store=document_store,
        ),
    }


@pytest.fixture
def client(tmp_path: Path, components: dict):
    settings = Settings(_env_file=None, app_env="test", log_level="WARNING")
    with TestClient(create_app(settings, components=components)) as test_client:
        yield test_client


def _upload(client: TestClient, content: bytes, filename: str = "notes.txt", wait: bool = True):
    return client.post(
        "/api/v1/documents/upload",
        params={"wait": str(wait).lower()},
        data={"user_id": "u1"},
        files={"file": (filename, content, "text/plain")},
    )


# ---------------------------------------------------------------------------
# Upload and status
# ---------------------------------------------------------------------------


class TestUpload:
    def test_upload_and_wait(self, client: TestClient, sample_text: str) -> None:
        response = _upload(client, sample_text.encode())

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["file_info"]["extension"] == ".txt"
        assert body["result"]["num_chunks"] > 0
        assert body["result"]["num_nodes"] == 3

        status = client.get(f"/api/v1/documents/{body['document_id']}/status").json()
        assert status["document"]["status"] == "completed"
        assert status["progress"]["done"] is True
        assert status["progress"]["event"] == "document-completed"

    def test_background_upload(self, client: TestClient, sample_text: str) -> None:
        response = _upload(client, sample_text.encode(), wait=False)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "processing"
        assert body["result"] is None

        # TestClient runs background tasks before returning.
        status = client.get(f"/api/v1/documents/{body['document_id']}/status").json()
        assert status["document"]["status"] == "completed"

        listed = client.get("/api/v1/documents", params={"user_id": "u1"}).json()
        assert listed["total"] == 1
        assert listed["documents"][0]["id"] == body["document_id"]

    def test_unsupported_type_rejected(self, client: TestClient) -> None:
        response = _upload(client, b"MZ\x90\x00", filename="setup.exe")

        assert response.status_code == 400
        assert response.json()["error"] == "ExtractionValidationError"
        listed = client.get("/api/v1/documents", params={"user_id": "u1"}).json()
        assert listed["total"] == 0

    def test_empty_upload_rejected(self, client: TestClient) -> None:
        response = _upload(client, b"")
        assert response.status_code == 400

    def test_failed_run_reported(self, client: TestClient) -> None:
        response = _upload(client, b"Hi")

        assert response.status_code == 500
        assert response.json()["detail"] == "Extracted text is too short or empty"

        documents = client.get("/api/v1/documents", params={"user_id": "u1"}).json()["documents"]
        assert documents[0]["status"] == "failed"

    def test_missing_user_id(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/documents/upload",
            files={"file": ("notes.txt", b"some text here", "text/plain")},
        )
        assert response.status_code == 422

    def test_unknown_document_status(self, client: TestClient) -> None:
        response = client.get("/api/v1/documents/nope/status")
        assert response.status_code == 404
        assert response.json()["error"] == "DocumentNotFoundError"


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


class TestDelete:
    def test_delete_checks_owner(self, client: TestClient, sample_text: str) -> None:
        document_id = _upload(client, sample_text.encode()).json()["document_id"]

        denied = client.delete(f"/api/v1/documents/{document_id}", params={"user_id": "u2"})
        assert denied.status_code == 404

        deleted = client.delete(f"/api/v1/documents/{document_id}", params={"user_id": "u1"})
        assert deleted.status_code == 200
        assert deleted.json() == {"success": True, "document_id": document_id}

        assert client.get(f"/api/v1/documents/{document_id}/status").status_code == 404
        graph = client.get(f"/api/v1/documents/{document_id}/graph").json()
        assert graph["nodes"] == []


# ---------------------------------------------------------------------------
# Graphs and chunks
# ---------------------------------------------------------------------------


class TestGraphs:
    def test_document_and_user_graph(self, client: TestClient, sample_text: str) -> None:
        first = _upload(client, sample_text.encode(), filename="a.txt").json()["document_id"]
        _upload(client, sample_text.encode(), filename="b.txt")

        graph = client.get(f"/api/v1/documents/{first}/graph").json()
        assert {n["name"] for n in graph["nodes"]} == {"Marie Curie", "radioactivity", "Paris"}
        assert all(n["document_id"] == first for n in graph["nodes"])

        merged = client.get("/api/v1/users/u1/graph").json()
        assert merged["total_documents"] == 2
        assert merged["processed_documents"] == 2
        assert len(merged["nodes"]) == 3
        node_ids = {n["id"] for n in merged["nodes"]}
        assert all(e["source"] in node_ids and e["target"] in node_ids for e in merged["edges"])

    def test_related_concepts(self, client: TestClient, sample_text: str) -> None:
        _upload(client, sample_text.encode())

        related = client.get("/api/v1/users/u1/related", params={"query": "Marie Curie"}).json()
        assert "Marie Curie" in {n["name"] for n in related["concepts"]}

    def test_chunk_lookup(self, client: TestClient, components: dict, sample_text: str) -> None:
        _upload(client, sample_text.encode())
        vector_id = components["vector_store"].upsert.await_args_list[0].args[0]

        response = client.get(f"/api/v1/chunks/{vector_id}")
        assert response.status_code == 200
        assert response.json()["chunk"]["chunk_index"] == 0

        assert client.get("/api/v1/chunks/vec_missing").status_code == 404


# ---------------------------------------------------------------------------
# Health and WebSocket
# ---------------------------------------------------------------------------


class TestSearch:
    def test_search_returns_uploaded_chunks(
        self, client: TestClient, components: dict, sample_text: str,
    ) -> None:
        document_id = _upload(client, sample_text.encode()).json()["document_id"]
        upserts = components["vector_store"].upsert.await_args_list
        first, second = upserts[0].args[0], upserts[1].args[0]
        components["vector_store"].query.return_value = [
            VectorMatch(id=second, score=0.9),
            VectorMatch(id=first, score=0.7),
        ]

        response = client.post(
            "/api/v1/search", json={"query": "radioactivity", "user_id": "u1", "top_k": 5},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total_hits"] == 2
        group = body["documents"][0]
        assert group["document_id"] == document_id
        assert group["filename"] == "notes.txt"
        assert [hit["chunk"]["chunk_index"] for hit in group["chunks"]] == [1, 0]
        assert components["vector_store"].query.await_args.kwargs == {
            "top_k": 5,
            "filters": {"user_id": "u1"},
        }

    def test_empty_query_rejected(self, client: TestClient) -> None:
        response = client.post("/api/v1/search", json={"query": "", "user_id": "u1"})
        assert response.status_code == 422


def test_health(client: TestClient) -> None:
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"]["extraction"]["services"]["pdf"]["ocr"] is False


def test_document_websocket_sends_snapshot(
    client: TestClient, components: dict, sample_text: str,
) -> None:
    document_id = _upload(client, sample_text.encode()).json()["document_id"]

    with client.websocket_connect(f"/ws/documents/{document_id}") as websocket:
        message = websocket.receive_json()
        assert message["event"] == "status"
        assert message["room"] == f"document-{document_id}"
        assert message["data"]["document_id"] == document_id
        assert message["data"]["done"] is True
        assert components["progress_tracker"].listener_count(f"document-{document_id}") == 1
