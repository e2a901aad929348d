"""Unit tests for the pydantic models: extraction results, phases and graph nodes."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from src.models.document import DocumentRecord, DocumentStatus
from src.models.extraction import (
    ExtractionDegraded,
    ExtractionFailed,
    ExtractionResult,
    ExtractionSuccess,
    build_result,
)
from src.models.graph import AggregatedEntity, EntityType, GraphNode
from src.models.pipeline import ProcessingPhase, ProgressEvent


class TestExtractionResult:
    def test_build_result_success(self) -> None:
        result = build_result("A perfectly ordinary sentence.", {"method": "text"})
        assert isinstance(result, ExtractionSuccess)
        assert result.success is True
        assert result.warning is None

    def test_build_result_short_text_degraded(self) -> None:
        result = build_result("Hi.", {})
        assert isinstance(result, ExtractionDegraded)
        assert result.success is True
        assert "shorter than 10" in result.warning

    def test_build_result_with_warning(self) -> None:
        result = build_result("Enough text to pass validation.", {}, warning="scraped from buffer")
        assert isinstance(result, ExtractionDegraded)
        assert result.warning == "scraped from buffer"

    def test_success_requires_text(self) -> None:
        with pytest.raises(ValidationError):
            ExtractionSuccess(text="short")

    def test_failed_has_empty_text(self) -> None:
        failed = ExtractionFailed(error="no text layer")
        assert failed.success is False
        assert failed.text == ""
        assert failed.error_type == "ExtractionError"

    def test_discriminated_union(self) -> None:
        adapter = TypeAdapter(ExtractionResult)
        parsed = adapter.validate_python({"kind": "degraded", "text": "abc", "warning": "w"})
        assert isinstance(parsed, ExtractionDegraded)

        dumped = adapter.dump_python(ExtractionFailed(error="boom"))
        assert dumped["kind"] == "failed"


class TestPipelineModels:
    def test_phase_steps_follow_order(self) -> None:
        assert [p.step for p in ProcessingPhase] == list(range(1, 9))
        assert ProcessingPhase.UPLOAD.step == 1
        assert ProcessingPhase.FINALIZE.step == 8

    def test_progress_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ProgressEvent(
                document_id="d1", step=1, phase=ProcessingPhase.UPLOAD, progress=120, message="x",
            )


class TestDocumentAndGraphModels:
    def test_document_defaults(self) -> None:
        document = DocumentRecord(user_id="u1", filename="a.txt")
        assert document.status == DocumentStatus.PROCESSING
        assert document.id
        assert document.created_at.tzinfo is not None

    def test_node_relevance_from_metadata(self) -> None:
        node = GraphNode(document_id="d1", name="X", type=EntityType.TOPIC, metadata={"relevance": 7})
        assert node.relevance == 7.0
        assert GraphNode(document_id="d1", name="Y", type=EntityType.TOPIC).relevance == 0.0

    def test_aggregated_entity_key(self) -> None:
        entity = AggregatedEntity(name="Marie Curie", type=EntityType.PERSON, relevance=9)
        assert entity.key == "marie curie_person"
