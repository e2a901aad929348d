"""MemoryGraph domain models: re-exports all public model classes.

Submodules by concern:
    - document.py   : uploaded documents, chunks and persisted chunk rows
    - extraction.py : tagged extraction results
    - graph.py      : entities, graph nodes/edges and graph views
    - pipeline.py   : ingestion phases, progress events and run outcomes
    - search.py     : semantic search hits grouped by document
"""

from __future__ import annotations

from src.models.document import Chunk, ChunkRecord, DocumentRecord, DocumentStatus
from src.models.extraction import (
    ExtractionDegraded,
    ExtractionFailed,
    ExtractionQuality,
    ExtractionResult,
    ExtractionSuccess,
)
from src.models.graph import (
    AggregatedEntity,
    EntityType,
    ExtractedEntity,
    GraphEdge,
    GraphNode,
    GraphResult,
    GraphSummary,
    RelatedConcepts,
    UserGraph,
)
from src.models.pipeline import (
    BatchProcessingResult,
    ProcessingPhase,
    ProcessingResult,
    ProgressEvent,
)
from src.models.search import DocumentSearchGroup, SearchHit, SearchResult

__all__ = [
    "AggregatedEntity",
    "BatchProcessingResult",
    "Chunk",
    "ChunkRecord",
    "DocumentRecord",
    "DocumentSearchGroup",
    "DocumentStatus",
    "EntityType",
    "ExtractedEntity",
    "ExtractionDegraded",
    "ExtractionFailed",
    "ExtractionQuality",
    "ExtractionResult",
    "ExtractionSuccess",
    "GraphEdge",
    "GraphNode",
    "GraphResult",
    "GraphSummary",
    "ProcessingPhase",
    "ProcessingResult",
    "ProgressEvent",
    "RelatedConcepts",
    "SearchHit",
    "SearchResult",
    "UserGraph",
]
