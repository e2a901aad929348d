"""Knowledge-graph models: entities, nodes, edges and the per-document graph.

Entities come back from the LLM per chunk as :class:`ExtractedEntity`, are
merged across chunks into :class:`AggregatedEntity`, and the survivors are
persisted as :class:`GraphNode`.  :class:`GraphEdge` links two nodes of the
same document, either from co-occurrence counting or from the semantic
fallback pass.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EntityType(str, Enum):  # noqa: UP042
    """The five entity categories the extractor is asked for."""

    PERSON = "person"
    ORGANIZATION = "organization"
    CONCEPT = "concept"
    TOPIC = "topic"
    LOCATION = "location"


def _new_id() -> str:
    return str(uuid.uuid4())


class ExtractedEntity(BaseModel):
    """One entity as reported by the LLM for a single chunk."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    type: EntityType
    relevance: float = Field(ge=1.0, le=10.0)


class AggregatedEntity(BaseModel):
    """An entity merged across every chunk of a document.

    Mutable: the graph builder updates ``count``, ``relevance`` and
    ``source_chunks`` in place while folding chunk results together.
    """

    name: str
    type: EntityType
    relevance: float
    count: int = 1
    source_chunks: set[int] = Field(default_factory=set)
    first_seen_chunk: int = 0
    last_seen_chunk: int = 0

    @property
    def key(self) -> str:
        return f"{self.name.lower()}_{self.type.value}"


class GraphNode(BaseModel):
    """A persisted entity scoped to one document, with display hints."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    document_id: str
    name: str
    type: EntityType
    size: float = 10.0
    color: str = "#607D8B"
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def relevance(self) -> float:
        return float(self.metadata.get("relevance", 0.0))


class GraphEdge(BaseModel):
    """A relationship between two nodes of the same document."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    document_id: str
    source: str
    target: str
    relationship: str
    weight: float
    color: str = "#9E9E9E"
    width: float = 1.0
    metadata: dict[str, Any] = Field(default_factory=dict)


class GraphSummary(BaseModel):
    """Counts describing a built graph."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    total_entities: int = 0
    total_nodes: int = 0
    total_edges: int = 0
    density: float = 0.0


class GraphResult(BaseModel):
    """Output of a graph build; ``error`` is set when the build gave up."""

    model_config = ConfigDict(frozen=True)

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    summary: GraphSummary | None = None
    error: str | None = None


class UserGraph(BaseModel):
    """All graphs of one user's documents merged into a single view."""

    model_config = ConfigDict(frozen=True)

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    total_documents: int = 0
    processed_documents: int = 0
    error: str | None = None


class RelatedConcepts(BaseModel):
    """Nodes matching a free-text query and their immediate neighbourhood."""

    model_config = ConfigDict(frozen=True)

    query: str
    query_entities: list[ExtractedEntity] = Field(default_factory=list)
    concepts: list[GraphNode] = Field(default_factory=list)
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    error: str | None = None
