"""Per-document entity co-occurrence graph.

:class:`EntityGraphBuilder` turns a document's chunks into a small
knowledge graph in four stages:

1. **Entities** -- every chunk is sent to the :class:`EntityExtractor` in
   rate-limited batches.  Entities below ``min_entity_relevance`` are
   dropped; the rest are merged on ``(lowercased name, type)``.  On a
   repeat sighting ``count`` grows and ``relevance`` becomes the mean of
   the stored value and the new one.  The top ``max_entities`` by
   relevance survive.
2. **Nodes** -- each surviving entity is persisted as a
   :class:`~src.models.graph.GraphNode` with size and colour hints.
3. **Co-occurrence edges** -- two nodes whose names both appear in a chunk
   co-occur once for that chunk.  Pairs seen in at least
   ``min_cooccurrence`` chunks become edges labelled by their type pair.
4. **Semantic fallback** -- when fewer than five edges exist, the LLM is
   asked to propose relationships among the top nodes.

Per-chunk, per-node and per-edge failures are logged and skipped.  If the
build as a whole fails, an empty :class:`~src.models.graph.GraphResult`
carrying the error is returned, since a document must not fail ingestion
solely because its graph could not be built.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Sequence

import structlog

from src.interfaces.document_store_provider import IDocumentStoreProvider
from src.interfaces.llm_provider import ILLMProvider
from src.models.document import Chunk
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
from src.services.entity_extractor import EntityExtractor
from src.utils.concurrency import gather_in_batches

logger = structlog.get_logger(logger_name=__name__)

NODE_COLORS: dict[str, str] = {
    "person": "#2196F3",
    "organization": "#4CAF50",
    "concept": "#FF9800",
    "topic": "#9C27B0",
    "location": "#F44336",
}
DEFAULT_NODE_COLOR = "#607D8B"

# Keyed by (type, type); looked up in both orientations.
RELATIONSHIPS: dict[tuple[str, str], str] = {
    ("person", "person"): "collaborates_with",
    ("person", "organization"): "works_at",
    ("organization", "organization"): "partners_with",
    ("concept", "concept"): "related_to",
    ("concept", "topic"): "belongs_to",
    ("topic", "topic"): "connected_to",
    ("location", "organization"): "located_in",
    ("person", "concept"): "researches",
}
DEFAULT_RELATIONSHIP = "associated_with"

EDGE_COLORS: dict[str, str] = {
    "collaborates_with": "#2196F3",
    "works_at": "#4CAF50",
    "partners_with": "#8BC34A",
    "related_to": "#FF9800",
    "belongs_to": "#9C27B0",
    "connected_to": "#E91E63",
    "located_in": "#F44336",
    "researches": "#00BCD4",
    "associated_with": "#795548",
}
DEFAULT_EDGE_COLOR = "#9E9E9E"
SEMANTIC_EDGE_COLOR = "#9C27B0"

_SEMANTIC_SYSTEM_PROMPT = "Return ONLY valid JSON array."
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def node_color(entity_type: EntityType | str) -> str:
    value = entity_type.value if isinstance(entity_type, EntityType) else str(entity_type)
    return NODE_COLORS.get(value.lower(), DEFAULT_NODE_COLOR)


def node_size(relevance: float) -> float:
    return min(10 + relevance * 2, 30)


def determine_relationship(type1: EntityType | str, type2: EntityType | str) -> str:
    """Label an edge from its endpoint types, checking both orientations."""
    a = (type1.value if isinstance(type1, EntityType) else str(type1)).lower()
    b = (type2.value if isinstance(type2, EntityType) else str(type2)).lower()
    return RELATIONSHIPS.get((a, b)) or RELATIONSHIPS.get((b, a)) or DEFAULT_RELATIONSHIP


def edge_color(relationship: str) -> str:
    return EDGE_COLORS.get(relationship, DEFAULT_EDGE_COLOR)


class EntityGraphBuilder:
    """Builds and reads per-document entity graphs.

    Parameters
    ----------
    entity_extractor:
        Per-chunk entity extraction.
    llm_provider:
        LLM used for the semantic relationship fallback.
    document_store:
        Persistence for nodes and edges (and document listing for the
        user-level views).
    min_entity_relevance:
        Entities scored below this are ignored.
    max_entities:
        Number of merged entities kept, by descending relevance.
    min_cooccurrence:
        Chunks two nodes must share before an edge is created.
    batch_size, batch_delay:
        Entity-extraction fan-out and the pause between batches (seconds).
    semantic_fallback_min_edges:
        The semantic pass runs when fewer co-occurrence edges than this
        were created.
    semantic_fallback_top_nodes:
        Number of highest-relevance nodes offered to the semantic pass.
    """

    def __init__(
        self,
        entity_extractor: EntityExtractor,
        llm_provider: ILLMProvider,
        document_store: IDocumentStoreProvider,
        min_entity_relevance: float = 5.0,
        max_entities: int = 50,
        min_cooccurrence: int = 2,
        batch_size: int = 5,
        batch_delay: float = 1.0,
        semantic_fallback_min_edges: int = 5,
        semantic_fallback_top_nodes: int = 10,
    ) -> None:
        self._extractor = entity_extractor
        self._llm = llm_provider
        self._store = document_store
        self._min_entity_relevance = min_entity_relevance
        self._max_entities = max_entities
        self._min_cooccurrence = min_cooccurrence
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._semantic_min_edges = semantic_fallback_min_edges
        self._semantic_top_nodes = semantic_fallback_top_nodes

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    async def build_graph_from_chunks(
        self,
        chunks: Sequence[Chunk],
        document_id: str,
    ) -> GraphResult:
        """Extract entities from *chunks* and persist the resulting graph.

        Never raises; a failed build returns an empty graph with ``error``
        set.
        """
        empty_summary = GraphSummary(document_id=document_id)
        try:
            logger.info("graph_build_started", document_id=document_id, chunks=len(chunks))
            if not chunks:
                logger.warning("graph_build_no_chunks", document_id=document_id)
                return GraphResult(summary=empty_summary)

            entities = await self.extract_entities_from_chunks(chunks)
            if not entities:
                logger.warning("graph_build_no_entities", document_id=document_id)
                return GraphResult(summary=empty_summary)

            nodes = await self.create_graph_nodes(entities, document_id)
            if not nodes:
                logger.warning("graph_build_no_nodes", document_id=document_id)
                return GraphResult(
                    summary=empty_summary.model_copy(update={"total_entities": len(entities)}),
                )

            edges = await self.analyze_relationships(chunks, nodes, document_id)
        except Exception as exc:
            logger.error("graph_build_failed", document_id=document_id, error=str(exc))
            return GraphResult(error=str(exc))

        summary = GraphSummary(
            document_id=document_id,
            total_entities=len(entities),
            total_nodes=len(nodes),
            total_edges=len(edges),
            density=len(edges) / max(1, len(nodes)),
        )
        logger.info(
            "graph_build_complete",
            document_id=document_id,
            nodes=len(nodes),
            edges=len(edges),
            density=round(summary.density, 3),
        )
        return GraphResult(nodes=nodes, edges=edges, summary=summary)

    async def extract_entities_from_chunks(
        self,
        chunks: Sequence[Chunk],
    ) -> list[AggregatedEntity]:
        """Stage 1: extract, filter and merge entities across all chunks."""
        results = await gather_in_batches(
            list(chunks),
            lambda chunk: self._extractor.extract_entities(chunk.content),
            batch_size=self._batch_size,
            delay=self._batch_delay,
        )

        per_chunk: list[tuple[int, list[ExtractedEntity]]] = []
        for chunk, result in zip(chunks, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "chunk_entity_extraction_failed",
                    chunk_index=chunk.index,
                    error=str(result),
                )
                continue
            per_chunk.append((chunk.index, result))

        entities = self.merge_entities(per_chunk)
        logger.info(
            "entities_merged",
            unique=len(entities),
            top=[(e.name, round(e.relevance, 1), e.count) for e in entities[:10]],
        )
        return entities

    def merge_entities(
        self,
        per_chunk: Sequence[tuple[int, Sequence[ExtractedEntity]]],
    ) -> list[AggregatedEntity]:
        """Merge chunk-level entities on ``(lowercased name, type)``.

        Folding happens in the given order.  Each repeat sighting sets
        ``relevance`` to the mean of the stored value and the new one.
        Returns the top ``max_entities`` by descending relevance.
        """
        merged: dict[str, AggregatedEntity] = {}

        for chunk_index, entities in per_chunk:
            for entity in entities:
                if entity.relevance < self._min_entity_relevance:
                    continue

                key = f"{entity.name.lower()}_{entity.type.value}"
                existing = merged.get(key)
                if existing is None:
                    merged[key] = AggregatedEntity(
                        name=entity.name,
                        type=entity.type,
                        relevance=entity.relevance,
                        source_chunks={chunk_index},
                        first_seen_chunk=chunk_index,
                        last_seen_chunk=chunk_index,
                    )
                    continue

                existing.count += 1
                existing.relevance = (existing.relevance + entity.relevance) / 2
                existing.source_chunks.add(chunk_index)
                existing.first_seen_chunk = min(existing.first_seen_chunk, chunk_index)
                existing.last_seen_chunk = max(existing.last_seen_chunk, chunk_index)

        ranked = sorted(merged.values(), key=lambda e: e.relevance, reverse=True)
        return ranked[: self._max_entities]

    async def create_graph_nodes(
        self,
        entities: Sequence[AggregatedEntity],
        document_id: str,
    ) -> list[GraphNode]:
        """Stage 2: persist one node per entity, skipping failures."""
        nodes: list[GraphNode] = []
        for entity in entities:
            node = GraphNode(
                document_id=document_id,
                name=entity.name,
                type=entity.type,
                size=node_size(entity.relevance),
                color=node_color(entity.type),
                metadata={
                    "relevance": entity.relevance,
                    "occurrence_count": entity.count,
                    "source_chunks": sorted(entity.source_chunks),
                    "first_seen_chunk": entity.first_seen_chunk,
                    "last_seen_chunk": entity.last_seen_chunk,
                },
            )
            try:
                nodes.append(await self._store.create_graph_node(node))
            except Exception as exc:
                logger.warning("graph_node_create_failed", entity=entity.name, error=str(exc))
        return nodes

    async def analyze_relationships(
        self,
        chunks: Sequence[Chunk],
        nodes: Sequence[GraphNode],
        document_id: str,
    ) -> list[GraphEdge]:
        """Stages 3 and 4: co-occurrence edges, then the semantic fallback."""
        counts = self.count_cooccurrences(chunks, nodes)
        by_id = {node.id: node for node in nodes}

        edges: list[GraphEdge] = []
        for (source_id, target_id), chunk_indices in counts.items():
            weight = len(chunk_indices)
            if weight < self._min_cooccurrence:
                continue

            relationship = determine_relationship(by_id[source_id].type, by_id[target_id].type)
            edge = GraphEdge(
                document_id=document_id,
                source=source_id,
                target=target_id,
                relationship=relationship,
                weight=weight,
                color=edge_color(relationship),
                width=min(weight * 0.5, 5),
                metadata={"cooccurrence_count": weight, "source_chunks": chunk_indices},
            )
            try:
                edges.append(await self._store.create_graph_edge(edge))
            except Exception as exc:
                logger.warning(
                    "graph_edge_create_failed",
                    source=source_id,
                    target=target_id,
                    error=str(exc),
                )

        logger.info("cooccurrence_edges_created", document_id=document_id, edges=len(edges))

        if len(edges) < self._semantic_min_edges and len(nodes) >= 2:
            edges.extend(await self.create_semantic_relationships(nodes, document_id))
        return edges

    @staticmethod
    def count_cooccurrences(
        chunks: Sequence[Chunk],
        nodes: Sequence[GraphNode],
    ) -> dict[tuple[str, str], list[int]]:
        """Map each unordered node pair to the chunks in which both names appear.

        A pair is stored under the orientation in which it was first seen.
        """
        counts: dict[tuple[str, str], list[int]] = {}
        lowered = [(node, node.name.lower()) for node in nodes]

        for chunk in chunks:
            content = chunk.content.lower()
            present = [node for node, name in lowered if name in content]

            for i, first in enumerate(present):
                for second in present[i + 1 :]:
                    key = (first.id, second.id)
                    if key not in counts and (second.id, first.id) in counts:
                        key = (second.id, first.id)
                    counts.setdefault(key, []).append(chunk.index)
        return counts

    async def create_semantic_relationships(
        self,
        nodes: Sequence[GraphNode],
        document_id: str,
    ) -> list[GraphEdge]:
        """Stage 4: ask the LLM for relationships among the top nodes.

        Proposals naming unknown entities, naming the same node twice, or
        lacking a numeric confidence are discarded.  Unparseable output
        yields no edges.
        """
        top_nodes = sorted(nodes, key=lambda n: n.relevance, reverse=True)[: self._semantic_top_nodes]
        if len(top_nodes) < 2:
            return []

        try:
            response = await self._llm.complete(
                system_prompt=_SEMANTIC_SYSTEM_PROMPT,
                user_prompt=self._build_semantic_prompt(top_nodes),
                temperature=0.1,
            )
            proposals = _parse_json_array(response)
        except Exception as exc:
            logger.warning("semantic_relationships_failed", document_id=document_id, error=str(exc))
            return []

        by_name: dict[str, GraphNode] = {}
        for node in top_nodes:
            by_name.setdefault(node.name, node)

        edges: list[GraphEdge] = []
        for proposal in proposals:
            edge = self._semantic_edge(proposal, by_name, document_id)
            if edge is None:
                continue
            try:
                edges.append(await self._store.create_graph_edge(edge))
            except Exception as exc:
                logger.warning("semantic_edge_create_failed", error=str(exc))

        logger.info("semantic_edges_created", document_id=document_id, edges=len(edges))
        return edges

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_document_graph(self, document_id: str) -> GraphResult:
        try:
            nodes, edges = await self._store.get_document_graph(document_id)
        except Exception as exc:
            logger.error("get_document_graph_failed", document_id=document_id, error=str(exc))
            return GraphResult(error=str(exc))

        return GraphResult(
            nodes=nodes,
            edges=edges,
            summary=GraphSummary(
                document_id=document_id,
                total_entities=len(nodes),
                total_nodes=len(nodes),
                total_edges=len(edges),
                density=len(edges) / max(1, len(nodes)),
            ),
        )

    async def delete_document_graph(self, document_id: str) -> bool:
        try:
            await self._store.delete_document_graph(document_id)
        except Exception as exc:
            logger.error("delete_document_graph_failed", document_id=document_id, error=str(exc))
            return False
        logger.info("document_graph_deleted", document_id=document_id)
        return True

    async def get_user_graph(self, user_id: str) -> UserGraph:
        """Merge the graphs of all of *user_id*'s documents.

        Nodes are deduplicated on ``name_type``; edges that pointed at a
        dropped duplicate are re-pointed at the node that was kept.
        """
        try:
            documents = await self._store.list_documents(user_id)
        except Exception as exc:
            logger.error("get_user_graph_failed", user_id=user_id, error=str(exc))
            return UserGraph(error=str(exc))

        kept: dict[str, GraphNode] = {}
        alias: dict[str, str] = {}
        edges: list[GraphEdge] = []
        processed = 0

        for document in documents:
            graph = await self.get_document_graph(document.id)
            if graph.error is not None:
                logger.warning("user_graph_document_skipped", document_id=document.id)
                continue

            for node in graph.nodes:
                key = f"{node.name}_{node.type.value}"
                if key in kept:
                    alias[node.id] = kept[key].id
                else:
                    kept[key] = node
            edges.extend(graph.edges)
            processed += 1

        merged_edges: list[GraphEdge] = []
        for edge in edges:
            source = alias.get(edge.source, edge.source)
            target = alias.get(edge.target, edge.target)
            if source == target:
                continue
            if (source, target) != (edge.source, edge.target):
                edge = edge.model_copy(update={"source": source, "target": target})
            merged_edges.append(edge)

        logger.info(
            "user_graph_built",
            user_id=user_id,
            nodes=len(kept),
            edges=len(merged_edges),
            documents=processed,
        )
        return UserGraph(
            nodes=list(kept.values()),
            edges=merged_edges,
            total_documents=len(documents),
            processed_documents=processed,
        )

    async def find_related_concepts(self, query: str, user_id: str) -> RelatedConcepts:
        """Find nodes of *user_id*'s graph that match entities in *query*.

        A node matches when its name and a query entity name contain one
        another (case-insensitive).  The result also carries every edge
        touching a match and the nodes at the other end of those edges.
        """
        try:
            query_entities = await self._extractor.extract_entities(query)
        except Exception as exc:
            logger.error("related_concepts_failed", user_id=user_id, error=str(exc))
            return RelatedConcepts(query=query, error=str(exc))

        if not query_entities:
            return RelatedConcepts(query=query)

        user_graph = await self.get_user_graph(user_id)
        if user_graph.error is not None:
            return RelatedConcepts(query=query, query_entities=query_entities, error=user_graph.error)

        names = [entity.name.lower() for entity in query_entities]
        concepts = [
            node
            for node in user_graph.nodes
            if any(name in node.name.lower() or node.name.lower() in name for name in names)
        ]
        concept_ids = {node.id for node in concepts}
        edges = [e for e in user_graph.edges if e.source in concept_ids or e.target in concept_ids]

        connected_ids = {e.source for e in edges} | {e.target for e in edges}
        connected = [node for node in user_graph.nodes if node.id in connected_ids]

        logger.info(
            "related_concepts_found",
            user_id=user_id,
            matches=len(concepts),
            edges=len(edges),
            connected=len(connected),
        )
        return RelatedConcepts(
            query=query,
            query_entities=query_entities,
            concepts=concepts,
            nodes=connected,
            edges=edges,
        )

    async def health_check(self) -> dict[str, Any]:
        try:
            entities = await self._extractor.extract_entities(
                "Artificial intelligence and machine learning are transforming technology."
            )
        except Exception as exc:
            return {"healthy": False, "error": str(exc)}
        return {
            "healthy": True,
            "entity_extraction": bool(entities),
            "min_relevance_threshold": self._min_entity_relevance,
            "max_entities": self._max_entities,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _build_semantic_prompt(nodes: Sequence[GraphNode]) -> str:
        node_list = ", ".join(f"{node.name} ({node.type.value})" for node in nodes)
        return (
            f"Given these entities: {node_list}\n"
            "\n"
            "Identify 3-5 important relationships between them.\n"
            "Return as JSON array with objects containing:\n"
            "- entity1 (exact name from list)\n"
            "- entity2 (exact name from list)\n"
            "- relationship (string describing relationship)\n"
            "- confidence (1-10)\n"
            "\n"
            'Example: [{"entity1": "Quantum Computing", "entity2": "Superposition", '
            '"relationship": "uses", "confidence": 8}]'
        )

    @staticmethod
    def _semantic_edge(
        proposal: Any,
        by_name: dict[str, GraphNode],
        document_id: str,
    ) -> GraphEdge | None:
        if not isinstance(proposal, dict):
            return None

        first = by_name.get(str(proposal.get("entity1", "")))
        second = by_name.get(str(proposal.get("entity2", "")))
        relationship = str(proposal.get("relationship") or "").strip()
        if first is None or second is None or first.id == second.id or not relationship:
            return None

        try:
            confidence = float(proposal.get("confidence"))
        except (TypeError, ValueError):
            return None
        if not math.isfinite(confidence):
            return None

        return GraphEdge(
            document_id=document_id,
            source=first.id,
            target=second.id,
            relationship=relationship,
            weight=confidence / 10,
            color=SEMANTIC_EDGE_COLOR,
            width=min(confidence / 10 * 3, 4),
            metadata={
                "ai_generated": True,
                "confidence": confidence,
                "method": "semantic_analysis",
            },
        )


def _parse_json_array(response: str) -> list[Any]:
    text = response.strip()
    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()
    if not text.startswith("["):
        start, end = text.find("["), text.rfind("]")
        if start != -1 and end > start:
            text = text[start : end + 1]

    parsed = json.loads(text)
    if not isinstance(parsed, list):
        raise ValueError("Semantic relationship response is not a JSON array")
    return parsed
