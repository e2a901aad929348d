"""SQLite-backed document, chunk and graph store.

Persists every artifact of an ingestion run to a local SQLite database at
``data/documents.db``.  Uses ``aiosqlite`` for async I/O; free-form
metadata is stored as JSON text.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.document_store_provider import IDocumentStoreProvider
from src.models.document import ChunkRecord, DocumentRecord
from src.models.graph import GraphEdge, GraphNode
from src.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS documents (
    id               TEXT PRIMARY KEY,
    user_id          TEXT    NOT NULL,
    filename         TEXT    NOT NULL,
    file_url         TEXT,
    file_size        INTEGER NOT NULL DEFAULT 0,
    status           TEXT    NOT NULL,
    num_chunks       INTEGER NOT NULL DEFAULT 0,
    num_nodes        INTEGER NOT NULL DEFAULT 0,
    num_edges        INTEGER NOT NULL DEFAULT 0,
    error_message    TEXT,
    parsing_metadata TEXT    NOT NULL DEFAULT '{}',
    created_at       TEXT    NOT NULL,
    processed_at     TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunks (
    id          TEXT PRIMARY KEY,
    document_id TEXT    NOT NULL,
    content     TEXT    NOT NULL,
    chunk_index INTEGER NOT NULL,
    vector_id   TEXT,
    start_char  INTEGER NOT NULL DEFAULT 0,
    end_char    INTEGER NOT NULL DEFAULT 0
);
""",
    """\
CREATE TABLE IF NOT EXISTS graph_nodes (
    id          TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    name        TEXT NOT NULL,
    type        TEXT NOT NULL,
    size        REAL NOT NULL,
    color       TEXT NOT NULL,
    metadata    TEXT NOT NULL DEFAULT '{}'
);
""",
    """\
CREATE TABLE IF NOT EXISTS graph_edges (
    id           TEXT PRIMARY KEY,
    document_id  TEXT NOT NULL,
    source       TEXT NOT NULL,
    target       TEXT NOT NULL,
    relationship TEXT NOT NULL,
    weight       REAL NOT NULL,
    color        TEXT NOT NULL,
    width        REAL NOT NULL,
    metadata     TEXT NOT NULL DEFAULT '{}'
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_user ON documents(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_chunks_vector ON chunks(vector_id);",
    "CREATE INDEX IF NOT EXISTS idx_nodes_document ON graph_nodes(document_id);",
    "CREATE INDEX IF NOT EXISTS idx_edges_document ON graph_edges(document_id);",
]

_DOCUMENT_COLUMNS = (
    "id", "user_id", "filename", "file_url", "file_size", "status", "num_chunks",
    "num_nodes", "num_edges", "error_message", "parsing_metadata", "created_at",
    "processed_at",
)
_UPDATABLE_COLUMNS = frozenset(_DOCUMENT_COLUMNS) - {"id", "user_id", "created_at"}

_INSERT_DOCUMENT_SQL = (
    f"INSERT INTO documents ({', '.join(_DOCUMENT_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _DOCUMENT_COLUMNS)})"
)
_INSERT_CHUNK_SQL = (
    "INSERT INTO chunks (id, document_id, content, chunk_index, vector_id, start_char, end_char) "
    "VALUES (?, ?, ?, ?, ?, ?, ?)"
)
_CHUNK_SELECT = "SELECT id, document_id, content, chunk_index, vector_id, start_char, end_char FROM chunks"


class SQLiteDocumentStore(IDocumentStoreProvider):
    """SQLite-backed persistence for documents, chunks and graph records."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    # -- documents -------------------------------------------------------

    async def create_document(self, document: DocumentRecord) -> DocumentRecord:
        row = _document_to_row(document)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_INSERT_DOCUMENT_SQL, tuple(row[c] for c in _DOCUMENT_COLUMNS))
            await db.commit()
        logger.info("document_created", document_id=document.id, user_id=document.user_id)
        return document

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def update_document(self, document_id: str, **fields: Any) -> DocumentRecord:
        unknown = set(fields) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update document columns: {', '.join(sorted(unknown))}")

        if fields:
            assignments = ", ".join(f"{column} = ?" for column in fields)
            values = tuple(_to_column_value(column, value) for column, value in fields.items())
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    f"UPDATE documents SET {assignments} WHERE id = ?",  # noqa: S608
                    (*values, document_id),
                )
                await db.commit()
                updated = cursor.rowcount
            if updated == 0:
                raise StorageError(
                    f"Document {document_id} does not exist",
                    provider_name=self.get_provider_name(),
                )

        document = await self.get_document(document_id)
        if document is None:
            raise StorageError(
                f"Document {document_id} does not exist",
                provider_name=self.get_provider_name(),
            )
        return document

    async def delete_document(self, document_id: str) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.commit()
        logger.info("document_record_deleted", document_id=document_id)

    async def list_documents(self, user_id: str) -> list[DocumentRecord]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM documents WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_document(r) for r in rows]

    # -- chunks ----------------------------------------------------------

    async def create_chunk(self, chunk: ChunkRecord) -> ChunkRecord:
        await self.create_chunks([chunk])
        return chunk

    async def create_chunks(self, chunks: list[ChunkRecord]) -> int:
        if not chunks:
            return 0
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.executemany(
                _INSERT_CHUNK_SQL,
                [
                    (c.id, c.document_id, c.content, c.chunk_index, c.vector_id,
                     c.start_char, c.end_char)
                    for c in chunks
                ],
            )
            await db.commit()
        return len(chunks)

    async def get_document_chunks(self, document_id: str) -> list[ChunkRecord]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"{_CHUNK_SELECT} WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [ChunkRecord(**dict(r)) for r in rows]

    async def get_chunk_by_vector_id(self, vector_id: str) -> ChunkRecord | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(f"{_CHUNK_SELECT} WHERE vector_id = ?", (vector_id,))
            row = await cursor.fetchone()
        return ChunkRecord(**dict(row)) if row else None

    # -- graph -----------------------------------------------------------

    async def create_graph_node(self, node: GraphNode) -> GraphNode:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "INSERT INTO graph_nodes (id, document_id, name, type, size, color, metadata) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (node.id, node.document_id, node.name, node.type.value, node.size,
                 node.color, json.dumps(node.metadata)),
            )
            await db.commit()
        return node

    async def create_graph_edge(self, edge: GraphEdge) -> GraphEdge:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "INSERT INTO graph_edges "
                "(id, document_id, source, target, relationship, weight, color, width, metadata) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (edge.id, edge.document_id, edge.source, edge.target, edge.relationship,
                 edge.weight, edge.color, edge.width, json.dumps(edge.metadata)),
            )
            await db.commit()
        return edge

    async def get_document_graph(
        self, document_id: str,
    ) -> tuple[list[GraphNode], list[GraphEdge]]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM graph_nodes WHERE document_id = ? ORDER BY rowid",
                (document_id,),
            )
            node_rows = await cursor.fetchall()
            cursor = await db.execute(
                "SELECT * FROM graph_edges WHERE document_id = ? ORDER BY rowid",
                (document_id,),
            )
            edge_rows = await cursor.fetchall()

        nodes = [GraphNode(**_with_json_metadata(r)) for r in node_rows]
        edges = [GraphEdge(**_with_json_metadata(r)) for r in edge_rows]
        return nodes, edges

    async def delete_document_graph(self, document_id: str) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM graph_edges WHERE document_id = ?", (document_id,))
            await db.execute("DELETE FROM graph_nodes WHERE document_id = ?", (document_id,))
            await db.commit()
        logger.info("document_graph_records_deleted", document_id=document_id)

    def get_provider_name(self) -> str:
        return "sqlite_documents"


# ----------------------------------------------------------------------
# Row mapping
# ----------------------------------------------------------------------

def _to_column_value(column: str, value: Any) -> Any:
    if column == "parsing_metadata":
        return json.dumps(value or {}, default=str)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _document_to_row(document: DocumentRecord) -> dict[str, Any]:
    data = document.model_dump()
    return {column: _to_column_value(column, data[column]) for column in _DOCUMENT_COLUMNS}


def _row_to_document(row: aiosqlite.Row) -> DocumentRecord:
    data = dict(row)
    data["parsing_metadata"] = json.loads(data.get("parsing_metadata") or "{}")
    return DocumentRecord(**data)


def _with_json_metadata(row: aiosqlite.Row) -> dict[str, Any]:
    data = dict(row)
    data["metadata"] = json.loads(data.get("metadata") or "{}")
    return data
