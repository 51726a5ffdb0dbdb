"""SQLite-backed knowledge store.

Persists data sources, document chunks and sync logs to a local SQLite
database (default ``data/knowledge.db``) using ``aiosqlite`` for async I/O.
Every statement filters on ``tenant_id``; the composite primary key on
``data_sources`` makes the tenant part of a source's identity.

Embeddings, tags and metadata are stored as JSON text.  Chunks keep an
autoincrement ``seq`` column so listing returns them in insertion order,
which is what breaks score ties at search time.

Credentials are never written here; they live in the secret store.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.knowledge_store import IKnowledgeStore, apply_source_updates
from src.models.knowledge import (
    ChunkMetadata,
    DataSource,
    DataSourceType,
    DocumentChunk,
    SourceConfig,
    SyncLog,
)
from src.utils.errors import KnowledgeStoreError, SourceNotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/knowledge.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS data_sources (
    id              TEXT    NOT NULL,
    tenant_id       TEXT    NOT NULL,
    type            TEXT    NOT NULL,
    name            TEXT    NOT NULL,
    status          TEXT    NOT NULL,
    last_synced     TEXT    NOT NULL,
    last_synced_at  TEXT,
    item_count      INTEGER,
    config          TEXT    NOT NULL DEFAULT '{}',
    created_at      TEXT    NOT NULL,
    PRIMARY KEY (tenant_id, id)
);
""",
    """\
CREATE TABLE IF NOT EXISTS document_chunks (
    seq             INTEGER PRIMARY KEY AUTOINCREMENT,
    id              TEXT    NOT NULL UNIQUE,
    tenant_id       TEXT    NOT NULL,
    source_id       TEXT    NOT NULL,
    source_type     TEXT    NOT NULL,
    title           TEXT    NOT NULL,
    content         TEXT    NOT NULL,
    embedding       TEXT    NOT NULL DEFAULT '[]',
    has_embedding   INTEGER NOT NULL DEFAULT 0,
    tags            TEXT    NOT NULL DEFAULT '[]',
    metadata        TEXT    NOT NULL DEFAULT '{}'
);
""",
    """\
CREATE TABLE IF NOT EXISTS sync_logs (
    seq             INTEGER PRIMARY KEY AUTOINCREMENT,
    id              TEXT    NOT NULL UNIQUE,
    tenant_id       TEXT    NOT NULL,
    source_id       TEXT    NOT NULL,
    timestamp       TEXT    NOT NULL,
    status          TEXT    NOT NULL,
    message         TEXT    NOT NULL DEFAULT '',
    items_processed INTEGER NOT NULL DEFAULT 0
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_chunks_tenant_source ON document_chunks(tenant_id, source_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_tenant_type ON document_chunks(tenant_id, source_type);",
    "CREATE INDEX IF NOT EXISTS idx_logs_tenant_source ON sync_logs(tenant_id, source_id);",
]

_SOURCE_COLUMNS = (
    "id, tenant_id, type, name, status, last_synced, last_synced_at, item_count, config, created_at"
)

_INSERT_SOURCE_SQL = f"""\
INSERT INTO data_sources ({_SOURCE_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_REPLACE_SOURCE_SQL = """\
UPDATE data_sources
SET name = ?, status = ?, last_synced = ?, last_synced_at = ?, item_count = ?, config = ?
WHERE tenant_id = ? AND id = ?;
"""

_INSERT_CHUNK_SQL = """\
INSERT INTO document_chunks
    (id, tenant_id, source_id, source_type, title, content, embedding, has_embedding, tags, metadata)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_LOG_SQL = """\
INSERT INTO sync_logs (id, tenant_id, source_id, timestamp, status, message, items_processed)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""


class SQLiteKnowledgeStore(IKnowledgeStore):
    """SQLite-backed knowledge persistence."""

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
        logger.info("knowledge_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Data sources
    # ------------------------------------------------------------------

    async def create_source(self, source: DataSource) -> DataSource:
        async with aiosqlite.connect(str(self._db_path)) as db:
            try:
                await db.execute(_INSERT_SOURCE_SQL, self._source_row(source))
            except aiosqlite.IntegrityError as exc:
                raise KnowledgeStoreError(
                    message=f"DataSource {source.id} already exists",
                    provider_name=self.get_provider_name(),
                ) from exc
            await db.commit()
        logger.debug("source_created", tenant_id=source.tenant_id, source_id=source.id)
        return source.model_copy(update={"auth": None})

    async def get_source(self, tenant_id: str, source_id: str) -> DataSource | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SOURCE_COLUMNS} FROM data_sources WHERE tenant_id = ? AND id = ?",
                (tenant_id, source_id),
            )
            row = await cursor.fetchone()
        return self._row_to_source(row) if row else None

    async def list_sources(self, tenant_id: str | None = None) -> list[DataSource]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            if tenant_id is None:
                cursor = await db.execute(
                    f"SELECT {_SOURCE_COLUMNS} FROM data_sources ORDER BY tenant_id, created_at"
                )
            else:
                cursor = await db.execute(
                    f"SELECT {_SOURCE_COLUMNS} FROM data_sources "
                    "WHERE tenant_id = ? ORDER BY created_at",
                    (tenant_id,),
                )
            rows = await cursor.fetchall()
        return [self._row_to_source(r) for r in rows]

    async def update_source(
        self, tenant_id: str, source_id: str, updates: dict[str, Any]
    ) -> DataSource:
        current = await self.get_source(tenant_id, source_id)
        if current is None:
            raise SourceNotFoundError(message=f"No data source {source_id} for tenant {tenant_id}")
        updated = apply_source_updates(current, updates)

        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _REPLACE_SOURCE_SQL,
                (
                    updated.name,
                    updated.status.value,
                    updated.last_synced,
                    updated.last_synced_at.isoformat() if updated.last_synced_at else None,
                    updated.item_count,
                    updated.config.model_dump_json(),
                    tenant_id,
                    source_id,
                ),
            )
            await db.commit()
        return updated.model_copy(update={"auth": None})

    async def delete_source(self, tenant_id: str, source_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "DELETE FROM data_sources WHERE tenant_id = ? AND id = ?",
                (tenant_id, source_id),
            )
            deleted = cursor.rowcount > 0
            if deleted:
                chunk_cursor = await db.execute(
                    "DELETE FROM document_chunks WHERE tenant_id = ? AND source_id = ?",
                    (tenant_id, source_id),
                )
                await db.execute(
                    "DELETE FROM sync_logs WHERE tenant_id = ? AND source_id = ?",
                    (tenant_id, source_id),
                )
                logger.info(
                    "source_deleted",
                    tenant_id=tenant_id,
                    source_id=source_id,
                    chunks_removed=chunk_cursor.rowcount,
                )
            await db.commit()
        return deleted

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def add_chunks(self, tenant_id: str, chunks: list[DocumentChunk]) -> int:
        if not chunks:
            return 0
        foreign = [chunk.id for chunk in chunks if chunk.tenant_id != tenant_id]
        if foreign:
            raise KnowledgeStoreError(
                message=f"{len(foreign)} chunk(s) do not belong to tenant {tenant_id}",
                provider_name=self.get_provider_name(),
            )

        rows = [
            (
                chunk.id,
                chunk.tenant_id,
                chunk.source_id,
                chunk.metadata.source_type.value,
                chunk.title,
                chunk.content,
                json.dumps(chunk.embedding),
                1 if chunk.has_embedding else 0,
                json.dumps(chunk.tags),
                chunk.metadata.model_dump_json(),
            )
            for chunk in chunks
        ]
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.executemany(_INSERT_CHUNK_SQL, rows)
            await db.commit()
        return len(rows)

    async def delete_chunks_by_source(self, tenant_id: str, source_id: str) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "DELETE FROM document_chunks WHERE tenant_id = ? AND source_id = ?",
                (tenant_id, source_id),
            )
            removed = cursor.rowcount
            await db.commit()
        return removed

    async def list_chunks(
        self,
        tenant_id: str,
        source_id: str | None = None,
        source_types: list[DataSourceType] | None = None,
        embedded_only: bool = False,
    ) -> list[DocumentChunk]:
        clauses = ["tenant_id = ?"]
        params: list[Any] = [tenant_id]
        if source_id is not None:
            clauses.append("source_id = ?")
            params.append(source_id)
        if source_types:
            clauses.append(f"source_type IN ({', '.join('?' for _ in source_types)})")
            params.extend(DataSourceType(t).value for t in source_types)
        if embedded_only:
            clauses.append("has_embedding = 1")

        sql = (
            "SELECT id, tenant_id, source_id, title, content, embedding, tags, metadata "
            f"FROM document_chunks WHERE {' AND '.join(clauses)} ORDER BY seq"
        )
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [self._row_to_chunk(r) for r in rows]

    async def count_chunks(self, tenant_id: str, source_id: str | None = None) -> int:
        sql = "SELECT COUNT(*) FROM document_chunks WHERE tenant_id = ?"
        params: list[Any] = [tenant_id]
        if source_id is not None:
            sql += " AND source_id = ?"
            params.append(source_id)
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Sync logs
    # ------------------------------------------------------------------

    async def append_log(self, log: SyncLog) -> SyncLog:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _INSERT_LOG_SQL,
                (
                    log.id,
                    log.tenant_id,
                    log.source_id,
                    log.timestamp.isoformat(),
                    log.status.value,
                    log.message,
                    log.items_processed,
                ),
            )
            await db.commit()
        return log

    async def list_logs(self, tenant_id: str, source_id: str) -> list[SyncLog]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT id, tenant_id, source_id, timestamp, status, message, items_processed "
                "FROM sync_logs WHERE tenant_id = ? AND source_id = ? ORDER BY seq",
                (tenant_id, source_id),
            )
            rows = await cursor.fetchall()
        return [SyncLog.model_validate(dict(r)) for r in rows]

    def get_provider_name(self) -> str:
        return "sqlite"

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _source_row(source: DataSource) -> tuple[Any, ...]:
        return (
            source.id,
            source.tenant_id,
            source.type.value,
            source.name,
            source.status.value,
            source.last_synced,
            source.last_synced_at.isoformat() if source.last_synced_at else None,
            source.item_count,
            source.config.model_dump_json(),
            source.created_at.isoformat(),
        )

    @staticmethod
    def _row_to_source(row: aiosqlite.Row) -> DataSource:
        data = dict(row)
        data["config"] = SourceConfig.model_validate_json(data["config"] or "{}")
        return DataSource.model_validate(data)

    @staticmethod
    def _row_to_chunk(row: aiosqlite.Row) -> DocumentChunk:
        return DocumentChunk(
            id=row["id"],
            tenant_id=row["tenant_id"],
            source_id=row["source_id"],
            title=row["title"],
            content=row["content"],
            embedding=json.loads(row["embedding"]),
            tags=json.loads(row["tags"]),
            metadata=ChunkMetadata.model_validate_json(row["metadata"]),
        )
