"""SQLite-backed dataset store.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Providers (concrete adapter implementing IDatasetStore).
#
# Database: ``data/kbforge.db`` with three tables
#   datasets  -> documents (ON DELETE CASCADE) -> segments (ON DELETE CASCADE)
# plus ``segments_fts``, an FTS5 table keyed by the segment rowid that holds
# jieba-tokenized segment content.  A trigger removes FTS rows when a
# segment row goes away (including cascaded deletes).
#
# Search operators:
#   - cosine similarity: embeddings are stored as float32 BLOBs and scored
#     with numpy against the query vector.
#   - text rank: FTS5 ``bm25()`` turned into a bounded rank r / (1 + r),
#     with r = -bm25, so raw scores sit in [0, 1).
#
# Counters on ``datasets`` are only ever changed with ``col = col + ?``
# inside the same transaction as the row inserts/deletes.
#
# Uses ``aiosqlite`` for async I/O, one connection per operation, and
# ``PRAGMA journal_mode=WAL`` for concurrent read safety.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np
import structlog

from src.interfaces.dataset_store import IDatasetStore
from src.models.dataset import (
    Dataset,
    Document,
    IndexingConfig,
    ProcessingStatus,
    RetrievalConfig,
    Segment,
    StatusCounts,
)
from src.models.retrieval import RankedChunk
from src.utils.errors import InternalError, NotFoundError, RetrievalUnavailableError
from src.utils.tokenizer import tokenize_for_index

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/kbforge.db")

# ── Schema DDL ────────────────────────────────────────────────────────

_CREATE_DATASETS_TABLE = """\
CREATE TABLE IF NOT EXISTS datasets (
    id                  TEXT    PRIMARY KEY,
    name                TEXT    NOT NULL DEFAULT '',
    retrieval_mode      TEXT    NOT NULL DEFAULT 'vector',
    retrieval_config    TEXT    NOT NULL DEFAULT '{}',
    indexing_config     TEXT    NOT NULL DEFAULT '{}',
    embedding_model_id  TEXT,
    document_count      INTEGER NOT NULL DEFAULT 0,
    chunk_count         INTEGER NOT NULL DEFAULT 0,
    storage_size        INTEGER NOT NULL DEFAULT 0,
    created_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_DOCUMENTS_TABLE = """\
CREATE TABLE IF NOT EXISTS documents (
    id                  TEXT    PRIMARY KEY,
    dataset_id          TEXT    NOT NULL REFERENCES datasets(id) ON DELETE CASCADE,
    file_id             TEXT    NOT NULL,
    file_name           TEXT    NOT NULL DEFAULT '',
    file_type           TEXT    NOT NULL DEFAULT '',
    file_size           INTEGER NOT NULL DEFAULT 0,
    status              TEXT    NOT NULL DEFAULT 'pending',
    progress            INTEGER NOT NULL DEFAULT 0,
    chunk_count         INTEGER NOT NULL DEFAULT 0,
    character_count     INTEGER NOT NULL DEFAULT 0,
    embedding_model_id  TEXT,
    error               TEXT,
    enabled             INTEGER NOT NULL DEFAULT 1,
    created_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_SEGMENTS_TABLE = """\
CREATE TABLE IF NOT EXISTS segments (
    id                  TEXT    PRIMARY KEY,
    document_id         TEXT    NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    dataset_id          TEXT    NOT NULL,
    content             TEXT    NOT NULL,
    chunk_index         INTEGER NOT NULL,
    content_length      INTEGER NOT NULL DEFAULT 0,
    children            TEXT,
    embedding           BLOB,
    vector_dimension    INTEGER,
    embedding_model_id  TEXT,
    status              TEXT    NOT NULL DEFAULT 'pending',
    error               TEXT,
    enabled             INTEGER NOT NULL DEFAULT 1,
    metadata            TEXT    NOT NULL DEFAULT '{}',
    updated_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_FTS_TABLE = """\
CREATE VIRTUAL TABLE IF NOT EXISTS segments_fts USING fts5(tokens);
"""

_CREATE_FTS_DELETE_TRIGGER = """\
CREATE TRIGGER IF NOT EXISTS segments_fts_delete AFTER DELETE ON segments
BEGIN
    DELETE FROM segments_fts WHERE rowid = old.rowid;
END;
"""

_CREATE_INDICES = [
    "CREATE INDEX IF NOT EXISTS idx_documents_dataset ON documents(dataset_id);",
    "CREATE INDEX IF NOT EXISTS idx_segments_document ON segments(document_id, chunk_index);",
    "CREATE INDEX IF NOT EXISTS idx_segments_dataset_status ON segments(dataset_id, status);",
]

# ── DML ───────────────────────────────────────────────────────────────

_INSERT_DATASET = """\
INSERT INTO datasets (
    id, name, retrieval_mode, retrieval_config, indexing_config, embedding_model_id
) VALUES (?, ?, ?, ?, ?, ?);
"""

_INSERT_DOCUMENT = """\
INSERT INTO documents (
    id, dataset_id, file_id, file_name, file_type, file_size, status, progress,
    chunk_count, character_count, embedding_model_id, error, enabled
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_SEGMENT = """\
INSERT INTO segments (
    id, document_id, dataset_id, content, chunk_index, content_length, children,
    embedding_model_id, status, enabled, metadata
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INCREMENT_COUNTERS = """\
UPDATE datasets
SET document_count = document_count + 1,
    chunk_count    = chunk_count + ?,
    storage_size   = storage_size + ?
WHERE id = ?;
"""

_DECREMENT_COUNTERS = """\
UPDATE datasets
SET document_count = MAX(document_count - 1, 0),
    chunk_count    = MAX(chunk_count - ?, 0),
    storage_size   = MAX(storage_size - ?, 0)
WHERE id = ?;
"""

_SAVE_EMBEDDING = """\
UPDATE segments
SET embedding = ?, vector_dimension = ?, embedding_model_id = ?,
    status = 'completed', error = NULL,
    updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
WHERE id = ?;
"""

# Columns shared by both search operators; ``s`` is segments, ``d`` documents.
_RETRIEVABLE_COLUMNS = """\
s.id AS id, s.document_id AS document_id, s.content AS content,
s.metadata AS metadata, s.chunk_index AS chunk_index,
s.content_length AS content_length, d.file_name AS file_name"""

_RETRIEVABLE_FILTER = """\
s.dataset_id = ? AND s.status = 'completed' AND s.enabled = 1 AND d.enabled = 1"""

_VECTOR_CANDIDATES = f"""\
SELECT {_RETRIEVABLE_COLUMNS}, s.embedding AS embedding
FROM segments s
JOIN documents d ON d.id = s.document_id
WHERE {_RETRIEVABLE_FILTER} AND s.embedding IS NOT NULL;
"""

_FULL_TEXT_QUERY = f"""\
SELECT {_RETRIEVABLE_COLUMNS}, bm25(segments_fts) AS rank
FROM segments_fts
JOIN segments s ON s.rowid = segments_fts.rowid
JOIN documents d ON d.id = s.document_id
WHERE segments_fts MATCH ? AND {_RETRIEVABLE_FILTER}
ORDER BY rank
LIMIT ?;
"""

_UNFINISHED = (ProcessingStatus.PENDING.value, ProcessingStatus.PROCESSING.value)


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def _scope_clause(document_id: str | None) -> tuple[str, tuple[str, ...]]:
    if document_id:
        return " AND document_id = ?", (document_id,)
    return "", ()


def _to_blob(vector: list[float]) -> bytes:
    return np.asarray(vector, dtype=np.float32).tobytes()


def _match_expression(terms: list[str]) -> str:
    """AND together quoted FTS5 phrases; embedded quotes are doubled."""
    return " AND ".join('"' + term.replace('"', '""') + '"' for term in terms)


class SQLiteDatasetStore(IDatasetStore):
    """SQLite persistence for datasets, documents and segments.

    Parameters
    ----------
    db_path:
        Database file.  Parent directories are created on
        :meth:`initialize`.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._fts_available = True

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            # Cascades are only enforced when enabled per connection.
            await db.execute("PRAGMA foreign_keys = ON;")
            yield db

    async def initialize(self) -> None:
        """Create tables, the FTS index and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_DATASETS_TABLE)
            await db.execute(_CREATE_DOCUMENTS_TABLE)
            await db.execute(_CREATE_SEGMENTS_TABLE)
            for idx_sql in _CREATE_INDICES:
                await db.execute(idx_sql)
            try:
                await db.execute(_CREATE_FTS_TABLE)
                await db.execute(_CREATE_FTS_DELETE_TRIGGER)
            except aiosqlite.OperationalError as exc:
                self._fts_available = False
                logger.warning("fts5_unavailable", error=str(exc))
            await db.commit()
        logger.info(
            "dataset_db_initialized",
            path=str(self._db_path),
            full_text=self._fts_available,
        )

    def get_provider_name(self) -> str:
        return "sqlite_dataset_store"

    # ── Datasets ──────────────────────────────────────────────────────

    async def create_dataset(self, dataset: Dataset) -> Dataset:
        async with self._connect() as db:
            await db.execute(
                _INSERT_DATASET,
                (
                    dataset.id,
                    dataset.name,
                    dataset.retrieval_mode,
                    dataset.retrieval_config.model_dump_json(),
                    dataset.indexing_config.model_dump_json(),
                    dataset.embedding_model_id,
                ),
            )
            await db.commit()
        logger.info("dataset_created", dataset_id=dataset.id)
        stored = await self.get_dataset(dataset.id)
        if stored is None:
            raise InternalError(
                message=f"Dataset {dataset.id} missing right after insert",
                provider_name=self.get_provider_name(),
            )
        return stored

    async def get_dataset(self, dataset_id: str) -> Dataset | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM datasets WHERE id = ?", (dataset_id,))
            row = await cursor.fetchone()
        return self._row_to_dataset(row) if row else None

    async def delete_dataset(self, dataset_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM datasets WHERE id = ?", (dataset_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("dataset_deleted", dataset_id=dataset_id)
        return deleted

    # ── Documents ─────────────────────────────────────────────────────

    async def create_document(self, document: Document, segments: list[Segment]) -> Document:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT 1 FROM datasets WHERE id = ?", (document.dataset_id,)
            )
            if await cursor.fetchone() is None:
                raise NotFoundError(
                    message=f"Dataset not found: {document.dataset_id}",
                    provider_name=self.get_provider_name(),
                )

            await db.execute(
                _INSERT_DOCUMENT,
                (
                    document.id,
                    document.dataset_id,
                    document.file_id,
                    document.file_name,
                    document.file_type,
                    document.file_size,
                    document.status.value,
                    document.progress,
                    document.chunk_count,
                    document.character_count,
                    document.embedding_model_id,
                    document.error,
                    int(document.enabled),
                ),
            )
            for segment in segments:
                cursor = await db.execute(
                    _INSERT_SEGMENT,
                    (
                        segment.id,
                        segment.document_id,
                        segment.dataset_id,
                        segment.content,
                        segment.chunk_index,
                        segment.content_length,
                        json.dumps(segment.children, ensure_ascii=False)
                        if segment.children is not None
                        else None,
                        segment.embedding_model_id,
                        segment.status.value,
                        int(segment.enabled),
                        json.dumps(segment.metadata, ensure_ascii=False),
                    ),
                )
                if self._fts_available:
                    await db.execute(
                        "INSERT INTO segments_fts (rowid, tokens) VALUES (?, ?)",
                        (cursor.lastrowid, tokenize_for_index(segment.content)),
                    )
            await db.execute(
                _INCREMENT_COUNTERS,
                (len(segments), document.file_size, document.dataset_id),
            )
            await db.commit()

        logger.info(
            "document_created",
            dataset_id=document.dataset_id,
            document_id=document.id,
            segments=len(segments),
        )
        return document

    async def get_document(self, document_id: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            row = await cursor.fetchone()
        return self._row_to_document(row) if row else None

    async def list_documents(self, dataset_id: str, document_id: str | None = None) -> list[Document]:
        sql = "SELECT * FROM documents WHERE dataset_id = ?"
        args: tuple[str, ...] = (dataset_id,)
        if document_id:
            sql += " AND id = ?"
            args += (document_id,)
        async with self._connect() as db:
            cursor = await db.execute(sql + " ORDER BY created_at, id", args)
            rows = await cursor.fetchall()
        return [self._row_to_document(r) for r in rows]

    async def delete_document(self, document_id: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            row = await cursor.fetchone()
            if row is None:
                return None
            document = self._row_to_document(row)

            cursor = await db.execute(
                "SELECT COUNT(*) FROM segments WHERE document_id = ?", (document_id,)
            )
            (segment_count,) = await cursor.fetchone()

            await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            await db.execute(
                _DECREMENT_COUNTERS,
                (segment_count, document.file_size, document.dataset_id),
            )
            await db.commit()

        logger.info(
            "document_deleted",
            dataset_id=document.dataset_id,
            document_id=document_id,
            segments=segment_count,
        )
        return document

    async def set_document_enabled(self, document_id: str, enabled: bool) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE documents SET enabled = ?, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ?",
                (int(enabled), document_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def update_document_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        progress: int,
        error: str | None = None,
    ) -> None:
        async with self._connect() as db:
            await db.execute(
                "UPDATE documents SET status = ?, progress = ?, error = ?, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ?",
                (status.value, progress, error, document_id),
            )
            await db.commit()

    async def clear_document_errors(self, dataset_id: str, document_id: str | None = None) -> None:
        sql = "UPDATE documents SET error = NULL WHERE dataset_id = ?"
        args: tuple[str, ...] = (dataset_id,)
        if document_id:
            sql += " AND id = ?"
            args += (document_id,)
        async with self._connect() as db:
            await db.execute(sql, args)
            await db.commit()

    # ── Segments ──────────────────────────────────────────────────────

    async def get_segment(self, segment_id: str) -> Segment | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM segments WHERE id = ?", (segment_id,))
            row = await cursor.fetchone()
        return self._row_to_segment(row) if row else None

    async def list_segments(self, document_id: str) -> list[Segment]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM segments WHERE document_id = ? ORDER BY chunk_index, id",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_segment(r) for r in rows]

    async def get_pending_segments(
        self,
        dataset_id: str,
        document_id: str | None = None,
    ) -> list[Segment]:
        scope, scope_args = _scope_clause(document_id)
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM segments WHERE dataset_id = ? AND status = 'pending'"
                + scope
                + " ORDER BY chunk_index, id",
                (dataset_id, *scope_args),
            )
            rows = await cursor.fetchall()
        return [self._row_to_segment(r) for r in rows]

    async def claim_segments(self, segment_ids: list[str]) -> list[str]:
        if not segment_ids:
            return []
        marks = _placeholders(len(segment_ids))
        async with self._connect() as db:
            cursor = await db.execute(
                f"UPDATE segments SET status = 'processing', "
                f"updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') "
                f"WHERE id IN ({marks}) AND status = 'pending' RETURNING id",
                tuple(segment_ids),
            )
            claimed = {row["id"] for row in await cursor.fetchall()}
            await db.commit()
        # Preserve the caller's chunk order.
        return [sid for sid in segment_ids if sid in claimed]

    async def save_embeddings(
        self,
        embeddings: dict[str, list[float]],
        embedding_model_id: str,
    ) -> None:
        params = [
            (_to_blob(vector), len(vector), embedding_model_id, segment_id)
            for segment_id, vector in embeddings.items()
        ]
        async with self._connect() as db:
            await db.executemany(_SAVE_EMBEDDING, params)
            await db.commit()

    async def fail_segments(self, segment_ids: list[str], error: str) -> None:
        if not segment_ids:
            return
        marks = _placeholders(len(segment_ids))
        async with self._connect() as db:
            await db.execute(
                f"UPDATE segments SET status = 'failed', error = ?, embedding = NULL, "
                f"vector_dimension = NULL, "
                f"updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') "
                f"WHERE id IN ({marks})",
                (error, *segment_ids),
            )
            await db.commit()

    async def fail_unfinished_segments(
        self,
        dataset_id: str,
        document_id: str | None,
        error: str,
    ) -> int:
        scope, scope_args = _scope_clause(document_id)
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE segments SET status = 'failed', error = ?, embedding = NULL, "
                "vector_dimension = NULL "
                "WHERE dataset_id = ? AND status IN (?, ?)" + scope,
                (error, dataset_id, *_UNFINISHED, *scope_args),
            )
            await db.commit()
            return cursor.rowcount

    async def reset_failed_segments(self, dataset_id: str, document_id: str | None = None) -> int:
        scope, scope_args = _scope_clause(document_id)
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE segments SET status = 'pending', error = NULL, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') "
                "WHERE dataset_id = ? AND status = 'failed'" + scope,
                (dataset_id, *scope_args),
            )
            await db.commit()
            return cursor.rowcount

    async def count_segment_statuses(self, document_ids: list[str]) -> dict[str, StatusCounts]:
        if not document_ids:
            return {}
        marks = _placeholders(len(document_ids))
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT document_id, status, COUNT(*) AS n FROM segments "
                f"WHERE document_id IN ({marks}) GROUP BY document_id, status",
                tuple(document_ids),
            )
            rows = await cursor.fetchall()

        raw: dict[str, dict[str, int]] = {doc_id: {} for doc_id in document_ids}
        for row in rows:
            raw[row["document_id"]][row["status"]] = row["n"]
        return {doc_id: StatusCounts(**counts) for doc_id, counts in raw.items()}

    async def update_segment_content(self, segment_id: str, content: str) -> Segment | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE segments SET content = ?, content_length = ?, status = 'pending', "
                "error = NULL, embedding = NULL, vector_dimension = NULL, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') "
                "WHERE id = ? RETURNING rowid",
                (content, len(content), segment_id),
            )
            rows = await cursor.fetchall()
            if not rows:
                return None
            if self._fts_available:
                rowid = rows[0][0]
                await db.execute("DELETE FROM segments_fts WHERE rowid = ?", (rowid,))
                await db.execute(
                    "INSERT INTO segments_fts (rowid, tokens) VALUES (?, ?)",
                    (rowid, tokenize_for_index(content)),
                )
            await db.commit()
        return await self.get_segment(segment_id)

    async def set_segment_enabled(self, segment_id: str, enabled: bool) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE segments SET enabled = ? WHERE id = ?",
                (int(enabled), segment_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    # ── Search operators ──────────────────────────────────────────────

    async def vector_search(
        self,
        dataset_id: str,
        query_embedding: list[float],
        limit: int,
        score_threshold: float | None = None,
    ) -> list[RankedChunk]:
        query = np.asarray(query_embedding, dtype=np.float32)
        query_norm = float(np.linalg.norm(query))
        if query.ndim != 1 or query.size == 0 or query_norm == 0.0:
            raise RetrievalUnavailableError(
                message="Query embedding is empty or zero",
                provider_name=self.get_provider_name(),
            )

        try:
            async with self._connect() as db:
                cursor = await db.execute(_VECTOR_CANDIDATES, (dataset_id,))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            logger.error("vector_search_failed", dataset_id=dataset_id, error=str(exc))
            raise RetrievalUnavailableError(
                message=f"Vector search is unavailable: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        candidates = [r for r in rows if len(r["embedding"]) == query.nbytes]
        skipped = len(rows) - len(candidates)
        if skipped:
            logger.warning(
                "vector_dimension_mismatch",
                dataset_id=dataset_id,
                skipped=skipped,
                query_dimension=int(query.size),
            )
        if not candidates:
            return []

        matrix = np.vstack([np.frombuffer(r["embedding"], dtype=np.float32) for r in candidates])
        norms = np.linalg.norm(matrix, axis=1)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(norms > 0, matrix @ query / (norms * query_norm), 0.0)

        scored = [
            (float(score), row)
            for score, row in zip(similarities.tolist(), candidates)
            if score_threshold is None or score >= score_threshold
        ]
        scored.sort(key=lambda pair: (-pair[0], pair[1]["id"]))
        return [self._row_to_chunk(row, score) for score, row in scored[:limit]]

    async def full_text_search(
        self,
        dataset_id: str,
        terms: list[str],
        limit: int,
    ) -> list[RankedChunk]:
        if not self._fts_available:
            raise RetrievalUnavailableError(
                message="Full-text search is unavailable: SQLite was built without FTS5",
                provider_name=self.get_provider_name(),
            )
        if not terms:
            return []

        try:
            async with self._connect() as db:
                cursor = await db.execute(
                    _FULL_TEXT_QUERY,
                    (_match_expression(terms), dataset_id, limit),
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            logger.error("full_text_search_failed", dataset_id=dataset_id, error=str(exc))
            raise RetrievalUnavailableError(
                message=f"Full-text search is unavailable: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        chunks: list[RankedChunk] = []
        for row in rows:
            # bm25() is negative; more negative means a better match.
            raw = max(0.0, -float(row["rank"]))
            chunks.append(self._row_to_chunk(row, raw / (1.0 + raw)))
        return chunks

    # ── Row mapping ───────────────────────────────────────────────────

    @staticmethod
    def _row_to_dataset(row: aiosqlite.Row) -> Dataset:
        return Dataset(
            id=row["id"],
            name=row["name"],
            retrieval_mode=row["retrieval_mode"],
            retrieval_config=RetrievalConfig.model_validate_json(row["retrieval_config"]),
            indexing_config=IndexingConfig.model_validate_json(row["indexing_config"]),
            embedding_model_id=row["embedding_model_id"],
            document_count=row["document_count"],
            chunk_count=row["chunk_count"],
            storage_size=row["storage_size"],
        )

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        return Document(
            id=row["id"],
            dataset_id=row["dataset_id"],
            file_id=row["file_id"],
            file_name=row["file_name"],
            file_type=row["file_type"],
            file_size=row["file_size"],
            status=ProcessingStatus(row["status"]),
            progress=row["progress"],
            chunk_count=row["chunk_count"],
            character_count=row["character_count"],
            embedding_model_id=row["embedding_model_id"],
            error=row["error"],
            enabled=bool(row["enabled"]),
        )

    @staticmethod
    def _row_to_segment(row: aiosqlite.Row) -> Segment:
        blob = row["embedding"]
        return Segment(
            id=row["id"],
            document_id=row["document_id"],
            dataset_id=row["dataset_id"],
            content=row["content"],
            chunk_index=row["chunk_index"],
            content_length=row["content_length"],
            children=json.loads(row["children"]) if row["children"] else None,
            embedding=np.frombuffer(blob, dtype=np.float32).tolist() if blob else None,
            vector_dimension=row["vector_dimension"],
            embedding_model_id=row["embedding_model_id"],
            status=ProcessingStatus(row["status"]),
            error=row["error"],
            enabled=bool(row["enabled"]),
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
        )

    @staticmethod
    def _row_to_chunk(row: Any, score: float) -> RankedChunk:
        return RankedChunk(
            id=row["id"],
            document_id=row["document_id"],
            content=row["content"],
            score=score,
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            chunk_index=row["chunk_index"],
            content_length=row["content_length"],
            file_name=row["file_name"],
        )
