import json
import logging
import os
import sqlite3
import threading
from datetime import datetime
from typing import Iterable

from docqa.core.errors import DocQAError
from docqa.core.models import (
    Chunk,
    ChunkMetadata,
    Document,
    DocumentMetadata,
    DocumentStatus,
    Query,
    QuerySource,
    utcnow,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents(
    doc_id TEXT PRIMARY KEY,
    name TEXT,
    type TEXT,
    size INTEGER,
    upload_date TEXT,
    processed_date TEXT,
    status TEXT,
    content TEXT,
    meta_json TEXT
);
CREATE TABLE IF NOT EXISTS chunks(
    chunk_id TEXT PRIMARY KEY,
    doc_id TEXT,
    position INTEGER,
    content TEXT,
    page_number INTEGER,
    start_index INTEGER,
    end_index INTEGER,
    embedding_json TEXT,
    meta_json TEXT,
    FOREIGN KEY(doc_id) REFERENCES documents(doc_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_chunks_doc ON chunks(doc_id);
CREATE TABLE IF NOT EXISTS queries(
    query_id TEXT PRIMARY KEY,
    question TEXT,
    document_ids_json TEXT,
    max_results INTEGER,
    answer TEXT,
    sources_json TEXT,
    confidence REAL,
    processing_time INTEGER,
    created_at TEXT
);
"""

_DOC_COLS = "doc_id, name, type, size, upload_date, processed_date, status, content, meta_json"
_CHUNK_COLS = "c.chunk_id, c.doc_id, c.content, c.page_number, c.start_index, c.end_index, c.embedding_json, c.meta_json"
_QUERY_COLS = "query_id, question, document_ids_json, max_results, answer, sources_json, confidence, processing_time, created_at"


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _row_to_document(r) -> Document:
    return Document(
        doc_id=r[0],
        name=r[1],
        type=r[2],
        size=r[3] or 0,
        upload_date=r[4],
        processed_date=r[5],
        status=r[6],
        content=r[7],
        metadata=DocumentMetadata.model_validate_json(r[8] or "{}"),
    )


def _row_to_chunk(r) -> Chunk:
    return Chunk(
        chunk_id=r[0],
        doc_id=r[1],
        content=r[2],
        page_number=r[3],
        start_index=r[4],
        end_index=r[5],
        embedding=json.loads(r[6]) if r[6] else None,
        metadata=ChunkMetadata.model_validate_json(r[7] or "{}"),
    )


def _row_to_query(r) -> Query:
    return Query(
        query_id=r[0],
        question=r[1],
        document_ids=json.loads(r[2]) if r[2] else None,
        max_results=r[3],
        answer=r[4],
        sources=[QuerySource.model_validate(s) for s in json.loads(r[5] or "[]")],
        confidence=r[6],
        processing_time=r[7],
        created_at=r[8],
    )


class DocumentStore:
    """SQLite-backed store for documents, chunks and the query log.

    One connection is opened by ``init()`` and shared behind a lock;
    ``close()`` releases it. ``":memory:"`` works for tests.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def init(self) -> None:
        if self._conn is not None:
            return
        if self.db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(SCHEMA)
        self._conn.commit()
        logger.info("document store ready at %s", self.db_path)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("DocumentStore.init() has not been called")
        return self._conn

    def ping(self) -> bool:
        try:
            with self._lock:
                self.conn.execute("SELECT 1").fetchone()
            return True
        except (sqlite3.Error, RuntimeError):
            return False

    # documents

    def save_document(self, doc: Document) -> None:
        with self._lock:
            self.conn.execute(
                f"INSERT OR REPLACE INTO documents({_DOC_COLS}) VALUES(?,?,?,?,?,?,?,?,?)",
                (
                    doc.doc_id,
                    doc.name,
                    doc.type,
                    doc.size,
                    _ts(doc.upload_date),
                    _ts(doc.processed_date),
                    doc.status.value,
                    doc.content,
                    doc.metadata.model_dump_json(),
                ),
            )
            self.conn.commit()

    def get_document(self, doc_id: str, with_chunks: bool = False) -> Document | None:
        with self._lock:
            row = self.conn.execute(
                f"SELECT {_DOC_COLS} FROM documents WHERE doc_id=?", (doc_id,)
            ).fetchone()
        if not row:
            return None
        doc = _row_to_document(row)
        if with_chunks:
            doc.chunks = self.list_chunks([doc_id])
        return doc

    def require_document(self, doc_id: str) -> Document:
        doc = self.get_document(doc_id)
        if doc is None:
            raise DocQAError.not_found("Document", doc_id)
        return doc

    def list_documents(self, status: DocumentStatus | None = None) -> list[Document]:
        sql = f"SELECT {_DOC_COLS} FROM documents"
        params: tuple = ()
        if status is not None:
            sql += " WHERE status=?"
            params = (status.value,)
        with self._lock:
            rows = self.conn.execute(sql + " ORDER BY upload_date DESC, rowid DESC", params).fetchall()
        return [_row_to_document(r) for r in rows]

    def update_status(self, doc_id: str, status: DocumentStatus) -> Document:
        with self._lock:
            doc = self.require_document(doc_id)
            if not doc.status.can_transition_to(status):
                raise DocQAError.invalid_transition(doc_id, doc.status.value, status.value)
            processed_date = utcnow() if status is DocumentStatus.PROCESSED else doc.processed_date
            self.conn.execute(
                "UPDATE documents SET status=?, processed_date=? WHERE doc_id=?",
                (status.value, _ts(processed_date), doc_id),
            )
            self.conn.commit()
        logger.info("document %s: %s -> %s", doc_id, doc.status.value, status.value)
        return doc.model_copy(update={"status": status, "processed_date": processed_date})

    def delete_document(self, doc_id: str) -> bool:
        with self._lock:
            self.conn.execute("DELETE FROM chunks WHERE doc_id=?", (doc_id,))
            cur = self.conn.execute("DELETE FROM documents WHERE doc_id=?", (doc_id,))
            self.conn.commit()
        return cur.rowcount > 0

    # chunks

    def replace_chunks(self, doc_id: str, chunks: list[Chunk]) -> None:
        """Swap a document's chunks in one transaction."""
        rows = [
            (
                c.chunk_id,
                c.doc_id,
                i,
                c.content,
                c.page_number,
                c.start_index,
                c.end_index,
                json.dumps(c.embedding) if c.embedding is not None else None,
                c.metadata.model_dump_json(),
            )
            for i, c in enumerate(chunks)
        ]
        with self._lock:
            try:
                self.conn.execute("DELETE FROM chunks WHERE doc_id=?", (doc_id,))
                self.conn.executemany(
                    "INSERT INTO chunks(chunk_id, doc_id, position, content, page_number, start_index, "
                    "end_index, embedding_json, meta_json) VALUES(?,?,?,?,?,?,?,?,?)",
                    rows,
                )
                self.conn.commit()
            except sqlite3.Error:
                self.conn.rollback()
                raise

    def list_chunks(self, doc_ids: Iterable[str] | None = None, processed_only: bool = False) -> list[Chunk]:
        sql = f"SELECT {_CHUNK_COLS} FROM chunks c JOIN documents d ON d.doc_id = c.doc_id"
        where, params = [], []
        ids = list(doc_ids or [])
        if ids:
            where.append(f"c.doc_id IN ({','.join('?' * len(ids))})")
            params.extend(ids)
        if processed_only:
            where.append("d.status = ?")
            params.append(DocumentStatus.PROCESSED.value)
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY d.upload_date, d.rowid, c.position"
        with self._lock:
            rows = self.conn.execute(sql, params).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        found = self.get_chunks([chunk_id])
        return found[0] if found else None

    def get_chunks(self, chunk_ids: list[str], processed_only: bool = False) -> list[Chunk]:
        """Fetch chunks by id, in the order given; unknown ids are skipped."""
        if not chunk_ids:
            return []
        sql = (
            f"SELECT {_CHUNK_COLS} FROM chunks c JOIN documents d ON d.doc_id = c.doc_id "
            f"WHERE c.chunk_id IN ({','.join('?' * len(chunk_ids))})"
        )
        params: list = list(chunk_ids)
        if processed_only:
            sql += " AND d.status = ?"
            params.append(DocumentStatus.PROCESSED.value)
        with self._lock:
            rows = self.conn.execute(sql, params).fetchall()
        by_id = {r[0]: _row_to_chunk(r) for r in rows}
        return [by_id[cid] for cid in chunk_ids if cid in by_id]

    def count_chunks(self, doc_id: str) -> int:
        with self._lock:
            return self.conn.execute("SELECT COUNT(*) FROM chunks WHERE doc_id=?", (doc_id,)).fetchone()[0]

    # queries (append-only)

    def save_query(self, query: Query) -> None:
        with self._lock:
            self.conn.execute(
                f"INSERT INTO queries({_QUERY_COLS}) VALUES(?,?,?,?,?,?,?,?,?)",
                (
                    query.query_id,
                    query.question,
                    json.dumps(query.document_ids) if query.document_ids is not None else None,
                    query.max_results,
                    query.answer,
                    json.dumps([s.model_dump() for s in query.sources]),
                    query.confidence,
                    query.processing_time,
                    _ts(query.created_at),
                ),
            )
            self.conn.commit()

    def get_query(self, query_id: str) -> Query | None:
        with self._lock:
            row = self.conn.execute(f"SELECT {_QUERY_COLS} FROM queries WHERE query_id=?", (query_id,)).fetchone()
        return _row_to_query(row) if row else None

    def query_history(self, limit: int = 10) -> list[Query]:
        with self._lock:
            rows = self.conn.execute(
                f"SELECT {_QUERY_COLS} FROM queries ORDER BY created_at DESC, rowid DESC LIMIT ?", (limit,)
            ).fetchall()
        return [_row_to_query(r) for r in rows]
