"""SQLite-backed index store."""

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence

import numpy as np

from ddsearch.errors import StoreError
from ddsearch.models import Chunk, Collection, CollectionStats, IndexedDocument
from ddsearch.storage.schema import SCHEMA
from ddsearch.utils.vectors import encode_vector

logger = logging.getLogger(__name__)

CORRUPTION_MARKERS = ("malformed", "file is not a database", "not a database")

# Joins shared by every query that needs a chunk's file and collection
_CHUNK_SCOPE = """
    JOIN documents d ON c.document_id = d.id
    JOIN collections col ON d.collection_id = col.id
"""


def _is_corruption(error: sqlite3.DatabaseError) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in CORRUPTION_MARKERS)


def _collection_from_row(row: sqlite3.Row) -> Collection:
    return Collection(
        id=row["id"],
        name=row["name"],
        base_path=row["base_path"],
        glob_mask=row["glob_mask"],
        created_at=row["created_at"],
    )


def _document_from_row(row: sqlite3.Row) -> IndexedDocument:
    return IndexedDocument(
        id=row["id"],
        collection_id=row["collection_id"],
        file_path=row["file_path"],
        file_hash=row["file_hash"],
        indexed_at=row["indexed_at"],
    )


class IndexStore:
    """SQLite-backed storage for collections, documents, chunks and vectors.

    The store is an explicitly owned handle: open() it once at startup and
    close() it on shutdown (or use it as a context manager). Every operation
    acquires its own short-lived connection, so concurrent readers in
    different threads never share one. The database runs in WAL mode:
    readers proceed while a single writer holds the lock, and writers wait
    at most ``busy_timeout_ms`` before failing with "database is locked".
    """

    def __init__(
        self,
        path: Path | str,
        busy_timeout_ms: int = 5000,
        cache_size_kib: int = 64000,
    ):
        self.path = Path(path)
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_kib = cache_size_kib
        self._is_open = False

    @classmethod
    def from_settings(cls, settings) -> "IndexStore":
        return cls(
            settings.database_path,
            busy_timeout_ms=settings.busy_timeout_ms,
            cache_size_kib=settings.cache_size_kib,
        )

    # Lifecycle

    def open(self) -> "IndexStore":
        """Verify integrity (recovering if needed), enable WAL and create schema."""
        if self._is_open:
            return self
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._verify_integrity()

        conn = self._connect()
        try:
            mode = conn.execute("PRAGMA journal_mode = WAL").fetchone()[0]
            if str(mode).lower() != "wal":
                logger.warning(f"Failed to enable WAL mode (current: {mode})")
            conn.executescript(SCHEMA)
        finally:
            conn.close()

        self._is_open = True
        return self

    def close(self) -> None:
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    def __enter__(self) -> "IndexStore":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.path,
            timeout=self.busy_timeout_ms / 1000,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute(f"PRAGMA cache_size = -{int(self.cache_size_kib)}")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def _verify_integrity(self) -> None:
        if not self.path.exists():
            return
        try:
            conn = self._connect()
            try:
                row = conn.execute("PRAGMA quick_check").fetchone()
            finally:
                conn.close()
        except sqlite3.DatabaseError as e:
            if not _is_corruption(e):
                raise
            self._recover()
            return
        if row is None or row[0] != "ok":
            self._recover()

    def _recover(self) -> Path:
        """Move a damaged database aside so a fresh one can be created."""
        backup = self.path.with_name(f"{self.path.name}.corrupt-{int(time.time() * 1000)}")
        self.path.rename(backup)
        for suffix in ("-wal", "-shm"):
            sidecar = Path(f"{self.path}{suffix}")
            if sidecar.exists():
                sidecar.rename(Path(f"{backup}{suffix}"))
        logger.warning(
            f"Database corruption detected. Backed up to {backup}. Recreating a fresh database."
        )
        return backup

    # Connections

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for an autocommit connection."""
        if not self._is_open:
            raise StoreError(f"Index store is not open: {self.path}")
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for a write transaction, committed on success."""
        with self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    @contextmanager
    def batch(self) -> Iterator["IndexBatch"]:
        """Group document and chunk writes into one atomic unit."""
        with self.transaction() as conn:
            yield IndexBatch(conn)

    # Collections

    def add_collection(self, name: str, base_path: str, glob_mask: str) -> Collection:
        """Insert a collection. Raises sqlite3.IntegrityError on a duplicate name."""
        with self.transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO collections (name, base_path, glob_mask) VALUES (?, ?, ?)",
                (name, base_path, glob_mask),
            )
            row = conn.execute(
                "SELECT * FROM collections WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
            return _collection_from_row(row)

    def remove_collection(self, name: str) -> bool:
        """Delete a collection and everything derived from it."""
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT id FROM collections WHERE name = ?", (name,)
            ).fetchone()
            if row is None:
                return False
            conn.execute(
                f"""DELETE FROM chunks_fts WHERE rowid IN (
                       SELECT c.id FROM chunks c {_CHUNK_SCOPE} WHERE col.id = ?)""",
                (row["id"],),
            )
            conn.execute("DELETE FROM collections WHERE id = ?", (row["id"],))
            return True

    def get_collections(self, name: Optional[str] = None) -> list[Collection]:
        """Return all collections ordered by name, or the one called ``name``."""
        with self.connection() as conn:
            if name is not None:
                rows = conn.execute(
                    "SELECT * FROM collections WHERE name = ?", (name,)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM collections ORDER BY name").fetchall()
            return [_collection_from_row(row) for row in rows]

    def list_collection_stats(self) -> list[CollectionStats]:
        with self.connection() as conn:
            cursor = conn.execute(
                """SELECT col.name, col.base_path, col.glob_mask,
                          COUNT(DISTINCT d.id) AS file_count,
                          COUNT(c.id) AS chunk_count,
                          COUNT(e.chunk_id) AS embedded_count
                   FROM collections col
                   LEFT JOIN documents d ON d.collection_id = col.id
                   LEFT JOIN chunks c ON c.document_id = d.id
                   LEFT JOIN embeddings e ON e.chunk_id = c.id
                   GROUP BY col.id
                   ORDER BY col.name"""
            )
            return [CollectionStats(**dict(row)) for row in cursor]

    def totals(self) -> dict[str, int]:
        with self.connection() as conn:
            row = conn.execute(
                """SELECT
                       (SELECT COUNT(*) FROM collections) AS collections,
                       (SELECT COUNT(*) FROM documents) AS files,
                       (SELECT COUNT(*) FROM chunks) AS chunks,
                       (SELECT COUNT(*) FROM embeddings) AS embeddings"""
            ).fetchone()
            return dict(row)

    # Embeddings

    def chunks_without_embeddings(self, limit: int) -> list[tuple[int, str]]:
        """Return up to ``limit`` (chunk_id, text) pairs that have no vector yet."""
        with self.connection() as conn:
            cursor = conn.execute(
                """SELECT c.id, c.chunk_text
                   FROM chunks c
                   LEFT JOIN embeddings e ON e.chunk_id = c.id
                   WHERE e.chunk_id IS NULL
                   ORDER BY c.id
                   LIMIT ?""",
                (limit,),
            )
            return [(row["id"], row["chunk_text"]) for row in cursor]

    def store_embeddings(
        self,
        chunk_ids: Sequence[int],
        embeddings: Sequence[np.ndarray] | np.ndarray,
        model: str,
    ) -> int:
        """Store embeddings for chunks, replacing any existing vector.

        Chunks deleted since they were selected are skipped silently.
        Returns the number of vectors written.
        """
        written = 0
        with self.transaction() as conn:
            for chunk_id, embedding in zip(chunk_ids, embeddings):
                cursor = conn.execute(
                    """INSERT OR REPLACE INTO embeddings (chunk_id, embedding, embedding_model)
                       SELECT ?, ?, ? WHERE EXISTS (SELECT 1 FROM chunks WHERE id = ?)""",
                    (chunk_id, encode_vector(embedding), model, chunk_id),
                )
                written += cursor.rowcount
        return written

    def count_embeddings(self, collection: Optional[str] = None) -> int:
        with self.connection() as conn:
            if collection is None:
                row = conn.execute("SELECT COUNT(*) FROM embeddings").fetchone()
            else:
                row = conn.execute(
                    f"""SELECT COUNT(*) FROM embeddings e
                        JOIN chunks c ON e.chunk_id = c.id {_CHUNK_SCOPE}
                        WHERE col.name = ?""",
                    (collection,),
                ).fetchone()
            return row[0]

    def iter_embeddings(self, collection: Optional[str] = None) -> Iterator[sqlite3.Row]:
        """Stream every stored vector with its chunk metadata, by chunk id."""
        sql = f"""SELECT e.chunk_id, e.embedding, c.chunk_text, c.start_line, c.end_line,
                         d.file_path, col.name AS collection_name
                  FROM embeddings e
                  JOIN chunks c ON e.chunk_id = c.id {_CHUNK_SCOPE}"""
        params: tuple = ()
        if collection is not None:
            sql += " WHERE col.name = ?"
            params = (collection,)
        sql += " ORDER BY e.chunk_id"
        with self.connection() as conn:
            yield from conn.execute(sql, params)

    # Keyword search

    def match_chunks(
        self, match_query: str, limit: int, collection: Optional[str] = None
    ) -> list[sqlite3.Row]:
        """Run an FTS5 MATCH, best (most negative bm25) first."""
        sql = f"""SELECT c.id, c.chunk_text, c.start_line, c.end_line,
                         d.file_path, col.name AS collection_name,
                         bm25(chunks_fts) AS score
                  FROM chunks_fts
                  JOIN chunks c ON chunks_fts.rowid = c.id {_CHUNK_SCOPE}
                  WHERE chunks_fts MATCH ?"""
        params: list = [match_query]
        if collection is not None:
            sql += " AND col.name = ?"
            params.append(collection)
        sql += " ORDER BY score, c.id LIMIT ?"
        params.append(limit)
        with self.connection() as conn:
            return conn.execute(sql, params).fetchall()


class IndexBatch:
    """Document and chunk writes bound to one open transaction.

    Chunk rows and their keyword-index rows are written and deleted
    together, so the keyword index reflects the batch as soon as it
    commits.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def documents_for_collection(self, collection_id: int) -> list[IndexedDocument]:
        rows = self.conn.execute(
            "SELECT * FROM documents WHERE collection_id = ? ORDER BY file_path",
            (collection_id,),
        ).fetchall()
        return [_document_from_row(row) for row in rows]

    def find_document(self, collection_id: int, file_path: str) -> Optional[IndexedDocument]:
        row = self.conn.execute(
            "SELECT * FROM documents WHERE collection_id = ? AND file_path = ?",
            (collection_id, file_path),
        ).fetchone()
        return _document_from_row(row) if row else None

    def delete_document(self, document_id: int) -> None:
        """Delete a document; its chunks and embeddings cascade."""
        self.conn.execute(
            "DELETE FROM chunks_fts WHERE rowid IN (SELECT id FROM chunks WHERE document_id = ?)",
            (document_id,),
        )
        self.conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))

    def insert_document(self, collection_id: int, file_path: str, file_hash: str) -> int:
        cursor = self.conn.execute(
            "INSERT INTO documents (collection_id, file_path, file_hash) VALUES (?, ?, ?)",
            (collection_id, file_path, file_hash),
        )
        return cursor.lastrowid

    def insert_chunks(self, document_id: int, chunks: list[Chunk]) -> list[int]:
        """Store chunks plus their keyword-index rows and return their IDs."""
        chunk_ids = []
        for chunk in chunks:
            cursor = self.conn.execute(
                """INSERT INTO chunks
                   (document_id, chunk_index, chunk_text, start_line, end_line, token_count)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    document_id,
                    chunk.chunk_index,
                    chunk.text,
                    chunk.start_line,
                    chunk.end_line,
                    chunk.token_count,
                ),
            )
            self.conn.execute(
                "INSERT INTO chunks_fts (rowid, chunk_text) VALUES (?, ?)",
                (cursor.lastrowid, chunk.text),
            )
            chunk_ids.append(cursor.lastrowid)
        return chunk_ids
