"""Tests for the SQLite IndexStore."""
import sqlite3

import numpy as np
import pytest

from ddsearch.errors import StoreError
from ddsearch.storage import IndexStore


def count(store, table):
    with store.connection() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


class TestLifecycle:
    def test_open_creates_schema(self, tmp_path):
        store = IndexStore(tmp_path / "nested" / "index.db").open()
        with store.connection() as conn:
            names = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table')")
            }
        assert {"collections", "documents", "chunks", "embeddings", "chunks_fts"} <= names
        store.close()

    def test_wal_mode_and_busy_timeout(self, tmp_path):
        with IndexStore(tmp_path / "index.db", busy_timeout_ms=1234) as store:
            with store.connection() as conn:
                assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
                assert conn.execute("PRAGMA busy_timeout").fetchone()[0] == 1234
                assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_use_before_open_raises(self, tmp_path):
        store = IndexStore(tmp_path / "index.db")
        with pytest.raises(StoreError):
            store.get_collections()

    def test_use_after_close_raises(self, tmp_path):
        store = IndexStore(tmp_path / "index.db").open()
        store.close()
        with pytest.raises(StoreError):
            store.totals()

    def test_reopen_keeps_data(self, tmp_path):
        with IndexStore(tmp_path / "index.db") as store:
            store.add_collection("notes", str(tmp_path), "**/*.md")
        with IndexStore(tmp_path / "index.db") as store:
            assert [c.name for c in store.get_collections()] == ["notes"]


class TestCorruptionRecovery:
    def test_garbage_file_is_backed_up_and_replaced(self, tmp_path):
        db_path = tmp_path / "index.db"
        db_path.write_bytes(b"this is certainly not a sqlite database " * 200)

        with IndexStore(db_path) as store:
            assert store.get_collections() == []
            store.add_collection("fresh", str(tmp_path), "**/*.md")

        backups = list(tmp_path.glob("index.db.corrupt-*"))
        assert len(backups) == 1
        assert backups[0].read_bytes().startswith(b"this is certainly not")

    def test_healthy_database_is_left_alone(self, tmp_path):
        with IndexStore(tmp_path / "index.db"):
            pass
        with IndexStore(tmp_path / "index.db"):
            pass
        assert list(tmp_path.glob("index.db.corrupt-*")) == []


class TestWrites:
    def test_duplicate_collection_name_raises_integrity_error(self, store, tmp_path):
        store.add_collection("notes", str(tmp_path), "**/*.md")
        with pytest.raises(sqlite3.IntegrityError):
            store.add_collection("notes", str(tmp_path), "**/*.txt")

    def test_insert_chunks_updates_keyword_index(self, store, seed_chunks):
        seed_chunks(["alpha beta", "gamma"])
        rows = store.match_chunks('"gamma"', 10)
        assert [r["chunk_text"] for r in rows] == ["gamma"]

    def test_delete_document_cascades(self, store, seed_chunks):
        ids = seed_chunks(["alpha", "beta"])
        store.store_embeddings(ids, np.ones((2, 3), dtype=np.float32), "m")

        with store.batch() as batch:
            doc = batch.documents_for_collection(store.get_collections("seeded")[0].id)[0]
            batch.delete_document(doc.id)

        assert count(store, "chunks") == 0
        assert count(store, "embeddings") == 0
        assert count(store, "chunks_fts") == 0
        assert store.match_chunks('"alpha"', 10) == []

    def test_remove_collection_cascades(self, store, seed_chunks):
        ids = seed_chunks(["alpha", "beta"])
        store.store_embeddings(ids, np.ones((2, 3), dtype=np.float32), "m")

        assert store.remove_collection("seeded") is True
        assert store.totals() == {"collections": 0, "files": 0, "chunks": 0, "embeddings": 0}
        assert count(store, "chunks_fts") == 0

    def test_remove_missing_collection(self, store):
        assert store.remove_collection("nope") is False

    def test_failed_batch_rolls_back(self, store, seed_chunks):
        seed_chunks(["alpha"])
        col = store.get_collections("seeded")[0]
        with pytest.raises(RuntimeError):
            with store.batch() as batch:
                batch.insert_document(col.id, "/tmp/other.md", "h")
                raise RuntimeError("boom")
        assert store.totals()["files"] == 1


class TestEmbeddings:
    def test_chunks_without_embeddings(self, store, seed_chunks):
        ids = seed_chunks(["a", "b", "c"])
        store.store_embeddings(ids[:1], [np.array([1.0, 0.0])], "m")
        assert store.chunks_without_embeddings(10) == [(ids[1], "b"), (ids[2], "c")]
        assert store.chunks_without_embeddings(1) == [(ids[1], "b")]

    def test_store_embeddings_replaces(self, store, seed_chunks):
        ids = seed_chunks(["a"])
        store.store_embeddings(ids, [np.array([1.0, 0.0])], "m1")
        store.store_embeddings(ids, [np.array([0.0, 1.0])], "m2")
        rows = list(store.iter_embeddings())
        assert len(rows) == 1
        with store.connection() as conn:
            model = conn.execute("SELECT embedding_model FROM embeddings").fetchone()[0]
        assert model == "m2"

    def test_store_embeddings_skips_deleted_chunks(self, store, seed_chunks):
        ids = seed_chunks(["a"])
        written = store.store_embeddings([ids[0], 9999], [np.ones(2), np.ones(2)], "m")
        assert written == 1
        assert store.count_embeddings() == 1

    def test_count_embeddings_by_collection(self, store, seed_chunks):
        a = seed_chunks(["a"], collection="one")
        b = seed_chunks(["b", "c"], collection="two")
        store.store_embeddings(a + b, np.ones((3, 2)), "m")
        assert store.count_embeddings() == 3
        assert store.count_embeddings("one") == 1
        assert store.count_embeddings("two") == 2
        assert store.count_embeddings("missing") == 0

    def test_collection_stats(self, store, seed_chunks):
        ids = seed_chunks(["a", "b"], collection="one")
        store.store_embeddings(ids[:1], np.ones((1, 2)), "m")
        stats = store.list_collection_stats()
        assert len(stats) == 1
        assert (stats[0].file_count, stats[0].chunk_count, stats[0].embedded_count) == (1, 2, 1)
