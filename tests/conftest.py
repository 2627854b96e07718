import numpy as np
import pytest

from ddsearch.models import Chunk
from ddsearch.storage import IndexStore

VOCAB = ("cat", "dog", "fish")


class FakeEmbedder:
    """Deterministic embedder: explicit vectors by text, else word counts over VOCAB."""

    model_name = "fake-model"

    def __init__(self, vectors=None):
        self.vectors = vectors or {}
        self.calls: list[list[str]] = []

    def embed(self, texts):
        self.calls.append(list(texts))
        return np.array([self._vector(t) for t in texts], dtype=np.float32)

    def _vector(self, text):
        if text in self.vectors:
            return self.vectors[text]
        lowered = text.lower()
        return [lowered.count(word) + 0.01 for word in VOCAB]


class FailingEmbedder:
    model_name = "failing-model"

    def __init__(self, error):
        self.error = error

    def embed(self, texts):
        raise self.error


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep host credentials and .env files out of every test."""
    for name in ("OPENAI_API_KEY", "DDSEARCH_OPENAI_API_KEY", "DDSEARCH_DB_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DDSEARCH_HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def store(tmp_path):
    with IndexStore(tmp_path / "index.db") as s:
        yield s


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def docs_dir(tmp_path):
    root = tmp_path / "docs"
    root.mkdir()
    return root


@pytest.fixture
def seed_chunks(store, tmp_path):
    """Insert chunks directly, one document per call. Returns their chunk ids."""
    counter = {"n": 0}

    def _seed(texts, collection="seeded", file_name=None):
        existing = store.get_collections(collection)
        col = existing[0] if existing else store.add_collection(collection, str(tmp_path), "**/*.md")
        counter["n"] += 1
        path = str(tmp_path / (file_name or f"doc{counter['n']}.md"))
        chunks = [
            Chunk(
                text=text,
                file_path=path,
                chunk_index=i,
                start_line=i + 1,
                end_line=i + 1,
                token_count=len(text) // 4,
            )
            for i, text in enumerate(texts)
        ]
        with store.batch() as batch:
            doc_id = batch.insert_document(col.id, path, f"hash-{counter['n']}")
            return batch.insert_chunks(doc_id, chunks)

    return _seed
