"""
Collections -> files -> fingerprints -> chunks -> SQLite (+ keyword index)

Indexing is incremental: a file is re-chunked only when its SHA-256
fingerprint changed (or a full pass is forced). Each collection is
reindexed inside one write transaction, so a crash mid-pass leaves the
index exactly as it was before that pass.

Embeddings are produced by a separate pass, embed_pending(), which picks
up chunks without a vector in bounded batches until none remain. It is
idempotent: re-running it after a failure continues where it stopped.
"""
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from ddsearch.catalog import get_collections
from ddsearch.chunkers import MarkdownChunker
from ddsearch.errors import EmbeddingProviderError, InvalidParameterError
from ddsearch.models import Collection, CollectionReport, IndexReport
from ddsearch.protocols import ChunkingStrategy, EmbeddingProvider
from ddsearch.storage import IndexBatch, IndexStore
from ddsearch.utils import fingerprint, is_binary_content

logger = logging.getLogger(__name__)

INDEXED = "indexed"
UNCHANGED = "unchanged"
BINARY = "binary"
UNREADABLE = "unreadable"

DEFAULT_EMBED_BATCH_SIZE = 100
DEFAULT_PACING_SECONDS = 0.1


def discover_files(collection: Collection) -> list[str]:
    """Return absolute paths of files matching the collection's glob mask.

    Dot-files and anything under a dot-directory are skipped.
    """
    base = Path(collection.base_path)
    try:
        candidates = base.glob(collection.glob_mask)
    except (ValueError, NotImplementedError) as e:
        raise InvalidParameterError(
            f"Invalid glob mask for collection {collection.name}: {collection.glob_mask}"
        ) from e

    files = set()
    for path in candidates:
        if any(part.startswith(".") for part in path.relative_to(base).parts):
            continue
        if path.is_file():
            files.add(str(path))
    return sorted(files)


def reindex(
    store: IndexStore,
    collection_name: Optional[str] = None,
    full: bool = False,
    chunker: Optional[ChunkingStrategy] = None,
) -> IndexReport:
    """Bring the index in line with the files on disk.

    Args:
        store: Open index store
        collection_name: Only reindex this collection
        full: Re-chunk every file even when its fingerprint is unchanged
        chunker: Chunking strategy, MarkdownChunker by default

    Returns:
        Per-collection counts of matched, indexed, skipped and removed files

    Raises:
        CollectionNotFoundError: If collection_name matches no collection
    """
    chunker = chunker or MarkdownChunker()
    report = IndexReport()
    for collection in get_collections(store, collection_name):
        report.collections.append(_reindex_collection(store, collection, full, chunker))
    return report


def _reindex_collection(
    store: IndexStore,
    collection: Collection,
    full: bool,
    chunker: ChunkingStrategy,
) -> CollectionReport:
    files = discover_files(collection)
    matched = set(files)
    result = CollectionReport(name=collection.name, matched=len(files))

    with store.batch() as batch:
        for doc in batch.documents_for_collection(collection.id):
            if doc.file_path not in matched:
                batch.delete_document(doc.id)
                result.removed += 1

        for file_path in files:
            status, chunk_count = _index_file(batch, collection.id, file_path, full, chunker)
            if status == INDEXED:
                result.indexed += 1
                result.chunks += chunk_count
            else:
                result.skipped += 1
                if status in (BINARY, UNREADABLE):
                    result.failed += 1

    logger.info(
        f"{collection.name}: {result.indexed} indexed, {result.skipped} skipped, "
        f"{result.removed} removed, {result.chunks} chunks"
    )
    return result


def _index_file(
    batch: IndexBatch,
    collection_id: int,
    file_path: str,
    full: bool,
    chunker: ChunkingStrategy,
) -> tuple[str, int]:
    """Index one file. Returns (status, chunks written)."""
    existing = batch.find_document(collection_id, file_path)

    try:
        raw = Path(file_path).read_bytes()
    except OSError as e:
        logger.warning(f"Failed to read file: {file_path} ({e})")
        return UNREADABLE, 0

    if is_binary_content(raw):
        if existing:
            batch.delete_document(existing.id)
        logger.warning(f"Skipping binary file: {file_path}")
        return BINARY, 0

    content = raw.decode("utf-8", errors="replace")
    file_hash = fingerprint(content)

    if existing and existing.file_hash == file_hash and not full:
        return UNCHANGED, 0

    if existing:
        batch.delete_document(existing.id)

    document_id = batch.insert_document(collection_id, file_path, file_hash)
    chunks = chunker.chunk(content, file_path)
    batch.insert_chunks(document_id, chunks)
    return INDEXED, len(chunks)


def embed_pending(
    store: IndexStore,
    embedder: EmbeddingProvider,
    batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
    pacing_seconds: float = DEFAULT_PACING_SECONDS,
    on_batch: Optional[Callable[[int], None]] = None,
) -> int:
    """Embed every chunk that has no vector yet.

    Each batch is committed on its own. A provider error aborts the pass
    but keeps earlier batches, so the pass can simply be run again.

    Args:
        store: Open index store
        embedder: Provider used for chunk vectors
        batch_size: Texts per provider request
        pacing_seconds: Courtesy delay between requests
        on_batch: Called with the running total after each batch

    Returns:
        Number of chunks embedded
    """
    if batch_size < 1:
        raise InvalidParameterError("batch_size must be at least 1")

    total = 0
    while True:
        pending = store.chunks_without_embeddings(batch_size)
        if not pending:
            break
        if total and pacing_seconds > 0:
            time.sleep(pacing_seconds)

        chunk_ids = [chunk_id for chunk_id, _ in pending]
        texts = [text for _, text in pending]
        logger.info(f"Processing batch of {len(pending)} chunks...")

        vectors = embedder.embed(texts)
        if len(vectors) != len(chunk_ids):
            raise EmbeddingProviderError(
                f"Embedding provider returned {len(vectors)} vectors for {len(chunk_ids)} texts"
            )
        store.store_embeddings(chunk_ids, vectors, embedder.model_name)
        total += len(chunk_ids)

        logger.info(f"  {total} embeddings generated")
        if on_batch is not None:
            on_batch(total)

    return total
