"""Brute-force cosine similarity search over stored embeddings.

Every stored vector matching the collection filter is scanned once per
query while a k-sized min-heap keeps the best candidates, so a query costs
O(chunks). An approximate nearest-neighbour index could replace
vector_search() without changing its callers.
"""

import heapq
import logging
from typing import Optional

import numpy as np

from ddsearch.models import SearchResult
from ddsearch.protocols import EmbeddingProvider
from ddsearch.storage import IndexStore
from ddsearch.utils.vectors import VectorLike, cosine_similarity, decode_vector, similarity_to_score

logger = logging.getLogger(__name__)


def vector_search(
    store: IndexStore,
    query_vector: VectorLike,
    limit: int = 10,
    collection: Optional[str] = None,
) -> list[SearchResult]:
    """Return the ``limit`` stored chunks most similar to ``query_vector``.

    Scores are ``(cosine + 1) / 2``. Equal scores keep scan order (chunk id).
    Stored vectors whose dimension differs from the query are skipped.
    """
    if limit < 1:
        return []
    query = np.asarray(query_vector, dtype=np.float32)

    # Min-heap of (score, -seq, result): the root is the weakest candidate,
    # and among equal scores the most recently scanned one.
    heap: list[tuple[float, int, SearchResult]] = []
    skipped = 0

    for seq, row in enumerate(store.iter_embeddings(collection)):
        try:
            similarity = cosine_similarity(query, decode_vector(row["embedding"]))
        except ValueError as e:
            # Dimension mismatch or truncated blob: isolated to this chunk
            skipped += 1
            logger.debug(f"Skipping vector for chunk {row['chunk_id']}: {e}")
            continue

        score = similarity_to_score(similarity)
        if len(heap) >= limit and score <= heap[0][0]:
            continue

        entry = (
            score,
            -seq,
            SearchResult(
                chunk_id=row["chunk_id"],
                text=row["chunk_text"],
                file_path=row["file_path"],
                start_line=row["start_line"],
                end_line=row["end_line"],
                collection=row["collection_name"],
                score=score,
                raw_scores={"cosine": similarity},
            ),
        )
        if len(heap) < limit:
            heapq.heappush(heap, entry)
        else:
            heapq.heapreplace(heap, entry)

    if skipped:
        logger.warning(f"Skipped {skipped} stored vectors with a mismatched dimension")

    heap.sort(key=lambda entry: (-entry[0], -entry[1]))
    return [result for _, _, result in heap]


def semantic_search(
    store: IndexStore,
    embedder: EmbeddingProvider,
    query: str,
    limit: int = 10,
    collection: Optional[str] = None,
) -> list[SearchResult]:
    """Embed ``query`` and run vector_search().

    When nothing is embedded for the filter, returns [] without calling the
    embedding provider.
    """
    if store.count_embeddings(collection) == 0:
        return []
    query_vector = embedder.embed([query])[0]
    return vector_search(store, query_vector, limit, collection)
