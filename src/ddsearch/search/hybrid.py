"""Weighted fusion of keyword and vector rankings."""

import logging
from typing import Optional

from ddsearch.models import SearchResult
from ddsearch.protocols import EmbeddingProvider
from ddsearch.search.lexical import lexical_search
from ddsearch.search.vector import semantic_search
from ddsearch.storage import IndexStore

logger = logging.getLogger(__name__)

DEFAULT_LEXICAL_WEIGHT = 0.4
DEFAULT_VECTOR_WEIGHT = 0.6
CANDIDATE_MULTIPLIER = 3


def fuse(
    lexical: list[SearchResult],
    vector: list[SearchResult],
    limit: int,
    lexical_weight: float = DEFAULT_LEXICAL_WEIGHT,
    vector_weight: float = DEFAULT_VECTOR_WEIGHT,
) -> list[SearchResult]:
    """Combine two normalised result lists by chunk.

    A chunk missing from one list scores 0 for that signal. The final score
    is ``lexical * lexical_weight + vector * vector_weight``; weights need not
    sum to 1.
    """
    merged: dict[int, list] = {}
    for result in lexical:
        merged[result.chunk_id] = [result, result.score, 0.0]
    for result in vector:
        if result.chunk_id in merged:
            merged[result.chunk_id][2] = result.score
        else:
            merged[result.chunk_id] = [result, 0.0, result.score]

    combined = [
        SearchResult(
            chunk_id=base.chunk_id,
            text=base.text,
            file_path=base.file_path,
            start_line=base.start_line,
            end_line=base.end_line,
            collection=base.collection,
            score=lexical_score * lexical_weight + vector_score * vector_weight,
            raw_scores={"lexical": lexical_score, "vector": vector_score},
        )
        for base, lexical_score, vector_score in merged.values()
    ]
    combined.sort(key=lambda result: result.score, reverse=True)
    return combined[:limit]


def hybrid_search(
    store: IndexStore,
    embedder: Optional[EmbeddingProvider],
    query: str,
    limit: int = 10,
    collection: Optional[str] = None,
    lexical_weight: float = DEFAULT_LEXICAL_WEIGHT,
    vector_weight: float = DEFAULT_VECTOR_WEIGHT,
) -> list[SearchResult]:
    """Keyword + vector search fused into one ranking.

    Both legs fetch ``3 * limit`` candidates. If the vector leg fails (no
    key, provider down, no embedder) the ranking falls back to keyword
    scores alone, still scaled by ``lexical_weight``.
    """
    candidates = limit * CANDIDATE_MULTIPLIER
    lexical = lexical_search(store, query, candidates, collection)

    vector: list[SearchResult] = []
    if embedder is None:
        logger.warning("Vector search unavailable: no embedding provider configured")
    else:
        try:
            vector = semantic_search(store, embedder, query, candidates, collection)
        except Exception as e:
            logger.warning(f"Vector search unavailable: {e}")

    return fuse(lexical, vector, limit, lexical_weight, vector_weight)
