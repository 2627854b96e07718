"""Search API: lexical, vector and hybrid modes behind one entry point."""

from typing import Optional

from ddsearch.errors import ConfigurationError, InvalidModeError, InvalidParameterError
from ddsearch.models import SearchResult
from ddsearch.protocols import EmbeddingProvider
from ddsearch.search.hybrid import (
    DEFAULT_LEXICAL_WEIGHT,
    DEFAULT_VECTOR_WEIGHT,
    fuse,
    hybrid_search,
)
from ddsearch.search.lexical import build_match_query, lexical_search
from ddsearch.search.vector import semantic_search, vector_search
from ddsearch.storage import IndexStore

MODES = ("lexical", "vector", "hybrid")
MODE_ALIASES = {"bm25": "lexical"}
MAX_LIMIT = 100


def normalize_mode(mode: str) -> str:
    """Map a user-supplied mode (including the ``bm25`` alias) to a canonical one."""
    canonical = MODE_ALIASES.get(mode, mode)
    if canonical not in MODES:
        raise InvalidModeError(
            f"Invalid search mode: {mode}. Use lexical (bm25), vector, or hybrid."
        )
    return canonical


def clamp_limit(limit, default: int = 10, maximum: int = MAX_LIMIT) -> int:
    """Coerce untrusted input into 1..maximum."""
    try:
        value = int(limit)
    except (TypeError, ValueError):
        value = default
    return max(1, min(maximum, value))


def search(
    store: IndexStore,
    embedder: Optional[EmbeddingProvider],
    query: str,
    mode: str = "hybrid",
    limit: int = 10,
    min_score: float = 0.0,
    collection: Optional[str] = None,
    lexical_weight: float = DEFAULT_LEXICAL_WEIGHT,
    vector_weight: float = DEFAULT_VECTOR_WEIGHT,
) -> list[SearchResult]:
    """Run a search and drop results scoring below ``min_score``.

    Raises:
        InvalidModeError: If mode is not lexical, bm25, vector or hybrid
        InvalidParameterError: If limit is outside 1..100 or min_score < 0
        ConfigurationError: If vector mode is requested without an embedder
    """
    mode = normalize_mode(mode)
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_LIMIT:
        raise InvalidParameterError(f"limit must be an integer between 1 and {MAX_LIMIT}")
    if min_score < 0:
        raise InvalidParameterError("min_score must be >= 0")

    if mode == "lexical":
        results = lexical_search(store, query, limit, collection)
    elif mode == "vector":
        if embedder is None:
            raise ConfigurationError("Vector search needs an embedding provider")
        results = semantic_search(store, embedder, query, limit, collection)
    else:
        results = hybrid_search(
            store, embedder, query, limit, collection, lexical_weight, vector_weight
        )

    if min_score > 0:
        results = [r for r in results if r.score >= min_score]
    return results


def unique_files(results: list[SearchResult]) -> list[dict]:
    """Collapse results to one entry per file, keeping the first (best) hit."""
    seen: set[str] = set()
    files = []
    for result in results:
        if result.file_path in seen:
            continue
        seen.add(result.file_path)
        files.append(
            {"path": result.file_path, "collection": result.collection, "score": result.score}
        )
    return files


__all__ = [
    "MODES",
    "build_match_query",
    "clamp_limit",
    "fuse",
    "hybrid_search",
    "lexical_search",
    "normalize_mode",
    "search",
    "semantic_search",
    "unique_files",
    "vector_search",
]
