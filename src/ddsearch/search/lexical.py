"""Keyword search over the FTS5 index."""

import logging
import sqlite3
from typing import Optional

from ddsearch.models import SearchResult
from ddsearch.storage import IndexStore

logger = logging.getLogger(__name__)


def build_match_query(query: str) -> str:
    """Turn free text into an FTS5 query that requires every token literally.

    Each whitespace-separated token is wrapped in double quotes, with any
    embedded double quote doubled. Returns an empty string when the query
    has no tokens.
    """
    tokens = [token.replace('"', '""') for token in query.split()]
    return " AND ".join(f'"{token}"' for token in tokens)


def lexical_search(
    store: IndexStore,
    query: str,
    limit: int = 10,
    collection: Optional[str] = None,
) -> list[SearchResult]:
    """BM25 keyword search.

    FTS5's bm25() is unbounded and negative (more negative = better). Scores
    are normalised per result batch: ``abs(score) / max(abs scores, 1)``, so
    they are only comparable within one query, not across queries.
    """
    match_query = build_match_query(query or "")
    if not match_query:
        return []

    try:
        rows = store.match_chunks(match_query, limit, collection)
    except sqlite3.OperationalError as e:
        if "fts5" not in str(e).lower():
            raise
        logger.warning(f"Keyword query rejected by FTS5: {e}")
        return []

    scores = [abs(row["score"]) for row in rows]
    max_score = max([*scores, 1.0])

    return [
        SearchResult(
            chunk_id=row["id"],
            text=row["chunk_text"],
            file_path=row["file_path"],
            start_line=row["start_line"],
            end_line=row["end_line"],
            collection=row["collection_name"],
            score=score / max_score,
            raw_scores={"bm25": row["score"]},
        )
        for row, score in zip(rows, scores)
    ]
