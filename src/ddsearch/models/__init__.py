"""Data models for ddsearch."""

from ddsearch.models.document import Chunk, Collection, IndexedDocument
from ddsearch.models.results import (
    CollectionReport,
    CollectionStats,
    IndexReport,
    SearchResult,
)

__all__ = [
    "Chunk",
    "Collection",
    "CollectionReport",
    "CollectionStats",
    "IndexedDocument",
    "IndexReport",
    "SearchResult",
]
