"""Core data models for collections, documents and chunks."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Collection:
    """A named root directory plus the glob mask selecting its files."""

    id: int
    name: str
    base_path: str
    glob_mask: str
    created_at: Optional[int] = None


@dataclass(frozen=True)
class IndexedDocument:
    """The stored record of one indexed file."""

    id: int
    collection_id: int
    file_path: str
    file_hash: str
    indexed_at: Optional[int] = None


@dataclass
class Chunk:
    """A contiguous slice of a document with its 1-based line range."""

    text: str
    file_path: str
    chunk_index: int
    start_line: int
    end_line: int
    token_count: int
