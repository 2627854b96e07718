"""Protocols for text chunking strategies."""

from typing import Protocol, runtime_checkable

from ddsearch.models import Chunk


@runtime_checkable
class ChunkingStrategy(Protocol):
    """Protocol for text chunking strategies.

    Different strategies can be used for different content types.
    """

    def chunk(self, text: str, file_path: str) -> list[Chunk]:
        """Split text into chunks with metadata."""
        ...


@runtime_checkable
class TokenEstimator(Protocol):
    """Protocol for approximate token counting.

    Chunk sizing only ever goes through this, so a real tokenizer can be
    dropped in without touching the chunker.
    """

    def count(self, text: str) -> int:
        """Return the estimated token count of ``text``."""
        ...
