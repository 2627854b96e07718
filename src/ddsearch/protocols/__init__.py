"""Protocol definitions for extensible components."""

from ddsearch.protocols.chunker import ChunkingStrategy, TokenEstimator
from ddsearch.protocols.embedder import EmbeddingProvider

__all__ = ["ChunkingStrategy", "EmbeddingProvider", "TokenEstimator"]
