"""Chunking strategies for ddsearch."""

from ddsearch.chunkers.markdown_chunker import MarkdownChunker
from ddsearch.chunkers.tokens import CharRatioEstimator, estimate_tokens

__all__ = ["CharRatioEstimator", "MarkdownChunker", "estimate_tokens"]
