"""Utility functions for ddsearch."""

from ddsearch.utils.binary import is_binary_content
from ddsearch.utils.hashing import fingerprint
from ddsearch.utils.vectors import (
    cosine_similarity,
    decode_vector,
    encode_vector,
    similarity_to_score,
)

__all__ = [
    "cosine_similarity",
    "decode_vector",
    "encode_vector",
    "fingerprint",
    "is_binary_content",
    "similarity_to_score",
]
