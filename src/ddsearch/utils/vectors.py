"""Vector codecs and similarity for BLOB-stored embeddings.

Vectors are stored as little-endian float32 bytes, 4 bytes per dimension.
"""

from typing import Sequence, Union

import numpy as np

from ddsearch.errors import DimensionMismatchError

VectorLike = Union[np.ndarray, Sequence[float]]

_DTYPE = np.dtype("<f4")


def encode_vector(vector: VectorLike) -> bytes:
    """Pack a vector into float32 little-endian bytes."""
    return np.asarray(vector, dtype=_DTYPE).tobytes()


def decode_vector(blob: bytes) -> np.ndarray:
    """Unpack float32 little-endian bytes into a numpy array."""
    if len(blob) % _DTYPE.itemsize:
        raise ValueError(f"Vector blob length {len(blob)} is not a multiple of 4")
    return np.frombuffer(blob, dtype=_DTYPE)


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """Compute cosine similarity between two vectors.

    Returns 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatchError(
            f"Vectors must have the same length ({a.shape[0]} != {b.shape[0]})"
        )
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def similarity_to_score(similarity: float) -> float:
    """Map a cosine similarity in [-1, 1] onto [0, 1]."""
    return min(1.0, max(0.0, (similarity + 1.0) / 2.0))
