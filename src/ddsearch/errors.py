"""Exception hierarchy for ddsearch."""

from typing import Optional


class DDSearchError(Exception):
    """Base class for all ddsearch errors."""


class ConfigurationError(DDSearchError, ValueError):
    """Raised for bad settings or invalid caller input. Never retried."""


class InvalidModeError(ConfigurationError):
    """Raised when a search mode is not one of lexical, vector or hybrid."""


class InvalidParameterError(ConfigurationError):
    """Raised when a search or indexing parameter is out of range."""


class CollectionNotFoundError(ConfigurationError):
    """Raised when a named collection does not exist."""


class CollectionExistsError(ConfigurationError):
    """Raised when adding a collection whose name is already taken."""


class InvalidCollectionPathError(ConfigurationError):
    """Raised when a collection base path is missing or not a directory."""


class DimensionMismatchError(DDSearchError, ValueError):
    """Raised when two vectors of different lengths are compared."""


class StoreError(DDSearchError):
    """Raised when the index store is used before open() or after close()."""


class EmbeddingError(DDSearchError):
    """Base class for embedding provider failures."""


class EmbeddingAuthError(EmbeddingError):
    """Raised when no credential is configured for the embedding provider."""


class EmbeddingProviderError(EmbeddingError):
    """Raised when the embedding provider rejects or fails a request.

    ``status`` is the HTTP status code, or None when the request never
    produced a response (connection error, timeout, malformed body).
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.status}: {self.message}"
