"""OpenAI embeddings API provider."""

import logging
from typing import Optional

import httpx
import numpy as np

from ddsearch.errors import EmbeddingAuthError, EmbeddingProviderError

logger = logging.getLogger(__name__)


class OpenAIEmbedder:
    """Embedding provider backed by the OpenAI ``/embeddings`` endpoint.

    One call to embed() is one HTTP request; callers are responsible for
    batching. Nothing is retried: any failure surfaces as an
    EmbeddingProviderError carrying the HTTP status when there is one.
    """

    DEFAULT_MODEL = "text-embedding-3-small"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_TIMEOUT = 60.0

    def __init__(
        self,
        api_key: str = "",
        model_name: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize the embedder.

        Args:
            api_key: OpenAI API key. An empty key is only rejected on first use,
                     so commands that never embed still work without one.
            model_name: Embedding model. Defaults to text-embedding-3-small.
            base_url: API root, for proxies and compatible servers.
            timeout: Request timeout in seconds.
            client: Pre-built httpx client (mainly for tests).
        """
        self._api_key = api_key
        self._model_name = model_name or self.DEFAULT_MODEL
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = client

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        return self._model_name

    @property
    def client(self) -> httpx.Client:
        """Lazy-create the HTTP client on first access."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def embed(self, texts: list[str]) -> np.ndarray:
        """Generate embeddings for a batch of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            float32 array of shape (len(texts), embedding_dim)

        Raises:
            EmbeddingAuthError: If no API key is configured
            EmbeddingProviderError: If the request fails or the response is malformed
        """
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)
        if not self._api_key:
            raise EmbeddingAuthError(
                "OpenAI API key not found. Set OPENAI_API_KEY or create "
                "~/.ddsearch/secrets/openai-api-key.txt"
            )

        try:
            response = self.client.post(
                f"{self.base_url}/embeddings",
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"model": self._model_name, "input": list(texts)},
            )
        except httpx.TimeoutException as e:
            raise EmbeddingProviderError(
                f"OpenAI API request timed out after {self.timeout}s"
            ) from e
        except httpx.RequestError as e:
            raise EmbeddingProviderError(f"OpenAI API request failed: {e}") from e

        if response.status_code >= 400:
            raise EmbeddingProviderError(
                f"OpenAI API error: {response.text}", status=response.status_code
            )

        try:
            data = response.json()["data"]
            # The API documents input order, but index is authoritative
            data = sorted(data, key=lambda item: item.get("index", 0))
            vectors = np.array([item["embedding"] for item in data], dtype=np.float32)
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingProviderError(f"Failed to parse OpenAI API response: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"OpenAI API returned {len(vectors)} embeddings for {len(texts)} inputs"
            )
        return vectors
