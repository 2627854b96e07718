"""SentenceTransformer-based embedding provider."""

from typing import Optional

import numpy as np


class SentenceTransformerEmbedder:
    """Embedding provider using sentence-transformers library.

    Runs fully offline once the model is cached. Uses all-MiniLM-L6-v2 by
    default, a fast, lightweight model that is good enough for semantic
    search over notes and docs.
    """

    DEFAULT_MODEL = "all-MiniLM-L6-v2"

    def __init__(self, model_name: Optional[str] = None):
        """Initialize the embedder.

        Args:
            model_name: Name of the sentence-transformers model to use.
                       Defaults to all-MiniLM-L6-v2.
        """
        self._model_name = model_name or self.DEFAULT_MODEL
        self._model = None

    @property
    def model(self):
        """Lazy-load the model on first access."""
        if self._model is None:
            # Imported here so the OpenAI path never pays for torch
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self._model_name)
        return self._model

    @property
    def dimension(self) -> int:
        """Return the embedding dimension."""
        return self.model.get_sentence_embedding_dimension()

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        return self._model_name

    def embed(self, texts: list[str]) -> np.ndarray:
        """Generate embeddings for a batch of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            numpy array of shape (len(texts), embedding_dim)
        """
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)

        return self.model.encode(
            texts,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
