"""Embedding providers for vector generation."""

from ddsearch.embedders.openai_embedder import OpenAIEmbedder
from ddsearch.embedders.sentence_transformer import SentenceTransformerEmbedder
from ddsearch.protocols import EmbeddingProvider


def create_embedder(settings) -> EmbeddingProvider:
    """Build the embedding provider selected by ``settings.embedding_provider``."""
    if settings.embedding_provider == "local":
        return SentenceTransformerEmbedder(settings.model_name)
    return OpenAIEmbedder(
        api_key=settings.resolve_api_key(),
        model_name=settings.model_name,
        base_url=settings.openai_base_url,
        timeout=settings.request_timeout,
    )


__all__ = ["OpenAIEmbedder", "SentenceTransformerEmbedder", "create_embedder"]
