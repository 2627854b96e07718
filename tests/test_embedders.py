"""Tests for the embedding providers."""
import json

import httpx
import numpy as np
import pytest

from ddsearch.config import Settings
from ddsearch.embedders import OpenAIEmbedder, SentenceTransformerEmbedder, create_embedder
from ddsearch.errors import EmbeddingAuthError, EmbeddingError, EmbeddingProviderError
from ddsearch.protocols import EmbeddingProvider


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def embeddings_response(vectors, shuffle=False):
    data = [{"object": "embedding", "index": i, "embedding": v} for i, v in enumerate(vectors)]
    if shuffle:
        data.reverse()
    return httpx.Response(200, json={"object": "list", "data": data})


class TestOpenAIEmbedder:
    def test_satisfies_protocol(self):
        assert isinstance(OpenAIEmbedder(api_key="k"), EmbeddingProvider)

    def test_posts_batch_and_orders_by_index(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return embeddings_response([[1.0, 0.0], [0.0, 1.0]], shuffle=True)

        embedder = OpenAIEmbedder(api_key="sk-test", client=mock_client(handler))
        vectors = embedder.embed(["first", "second"])

        assert seen["url"] == "https://api.openai.com/v1/embeddings"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"] == {"model": "text-embedding-3-small", "input": ["first", "second"]}
        assert vectors.dtype == np.float32
        assert vectors.tolist() == [[1.0, 0.0], [0.0, 1.0]]

    def test_custom_model_and_base_url(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["model"] = json.loads(request.content)["model"]
            return embeddings_response([[0.5]])

        embedder = OpenAIEmbedder(
            api_key="k",
            model_name="text-embedding-3-large",
            base_url="http://localhost:8080/v1/",
            client=mock_client(handler),
        )
        embedder.embed(["x"])
        assert seen == {"url": "http://localhost:8080/v1/embeddings",
                        "model": "text-embedding-3-large"}
        assert embedder.model_name == "text-embedding-3-large"

    def test_empty_batch_makes_no_request(self):
        def handler(request):
            raise AssertionError("request sent")

        vectors = OpenAIEmbedder(api_key="k", client=mock_client(handler)).embed([])
        assert vectors.shape == (0, 0)

    def test_missing_key(self):
        def handler(request):
            raise AssertionError("request sent")

        with pytest.raises(EmbeddingAuthError):
            OpenAIEmbedder(api_key="", client=mock_client(handler)).embed(["x"])

    def test_http_error_carries_status(self):
        def handler(request):
            return httpx.Response(429, text="rate limited")

        embedder = OpenAIEmbedder(api_key="k", client=mock_client(handler))
        with pytest.raises(EmbeddingProviderError) as exc:
            embedder.embed(["x"])
        assert exc.value.status == 429
        assert "rate limited" in str(exc.value)
        assert str(exc.value).startswith("429")

    def test_transport_error_has_no_status(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        embedder = OpenAIEmbedder(api_key="k", client=mock_client(handler))
        with pytest.raises(EmbeddingProviderError) as exc:
            embedder.embed(["x"])
        assert exc.value.status is None

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        embedder = OpenAIEmbedder(api_key="k", timeout=5, client=mock_client(handler))
        with pytest.raises(EmbeddingProviderError, match="timed out"):
            embedder.embed(["x"])

    def test_malformed_body(self):
        def handler(request):
            return httpx.Response(200, json={"unexpected": True})

        embedder = OpenAIEmbedder(api_key="k", client=mock_client(handler))
        with pytest.raises(EmbeddingProviderError):
            embedder.embed(["x"])

    def test_count_mismatch(self):
        def handler(request):
            return embeddings_response([[1.0]])

        embedder = OpenAIEmbedder(api_key="k", client=mock_client(handler))
        with pytest.raises(EmbeddingProviderError):
            embedder.embed(["a", "b"])

    def test_errors_share_a_base(self):
        assert issubclass(EmbeddingAuthError, EmbeddingError)
        assert issubclass(EmbeddingProviderError, EmbeddingError)


class StubModel:
    def __init__(self):
        self.calls = []

    def encode(self, texts, convert_to_numpy, normalize_embeddings):
        self.calls.append((list(texts), normalize_embeddings))
        return np.ones((len(texts), 3), dtype=np.float32)

    def get_sentence_embedding_dimension(self):
        return 3


class TestSentenceTransformerEmbedder:
    def test_encodes_normalised(self):
        embedder = SentenceTransformerEmbedder()
        embedder._model = StubModel()

        vectors = embedder.embed(["a", "b"])

        assert vectors.shape == (2, 3)
        assert embedder.model.calls == [(["a", "b"], True)]
        assert embedder.dimension == 3
        assert embedder.model_name == "all-MiniLM-L6-v2"

    def test_empty_batch_skips_model(self):
        embedder = SentenceTransformerEmbedder("custom-model")
        assert embedder.embed([]).shape == (0, 0)
        assert embedder._model is None
        assert embedder.model_name == "custom-model"


class TestCreateEmbedder:
    def test_openai_by_default(self):
        embedder = create_embedder(Settings(openai_api_key="sk-x", request_timeout=7))
        assert isinstance(embedder, OpenAIEmbedder)
        assert embedder.model_name == "text-embedding-3-small"
        assert embedder.timeout == 7

    def test_local_provider(self):
        embedder = create_embedder(Settings(embedding_provider="local"))
        assert isinstance(embedder, SentenceTransformerEmbedder)
        assert embedder.model_name == "all-MiniLM-L6-v2"

    def test_model_override(self):
        embedder = create_embedder(Settings(embedding_model="my-model"))
        assert embedder.model_name == "my-model"
