"""
Central configuration, loaded from:
1. Environment variables (DDSEARCH_ prefix, OPENAI_API_KEY for the key)
2. .env file in the working directory
"""
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ddsearch.errors import ConfigurationError

DEFAULT_HOME = Path.home() / ".ddsearch"
LOCAL_DEFAULT_MODEL = "all-MiniLM-L6-v2"
SECRET_FILES = ("openai-api-key.txt", "openai.txt")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DDSEARCH_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Storage ──────────────────────────────────
    home: Path = DEFAULT_HOME
    db_path: Optional[Path] = None
    busy_timeout_ms: int = Field(default=5000, ge=0)
    cache_size_kib: int = Field(default=64000, ge=0)

    # ── Embeddings ───────────────────────────────
    embedding_provider: Literal["openai", "local"] = "openai"
    embedding_model: Optional[str] = None
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("DDSEARCH_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_base_url: str = "https://api.openai.com/v1"
    request_timeout: float = Field(default=60.0, gt=0)
    embed_batch_size: int = Field(default=100, ge=1)
    embed_pacing_seconds: float = Field(default=0.1, ge=0)

    # ── Chunking ─────────────────────────────────
    chunk_target_tokens: int = Field(default=300, ge=1)
    chunk_min_tokens: int = Field(default=100, ge=0)

    # ── Hybrid ranking ───────────────────────────
    lexical_weight: float = Field(default=0.4, ge=0)
    vector_weight: float = Field(default=0.6, ge=0)

    # ── Server ───────────────────────────────────
    host: str = "127.0.0.1"
    port: int = 3077

    log_level: str = "INFO"

    @classmethod
    def load(cls, **overrides) -> "Settings":
        """Load settings from the environment, raising ConfigurationError on bad values."""
        try:
            return cls(**overrides)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @property
    def database_path(self) -> Path:
        return Path(self.db_path) if self.db_path else Path(self.home) / "ddsearch.db"

    @property
    def model_name(self) -> str:
        if self.embedding_model:
            return self.embedding_model
        if self.embedding_provider == "local":
            return LOCAL_DEFAULT_MODEL
        return "text-embedding-3-small"

    def resolve_api_key(self) -> str:
        """Return the OpenAI key from the environment or the secrets directory.

        Returns an empty string when none is configured; the embedder turns
        that into an EmbeddingAuthError at first use.
        """
        if self.openai_api_key:
            return self.openai_api_key.strip()
        secrets_dir = Path(self.home) / "secrets"
        for filename in SECRET_FILES:
            path = secrets_dir / filename
            if path.is_file():
                return path.read_text(encoding="utf-8").strip()
        return ""
