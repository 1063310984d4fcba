"""Application configuration via pydantic-settings."""

from __future__ import annotations

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from event_search.models import EmbeddingConfig, EmbeddingProvider

logger = structlog.get_logger(__name__)

_VALID_PROVIDERS: frozenset[str] = frozenset({"none", "local", "remote"})


class Settings(BaseSettings):
    """All runtime configuration, loaded from environment / .env file."""

    search_embeddings_provider: str | None = None
    search_embeddings_api_url: str | None = None
    search_embeddings_api_key: str | None = None
    search_embeddings_rate_limit: int = Field(default=60, gt=0)
    search_embeddings_timeout_seconds: float = 10.0
    search_local_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    search_candidate_limit: int = Field(default=100, gt=0)
    ci: bool = False
    log_level: str = "INFO"
    environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Module-level singleton for host applications; library code takes config explicitly.
settings = Settings()


def resolve_embedding_provider(cfg: Settings) -> EmbeddingProvider:
    """Pick the embedding backend for this process.

    An explicit ``SEARCH_EMBEDDINGS_PROVIDER`` always wins. Without one,
    CI runs get ``"none"`` so no model is downloaded, and every other
    environment (development and production alike) gets ``"local"``.

    Args:
        cfg: Loaded :class:`Settings`.

    Returns:
        One of ``"none"``, ``"local"``, ``"remote"``.
    """
    explicit = (cfg.search_embeddings_provider or "").strip().lower()
    if explicit in _VALID_PROVIDERS:
        return explicit  # type: ignore[return-value]
    if explicit:
        logger.warning("config.unknown_embeddings_provider", value=explicit)

    if cfg.ci:
        return "none"
    return "local"


def resolve_embedding_config(cfg: Settings) -> EmbeddingConfig:
    """Build the :class:`EmbeddingConfig` the host passes to the embedding layer.

    Meant to be called once at startup.
    """
    config = EmbeddingConfig(
        provider=resolve_embedding_provider(cfg),
        remote_api_url=cfg.search_embeddings_api_url,
        remote_api_key=cfg.search_embeddings_api_key,
        rate_limit_per_minute=cfg.search_embeddings_rate_limit,
        local_model_name=cfg.search_local_model,
        request_timeout_seconds=cfg.search_embeddings_timeout_seconds,
    )
    logger.info(
        "config.embeddings_resolved",
        provider=config.provider,
        rate_limit_per_minute=config.rate_limit_per_minute,
        remote_configured=bool(config.remote_api_url and config.remote_api_key),
    )
    return config
