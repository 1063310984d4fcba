"""Embedding generation across the none / local / remote backends."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional, Sequence

import structlog

from event_search.models import EMBEDDING_TEXT_MAX_CHARS, EmbeddingConfig, EmbeddingProvider
from event_search.services.local_model import LocalEmbeddingModel
from event_search.services.rate_limiter import TokenBucket
from event_search.services.remote_embeddings import RemoteEmbeddingClient

logger = structlog.get_logger(__name__)

# Concurrent calls per batch in generate_embeddings().
_BATCH_SIZE: dict[str, int] = {"local": 10, "remote": 5}

_EVENT_TEXT_FIELDS: tuple[str, ...] = ("title", "description", "venue", "category")


class EmbeddingService:
    """Produces semantic vectors for search text and event documents.

    One instance is meant to live for the whole process: it owns the local
    model, the remote client and the rate limiter, each created at most once.
    Tests build their own instance (or inject fakes) instead of sharing one.

    Args:
        config:        Resolved :class:`EmbeddingConfig`.
        local_model:   Optional pre-built :class:`LocalEmbeddingModel`.
        remote_client: Optional pre-built :class:`RemoteEmbeddingClient`.
    """

    def __init__(
        self,
        config: EmbeddingConfig,
        *,
        local_model: Optional[LocalEmbeddingModel] = None,
        remote_client: Optional[RemoteEmbeddingClient] = None,
    ) -> None:
        self._config = config
        self._local_model = local_model
        self._remote_client = remote_client

    @property
    def config(self) -> EmbeddingConfig:
        return self._config

    @property
    def provider(self) -> EmbeddingProvider:
        return self._config.provider

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def local_model(self) -> LocalEmbeddingModel:
        if self._local_model is None:
            self._local_model = LocalEmbeddingModel(self._config.local_model_name)
        return self._local_model

    @property
    def remote_client(self) -> RemoteEmbeddingClient:
        if self._remote_client is None:
            self._remote_client = RemoteEmbeddingClient(
                api_url=self._config.remote_api_url,
                api_key=self._config.remote_api_key,
                rate_limiter=TokenBucket(self._config.rate_limit_per_minute),
                model=self._config.remote_model_name,
                timeout=self._config.request_timeout_seconds,
            )
        return self._remote_client

    async def warm_up(self) -> None:
        """Load the local model ahead of the first request (local provider only)."""
        if self.provider == "local":
            await self.local_model.get()

    async def generate_embedding(self, text: str) -> Optional[list[float]]:
        """Embed *text* with the configured backend.

        Never raises: when embeddings are disabled, or on any failure, the
        result is ``None`` and the caller scores without semantic similarity.

        Args:
            text: Text to embed; truncated to 512 characters.

        Returns:
            The embedding vector, or ``None``.
        """
        if self.provider == "none":
            return None

        truncated = text[:EMBEDDING_TEXT_MAX_CHARS]
        try:
            if self.provider == "local":
                return await self.local_model.embed(truncated)
            return await self.remote_client.embed(truncated)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "embeddings.generate_failed",
                provider=self.provider,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

    async def generate_embeddings(self, texts: Sequence[str]) -> list[Optional[list[float]]]:
        """Embed many texts, preserving input order.

        Texts are processed in concurrent batches (10 for local, 5 for remote).
        """
        if self.provider == "none":
            return [None] * len(texts)

        batch_size = _BATCH_SIZE[self.provider]
        results: list[Optional[list[float]]] = []
        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]
            results.extend(
                await asyncio.gather(*(self.generate_embedding(text) for text in batch))
            )

        logger.info(
            "embeddings.batch_done",
            provider=self.provider,
            total=len(texts),
            failed=sum(1 for r in results if r is None),
        )
        return results

    async def aclose(self) -> None:
        if self._remote_client is not None:
            await self._remote_client.aclose()


def _event_field(event: Any, name: str) -> Any:  # noqa: ANN401
    if isinstance(event, Mapping):
        return event.get(name)
    return getattr(event, name, None)


def create_event_embedding_text(event: Any) -> str:  # noqa: ANN401
    """Build the text embedded for an event.

    Joins title, description, venue, category and tags with single spaces,
    skipping empty parts, truncated to 512 characters.

    Args:
        event: Mapping or object with those fields (e.g. :class:`CandidateRow`).

    Returns:
        Embedding input text.
    """
    parts: list[str] = []
    for name in _EVENT_TEXT_FIELDS:
        value = _event_field(event, name)
        if value:
            parts.append(str(value))
    parts.extend(str(tag) for tag in (_event_field(event, "tags") or []) if tag)

    cleaned = [p.strip() for p in parts if p.strip()]
    return " ".join(cleaned)[:EMBEDDING_TEXT_MAX_CHARS]
