"""Process-level wiring: one embedding service and candidate source per host."""

from __future__ import annotations

from datetime import datetime
from types import TracebackType
from typing import Optional

import structlog

from event_search.config import Settings, resolve_embedding_config
from event_search.config import settings as default_settings
from event_search.models import SearchQueryInput, SearchResponse
from event_search.pipeline.orchestrator import CandidateSource, run_search
from event_search.services.embeddings import EmbeddingService
from event_search.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


class SearchEngine:
    """Long-lived search entry point for a host application.

    Args:
        source:          Candidate-row provider.
        embeddings:      Shared :class:`EmbeddingService`.
        candidate_limit: Maximum candidates fetched per search.
    """

    def __init__(
        self,
        source: CandidateSource,
        embeddings: EmbeddingService,
        candidate_limit: int = 100,
    ) -> None:
        self._source = source
        self._embeddings = embeddings
        self._candidate_limit = candidate_limit

    @property
    def embeddings(self) -> EmbeddingService:
        return self._embeddings

    async def __aenter__(self) -> "SearchEngine":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def search(
        self,
        request: SearchQueryInput,
        *,
        debug: bool = False,
        now: Optional[datetime] = None,
    ) -> SearchResponse:
        return await run_search(
            request,
            self._source,
            self._embeddings,
            now=now,
            debug=debug,
            candidate_limit=self._candidate_limit,
        )

    async def aclose(self) -> None:
        logger.info("engine.shutdown")
        await self._embeddings.aclose()


async def create_search_engine(
    source: CandidateSource,
    cfg: Optional[Settings] = None,
    *,
    warm_up: bool = False,
) -> SearchEngine:
    """Configure logging, resolve the embedding backend once, and build the engine.

    Args:
        source:  Candidate-row provider.
        cfg:     Settings; defaults to the module-level instance.
        warm_up: Load the local embedding model now instead of on first search.
            A failed warm-up is logged and the engine starts anyway.
    """
    cfg = cfg or default_settings
    configure_logging(cfg.environment, cfg.log_level)
    log = structlog.get_logger(__name__)

    embedding_config = resolve_embedding_config(cfg)
    embeddings = EmbeddingService(embedding_config)

    if warm_up and embeddings.provider == "local":
        try:
            await embeddings.warm_up()
        except Exception as exc:  # noqa: BLE001
            log.warning("engine.warm_up_failed", error=str(exc))

    log.info(
        "engine.ready",
        environment=cfg.environment,
        embeddings_provider=embeddings.provider,
        candidate_limit=cfg.search_candidate_limit,
    )
    return SearchEngine(source, embeddings, candidate_limit=cfg.search_candidate_limit)
