"""Search orchestrator: wires parsing, candidate retrieval and ranking together."""

from __future__ import annotations

import time
from datetime import date, datetime
from typing import Optional, Protocol

import structlog

from event_search.models import (
    CandidateRow,
    RankCandidate,
    RankedCandidate,
    SearchDebug,
    SearchFilters,
    SearchQueryInput,
    SearchResponse,
    SearchResult,
)
from event_search.pipeline.filters import merge_filters, normalize_filters
from event_search.pipeline.parser import parse_query
from event_search.pipeline.rank import (
    WEIGHTS_NO_EMBEDDINGS,
    calculate_recency_boost,
    normalize_score,
    rank_candidates,
    re_rank_with_embeddings,
    select_weights,
)
from event_search.services.embeddings import EmbeddingService

logger = structlog.get_logger(__name__)


class CandidateSource(Protocol):
    """External query layer returning lexical candidates for a search."""

    async def fetch_candidates(
        self,
        filters: SearchFilters,
        query: str,
        limit: int,
    ) -> list[CandidateRow]:
        """Return up to *limit* rows matching *filters*, with raw FTS/trigram signals."""
        ...


def resolve_filters(
    request: SearchQueryInput,
    now: date | datetime | None = None,
) -> SearchFilters:
    """Parse ``request.q``, overlay the explicit filters and normalise."""
    parsed = parse_query(request.q, now) if request.q else SearchFilters()
    return normalize_filters(merge_filters(parsed, request.filters))


def build_rank_candidates(
    rows: list[CandidateRow],
    now: date | datetime,
) -> list[RankCandidate]:
    """Turn raw rows into candidates with signals scaled to [0, 1].

    FTS ranks are min-max normalised across the pool, trigram similarity is
    clamped, and recency is computed in-process.
    """
    if not rows:
        return []
    fts_values = [row.fts_rank for row in rows]
    lo, hi = min(fts_values), max(fts_values)

    return [
        RankCandidate(
            id=row.id,
            fts_rank=normalize_score(row.fts_rank, lo, hi),
            trigram_similarity=min(max(row.trigram_similarity, 0.0), 1.0),
            recency_boost=calculate_recency_boost(row.start_date, now),
            embedding=row.embedding,
        )
        for row in rows
    ]


def _to_result(row: CandidateRow, ranked: RankedCandidate, debug: bool) -> SearchResult:
    fields = row.model_dump(exclude={"fts_rank", "trigram_similarity", "embedding"})
    return SearchResult(
        **fields,
        score=round(ranked.score, 6),
        score_components=ranked.components if debug else None,
    )


async def run_search(
    request: SearchQueryInput,
    source: CandidateSource,
    embeddings: EmbeddingService,
    *,
    now: Optional[datetime] = None,
    debug: bool = False,
    candidate_limit: int = 100,
) -> SearchResponse:
    """Execute a hybrid search for *request*.

    Steps:
        1. Parse the query, merge explicit filters (explicit wins), normalise.
        2. Fetch lexical candidates from *source*.
        3. Compute per-candidate signals.
        4. Embed the search text and re-rank with embedding similarity when
           available; otherwise rank with the no-embedding weights.
        5. Paginate and build the response (debug details on request).

    Args:
        request:         Search input.
        source:          Candidate-row provider (errors propagate).
        embeddings:      Embedding service; failures degrade to lexical ranking.
        now:             Reference moment for relative dates and recency.
        debug:           Attach score components and diagnostics.
        candidate_limit: Maximum candidates requested from *source*.

    Returns:
        :class:`SearchResponse` ready to serialise.
    """
    t_start = time.perf_counter()
    now = now or datetime.now()

    log = logger.bind(query=(request.q or "")[:80], limit=request.limit, offset=request.offset)
    log.info("search.start")

    filters = resolve_filters(request, now)
    search_text = filters.free_text_query or (request.q or "").strip()

    rows = await source.fetch_candidates(filters, search_text, candidate_limit)
    log.info("search.candidates_fetched", count=len(rows))

    candidates = build_rank_candidates(rows, now)

    query_embedding = None
    if embeddings.enabled and search_text and candidates:
        query_embedding = await embeddings.generate_embedding(search_text)

    embeddings_used = query_embedding is not None
    if embeddings_used:
        ranked = re_rank_with_embeddings(candidates, query_embedding, select_weights(True))
    else:
        ranked = rank_candidates(candidates, WEIGHTS_NO_EMBEDDINGS)

    rows_by_id = {row.id: row for row in rows}
    page = ranked[request.offset : request.offset + request.limit]
    results = [_to_result(rows_by_id[r.id], r, debug) for r in page]

    elapsed_ms = (time.perf_counter() - t_start) * 1000
    response = SearchResponse(results=results, total=len(ranked))
    if debug:
        response.debug = SearchDebug(
            applied_filters=filters.as_dict(),
            query_time_ms=round(elapsed_ms, 1),
            embeddings_used=embeddings_used,
        )

    log.info(
        "search.complete",
        results=len(results),
        total=len(ranked),
        embeddings_used=embeddings_used,
        latency_ms=round(elapsed_ms, 1),
    )
    return response
