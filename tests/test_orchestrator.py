"""Tests for the search orchestrator and engine wiring."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from conftest import REFERENCE_NOW, FakeCandidateSource, FakeLocalModel, make_row
from event_search.config import Settings
from event_search.engine import SearchEngine, create_search_engine
from event_search.models import (
    EMBEDDING_DIMENSION,
    CandidateRow,
    EmbeddingConfig,
    SearchFilters,
    SearchQueryInput,
)
from event_search.pipeline.orchestrator import build_rank_candidates, resolve_filters, run_search
from event_search.services.embeddings import EmbeddingService
from event_search.services.rate_limiter import TokenBucket
from event_search.services.remote_embeddings import RemoteEmbeddingClient


def _request(q: str | None = None, **kwargs: object) -> SearchQueryInput:
    return SearchQueryInput(q=q, **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Filter resolution
# ---------------------------------------------------------------------------


class TestResolveFilters:
    """Parsed and explicit filters are merged then normalised."""

    def test_explicit_filter_wins(self) -> None:
        """An explicit category overrides the parsed one."""
        request = _request("comedy in koramangala", filters=SearchFilters(category="Music"))
        filters = resolve_filters(request, REFERENCE_NOW)
        assert filters.category == "music"
        assert filters.area == "Koramangala"

    def test_empty_explicit_value_keeps_parsed(self) -> None:
        """An empty explicit value keeps the parsed value."""
        request = _request("comedy", filters=SearchFilters(category=""))
        assert resolve_filters(request, REFERENCE_NOW).category == "comedy"

    def test_no_query(self) -> None:
        """Explicit filters alone are normalised."""
        request = _request(filters=SearchFilters(city="bangalore"))
        assert resolve_filters(request, REFERENCE_NOW).as_dict() == {"city": "Bengaluru"}


class TestBuildRankCandidates:
    """Raw row signals are scaled into [0, 1]."""

    def test_fts_is_min_max_normalised(self, sample_rows: list[CandidateRow]) -> None:
        """FTS ranks are rescaled across the pool."""
        candidates = build_rank_candidates(sample_rows, REFERENCE_NOW)
        assert [c.fts_rank for c in candidates] == pytest.approx([0.0, 1.0, 0.5])

    def test_recency_from_start_date(self, sample_rows: list[CandidateRow]) -> None:
        """Recency is computed from each row's start date."""
        candidates = build_rank_candidates(sample_rows, REFERENCE_NOW)
        assert [c.recency_boost for c in candidates] == pytest.approx([1.0, 0.2, 0.75])

    def test_trigram_is_clamped(self) -> None:
        """Trigram similarity above 1 is clamped."""
        candidates = build_rank_candidates([make_row(1, trigram=1.7)], REFERENCE_NOW)
        assert candidates[0].trigram_similarity == 1.0

    def test_empty(self) -> None:
        """No rows gives no candidates."""
        assert build_rank_candidates([], REFERENCE_NOW) == []


# ---------------------------------------------------------------------------
# run_search
# ---------------------------------------------------------------------------


class TestRunSearch:
    """End-to-end orchestration against an in-memory source."""

    @pytest.mark.asyncio
    async def test_source_receives_merged_filters(
        self, sample_rows: list[CandidateRow], disabled_embeddings: EmbeddingService
    ) -> None:
        """The source sees merged filters, query text and limit."""
        source = FakeCandidateSource(sample_rows)
        request = _request("comedy in koramangala", filters=SearchFilters(category="music"))

        await run_search(request, source, disabled_embeddings, now=REFERENCE_NOW, candidate_limit=50)

        filters, query, limit = source.calls[0]
        assert filters.category == "music"
        assert filters.area == "Koramangala"
        assert query == "comedy in koramangala"
        assert limit == 50

    @pytest.mark.asyncio
    async def test_free_text_is_preferred_search_text(
        self, sample_rows: list[CandidateRow], disabled_embeddings: EmbeddingService
    ) -> None:
        """Leftover words are used as the lexical query."""
        source = FakeCandidateSource(sample_rows)
        await run_search(_request("pottery workshop"), source, disabled_embeddings, now=REFERENCE_NOW)
        assert source.calls[0][1] == "pottery"

    @pytest.mark.asyncio
    async def test_ranks_without_embeddings(
        self, sample_rows: list[CandidateRow], disabled_embeddings: EmbeddingService
    ) -> None:
        """Disabled embeddings rank with the lexical weights."""
        response = await run_search(
            _request("comedy"), FakeCandidateSource(sample_rows), disabled_embeddings, now=REFERENCE_NOW
        )

        assert [r.id for r in response.results] == ["evt-2", "evt-3", "evt-1"]
        assert [r.score for r in response.results] == pytest.approx([0.81, 0.52, 0.26])
        assert response.total == 3
        assert response.debug is None
        assert all(r.score_components is None for r in response.results)

    @pytest.mark.asyncio
    async def test_embeddings_reorder_results(self) -> None:
        """Embedding similarity decides between equal lexical scores."""
        rows = [
            make_row(1, embedding=[0.0, 1.0, 0.0]),
            make_row(2, embedding=[1.0, 0.0, 0.0]),
        ]
        model = FakeLocalModel(default=[1.0, 0.0, 0.0])
        embeddings = EmbeddingService(EmbeddingConfig(provider="local"), local_model=model)  # type: ignore[arg-type]

        response = await run_search(
            _request("comedy"), FakeCandidateSource(rows), embeddings, now=REFERENCE_NOW, debug=True
        )

        assert [r.id for r in response.results] == ["evt-2", "evt-1"]
        assert response.debug is not None
        assert response.debug.embeddings_used is True
        assert response.results[0].score_components.embedding_similarity == pytest.approx(1.0)
        assert model.calls == ["comedy"]

    @pytest.mark.asyncio
    async def test_ties_fall_back_to_id_without_embeddings(self, disabled_embeddings: EmbeddingService) -> None:
        """Equal scores are ordered by id."""
        rows = [
            make_row(1, embedding=[0.0, 1.0, 0.0]),
            make_row(2, embedding=[1.0, 0.0, 0.0]),
        ]
        response = await run_search(
            _request("comedy"), FakeCandidateSource(rows), disabled_embeddings, now=REFERENCE_NOW
        )
        assert [r.id for r in response.results] == ["evt-1", "evt-2"]

    @pytest.mark.asyncio
    async def test_embedding_failure_degrades_to_lexical(self, sample_rows: list[CandidateRow]) -> None:
        """A failing model does not fail the search."""
        model = MagicMock()
        model.embed = AsyncMock(side_effect=RuntimeError("boom"))
        embeddings = EmbeddingService(EmbeddingConfig(provider="local"), local_model=model)

        response = await run_search(
            _request("comedy"), FakeCandidateSource(sample_rows), embeddings, now=REFERENCE_NOW, debug=True
        )

        assert response.debug is not None
        assert response.debug.embeddings_used is False
        assert [r.id for r in response.results] == ["evt-2", "evt-3", "evt-1"]
        assert response.results[0].score_components.embedding_similarity is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [0, 768])
    async def test_wrong_size_query_embedding_falls_back_to_lexical(self, size: int) -> None:
        """A remote vector of the wrong length does not fail the search."""
        rows = [
            make_row(1, fts_rank=0.2, embedding=[0.1] * EMBEDDING_DIMENSION),
            make_row(2, fts_rank=0.8, embedding=[0.2] * EMBEDDING_DIMENSION),
        ]
        client = RemoteEmbeddingClient(
            "https://embeddings.example.com/v1/embeddings",
            "secret",
            rate_limiter=TokenBucket(60),
            http_client=httpx.AsyncClient(
                transport=httpx.MockTransport(
                    lambda request: httpx.Response(200, json={"data": [{"embedding": [0.1] * size}]})
                )
            ),
        )
        embeddings = EmbeddingService(EmbeddingConfig(provider="remote"), remote_client=client)

        response = await run_search(
            _request("jazz"), FakeCandidateSource(rows), embeddings, now=REFERENCE_NOW, debug=True
        )

        assert response.debug is not None
        assert response.debug.embeddings_used is False
        assert [r.id for r in response.results] == ["evt-2", "evt-1"]

    @pytest.mark.asyncio
    async def test_no_candidates_skips_embedding(self, fake_local_model: FakeLocalModel, local_embeddings: EmbeddingService) -> None:
        """No candidates means no embedding call."""
        response = await run_search(
            _request("comedy"), FakeCandidateSource([]), local_embeddings, now=REFERENCE_NOW
        )
        assert response.results == []
        assert response.total == 0
        assert fake_local_model.calls == []

    @pytest.mark.asyncio
    async def test_no_query_text_skips_embedding(
        self, sample_rows: list[CandidateRow], fake_local_model: FakeLocalModel, local_embeddings: EmbeddingService
    ) -> None:
        """Filter-only searches do not embed."""
        request = _request(filters=SearchFilters(category="comedy"))
        response = await run_search(request, FakeCandidateSource(sample_rows), local_embeddings, now=REFERENCE_NOW)
        assert fake_local_model.calls == []
        assert response.total == 3

    @pytest.mark.asyncio
    async def test_debug_fields(
        self, sample_rows: list[CandidateRow], disabled_embeddings: EmbeddingService
    ) -> None:
        """Debug mode reports filters, timing and components."""
        response = await run_search(
            _request("comedy tonight under 600"),
            FakeCandidateSource(sample_rows),
            disabled_embeddings,
            now=REFERENCE_NOW,
            debug=True,
        )

        assert response.debug is not None
        assert response.debug.applied_filters == {
            "category": "comedy",
            "max_price": 600,
            "date_start": "2026-10-14",
            "date_end": "2026-10-14",
            "start_time_window": "night",
        }
        assert response.debug.query_time_ms >= 0
        assert response.debug.embeddings_used is False
        components = response.results[0].score_components
        assert components is not None
        assert components.fts_rank == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_pagination(self, disabled_embeddings: EmbeddingService) -> None:
        """Results are sliced by offset and limit; total is the pool size."""
        rows = [make_row(i, fts_rank=i / 10) for i in range(1, 8)]
        response = await run_search(
            _request("comedy", limit=2, offset=2),
            FakeCandidateSource(rows),
            disabled_embeddings,
            now=REFERENCE_NOW,
        )
        assert [r.id for r in response.results] == ["evt-5", "evt-4"]
        assert response.total == 7

    @pytest.mark.asyncio
    async def test_offset_past_end(
        self, sample_rows: list[CandidateRow], disabled_embeddings: EmbeddingService
    ) -> None:
        """An offset beyond the pool returns no results."""
        response = await run_search(
            _request("comedy", offset=10), FakeCandidateSource(sample_rows), disabled_embeddings, now=REFERENCE_NOW
        )
        assert response.results == []
        assert response.total == 3

    @pytest.mark.asyncio
    async def test_results_carry_display_fields(
        self, sample_rows: list[CandidateRow], disabled_embeddings: EmbeddingService
    ) -> None:
        """Results keep display fields and drop raw signals."""
        response = await run_search(
            _request("comedy"), FakeCandidateSource(sample_rows), disabled_embeddings, now=REFERENCE_NOW
        )
        first = response.results[0]
        assert first.slug == "event-2"
        assert first.venue == "The Venue"
        assert "embedding" not in first.model_dump()

    @pytest.mark.asyncio
    async def test_source_errors_propagate(self, disabled_embeddings: EmbeddingService) -> None:
        """Candidate source errors are not swallowed."""
        source = MagicMock()
        source.fetch_candidates = AsyncMock(side_effect=ConnectionError("db down"))
        with pytest.raises(ConnectionError):
            await run_search(_request("comedy"), source, disabled_embeddings, now=REFERENCE_NOW)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class TestSearchEngine:
    """Tests for process-level wiring."""

    @pytest.mark.asyncio
    async def test_create_in_ci_disables_embeddings(self, sample_rows: list[CandidateRow]) -> None:
        """CI settings build an engine without embeddings."""
        cfg = Settings(ci=True, search_candidate_limit=2, _env_file=None)  # type: ignore[call-arg]
        source = FakeCandidateSource(sample_rows)

        async with await create_search_engine(source, cfg) as engine:
            assert engine.embeddings.provider == "none"
            response = await engine.search(_request("comedy"), now=REFERENCE_NOW)

        assert source.calls[0][2] == 2
        assert response.total == 2

    @pytest.mark.asyncio
    async def test_warm_up_failure_is_not_fatal(self, sample_rows: list[CandidateRow], monkeypatch: pytest.MonkeyPatch) -> None:
        """A failed model warm-up still returns an engine."""
        cfg = Settings(search_embeddings_provider="local", _env_file=None)  # type: ignore[call-arg]
        monkeypatch.setattr(EmbeddingService, "warm_up", AsyncMock(side_effect=OSError("offline")))

        engine = await create_search_engine(FakeCandidateSource(sample_rows), cfg, warm_up=True)

        assert isinstance(engine, SearchEngine)
        assert engine.embeddings.provider == "local"
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_search_passes_debug(self, sample_rows: list[CandidateRow], disabled_embeddings: EmbeddingService) -> None:
        """SearchEngine.search forwards the debug flag."""
        engine = SearchEngine(FakeCandidateSource(sample_rows), disabled_embeddings)
        response = await engine.search(_request("comedy"), debug=True, now=REFERENCE_NOW)
        assert response.debug is not None
