"""Shared pytest fixtures and configuration."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import pytest

from event_search.models import CandidateRow, EmbeddingConfig, SearchFilters
from event_search.services.embeddings import EmbeddingService


# ---------------------------------------------------------------------------
# Pytest configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)

# Wednesday.
REFERENCE_NOW = datetime(2026, 10, 14, 18, 30)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeLocalModel:
    """Stands in for LocalEmbeddingModel; returns canned vectors by text."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, default: list[float] | None = None) -> None:
        self.vectors = vectors or {}
        self.default = default
        self.calls: list[str] = []

    async def get(self) -> Any:  # noqa: ANN401
        return self

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.vectors:
            return self.vectors[text]
        if self.default is None:
            raise RuntimeError(f"no vector for {text!r}")
        return self.default


class FakeCandidateSource:
    """In-memory candidate source that records what it was asked for."""

    def __init__(self, rows: list[CandidateRow]) -> None:
        self.rows = rows
        self.calls: list[tuple[SearchFilters, str, int]] = []

    async def fetch_candidates(self, filters: SearchFilters, query: str, limit: int) -> list[CandidateRow]:
        self.calls.append((filters, query, limit))
        return self.rows[:limit]


def make_row(
    idx: int,
    fts_rank: float = 0.5,
    trigram: float = 0.5,
    days_ahead: int = 0,
    embedding: list[float] | None = None,
) -> CandidateRow:
    return CandidateRow(
        id=f"evt-{idx}",
        slug=f"event-{idx}",
        title=f"Event {idx}",
        description=f"Description for event {idx}.",
        venue="The Venue",
        city="Bengaluru",
        area="Indiranagar",
        category="comedy",
        tags=["standup"],
        start_date=REFERENCE_NOW + timedelta(days=days_ahead),
        price=499,
        fts_rank=fts_rank,
        trigram_similarity=trigram,
        embedding=embedding,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def reference_now() -> datetime:
    return REFERENCE_NOW


@pytest.fixture
def sample_rows() -> list[CandidateRow]:
    """Three rows with distinct lexical signals and dates."""
    return [
        make_row(1, fts_rank=0.10, trigram=0.20, days_ahead=0),
        make_row(2, fts_rank=0.50, trigram=0.90, days_ahead=60),
        make_row(3, fts_rank=0.30, trigram=0.40, days_ahead=7),
    ]


@pytest.fixture
def disabled_embeddings() -> EmbeddingService:
    return EmbeddingService(EmbeddingConfig(provider="none"))


@pytest.fixture
def fake_local_model() -> FakeLocalModel:
    return FakeLocalModel(default=[1.0, 0.0, 0.0])


@pytest.fixture
def local_embeddings(fake_local_model: FakeLocalModel) -> EmbeddingService:
    return EmbeddingService(
        EmbeddingConfig(provider="local"),
        local_model=fake_local_model,  # type: ignore[arg-type]
    )
