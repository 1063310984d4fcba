"""Pydantic v2 data models for the event search core."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EmbeddingProvider = Literal["none", "local", "remote"]
TimeWindow = Literal["morning", "afternoon", "evening", "night"]

EMBEDDING_DIMENSION = 384
EMBEDDING_TEXT_MAX_CHARS = 512


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class SearchFilters(BaseModel):
    """Structured filters parsed from a query or supplied by the caller.

    Unresolved fields stay ``None``; :meth:`as_dict` drops them.
    """

    category: Optional[str] = None
    date_start: Optional[str] = None
    date_end: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    area: Optional[str] = None
    city: Optional[str] = None
    start_time_window: Optional[TimeWindow] = None
    free_text_query: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ---------------------------------------------------------------------------
# Ranking models
# ---------------------------------------------------------------------------


class ScoreComponents(BaseModel):
    """Per-result relevance signals."""

    fts_rank: float = Field(..., ge=0.0, le=1.0)
    trigram_similarity: float = Field(..., ge=0.0, le=1.0)
    recency_boost: float = Field(..., ge=0.0, le=1.0)
    embedding_similarity: Optional[float] = Field(default=None, ge=-1.0, le=1.0)


class RankingWeights(BaseModel):
    """Weight profile applied to :class:`ScoreComponents`."""

    model_config = ConfigDict(frozen=True)

    fts_rank: float = Field(..., ge=0.0)
    trigram_similarity: float = Field(..., ge=0.0)
    recency_boost: float = Field(..., ge=0.0)
    embedding_similarity: float = Field(..., ge=0.0)

    @property
    def total(self) -> float:
        return (
            self.fts_rank
            + self.trigram_similarity
            + self.recency_boost
            + self.embedding_similarity
        )


class RankCandidate(BaseModel):
    """A candidate with its lexical and recency signals already computed."""

    id: str
    fts_rank: float
    trigram_similarity: float
    recency_boost: float
    embedding: Optional[list[float]] = None


class RankedCandidate(BaseModel):
    """A candidate after combined scoring."""

    id: str
    score: float
    components: ScoreComponents


# ---------------------------------------------------------------------------
# Candidate source / API models
# ---------------------------------------------------------------------------


class EventFields(BaseModel):
    """Display fields shared by candidate rows and search results."""

    id: str
    slug: str
    title: str
    description: str = ""
    venue: str = ""
    city: str = ""
    area: Optional[str] = None
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    start_date: datetime
    price: int = 0
    image_url: Optional[str] = None


class CandidateRow(EventFields):
    """A row returned by the external full-text/trigram query layer."""

    fts_rank: float = 0.0
    trigram_similarity: float = 0.0
    embedding: Optional[list[float]] = None


class SearchResult(EventFields):
    """A single ranked result in the search response."""

    score: float
    score_components: Optional[ScoreComponents] = None


class SearchQueryInput(BaseModel):
    """Caller-supplied search request."""

    q: Optional[str] = Field(default=None, max_length=512)
    filters: SearchFilters = Field(default_factory=SearchFilters)
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class SearchDebug(BaseModel):
    """Diagnostics attached to a response when debug mode is requested."""

    applied_filters: dict[str, Any]
    query_time_ms: float
    embeddings_used: bool


class SearchResponse(BaseModel):
    """Top-level search response."""

    results: list[SearchResult]
    total: int
    debug: Optional[SearchDebug] = None


# ---------------------------------------------------------------------------
# Embedding configuration
# ---------------------------------------------------------------------------


class EmbeddingConfig(BaseModel):
    """Resolved embedding backend configuration."""

    provider: EmbeddingProvider = "none"
    remote_api_url: Optional[str] = None
    remote_api_key: Optional[str] = None
    rate_limit_per_minute: int = Field(default=60, gt=0)
    local_model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    remote_model_name: str = "all-MiniLM-L6-v2"
    request_timeout_seconds: float = Field(default=10.0, gt=0.0)

    @property
    def enabled(self) -> bool:
        return self.provider != "none"
