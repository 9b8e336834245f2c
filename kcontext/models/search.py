"""Pydantic models for chunk search candidates and results."""

from pydantic import BaseModel, Field


class CandidateRow(BaseModel):
    """Chunk-level candidate returned by the store for a lookup string.

    Store-side scores are pre-rerank signals; only ``text_score`` feeds the
    final blend directly.
    """

    model_config = {"strict": True, "extra": "ignore"}

    chunk_id: str
    video_id: str
    chunk_start_sec: float
    chunk_end_sec: float
    anchor_sec: float
    recommended_start_sec: float | None = None
    full_text: str
    norm_text: str
    token_count: int = Field(..., ge=0)
    matched_terms: list[str] = Field(default_factory=list)
    term_match_count: int = Field(default=0, ge=0)
    term_hit_count: int = Field(default=0, ge=0)
    keyword_score: float = 0.0
    text_score: float = 0.0
    candidate_score: float = 0.0


class SearchResult(BaseModel):
    """A reranked chunk for one query."""

    chunk_id: str
    video_id: str
    chunk_start_sec: float
    chunk_end_sec: float
    anchor_sec: float
    recommended_start_sec: float
    snippet: str = ""
    full_text: str
    norm_text: str
    token_count: int
    matched_terms: list[str] = Field(default_factory=list)
    term_match_count: int = 0
    term_hit_count: int = 0
    keyword_score: float = Field(default=0.0, ge=0.0, le=1.0)
    text_score: float = Field(default=0.0, ge=0.0, le=1.0)
    coverage_score: float = Field(default=0.0, ge=0.0, le=1.0)
    final_score: float = Field(default=0.0, ge=0.0, le=1.0)
    rank_reason: str = ""


class SearchResponse(BaseModel):
    """Search API response body."""

    query: str
    limit: int
    preroll: float
    count: int
    results: list[SearchResult]
