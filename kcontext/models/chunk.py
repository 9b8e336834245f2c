"""Models for searchable transcript chunks."""

from pydantic import BaseModel, Field


class TimedToken(BaseModel):
    """A word of a chunk with its estimated playback interval."""

    idx: int = Field(..., ge=0, description="Position within the owning chunk")
    token: str = Field(..., description="Raw token text for display")
    token_norm: str = Field(..., description="Normalized token, empty if filtered")
    start_sec: float
    end_sec: float


class ChunkTerm(BaseModel):
    """Per-term statistics aggregated over one chunk."""

    term: str
    first_hit_sec: float
    hit_count: int = Field(..., ge=1)
    positions: list[int] = Field(default_factory=list)


class Chunk(BaseModel):
    """An overlapping time window of transcript content."""

    video_id: str
    chunk_index: int = Field(..., ge=0)
    start_sec: float
    end_sec: float
    segment_start_seq: int
    segment_end_seq: int
    full_text: str
    norm_text: str
    token_count: int
    tokens: list[TimedToken] = Field(default_factory=list)
    terms: list[ChunkTerm] = Field(default_factory=list)

    @property
    def identity_key(self) -> tuple[str, int, int]:
        """Key used for idempotent upserts."""
        return (self.video_id, self.segment_start_seq, self.segment_end_seq)


class ChunkContext(BaseModel):
    """Full per-token context for one persisted chunk."""

    chunk_id: str
    video_id: str
    chunk_start_sec: float
    chunk_end_sec: float
    token_count: int
    tokens: list[TimedToken] = Field(default_factory=list)


class ChunkSummary(BaseModel):
    """Persisted chunk bounds, used for timestamp lookups."""

    chunk_id: str
    video_id: str
    chunk_index: int
    chunk_start_sec: float
    chunk_end_sec: float
    full_text: str
