"""Transcript models for raw caption rows and canonical segments."""

from pydantic import BaseModel, Field, computed_field


class RawTranscriptRow(BaseModel):
    """Caption row as returned by the transcript source (seconds)."""

    offset: float = Field(..., description="Start offset in seconds")
    duration: float = Field(..., description="Duration in seconds")
    text: str = Field(..., description="Caption text")


class TranscriptSegment(BaseModel):
    """Canonical, ordered transcript segment for one video."""

    video_id: str = Field(..., description="YouTube video ID")
    seq: int = Field(..., ge=0, description="0-based position after normalization")
    start_sec: float = Field(..., ge=0.0)
    end_sec: float
    text: str
    norm_text: str = Field(default="", description="Search-normalized text")
    token_count: int = Field(default=0, ge=0)

    model_config = {"frozen": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration(self) -> float:
        """Segment length in seconds."""
        return self.end_sec - self.start_sec


class VideoSegment(BaseModel):
    """Persisted segment as served back to callers."""

    seq: int
    start_sec: float
    end_sec: float
    text: str
    norm_text: str
