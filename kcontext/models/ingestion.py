"""Pydantic models for ingestion checkpoints and run results."""

from pydantic import BaseModel, Field


class IngestionCheckpoint(BaseModel):
    """Durable record of completed videos, serialized with camelCase keys."""

    model_config = {"populate_by_name": True}

    completed_video_ids: list[str] = Field(default_factory=list, alias="completedVideoIds")
    last_video_id: str | None = Field(default=None, alias="lastVideoId")
    last_segment_seq: int | None = Field(default=None, alias="lastSegmentSeq")
    last_chunk_start_time: float | None = Field(default=None, alias="lastChunkStartTime")
    updated_at: str = Field(..., alias="updatedAt", description="ISO-8601 timestamp")


class IngestionFailure(BaseModel):
    """A video that could not be ingested, with the reason."""

    video_id: str
    reason: str


class IngestionRunResult(BaseModel):
    """Summary of one ingestion run."""

    processed_video_ids: list[str] = Field(default_factory=list)
    skipped_video_ids: list[str] = Field(default_factory=list)
    failed: list[IngestionFailure] = Field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)
