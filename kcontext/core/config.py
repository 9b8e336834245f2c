"""Application configuration using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "K-Context Clip Search"
    debug: bool = False

    # Database
    database_url: str = Field(default="data/kcontext.db")

    # Transcript settings
    transcripts_output_dir: str = Field(default="data/transcripts")
    caption_languages: list[str] = Field(default_factory=lambda: ["ko", "ko-orig"])

    # Chunking settings
    chunk_window_seconds: float = Field(default=15.0, description="Sliding window length")
    chunk_overlap_seconds: float = Field(default=5.0, ge=0.0, description="Overlap between windows")

    # Ingestion settings
    checkpoint_path: str = Field(default=".cache/ingestion-checkpoint.json")
    ingest_batch_size: int = Field(default=200, ge=1)

    # Retry settings
    max_retry_attempts: int = Field(default=4, ge=0)
    retry_base_delay_ms: int = Field(default=250, ge=0)
    retry_factor: float = Field(default=2.0, ge=1.0)

    # Search settings
    search_default_limit: int = Field(default=20, ge=1)
    search_max_limit: int = Field(default=50, ge=1)
    search_default_preroll: float = Field(default=4.0, ge=0.0)
    search_max_preroll: float = Field(default=15.0, ge=0.0)
    search_strict: bool = Field(
        default=False,
        description="Raise on store read failures instead of returning no results",
    )

    @property
    def database_path(self) -> Path:
        """Get the database path as a Path object."""
        return Path(self.database_url)

    @property
    def transcripts_path(self) -> Path:
        """Get the transcripts output directory as a Path object."""
        return Path(self.transcripts_output_dir)

    @property
    def checkpoint_file(self) -> Path:
        """Get the ingestion checkpoint path as a Path object."""
        return Path(self.checkpoint_path)


settings = Settings()
