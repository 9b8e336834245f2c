"""YouTube service exceptions."""


class YouTubeError(Exception):
    """Base exception for YouTube service errors."""

    pass


class TranscriptUnavailableError(YouTubeError):
    """Raised when captions are disabled, missing, or the video is unavailable."""

    def __init__(self, video_id: str, reason: str):
        self.video_id = video_id
        self.reason = reason
        super().__init__(f"Transcript unavailable for {video_id}: {reason}")
