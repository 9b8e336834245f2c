"""Video id input handling for ingestion runs."""

from pathlib import Path
from typing import Iterable


def read_video_ids_file(path: str | Path) -> list[str]:
    """Read newline-delimited video ids, skipping blanks and ``#`` comments."""
    content = Path(path).read_text(encoding="utf-8")
    lines = (line.strip() for line in content.splitlines())
    return [line for line in lines if line and not line.startswith("#")]


def collect_video_ids(
    flag_ids: Iterable[str] | None = None,
    file_path: str | Path | None = None,
) -> list[str]:
    """Merge ids from flags and an optional file, first occurrence wins."""
    from_flags = list(flag_ids or [])
    from_file = read_video_ids_file(file_path) if file_path else []
    stripped = (value.strip() for value in [*from_flags, *from_file])
    return list(dict.fromkeys(value for value in stripped if value))
