"""Tests for ingestion video id inputs."""

from pathlib import Path

from kcontext.services.ingestion.video_ids import collect_video_ids, read_video_ids_file


def test_read_video_ids_file(tmp_path: Path) -> None:
    path = tmp_path / "ids.txt"
    path.write_text("# weekly batch\nabc123\n\n  def456  \r\n#skip\n", encoding="utf-8")

    assert read_video_ids_file(path) == ["abc123", "def456"]


def test_collect_merges_and_dedupes(tmp_path: Path) -> None:
    path = tmp_path / "ids.txt"
    path.write_text("b\nc\na\n", encoding="utf-8")

    assert collect_video_ids(["a", " b ", ""], path) == ["a", "b", "c"]
    assert collect_video_ids(None, None) == []
