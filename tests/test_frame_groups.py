from __future__ import annotations

from pathlib import Path

from conftest import write_frame

from cover_curator.frame_groups import FrameKey, frames_for_stem, parse_frame_name, scan_frame_groups


def test_parse_frame_name_extracts_stem_ordinal_and_extension() -> None:
	assert parse_frame_name("holiday-2019-007.jpg") == FrameKey("holiday-2019", 7, "jpg")
	assert parse_frame_name("clip-012.PNG") == FrameKey("clip", 12, "png")


def test_parse_frame_name_rejects_non_frames() -> None:
	assert parse_frame_name("clip.jpg") is None
	assert parse_frame_name("clip-01.jpg") is None
	assert parse_frame_name("clip-0001.jpg") is None
	assert parse_frame_name("clip-001.txt") is None
	assert parse_frame_name("-001.jpg") is None


def test_scan_groups_frames_by_stem_in_ordinal_order(tmp_path: Path) -> None:
	for name in ("b-003.jpg", "b-001.jpg", "a-002.jpg", "b-002.jpg"):
		write_frame(tmp_path / name)

	scan = scan_frame_groups(tmp_path)

	assert sorted(scan.groups) == ["a", "b"]
	assert [frame.ordinal for frame in scan.groups["b"].frames] == [1, 2, 3]
	assert scan.groups["a"].size == 1
	assert [group.stem for group in scan.ordered_groups()] == ["a", "b"]


def test_scan_excludes_shadow_and_empty_files(tmp_path: Path) -> None:
	write_frame(tmp_path / "movie-001.jpg")
	(tmp_path / "._movie-002.jpg").write_bytes(b"\x00\x05\x16\x07")
	(tmp_path / "movie-003.jpg").write_bytes(b"")
	(tmp_path / ".DS_Store").write_bytes(b"meta")
	(tmp_path / "notes.txt").write_text("hello", encoding="utf-8")
	(tmp_path / "contact-sheets").mkdir()
	write_frame(tmp_path / "contact-sheets" / "movie.jpg")

	scan = scan_frame_groups(tmp_path)

	assert list(scan.groups) == ["movie"]
	assert scan.groups["movie"].paths == [tmp_path / "movie-001.jpg"]
	assert tmp_path / "notes.txt" in scan.ignored


def test_duplicate_ordinal_marks_group_ambiguous(tmp_path: Path) -> None:
	write_frame(tmp_path / "movie-001.jpg")
	write_frame(tmp_path / "movie-001.png")
	write_frame(tmp_path / "movie-002.jpg")

	group = scan_frame_groups(tmp_path).groups["movie"]

	assert group.is_ambiguous
	assert group.conflicts == [tmp_path / "movie-001.png"]


def test_missing_frame_dir_yields_no_groups(tmp_path: Path) -> None:
	scan = scan_frame_groups(tmp_path / "missing")
	assert scan.groups == {}
	assert scan.ignored == []


def test_frames_for_stem_matches_exact_stem_only(tmp_path: Path) -> None:
	write_frame(tmp_path / "movie-001.jpg")
	write_frame(tmp_path / "movie-extra-001.jpg")

	assert frames_for_stem(tmp_path, "movie") == [tmp_path / "movie-001.jpg"]
	assert frames_for_stem(tmp_path, "other") == []
