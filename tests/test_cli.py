from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from conftest import write_frame

from cover_curator import cli
from cover_curator.cli import _build_config, main
from cover_curator.errors import MuxError
from cover_curator.output_paths import backup_video_path, cover_path, processed_video_path


def _base_args(video_dir: Path, config_path: Path | None = None, command: str = "sample"):
	return SimpleNamespace(
		command=command,
		config=str(config_path) if config_path else None,
		video_dir=str(video_dir),
		video_max=None,
		yes=False,
		jobs=None,
		interval=None,
		max_frames=None,
		timeout=None,
		use_hwaccel=None,
		consume_frames=None,
	)


def _write_config(tmp_path: Path, text: str) -> Path:
	config_path = tmp_path / "config.yaml"
	config_path.write_text(text.strip(), encoding="utf-8")
	return config_path


class FakeEmbedder:
	calls: list[str] = []

	def __init__(self, **_kwargs) -> None:
		pass

	def embed(self, video_path: Path, cover_path: Path, output_path: Path) -> None:
		FakeEmbedder.calls.append(video_path.stem)
		if video_path.stem == "broken":
			raise MuxError("Invalid data found when processing input")
		output_path.write_bytes(b"muxed")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
	for name in ("COVER_CURATOR_VIDEO_DIR", "FFMPEG_BIN", "FFPROBE_BIN"):
		monkeypatch.delenv(name, raising=False)
	monkeypatch.setattr(cli, "load_dotenv", lambda: None)
	FakeEmbedder.calls = []


def test_defaults_follow_layout(tmp_path: Path) -> None:
	config = _build_config(_base_args(tmp_path))

	assert config.paths.frame_dir == tmp_path.resolve() / "thumbnails"
	assert config.paths.cover_dir == tmp_path.resolve() / "thumbnails" / "contact-sheets"
	assert config.interval_seconds == 120
	assert config.max_frames == 60
	assert config.parallel_jobs == 4
	assert config.use_hwaccel is True
	assert config.assume_yes is False


def test_stage_section_overrides_top_level(tmp_path: Path) -> None:
	config_path = _write_config(
		tmp_path,
		"""
parallel_jobs: 2
interval_seconds: 60
sample:
  parallel_jobs: 8
  use_hwaccel: "no"
embed:
  parallel_jobs: 1
""",
	)
	config = _build_config(_base_args(tmp_path, config_path, command="sample"))

	assert config.parallel_jobs == 8
	assert config.interval_seconds == 60
	assert config.use_hwaccel is False


def test_cli_overrides_config(tmp_path: Path) -> None:
	config_path = _write_config(
		tmp_path,
		"""
parallel_jobs: 2
video_max: 5
assume_yes: false
""",
	)
	args = _base_args(tmp_path, config_path)
	args.jobs = 6
	args.video_max = 1
	args.yes = True

	config = _build_config(args)

	assert config.parallel_jobs == 6
	assert config.video_max == 1
	assert config.assume_yes is True


def test_relative_dirs_resolve_against_video_dir(tmp_path: Path) -> None:
	config_path = _write_config(
		tmp_path,
		"""
backup_dir: originals
processed_dir: /srv/processed
""",
	)
	config = _build_config(_base_args(tmp_path, config_path))

	assert config.paths.backup_dir == tmp_path.resolve() / "originals"
	assert config.paths.processed_dir == Path("/srv/processed")


def test_invalid_values_are_rejected(tmp_path: Path) -> None:
	config_path = _write_config(tmp_path, "max_frames: lots")
	with pytest.raises(ValueError):
		_build_config(_base_args(tmp_path, config_path))

	args = _base_args(tmp_path)
	args.jobs = 0
	with pytest.raises(ValueError):
		_build_config(args)


def test_max_frames_fits_three_digit_ordinals(tmp_path: Path) -> None:
	args = _base_args(tmp_path)
	args.max_frames = 999
	assert _build_config(args).max_frames == 999

	args.max_frames = 1000
	with pytest.raises(ValueError, match="max_frames"):
		_build_config(args)


def test_missing_video_dir_exits_with_invalid_args(tmp_path: Path) -> None:
	assert main(["status", "--video-dir", str(tmp_path / "missing")]) == 2


def test_unknown_command_exits_with_invalid_args() -> None:
	with pytest.raises(SystemExit) as excinfo:
		main(["transcode"])
	assert excinfo.value.code == 2


def test_missing_ffmpeg_exits_nonzero(tmp_path: Path, monkeypatch) -> None:
	monkeypatch.setattr("cover_curator.dependency_check.shutil.which", lambda name: None)

	assert main(["sample", "--video-dir", str(tmp_path)]) == 1


def test_embed_with_yes_processes_ready_and_deletes_orphans(tmp_path: Path, monkeypatch) -> None:
	monkeypatch.setattr(cli, "validate_dependencies", lambda **_kwargs: None)
	monkeypatch.setattr(cli, "FfmpegCoverEmbedder", FakeEmbedder)
	for stem in ("good", "broken"):
		(tmp_path / f"{stem}.mp4").write_bytes(b"video")
		write_frame(tmp_path / "thumbnails" / "contact-sheets" / f"{stem}.jpg")
	orphan = write_frame(tmp_path / "thumbnails" / "contact-sheets" / "orphan.jpg")

	exit_code = main(["embed", "--video-dir", str(tmp_path), "--yes"])

	config = _build_config(_base_args(tmp_path, command="embed"))
	assert exit_code == 0
	assert sorted(FakeEmbedder.calls) == ["broken", "good"]
	assert processed_video_path(config.paths, "good").exists()
	assert backup_video_path(config.paths, "good").exists()
	assert (tmp_path / "broken.mp4").exists()
	assert cover_path(config.paths, "broken").exists()
	assert not orphan.exists()


def test_embed_confirmations_are_independent(tmp_path: Path, monkeypatch) -> None:
	monkeypatch.setattr(cli, "validate_dependencies", lambda **_kwargs: None)
	monkeypatch.setattr(cli, "FfmpegCoverEmbedder", FakeEmbedder)
	(tmp_path / "movie.mp4").write_bytes(b"video")
	write_frame(tmp_path / "thumbnails" / "contact-sheets" / "movie.jpg")
	orphan = write_frame(tmp_path / "thumbnails" / "contact-sheets" / "orphan.jpg")
	answers = iter(["n", "y"])
	monkeypatch.setattr("builtins.input", lambda _prompt: next(answers))

	assert main(["embed", "--video-dir", str(tmp_path)]) == 0

	assert FakeEmbedder.calls == []
	assert (tmp_path / "movie.mp4").exists()
	assert not orphan.exists()


def test_log_sink_receives_json_lines(tmp_path: Path) -> None:
	(tmp_path / "movie.mp4").write_bytes(b"video")

	assert main(["status", "--video-dir", str(tmp_path)]) == 0

	lines = (tmp_path / "cover-curator.log").read_text(encoding="utf-8").splitlines()
	records = [json.loads(line) for line in lines]
	assert any(record["event_type"] == "missing_sheet" and record["stem"] == "movie" for record in records)
