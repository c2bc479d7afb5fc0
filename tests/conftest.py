from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from cover_curator.log_utils import EventLog
from cover_curator.output_paths import get_cover_paths
from cover_curator.run_config import RunConfig


def write_frame(path: Path, size: tuple[int, int] = (320, 180), color: tuple[int, int, int] = (200, 30, 30)) -> Path:
	path.parent.mkdir(parents=True, exist_ok=True)
	Image.new("RGB", size, color=color).save(path, format="JPEG")
	return path


@pytest.fixture
def run_config(tmp_path: Path) -> RunConfig:
	video_dir = tmp_path / "videos"
	video_dir.mkdir()
	return RunConfig(
		paths=get_cover_paths(video_dir),
		parallel_jobs=2,
		probe_retry_delay=0.0,
		use_hwaccel=False,
	)


@pytest.fixture
def event_log(tmp_path: Path) -> EventLog:
	return EventLog("plain", tmp_path / "events.log")
