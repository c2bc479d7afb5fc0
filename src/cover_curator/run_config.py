from __future__ import annotations

from dataclasses import dataclass

from cover_curator.output_paths import CoverPaths

DEFAULT_INTERVAL_SECONDS = 120
DEFAULT_MAX_FRAMES = 60
DEFAULT_THUMB_WIDTH = 320
DEFAULT_JPEG_QUALITY = 5
DEFAULT_COVER_QUALITY = 90
DEFAULT_PARALLEL_JOBS = 4
DEFAULT_PROBE_RETRIES = 3
DEFAULT_PROBE_RETRY_DELAY = 2.0
DEFAULT_PROBE_TIMEOUT = 60.0
DEFAULT_TOOL_TIMEOUT = 600.0
MAX_GROUP_SIZE = 6
# Frame ordinals are written with three digits.
MAX_FRAMES_LIMIT = 999


@dataclass(frozen=True)
class RunConfig:
	"""Settings for one pipeline run, shared read-only by every stage."""

	paths: CoverPaths
	interval_seconds: int = DEFAULT_INTERVAL_SECONDS
	max_frames: int = DEFAULT_MAX_FRAMES
	thumb_width: int = DEFAULT_THUMB_WIDTH
	# ffmpeg mjpeg scale: 2 is best, 31 is worst
	jpeg_quality: int = DEFAULT_JPEG_QUALITY
	# Pillow scale for composed sheets: 1 to 95
	cover_quality: int = DEFAULT_COVER_QUALITY
	parallel_jobs: int = DEFAULT_PARALLEL_JOBS
	probe_retries: int = DEFAULT_PROBE_RETRIES
	probe_retry_delay: float = DEFAULT_PROBE_RETRY_DELAY
	probe_timeout: float = DEFAULT_PROBE_TIMEOUT
	tool_timeout: float = DEFAULT_TOOL_TIMEOUT
	# 0 means no limit
	video_max: int = 0
	assume_yes: bool = False
	use_hwaccel: bool = True
	consume_frames: bool = True
	ffmpeg_bin: str = "ffmpeg"
	ffprobe_bin: str = "ffprobe"


def apply_video_limit(items: list, video_max: int) -> list:
	if video_max > 0:
		return items[:video_max]
	return items
