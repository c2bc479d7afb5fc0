from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict

from cover_curator.errors import ProbeError
from cover_curator.tool_runner import run_tool

VIDEO_EXTENSIONS = {".mp4"}
# Finder metadata that macOS writes next to files on external drives.
SHADOW_PREFIX = "._"


@dataclass(frozen=True)
class VideoAsset:
	path: Path
	stem: str
	duration: int
	width: int | None
	height: int | None
	size: int

	@property
	def resolution(self) -> str:
		if self.width and self.height:
			return f"{self.width}x{self.height}"
		return "unknown"


def is_shadow_file(path: Path) -> bool:
	return path.name.startswith(SHADOW_PREFIX) or path.name.startswith(".")


def collect_video_paths(video_dir: Path) -> list[Path]:
	if not video_dir.is_dir():
		return []
	paths = [
		path
		for path in video_dir.iterdir()
		if path.is_file()
		and path.suffix.lower() in VIDEO_EXTENSIONS
		and not is_shadow_file(path)
	]
	return sorted(paths, key=lambda path: path.name)


def count_shadow_videos(video_dir: Path) -> int:
	if not video_dir.is_dir():
		return 0
	return sum(
		1
		for path in video_dir.iterdir()
		if path.name.startswith(SHADOW_PREFIX) and path.suffix.lower() in VIDEO_EXTENSIONS
	)


def probe_video(
	path: Path,
	*,
	retries: int = 3,
	retry_delay: float = 2.0,
	timeout: float | None = 60.0,
	ffprobe_bin: str = "ffprobe",
	on_retry: Callable[[int, str], None] | None = None,
) -> VideoAsset:
	"""Read duration and resolution from the container and stream headers.

	Tool failures are retried ``retries`` times with ``retry_delay`` seconds
	between attempts; removable and network drives fail transiently while
	spinning up. A missing or non-positive duration fails at once.
	"""
	data = _probe_with_retry(
		path,
		retries=retries,
		retry_delay=retry_delay,
		timeout=timeout,
		ffprobe_bin=ffprobe_bin,
		on_retry=on_retry,
	)
	stream = (data.get("streams") or [{}])[0]
	format_info = data.get("format") or {}

	duration = parse_duration(format_info.get("duration"))
	if duration is None:
		raise ProbeError(
			f"could not determine duration (ffprobe returned {format_info.get('duration')!r})"
		)

	width = _parse_dimension(stream.get("width"))
	height = _parse_dimension(stream.get("height"))
	try:
		size = path.stat().st_size
	except OSError:
		size = 0

	return VideoAsset(
		path=path,
		stem=path.stem,
		duration=duration,
		width=width,
		height=height,
		size=size,
	)


def count_video_streams(
	path: Path,
	*,
	timeout: float | None = 60.0,
	ffprobe_bin: str = "ffprobe",
) -> int:
	command = [
		ffprobe_bin,
		"-v",
		"error",
		"-select_streams",
		"v",
		"-show_entries",
		"stream=index:stream_disposition=attached_pic",
		"-of",
		"json",
		str(path),
	]
	result = run_tool(command, timeout=timeout)
	if not result.ok:
		raise ProbeError(result.error_text("ffprobe failed"))
	try:
		data = json.loads(result.stdout or "{}")
	except json.JSONDecodeError as exc:
		raise ProbeError(f"unreadable ffprobe output: {exc}") from exc

	count = 0
	for stream in data.get("streams") or []:
		disposition = stream.get("disposition") or {}
		if int(disposition.get("attached_pic", 0) or 0) == 1:
			continue
		count += 1
	return count


def parse_duration(value: Any) -> int | None:
	if value is None:
		return None
	try:
		seconds = int(float(str(value).strip()))
	except (ValueError, OverflowError):
		return None
	if seconds <= 0:
		return None
	return seconds


def _probe_with_retry(
	path: Path,
	*,
	retries: int,
	retry_delay: float,
	timeout: float | None,
	ffprobe_bin: str,
	on_retry: Callable[[int, str], None] | None,
) -> Dict[str, Any]:
	command = [
		ffprobe_bin,
		"-v",
		"error",
		"-select_streams",
		"v:0",
		"-show_entries",
		"stream=width,height",
		"-show_entries",
		"format=duration",
		"-of",
		"json",
		str(path),
	]
	attempts = max(1, retries)
	last_error = "ffprobe failed"
	for attempt in range(1, attempts + 1):
		result = run_tool(command, timeout=timeout)
		if result.ok:
			try:
				data = json.loads(result.stdout or "{}")
			except json.JSONDecodeError as exc:
				last_error = f"unreadable ffprobe output: {exc}"
			else:
				if isinstance(data, dict):
					return data
				last_error = "unexpected ffprobe output"
		else:
			last_error = result.error_text("ffprobe failed")

		if attempt < attempts:
			if on_retry is not None:
				on_retry(attempt, last_error)
			time.sleep(retry_delay)

	raise ProbeError(f"ffprobe failed after {attempts} attempts: {last_error}")


def _parse_dimension(value: Any) -> int | None:
	try:
		number = int(value)
	except (TypeError, ValueError):
		return None
	return number if number > 0 else None
