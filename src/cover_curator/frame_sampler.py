from __future__ import annotations

import threading
import time
from pathlib import Path

from cover_curator.dependency_check import (
	HWACCEL_LABELS,
	list_available_accelerators,
	select_hwaccel,
	verify_hwaccel,
)
from cover_curator.errors import ExtractionError, ProbeError
from cover_curator.frame_groups import frames_for_stem
from cover_curator.log_utils import EventLog, format_bytes, format_duration
from cover_curator.output_paths import cover_path, frame_path
from cover_curator.run_config import RunConfig, apply_video_limit
from cover_curator.summary import (
	FAILED,
	PROCESSED,
	SKIPPED,
	ItemOutcome,
	StageSummary,
	emit_summary,
	guard_item,
)
from cover_curator.tool_runner import run_tool
from cover_curator.video_probe import collect_video_paths, count_shadow_videos, probe_video
from cover_curator.worker_pool import run_in_batches

STAGE = "sample"


class HwaccelSwitch:
	"""Decode accelerator shared by the sampling workers.

	Once a frame decodes only in software, hardware decode stays off for
	the rest of the run.
	"""

	def __init__(self, hwaccel: str | None = None) -> None:
		self._hwaccel = hwaccel
		self._lock = threading.Lock()

	@property
	def current(self) -> str | None:
		with self._lock:
			return self._hwaccel

	def disable(self) -> str | None:
		"""Turn hardware decode off and return the method that was active."""
		with self._lock:
			previous = self._hwaccel
			self._hwaccel = None
			return previous


def sample_timestamps(duration: int, interval: int, max_frames: int) -> list[int]:
	if interval <= 0:
		raise ValueError("interval must be positive")
	timestamps: list[int] = []
	t = 0
	while t < duration and len(timestamps) < max_frames:
		timestamps.append(t)
		t += interval
	return timestamps


def build_extract_command(
	video_path: Path,
	timestamp: int | float,
	output_path: Path,
	*,
	width: int,
	quality: int,
	hwaccel: str | None = None,
	ffmpeg_bin: str = "ffmpeg",
) -> list[str]:
	command = [ffmpeg_bin, "-hide_banner", "-loglevel", "error"]
	if hwaccel:
		command.extend(["-hwaccel", hwaccel])
	# -ss before -i: seek on the keyframe index instead of decoding from the start.
	command.extend(
		[
			"-ss",
			str(timestamp),
			"-i",
			str(video_path),
			"-frames:v",
			"1",
			"-vf",
			f"scale={width}:-1",
			"-q:v",
			str(quality),
			"-threads",
			"0",
			"-y",
			str(output_path),
		]
	)
	return command


def extract_frame(
	video_path: Path,
	timestamp: int | float,
	output_path: Path,
	*,
	width: int,
	quality: int,
	hwaccel: str | None = None,
	ffmpeg_bin: str = "ffmpeg",
	timeout: float | None = None,
) -> Path:
	output_path.parent.mkdir(parents=True, exist_ok=True)
	command = build_extract_command(
		video_path,
		timestamp,
		output_path,
		width=width,
		quality=quality,
		hwaccel=hwaccel,
		ffmpeg_bin=ffmpeg_bin,
	)
	result = run_tool(command, timeout=timeout)
	if not result.ok:
		output_path.unlink(missing_ok=True)
		raise ExtractionError(result.error_text("ffmpeg frame extract failed"))
	if not output_path.exists() or output_path.stat().st_size == 0:
		output_path.unlink(missing_ok=True)
		raise ExtractionError(f"no frame decoded at {timestamp}s")
	return output_path


def sample_video(
	video_path: Path,
	config: RunConfig,
	*,
	hwaccel: HwaccelSwitch | str | None,
	log: EventLog,
) -> ItemOutcome:
	stem = video_path.stem
	paths = config.paths
	switch = hwaccel if isinstance(hwaccel, HwaccelSwitch) else HwaccelSwitch(hwaccel)

	existing = frames_for_stem(paths.frame_dir, stem)
	if existing:
		log.info(
			"sample_skipped",
			f"{len(existing)} thumbnails already exist",
			stage=STAGE,
			stem=stem,
			file_path=str(video_path),
		)
		return ItemOutcome(stem, SKIPPED, "frames_exist")
	if cover_path(paths, stem).exists():
		log.info(
			"sample_skipped",
			"contact sheet already exists",
			stage=STAGE,
			stem=stem,
			file_path=str(video_path),
		)
		return ItemOutcome(stem, SKIPPED, "sheet_exists")

	def _on_retry(attempt: int, error: str) -> None:
		log.warning(
			"probe_retry",
			f"ffprobe attempt {attempt}/{config.probe_retries} failed",
			stage=STAGE,
			stem=stem,
			file_path=str(video_path),
			error=error,
		)

	try:
		asset = probe_video(
			video_path,
			retries=config.probe_retries,
			retry_delay=config.probe_retry_delay,
			timeout=config.probe_timeout,
			ffprobe_bin=config.ffprobe_bin,
			on_retry=_on_retry,
		)
	except ProbeError as exc:
		log.error(
			"probe_failed",
			"could not probe video, skipping",
			stage=STAGE,
			stem=stem,
			file_path=str(video_path),
			error=str(exc),
		)
		return ItemOutcome(stem, SKIPPED, "probe_failed", {"error": str(exc)})

	timestamps = sample_timestamps(asset.duration, config.interval_seconds, config.max_frames)
	log.info(
		"sample_start",
		f"extracting {len(timestamps)} frames every {config.interval_seconds}s",
		stage=STAGE,
		stem=stem,
		file_path=str(video_path),
		extra={
			"size": format_bytes(asset.size),
			"duration": format_duration(asset.duration),
			"resolution": asset.resolution,
		},
	)

	start = time.monotonic()
	written = 0
	errors = 0
	for ordinal, timestamp in enumerate(timestamps, start=1):
		output = frame_path(paths, stem, ordinal)
		try:
			_extract_with_fallback(video_path, timestamp, output, config, switch, log)
			written += 1
		except ExtractionError as exc:
			errors += 1
			log.warning(
				"extract_failed",
				f"frame {ordinal} at {timestamp}s failed",
				stage=STAGE,
				stem=stem,
				file_path=str(output),
				error=str(exc),
			)

	elapsed = time.monotonic() - start
	detail = {
		"frames": written,
		"errors": errors,
		"elapsed": format_duration(elapsed),
	}
	if written == 0:
		log.error(
			"sample_failed",
			"no frames extracted",
			stage=STAGE,
			stem=stem,
			file_path=str(video_path),
			extra=detail,
		)
		return ItemOutcome(stem, FAILED, "no_frames", detail)

	log.info(
		"sample_done",
		f"{written} frames ({errors} errors) in {format_duration(elapsed)}",
		stage=STAGE,
		stem=stem,
		file_path=str(video_path),
		extra=detail,
	)
	return ItemOutcome(stem, PROCESSED, "partial" if errors else "", detail)


def _extract_with_fallback(
	video_path: Path,
	timestamp: int,
	output: Path,
	config: RunConfig,
	switch: HwaccelSwitch,
	log: EventLog,
) -> Path:
	hwaccel = switch.current
	try:
		return extract_frame(
			video_path,
			timestamp,
			output,
			width=config.thumb_width,
			quality=config.jpeg_quality,
			hwaccel=hwaccel,
			ffmpeg_bin=config.ffmpeg_bin,
			timeout=config.tool_timeout,
		)
	except ExtractionError as exc:
		if hwaccel is None:
			raise
		if switch.disable() is not None:
			log.warning(
				"hwaccel_fallback",
				f"{hwaccel} decode failed, using CPU decoding for the rest of the run",
				stage=STAGE,
				stem=video_path.stem,
				file_path=str(output),
				error=str(exc),
			)
	return extract_frame(
		video_path,
		timestamp,
		output,
		width=config.thumb_width,
		quality=config.jpeg_quality,
		hwaccel=None,
		ffmpeg_bin=config.ffmpeg_bin,
		timeout=config.tool_timeout,
	)


def detect_hwaccel(config: RunConfig, log: EventLog, probe_video_path: Path | None = None) -> str | None:
	"""Pick a decode accelerator, then decode one frame of ``probe_video_path`` with it."""
	if not config.use_hwaccel:
		log.info("hwaccel", "hardware acceleration disabled, using CPU decoding", stage=STAGE)
		return None
	hwaccel = select_hwaccel(list_available_accelerators(config.ffmpeg_bin))
	if hwaccel is None:
		log.warning("hwaccel", "no GPU acceleration found, using CPU decoding", stage=STAGE)
		return None
	if probe_video_path is not None:
		result = verify_hwaccel(
			probe_video_path,
			hwaccel,
			ffmpeg_bin=config.ffmpeg_bin,
			timeout=config.probe_timeout,
		)
		if not result.ok:
			log.warning(
				"hwaccel",
				f"{HWACCEL_LABELS.get(hwaccel, hwaccel)} listed but unusable, using CPU decoding",
				stage=STAGE,
				file_path=str(probe_video_path),
				error=result.error_text("test decode failed"),
			)
			return None
	log.info(
		"hwaccel",
		f"hardware acceleration: {HWACCEL_LABELS.get(hwaccel, hwaccel)}",
		stage=STAGE,
	)
	return hwaccel


def run_sampler(config: RunConfig, log: EventLog, *, show_progress: bool = True) -> StageSummary:
	start_time = time.monotonic()
	paths = config.paths
	paths.frame_dir.mkdir(parents=True, exist_ok=True)

	shadow_count = count_shadow_videos(paths.video_dir)
	if shadow_count:
		log.warning(
			"shadow_files",
			f"found {shadow_count} macOS resource fork files (._*.mp4), skipping these",
			stage=STAGE,
		)

	found = collect_video_paths(paths.video_dir)
	videos = apply_video_limit(found, config.video_max)
	log.info(
		"sample_config",
		f"sampling {len(videos)} of {len(found)} videos",
		stage=STAGE,
		extra={
			"interval_seconds": config.interval_seconds,
			"max_frames": config.max_frames,
			"thumb_width": config.thumb_width,
			"jpeg_quality": config.jpeg_quality,
			"parallel_jobs": config.parallel_jobs,
			"frame_dir": str(paths.frame_dir),
		},
	)

	switch = HwaccelSwitch(detect_hwaccel(config, log, videos[0]) if videos else None)
	outcomes = run_in_batches(
		videos,
		lambda video: guard_item(
			log,
			STAGE,
			video.stem,
			lambda: sample_video(video, config, hwaccel=switch, log=log),
		),
		limit=config.parallel_jobs,
		desc="Sampling",
		show_progress=show_progress,
	)
	summary = StageSummary.from_outcomes(STAGE, outcomes)
	emit_summary(log, summary, start_time)
	return summary
