from __future__ import annotations

import os
import shutil
import time
from pathlib import Path
from typing import Protocol, Sequence

from cover_curator.errors import MuxError, ProbeError
from cover_curator.ledger import READY, ReconciliationRecord
from cover_curator.log_utils import EventLog
from cover_curator.output_paths import (
	backup_video_path,
	processed_staging_path,
	processed_video_path,
)
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
from cover_curator.video_probe import collect_video_paths, count_video_streams
from cover_curator.worker_pool import run_in_batches

STAGE = "embed"


class CoverEmbedder(Protocol):
	def embed(self, video_path: Path, cover_path: Path, output_path: Path) -> None:
		"""Write ``output_path``: every stream of ``video_path`` copied, plus the cover."""


class FfmpegCoverEmbedder:
	def __init__(
		self,
		*,
		ffmpeg_bin: str = "ffmpeg",
		ffprobe_bin: str = "ffprobe",
		timeout: float | None = None,
		probe_timeout: float | None = 60.0,
	) -> None:
		self.ffmpeg_bin = ffmpeg_bin
		self.ffprobe_bin = ffprobe_bin
		self.timeout = timeout
		self.probe_timeout = probe_timeout

	def embed(self, video_path: Path, cover_path: Path, output_path: Path) -> None:
		try:
			video_streams = count_video_streams(
				video_path,
				timeout=self.probe_timeout,
				ffprobe_bin=self.ffprobe_bin,
			)
		except ProbeError as exc:
			raise MuxError(f"cannot inspect streams: {exc}") from exc
		if video_streams == 0:
			raise MuxError("no video stream to attach a cover to")

		command = build_mux_command(
			video_path,
			cover_path,
			output_path,
			cover_index=video_streams,
			ffmpeg_bin=self.ffmpeg_bin,
		)
		result = run_tool(command, timeout=self.timeout)
		if not result.ok:
			raise MuxError(result.error_text("ffmpeg mux failed"))
		if not output_path.exists():
			raise MuxError("ffmpeg reported success but wrote no output")


def build_mux_command(
	video_path: Path,
	cover_path: Path,
	output_path: Path,
	*,
	cover_index: int,
	ffmpeg_bin: str = "ffmpeg",
) -> list[str]:
	"""Stream-copy ``video_path`` and add ``cover_path`` as an attached picture.

	``-map 0:V`` keeps the real video streams and drops any previous cover,
	so the new cover is output video stream number ``cover_index``.
	"""
	return [
		ffmpeg_bin,
		"-hide_banner",
		"-loglevel",
		"error",
		"-y",
		"-i",
		str(video_path),
		"-i",
		str(cover_path),
		"-map",
		"0:V",
		"-map",
		"0:a?",
		"-map",
		"0:s?",
		"-map",
		"1",
		"-c",
		"copy",
		f"-c:v:{cover_index}",
		"png",
		f"-disposition:v:{cover_index}",
		"attached_pic",
		"-f",
		"mp4",
		str(output_path),
	]


def embed_record(
	record: ReconciliationRecord,
	config: RunConfig,
	embedder: CoverEmbedder,
	log: EventLog,
) -> ItemOutcome:
	paths = config.paths
	stem = record.stem
	if record.status != READY or record.video_path is None or record.cover_path is None:
		return ItemOutcome(stem, SKIPPED, "not_ready")

	output = processed_video_path(paths, stem)
	backup = backup_video_path(paths, stem)
	staging = processed_staging_path(paths, stem)

	if output.exists():
		log.info("embed_skipped", "processed container already exists", stage=STAGE, stem=stem, file_path=str(output))
		return ItemOutcome(stem, SKIPPED, "output_exists")
	if backup.exists():
		message = "backup already holds a video with this name"
		log.error("embed_failed", message, stage=STAGE, stem=stem, file_path=str(backup))
		return ItemOutcome(stem, FAILED, "backup_exists", {"error": message})

	try:
		paths.processed_dir.mkdir(parents=True, exist_ok=True)
		paths.backup_dir.mkdir(parents=True, exist_ok=True)
	except OSError as exc:
		log.error("embed_failed", "cannot create output directories", stage=STAGE, stem=stem, error=str(exc))
		return ItemOutcome(stem, FAILED, "output_dir_error", {"error": str(exc)})

	try:
		embedder.embed(record.video_path, record.cover_path, staging)
	except MuxError as exc:
		staging.unlink(missing_ok=True)
		log.error(
			"embed_failed",
			"muxer failed, originals left untouched",
			stage=STAGE,
			stem=stem,
			file_path=str(record.video_path),
			error=str(exc),
		)
		return ItemOutcome(stem, FAILED, "mux_error", {"error": str(exc)})

	try:
		os.replace(staging, output)
		shutil.move(str(record.video_path), str(backup))
		record.cover_path.unlink(missing_ok=True)
	except OSError as exc:
		log.error(
			"archive_failed",
			"cover embedded but archiving failed",
			stage=STAGE,
			stem=stem,
			file_path=str(record.video_path),
			error=str(exc),
		)
		return ItemOutcome(stem, FAILED, "archive_error", {"error": str(exc)})

	log.info(
		"embed_done",
		"cover embedded, original moved to backup",
		stage=STAGE,
		stem=stem,
		file_path=str(output),
		extra={"backup": str(backup)},
	)
	return ItemOutcome(stem, PROCESSED)


def run_embed_stage(
	records: Sequence[ReconciliationRecord],
	config: RunConfig,
	embedder: CoverEmbedder,
	log: EventLog,
	*,
	show_progress: bool = True,
) -> StageSummary:
	start_time = time.monotonic()
	ready = apply_video_limit([record for record in records if record.status == READY], config.video_max)
	log.info(
		"embed_config",
		f"embedding covers into {len(ready)} videos",
		stage=STAGE,
		extra={
			"processed_dir": str(config.paths.processed_dir),
			"backup_dir": str(config.paths.backup_dir),
			"parallel_jobs": config.parallel_jobs,
		},
	)
	outcomes = run_in_batches(
		ready,
		lambda record: guard_item(log, STAGE, record.stem, lambda: embed_record(record, config, embedder, log)),
		limit=config.parallel_jobs,
		desc="Embedding",
		show_progress=show_progress,
	)
	summary = StageSummary.from_outcomes(STAGE, outcomes)
	emit_summary(log, summary, start_time)
	return summary


def sweep_archived(config: RunConfig, log: EventLog) -> int:
	"""Move pending originals whose processed container already exists to backup."""
	paths = config.paths
	moved = 0
	for video in collect_video_paths(paths.video_dir):
		if not processed_video_path(paths, video.stem).exists():
			continue
		backup = backup_video_path(paths, video.stem)
		if backup.exists():
			log.warning(
				"sweep_skipped",
				"backup already holds a video with this name",
				stage=STAGE,
				stem=video.stem,
				file_path=str(backup),
			)
			continue
		try:
			paths.backup_dir.mkdir(parents=True, exist_ok=True)
			shutil.move(str(video), str(backup))
		except OSError as exc:
			log.error("sweep_failed", "could not move original", stage=STAGE, stem=video.stem, file_path=str(video), error=str(exc))
			continue
		moved += 1
		log.info("sweep_moved", "original moved to backup", stage=STAGE, stem=video.stem, file_path=str(backup))
	return moved
