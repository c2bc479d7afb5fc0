from __future__ import annotations

import argparse
import json
import os
import time
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from cover_curator.config_loader import coerce_bool, coerce_float, coerce_int, load_config, lookup
from cover_curator.contact_sheet import run_composer
from cover_curator.dependency_check import validate_dependencies
from cover_curator.embedder import FfmpegCoverEmbedder, run_embed_stage, sweep_archived
from cover_curator.errors import MissingToolError
from cover_curator.execution_plan import build_execution_plan
from cover_curator.frame_sampler import run_sampler
from cover_curator.ledger import Ledger, build_ledger, confirm, delete_orphans, report_ledger
from cover_curator.log_utils import EventLog, log_event
from cover_curator.output_paths import get_cover_paths
from cover_curator.run_config import (
	DEFAULT_COVER_QUALITY,
	DEFAULT_INTERVAL_SECONDS,
	DEFAULT_JPEG_QUALITY,
	DEFAULT_MAX_FRAMES,
	DEFAULT_PARALLEL_JOBS,
	DEFAULT_PROBE_RETRIES,
	DEFAULT_PROBE_RETRY_DELAY,
	DEFAULT_PROBE_TIMEOUT,
	DEFAULT_THUMB_WIDTH,
	DEFAULT_TOOL_TIMEOUT,
	MAX_FRAMES_LIMIT,
	RunConfig,
)

EXIT_OK = 0
EXIT_MISSING_TOOL = 1
EXIT_INVALID_ARGS = 2
COMMANDS = ("sample", "compose", "status", "embed", "sweep")


def main(argv: list[str] | None = None) -> int:
	load_dotenv()
	args = _parse_args(argv)
	try:
		config = _build_config(args)
	except (ValueError, FileNotFoundError) as exc:
		log_event(args.log_format, level="error", event_type="config_error", message=str(exc))
		return EXIT_INVALID_ARGS

	log = EventLog(args.log_format, config.paths.log_path)
	try:
		return _run(args, config, log)
	except MissingToolError as exc:
		log.error("dependency_error", str(exc))
		return EXIT_MISSING_TOOL
	except Exception as exc:  # noqa: BLE001
		if args.debug:
			raise
		log.error("error", str(exc))
		return 1


def _run(args: argparse.Namespace, config: RunConfig, log: EventLog) -> int:
	command = args.command
	log.info("session_start", f"{command} started", extra={"video_dir": str(config.paths.video_dir)})

	if command == "sample":
		validate_dependencies(
			ffmpeg_bin=config.ffmpeg_bin,
			ffprobe_bin=config.ffprobe_bin,
			require_ffmpeg=True,
			require_ffprobe=True,
		)
		if args.dry_run:
			return _print_plan("sample", config)
		run_sampler(config, log)
		return EXIT_OK

	if command == "compose":
		if args.dry_run:
			return _print_plan("compose", config)
		run_composer(config, log)
		return EXIT_OK

	if command == "status":
		ledger = build_ledger(config)
		report_ledger(ledger, log)
		if args.log_format == "json":
			print(json.dumps(_ledger_listing(ledger), ensure_ascii=True, indent=2))
		return EXIT_OK

	if command == "embed":
		validate_dependencies(
			ffmpeg_bin=config.ffmpeg_bin,
			ffprobe_bin=config.ffprobe_bin,
			require_ffmpeg=True,
			require_ffprobe=True,
		)
		if args.dry_run:
			return _print_plan("embed", config)
		return _embed(config, log)

	if command == "sweep":
		moved = sweep_archived(config, log)
		log.info("sweep_done", f"moved {moved} originals to backup", extra={"processed": moved})
		return EXIT_OK

	raise ValueError(f"Unknown command: {command}")


def _embed(config: RunConfig, log: EventLog) -> int:
	start_time = time.monotonic()
	ledger = build_ledger(config)
	counts = report_ledger(ledger, log)

	ready = ledger.ready
	if not ready:
		log.info("embed_nothing", "no videos ready for embedding")
	elif confirm(
		f"Embed covers into {len(ready)} videos ({counts['done']} done, {counts['no-sheet']} without sheet)?",
		assume_yes=config.assume_yes,
	):
		embedder = FfmpegCoverEmbedder(
			ffmpeg_bin=config.ffmpeg_bin,
			ffprobe_bin=config.ffprobe_bin,
			timeout=config.tool_timeout,
			probe_timeout=config.probe_timeout,
		)
		run_embed_stage(ready, config, embedder, log)
	else:
		log.info("embed_declined", "embedding cancelled by operator")

	orphans = ledger.orphans
	if orphans:
		if confirm(f"Delete {len(orphans)} orphan contact sheets?", assume_yes=config.assume_yes):
			deleted = delete_orphans(ledger, log)
			log.info("orphans_deleted", f"deleted {deleted} orphan contact sheets")
		else:
			log.info("orphans_kept", "orphan contact sheets kept")

	log.info(
		"session_end",
		"embed finished",
		extra={"duration_seconds": round(time.monotonic() - start_time, 3)},
	)
	return EXIT_OK


def _print_plan(stage: str, config: RunConfig) -> int:
	plan = build_execution_plan(stage, config)
	print(json.dumps(plan, ensure_ascii=True, indent=2))
	return EXIT_OK


def _ledger_listing(ledger: Ledger) -> Dict[str, list[str]]:
	listing: Dict[str, list[str]] = {}
	for record in ledger.records:
		listing.setdefault(record.status, []).append(record.stem)
	return listing


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Curate and embed video cover images")
	parser.add_argument(
		"command",
		choices=COMMANDS,
		help="sample frames, compose contact sheets, show status, embed covers, or sweep archived originals",
	)
	parser.add_argument("--video-dir", help="Directory holding the .mp4 files (default: current directory)")
	parser.add_argument("--config", help="Path to config.yaml")
	parser.add_argument("--video-max", type=int, help="Process only the first N videos (0 = all)")
	parser.add_argument("--yes", action="store_true", help="Answer yes to every confirmation")
	parser.add_argument("--jobs", type=int, help="Videos processed in parallel")
	parser.add_argument("--interval", type=int, help="Seconds between sampled frames")
	parser.add_argument("--max-frames", type=int, help="Max sampled frames per video")
	parser.add_argument("--timeout", type=float, help="Timeout in seconds for each ffmpeg call")
	parser.add_argument("--no-hwaccel", dest="use_hwaccel", action="store_false")
	parser.set_defaults(use_hwaccel=None)
	parser.add_argument("--keep-frames", dest="consume_frames", action="store_false")
	parser.set_defaults(consume_frames=None)
	parser.add_argument(
		"--dry-run",
		action="store_true",
		help="Print an execution plan without writing files",
	)
	parser.add_argument(
		"--debug",
		action="store_true",
		help="Show stack traces on errors",
	)
	parser.add_argument(
		"--log-format",
		choices=["plain", "json"],
		default="plain",
		help="Log format",
	)
	return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> RunConfig:
	config: Dict[str, Any] = {}
	if args.config:
		config = load_config(Path(args.config).expanduser().resolve())
	section = args.command

	def pick(cli_value: Any, key: str, default: Any) -> Any:
		if cli_value is not None:
			return cli_value
		value = lookup(config, key, section)
		return default if value is None else value

	video_dir_value = pick(args.video_dir, "video_dir", None) or os.getenv("COVER_CURATOR_VIDEO_DIR") or "."
	video_dir = Path(str(video_dir_value)).expanduser().resolve()
	if not video_dir.is_dir():
		raise ValueError(f"Video directory not found: {video_dir}")

	paths = get_cover_paths(
		video_dir,
		frame_dir=_optional_dir(lookup(config, "frame_dir", section), video_dir),
		cover_dir=_optional_dir(lookup(config, "cover_dir", section), video_dir),
		backup_dir=_optional_dir(lookup(config, "backup_dir", section), video_dir),
		processed_dir=_optional_dir(lookup(config, "processed_dir", section), video_dir),
		log_path=_optional_dir(lookup(config, "log_file", section), video_dir),
	)

	use_hwaccel = args.use_hwaccel
	if use_hwaccel is None:
		use_hwaccel = coerce_bool(lookup(config, "use_hwaccel", section))
	consume_frames = args.consume_frames
	if consume_frames is None:
		consume_frames = coerce_bool(lookup(config, "consume_frames", section))
	assume_yes = True if args.yes else coerce_bool(lookup(config, "assume_yes", section))

	jpeg_quality = coerce_int(pick(None, "jpeg_quality", DEFAULT_JPEG_QUALITY), "jpeg_quality", minimum=2)
	if jpeg_quality > 31:
		raise ValueError("jpeg_quality must be between 2 and 31")
	max_frames = coerce_int(pick(args.max_frames, "max_frames", DEFAULT_MAX_FRAMES), "max_frames", minimum=1)
	if max_frames > MAX_FRAMES_LIMIT:
		raise ValueError(f"max_frames must be between 1 and {MAX_FRAMES_LIMIT}")
	cover_quality = coerce_int(pick(None, "cover_quality", DEFAULT_COVER_QUALITY), "cover_quality", minimum=1)
	if cover_quality > 95:
		raise ValueError("cover_quality must be between 1 and 95")

	return RunConfig(
		paths=paths,
		interval_seconds=coerce_int(
			pick(args.interval, "interval_seconds", DEFAULT_INTERVAL_SECONDS), "interval_seconds", minimum=1
		),
		max_frames=max_frames,
		thumb_width=coerce_int(pick(None, "thumb_width", DEFAULT_THUMB_WIDTH), "thumb_width", minimum=1),
		jpeg_quality=jpeg_quality,
		cover_quality=cover_quality,
		parallel_jobs=coerce_int(pick(args.jobs, "parallel_jobs", DEFAULT_PARALLEL_JOBS), "parallel_jobs", minimum=1),
		probe_retries=coerce_int(pick(None, "probe_retries", DEFAULT_PROBE_RETRIES), "probe_retries", minimum=1),
		probe_retry_delay=coerce_float(
			pick(None, "probe_retry_delay", DEFAULT_PROBE_RETRY_DELAY), "probe_retry_delay", minimum=0.0
		),
		probe_timeout=coerce_float(pick(None, "probe_timeout", DEFAULT_PROBE_TIMEOUT), "probe_timeout", minimum=1.0),
		tool_timeout=coerce_float(pick(args.timeout, "tool_timeout", DEFAULT_TOOL_TIMEOUT), "tool_timeout", minimum=1.0),
		video_max=coerce_int(pick(args.video_max, "video_max", 0), "video_max", minimum=0),
		assume_yes=bool(assume_yes),
		use_hwaccel=True if use_hwaccel is None else use_hwaccel,
		consume_frames=True if consume_frames is None else consume_frames,
		ffmpeg_bin=str(pick(None, "ffmpeg_bin", None) or os.getenv("FFMPEG_BIN") or "ffmpeg"),
		ffprobe_bin=str(pick(None, "ffprobe_bin", None) or os.getenv("FFPROBE_BIN") or "ffprobe"),
	)


def _optional_dir(value: Any, base: Path) -> Path | None:
	if value is None or value == "":
		return None
	path = Path(str(value)).expanduser()
	if not path.is_absolute():
		path = base / path
	return path


if __name__ == "__main__":
	raise SystemExit(main())
