from __future__ import annotations

from typing import Any, Dict, Iterable

from cover_curator.contact_sheet import choose_layout
from cover_curator.frame_groups import frames_for_stem, scan_frame_groups
from cover_curator.ledger import build_ledger
from cover_curator.output_paths import (
	backup_video_path,
	cover_path,
	processed_video_path,
)
from cover_curator.run_config import MAX_GROUP_SIZE, RunConfig, apply_video_limit
from cover_curator.video_probe import collect_video_paths


def build_execution_plan(stage: str, config: RunConfig) -> Dict[str, Any]:
	if stage == "sample":
		return _build_sample_plan(config)
	if stage == "compose":
		return _build_compose_plan(config)
	if stage == "embed":
		return _build_embed_plan(config)
	raise ValueError(f"Unknown plan stage: {stage}")


def _build_sample_plan(config: RunConfig) -> Dict[str, Any]:
	paths = config.paths
	videos = apply_video_limit(collect_video_paths(paths.video_dir), config.video_max)
	files_to_process: list[str] = []
	files_to_skip: list[str] = []
	estimated_outputs: list[str] = [str(paths.frame_dir)]

	for video in videos:
		if frames_for_stem(paths.frame_dir, video.stem) or cover_path(paths, video.stem).exists():
			files_to_skip.append(str(video))
			continue
		files_to_process.append(str(video))
		estimated_outputs.append(str(paths.frame_dir / f"{video.stem}-*.jpg"))

	return {
		"type": "sample",
		"interval_seconds": config.interval_seconds,
		"max_frames": config.max_frames,
		"files_to_process": files_to_process,
		"files_to_skip": files_to_skip,
		"estimated_output_paths": _dedupe(estimated_outputs),
	}


def _build_compose_plan(config: RunConfig) -> Dict[str, Any]:
	paths = config.paths
	scan = scan_frame_groups(paths.frame_dir)
	files_to_process: list[str] = []
	files_to_skip: list[str] = []
	layouts: Dict[str, str] = {}
	estimated_outputs: list[str] = [str(paths.cover_dir)]

	for group in scan.ordered_groups():
		output = cover_path(paths, group.stem)
		if group.size > MAX_GROUP_SIZE or group.is_ambiguous or output.exists():
			files_to_skip.append(group.stem)
			continue
		layout = choose_layout(group.size)
		if layout is None:
			files_to_skip.append(group.stem)
			continue
		files_to_process.append(group.stem)
		layouts[group.stem] = layout
		estimated_outputs.append(str(output))

	return {
		"type": "compose",
		"layouts": layouts,
		"files_to_process": files_to_process,
		"files_to_skip": files_to_skip,
		"estimated_output_paths": _dedupe(estimated_outputs),
	}


def _build_embed_plan(config: RunConfig) -> Dict[str, Any]:
	paths = config.paths
	ledger = build_ledger(config)
	ready = apply_video_limit(ledger.ready, config.video_max)
	files_to_process: list[str] = []
	files_to_skip: list[str] = []
	estimated_outputs: list[str] = [str(paths.processed_dir), str(paths.backup_dir)]

	for record in ready:
		output = processed_video_path(paths, record.stem)
		if output.exists():
			files_to_skip.append(str(record.video_path))
			continue
		files_to_process.append(str(record.video_path))
		estimated_outputs.append(str(output))
		estimated_outputs.append(str(backup_video_path(paths, record.stem)))

	return {
		"type": "embed",
		"ledger": ledger.counts(),
		"orphans": [record.stem for record in ledger.orphans],
		"files_to_process": files_to_process,
		"files_to_skip": files_to_skip,
		"estimated_output_paths": _dedupe(estimated_outputs),
	}


def _dedupe(items: Iterable[str]) -> list[str]:
	seen: set[str] = set()
	result: list[str] = []
	for item in items:
		if item in seen:
			continue
		seen.add(item)
		result.append(item)
	return result
