from __future__ import annotations

import math
import os
import shutil
import time
from pathlib import Path
from typing import Sequence

from PIL import Image, ImageOps, UnidentifiedImageError

from cover_curator.errors import CompositionError
from cover_curator.frame_groups import FrameGroup, scan_frame_groups
from cover_curator.log_utils import EventLog
from cover_curator.output_paths import cover_path, cover_staging_path
from cover_curator.run_config import MAX_GROUP_SIZE, RunConfig
from cover_curator.summary import (
	FAILED,
	PROCESSED,
	SKIPPED,
	ItemOutcome,
	StageSummary,
	emit_summary,
	guard_item,
)
from cover_curator.worker_pool import run_in_batches

STAGE = "compose"

LAYOUT_COPY = "copy"
LAYOUT_VSTACK = "vstack"
LAYOUT_GRID = "grid2col"
LAYOUT_KINDS = (LAYOUT_COPY, LAYOUT_VSTACK, LAYOUT_GRID)

GRID_COLUMNS = 2
# Each grid frame is fitted inside this box, then centre-cropped to the cell width.
GRID_FIT_BOX = (200, 200)
GRID_CELL_WIDTH = 160
BACKGROUND = (0, 0, 0)


def choose_layout(count: int) -> str | None:
	if count <= 0:
		raise ValueError("a frame group has at least one frame")
	if count == 1:
		return LAYOUT_COPY
	if count <= 3:
		return LAYOUT_VSTACK
	if count <= MAX_GROUP_SIZE:
		return LAYOUT_GRID
	return None


def compose(
	layout_kind: str,
	frame_paths: Sequence[Path],
	output_path: Path,
	*,
	quality: int = 90,
	staging_path: Path | None = None,
) -> Path:
	"""Write one cover image for ``frame_paths`` using ``layout_kind``.

	The image is written to ``staging_path`` first and renamed onto
	``output_path``, so a partial sheet never carries the final name.
	"""
	if layout_kind not in LAYOUT_KINDS:
		raise CompositionError(f"unknown layout: {layout_kind}")
	if not frame_paths:
		raise CompositionError("no frames to compose")

	output_path.parent.mkdir(parents=True, exist_ok=True)
	staging = staging_path or output_path.with_name(f".{output_path.stem}.partial{output_path.suffix}")
	try:
		if layout_kind == LAYOUT_COPY:
			shutil.copyfile(frame_paths[0], staging)
		else:
			images = _load_frames(frame_paths)
			if layout_kind == LAYOUT_VSTACK:
				sheet = _vertical_stack(images)
			else:
				sheet = _grid(images)
			sheet.save(staging, format="JPEG", quality=quality)
		os.replace(staging, output_path)
	except (OSError, UnidentifiedImageError, ValueError) as exc:
		staging.unlink(missing_ok=True)
		raise CompositionError(f"{layout_kind} failed: {exc}") from exc
	return output_path


def compose_group(group: FrameGroup, config: RunConfig, log: EventLog) -> ItemOutcome:
	paths = config.paths
	output = cover_path(paths, group.stem)

	if group.size > MAX_GROUP_SIZE:
		log.info(
			"compose_skipped",
			f"ignored ({group.size} thumbnails)",
			stage=STAGE,
			stem=group.stem,
		)
		return ItemOutcome(group.stem, SKIPPED, "too_many", {"frames": group.size})
	if output.exists():
		log.info(
			"compose_skipped",
			"contact sheet already exists",
			stage=STAGE,
			stem=group.stem,
			file_path=str(output),
		)
		return ItemOutcome(group.stem, SKIPPED, "exists")
	if group.is_ambiguous:
		log.warning(
			"compose_skipped",
			"two frames share an ordinal, resolve manually",
			stage=STAGE,
			stem=group.stem,
			extra={"conflicts": [str(path) for path in group.conflicts]},
		)
		return ItemOutcome(group.stem, SKIPPED, "ambiguous")

	layout = choose_layout(group.size)
	if layout is None:
		return ItemOutcome(group.stem, SKIPPED, "too_many", {"frames": group.size})
	try:
		compose(
			layout,
			group.paths,
			output,
			quality=config.cover_quality,
			staging_path=cover_staging_path(paths, group.stem),
		)
	except CompositionError as exc:
		log.error(
			"compose_failed",
			f"{layout} generation failed",
			stage=STAGE,
			stem=group.stem,
			file_path=str(output),
			error=str(exc),
		)
		return ItemOutcome(group.stem, FAILED, "compositor_error", {"error": str(exc)})

	log.info(
		"compose_done",
		f"{layout} ({group.size} tiles)",
		stage=STAGE,
		stem=group.stem,
		file_path=str(output),
	)
	if config.consume_frames:
		_consume_frames(group, log)
	return ItemOutcome(group.stem, PROCESSED, layout, {"frames": group.size})


def run_composer(config: RunConfig, log: EventLog, *, show_progress: bool = True) -> StageSummary:
	start_time = time.monotonic()
	paths = config.paths
	paths.cover_dir.mkdir(parents=True, exist_ok=True)

	scan = scan_frame_groups(paths.frame_dir)
	groups = scan.ordered_groups()
	log.info(
		"compose_config",
		f"found {len(groups)} video groups",
		stage=STAGE,
		extra={
			"frame_dir": str(paths.frame_dir),
			"cover_dir": str(paths.cover_dir),
			"ignored_files": len(scan.ignored),
			"parallel_jobs": config.parallel_jobs,
		},
	)
	if not groups:
		log.warning("compose_empty", f"no grouped thumbnails found in {paths.frame_dir}", stage=STAGE)

	outcomes = run_in_batches(
		groups,
		lambda group: guard_item(log, STAGE, group.stem, lambda: compose_group(group, config, log)),
		limit=config.parallel_jobs,
		desc="Composing",
		show_progress=show_progress,
	)
	summary = StageSummary.from_outcomes(STAGE, outcomes)
	emit_summary(log, summary, start_time)
	return summary


def _consume_frames(group: FrameGroup, log: EventLog) -> None:
	for frame in group.paths:
		try:
			frame.unlink(missing_ok=True)
		except OSError as exc:
			log.warning(
				"frame_delete_failed",
				"contact sheet written but source frame was not deleted",
				stage=STAGE,
				stem=group.stem,
				file_path=str(frame),
				error=str(exc),
			)


def _load_frames(frame_paths: Sequence[Path]) -> list[Image.Image]:
	images: list[Image.Image] = []
	for path in frame_paths:
		with Image.open(path) as image:
			images.append(image.convert("RGB"))
	return images


def _vertical_stack(images: list[Image.Image]) -> Image.Image:
	width = max(image.width for image in images)
	height = sum(image.height for image in images)
	sheet = Image.new("RGB", (width, height), BACKGROUND)
	top = 0
	for image in images:
		sheet.paste(image, (0, top))
		top += image.height
	return sheet


def grid_cell_size(width: int, height: int) -> tuple[int, int]:
	scale = min(GRID_FIT_BOX[0] / width, GRID_FIT_BOX[1] / height)
	fitted_width = max(1, round(width * scale))
	fitted_height = max(1, round(height * scale))
	return min(GRID_CELL_WIDTH, fitted_width), fitted_height


def _grid(images: list[Image.Image]) -> Image.Image:
	cell = grid_cell_size(images[0].width, images[0].height)
	rows = math.ceil(len(images) / GRID_COLUMNS)
	sheet = Image.new("RGB", (cell[0] * GRID_COLUMNS, cell[1] * rows), BACKGROUND)
	for index, image in enumerate(images):
		tile = ImageOps.fit(image, cell, method=Image.Resampling.LANCZOS)
		row, column = divmod(index, GRID_COLUMNS)
		sheet.paste(tile, (column * cell[0], row * cell[1]))
	return sheet
