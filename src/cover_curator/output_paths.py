from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

FRAME_DIR_NAME = "thumbnails"
COVER_DIR_NAME = "contact-sheets"
BACKUP_DIR_NAME = "backup"
PROCESSED_DIR_NAME = "corrected"
LOG_FILE_NAME = "cover-curator.log"
COVER_EXTENSION = ".jpg"
VIDEO_EXTENSION = ".mp4"


@dataclass(frozen=True)
class CoverPaths:
	video_dir: Path
	frame_dir: Path
	cover_dir: Path
	backup_dir: Path
	processed_dir: Path
	log_path: Path


def get_cover_paths(
	video_dir: Path,
	*,
	frame_dir: Path | None = None,
	cover_dir: Path | None = None,
	backup_dir: Path | None = None,
	processed_dir: Path | None = None,
	log_path: Path | None = None,
) -> CoverPaths:
	frames = frame_dir or video_dir / FRAME_DIR_NAME
	return CoverPaths(
		video_dir=video_dir,
		frame_dir=frames,
		cover_dir=cover_dir or frames / COVER_DIR_NAME,
		backup_dir=backup_dir or video_dir / BACKUP_DIR_NAME,
		processed_dir=processed_dir or video_dir / PROCESSED_DIR_NAME,
		log_path=log_path or video_dir / LOG_FILE_NAME,
	)


def frame_path(paths: CoverPaths, stem: str, ordinal: int, extension: str = "jpg") -> Path:
	return paths.frame_dir / f"{stem}-{ordinal:03d}.{extension}"


def cover_path(paths: CoverPaths, stem: str) -> Path:
	return paths.cover_dir / f"{stem}{COVER_EXTENSION}"


def cover_staging_path(paths: CoverPaths, stem: str) -> Path:
	return paths.cover_dir / f".{stem}.partial{COVER_EXTENSION}"


def backup_video_path(paths: CoverPaths, stem: str) -> Path:
	return paths.backup_dir / f"{stem}{VIDEO_EXTENSION}"


def processed_video_path(paths: CoverPaths, stem: str) -> Path:
	return paths.processed_dir / f"{stem}{VIDEO_EXTENSION}"


def processed_staging_path(paths: CoverPaths, stem: str) -> Path:
	return paths.processed_dir / f".{stem}.partial{VIDEO_EXTENSION}"
