from __future__ import annotations

from pathlib import Path

from cover_curator.ledger import (
	DONE,
	NO_SHEET,
	ORPHAN,
	READY,
	build_ledger,
	confirm,
	delete_orphans,
)
from cover_curator.log_utils import EventLog
from cover_curator.output_paths import backup_video_path, cover_path, processed_video_path
from cover_curator.run_config import RunConfig


def _touch(path: Path, content: bytes = b"data") -> Path:
	path.parent.mkdir(parents=True, exist_ok=True)
	path.write_bytes(content)
	return path


def _video(run_config: RunConfig, stem: str) -> Path:
	return _touch(run_config.paths.video_dir / f"{stem}.mp4")


def _sheet(run_config: RunConfig, stem: str) -> Path:
	return _touch(cover_path(run_config.paths, stem))


def test_ready_and_done_classification(run_config: RunConfig) -> None:
	for stem in ("A", "B", "C"):
		_sheet(run_config, stem)
	_video(run_config, "A")
	_video(run_config, "B")
	_touch(backup_video_path(run_config.paths, "C"))

	ledger = build_ledger(run_config)

	assert [record.stem for record in ledger.ready] == ["A", "B"]
	assert [record.stem for record in ledger.done] == ["C"]
	assert ledger.orphans == []
	assert ledger.counts() == {READY: 2, DONE: 1, ORPHAN: 0, NO_SHEET: 0}


def test_processed_container_counts_as_archived(run_config: RunConfig) -> None:
	_sheet(run_config, "A")
	_video(run_config, "A")
	_touch(processed_video_path(run_config.paths, "A"))

	ledger = build_ledger(run_config)

	assert ledger.status_of("A") == DONE
	assert ledger.ready == []


def test_sheet_without_video_is_orphan(run_config: RunConfig) -> None:
	_sheet(run_config, "D")

	ledger = build_ledger(run_config)

	assert ledger.status_of("D") == ORPHAN
	assert ledger.orphans[0].cover_path == cover_path(run_config.paths, "D")


def test_video_without_sheet_is_reported(run_config: RunConfig) -> None:
	video = _video(run_config, "E")

	ledger = build_ledger(run_config)

	assert ledger.status_of("E") == NO_SHEET
	assert ledger.no_sheet[0].video_path == video


def test_shadow_files_are_not_videos(run_config: RunConfig) -> None:
	_touch(run_config.paths.video_dir / "._F.mp4")
	_sheet(run_config, "._F")

	ledger = build_ledger(run_config)

	assert ledger.records == []


def test_orphan_only_deleted_after_confirmation(run_config: RunConfig, event_log: EventLog) -> None:
	sheet = _sheet(run_config, "D")
	ledger = build_ledger(run_config)

	if confirm("Delete orphans?", assume_yes=False, input_fn=lambda _prompt: "n"):
		delete_orphans(ledger, event_log)
	assert sheet.exists()

	if confirm("Delete orphans?", assume_yes=False, input_fn=lambda _prompt: "y"):
		assert delete_orphans(ledger, event_log) == 1
	assert not sheet.exists()


def test_delete_orphans_leaves_ready_sheets(run_config: RunConfig, event_log: EventLog) -> None:
	ready_sheet = _sheet(run_config, "A")
	_video(run_config, "A")
	orphan_sheet = _sheet(run_config, "D")

	deleted = delete_orphans(build_ledger(run_config), event_log)

	assert deleted == 1
	assert ready_sheet.exists()
	assert not orphan_sheet.exists()


def test_confirm_unattended_and_eof() -> None:
	def _raise_eof(_prompt: str) -> str:
		raise EOFError

	assert confirm("Proceed?", assume_yes=True, input_fn=_raise_eof) is True
	assert confirm("Proceed?", assume_yes=False, input_fn=_raise_eof) is False
	assert confirm("Proceed?", assume_yes=False, input_fn=lambda _prompt: " Yes ") is True
	assert confirm("Proceed?", assume_yes=False, input_fn=lambda _prompt: "") is False
