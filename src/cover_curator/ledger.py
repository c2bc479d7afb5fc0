from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict

from cover_curator.frame_groups import is_candidate_file
from cover_curator.log_utils import EventLog
from cover_curator.output_paths import COVER_EXTENSION, VIDEO_EXTENSION
from cover_curator.run_config import RunConfig
from cover_curator.video_probe import collect_video_paths

STAGE = "reconcile"

READY = "ready"
DONE = "done"
ORPHAN = "orphan"
NO_SHEET = "no-sheet"
STATUSES = (READY, DONE, ORPHAN, NO_SHEET)


@dataclass(frozen=True)
class ReconciliationRecord:
	stem: str
	status: str
	video_path: Path | None = None
	cover_path: Path | None = None


@dataclass
class Ledger:
	records: list[ReconciliationRecord] = field(default_factory=list)

	def by_status(self, status: str) -> list[ReconciliationRecord]:
		return [record for record in self.records if record.status == status]

	@property
	def ready(self) -> list[ReconciliationRecord]:
		return self.by_status(READY)

	@property
	def done(self) -> list[ReconciliationRecord]:
		return self.by_status(DONE)

	@property
	def orphans(self) -> list[ReconciliationRecord]:
		return self.by_status(ORPHAN)

	@property
	def no_sheet(self) -> list[ReconciliationRecord]:
		return self.by_status(NO_SHEET)

	def counts(self) -> Dict[str, int]:
		counts = {status: 0 for status in STATUSES}
		for record in self.records:
			counts[record.status] += 1
		return counts

	def status_of(self, stem: str) -> str | None:
		for record in self.records:
			if record.stem == stem:
				return record.status
		return None


def collect_stems(directory: Path, extension: str) -> Dict[str, Path]:
	if not directory.is_dir():
		return {}
	stems: Dict[str, Path] = {}
	for path in directory.iterdir():
		if path.suffix.lower() != extension or not is_candidate_file(path):
			continue
		stems[path.stem] = path
	return stems


def archived_stems(config: RunConfig) -> set[str]:
	paths = config.paths
	processed = collect_stems(paths.processed_dir, VIDEO_EXTENSION)
	backed_up = collect_stems(paths.backup_dir, VIDEO_EXTENSION)
	return set(processed) | set(backed_up)


def build_ledger(config: RunConfig) -> Ledger:
	"""Classify every contact sheet and pending video by stem.

	A stem present in the processed or backup directory counts as archived,
	even when a copy of the original is still pending.
	"""
	paths = config.paths
	pending = {path.stem: path for path in collect_video_paths(paths.video_dir)}
	archived = archived_stems(config)
	sheets = collect_stems(paths.cover_dir, COVER_EXTENSION)

	records: list[ReconciliationRecord] = []
	for stem in sorted(sheets):
		sheet = sheets[stem]
		if stem in archived:
			records.append(ReconciliationRecord(stem, DONE, pending.get(stem), sheet))
		elif stem in pending:
			records.append(ReconciliationRecord(stem, READY, pending[stem], sheet))
		else:
			records.append(ReconciliationRecord(stem, ORPHAN, None, sheet))

	for stem in sorted(pending):
		if stem in sheets or stem in archived:
			continue
		records.append(ReconciliationRecord(stem, NO_SHEET, pending[stem], None))

	return Ledger(records=records)


def report_ledger(ledger: Ledger, log: EventLog) -> Dict[str, int]:
	counts = ledger.counts()
	log.info(
		"ledger",
		"reconciliation summary",
		stage=STAGE,
		extra={f"{status.replace('-', '_')}_count": count for status, count in counts.items()},
	)
	for record in ledger.orphans:
		log.warning(
			"orphan_sheet",
			"contact sheet has no matching video",
			stage=STAGE,
			stem=record.stem,
			file_path=str(record.cover_path),
		)
	for record in ledger.no_sheet:
		log.info(
			"missing_sheet",
			"video has no contact sheet",
			stage=STAGE,
			stem=record.stem,
			file_path=str(record.video_path),
		)
	return counts


def confirm(
	question: str,
	*,
	assume_yes: bool,
	input_fn: Callable[[str], str] | None = None,
) -> bool:
	if assume_yes:
		return True
	read = input_fn or input
	try:
		answer = read(f"{question} [y/N] ")
	except EOFError:
		return False
	return answer.strip().lower() in {"y", "yes"}


def delete_orphans(ledger: Ledger, log: EventLog) -> int:
	deleted = 0
	for record in ledger.orphans:
		if record.cover_path is None:
			continue
		try:
			record.cover_path.unlink()
		except FileNotFoundError:
			continue
		except OSError as exc:
			log.error(
				"orphan_delete_failed",
				"could not delete orphan contact sheet",
				stage=STAGE,
				stem=record.stem,
				file_path=str(record.cover_path),
				error=str(exc),
			)
			continue
		deleted += 1
		log.info(
			"orphan_deleted",
			"deleted orphan contact sheet",
			stage=STAGE,
			stem=record.stem,
			file_path=str(record.cover_path),
		)
	return deleted
