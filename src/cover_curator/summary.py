from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable

from cover_curator.log_utils import EventLog

PROCESSED = "processed"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True)
class ItemOutcome:
	stem: str
	outcome: str
	reason: str = ""
	detail: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StageSummary:
	stage: str
	total: int = 0
	processed: int = 0
	skipped: int = 0
	failed: int = 0
	reasons: Dict[str, int] = field(default_factory=dict)
	outcomes: list[ItemOutcome] = field(default_factory=list)

	@classmethod
	def from_outcomes(cls, stage: str, outcomes: Iterable[ItemOutcome]) -> "StageSummary":
		summary = cls(stage=stage)
		for outcome in outcomes:
			summary.add(outcome)
		return summary

	def add(self, outcome: ItemOutcome) -> None:
		self.total += 1
		if outcome.outcome == PROCESSED:
			self.processed += 1
		elif outcome.outcome == SKIPPED:
			self.skipped += 1
		else:
			self.failed += 1
		if outcome.reason:
			self.reasons[outcome.reason] = self.reasons.get(outcome.reason, 0) + 1
		self.outcomes.append(outcome)

	def stems(self, outcome: str, reason: str | None = None) -> list[str]:
		return [
			item.stem
			for item in self.outcomes
			if item.outcome == outcome and (reason is None or item.reason == reason)
		]


def guard_item(log: EventLog, stage: str, stem: str, work: Callable[[], ItemOutcome]) -> ItemOutcome:
	"""Run the work for one item. An unexpected error fails that item only."""
	try:
		return work()
	except Exception as exc:  # noqa: BLE001
		message = f"{type(exc).__name__}: {exc}"
		log.error("item_failed", "unexpected error, item abandoned", stage=stage, stem=stem, error=message)
		return ItemOutcome(stem, FAILED, "unexpected_error", {"error": message})


def emit_summary(log: EventLog, summary: StageSummary, start_time: float) -> None:
	duration = time.monotonic() - start_time
	log.info(
		"summary",
		f"{summary.stage} summary",
		stage=summary.stage,
		extra={
			"total_files": summary.total,
			"processed": summary.processed,
			"skipped": summary.skipped,
			"failed": summary.failed,
			"reasons": dict(summary.reasons),
			"duration_seconds": round(duration, 3),
		},
	)
