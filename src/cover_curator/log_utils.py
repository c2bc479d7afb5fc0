from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict


LogFormat = str
SUMMARY_KEYS = ("total_files", "processed", "skipped", "failed", "duration_seconds")


def log_event(
	log_format: LogFormat,
	*,
	level: str,
	event_type: str,
	message: str,
	file_path: str | None = None,
	extra: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
	payload = _build_payload(
		level=level,
		event_type=event_type,
		message=message,
		file_path=file_path,
		extra=extra,
	)

	if log_format == "json":
		print(json.dumps(payload, ensure_ascii=True))
		return payload

	message_parts = [f"{level.upper()}: {message}"]
	if payload.get("stem"):
		message_parts.append(f"stem={payload['stem']}")
	if file_path:
		message_parts.append(f"file={file_path}")
	if payload.get("error"):
		message_parts.append(f"error={payload['error']}")
	for key in SUMMARY_KEYS:
		if key in payload:
			message_parts.append(f"{key}={payload[key]}")
	print(" ".join(message_parts))
	return payload


class EventLog:
	"""Console output plus an append-only JSON-lines log file.

	Stages run items on worker threads, so writes to both sinks are
	serialised through one lock.
	"""

	def __init__(self, log_format: LogFormat = "plain", log_path: Path | None = None) -> None:
		self.log_format = log_format
		self.log_path = log_path
		self._lock = threading.Lock()

	def emit(
		self,
		*,
		level: str,
		event_type: str,
		message: str,
		stage: str | None = None,
		stem: str | None = None,
		file_path: str | None = None,
		error: str | None = None,
		extra: Dict[str, Any] | None = None,
	) -> None:
		details: Dict[str, Any] = {}
		if stage:
			details["stage"] = stage
		if stem:
			details["stem"] = stem
		if error:
			details["error"] = error
		if extra:
			details.update(extra)

		with self._lock:
			payload = log_event(
				self.log_format,
				level=level,
				event_type=event_type,
				message=message,
				file_path=file_path,
				extra=details or None,
			)
			self._append(payload)

	def info(self, event_type: str, message: str, **kwargs: Any) -> None:
		self.emit(level="info", event_type=event_type, message=message, **kwargs)

	def warning(self, event_type: str, message: str, **kwargs: Any) -> None:
		self.emit(level="warning", event_type=event_type, message=message, **kwargs)

	def error(self, event_type: str, message: str, **kwargs: Any) -> None:
		self.emit(level="error", event_type=event_type, message=message, **kwargs)

	def _append(self, payload: Dict[str, Any]) -> None:
		if self.log_path is None:
			return
		self.log_path.parent.mkdir(parents=True, exist_ok=True)
		with self.log_path.open("a", encoding="utf-8") as handle:
			handle.write(json.dumps(payload, ensure_ascii=True) + "\n")


def _build_payload(
	*,
	level: str,
	event_type: str,
	message: str,
	file_path: str | None,
	extra: Dict[str, Any] | None,
) -> Dict[str, Any]:
	timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
	payload: Dict[str, Any] = {
		"timestamp": timestamp,
		"level": level,
		"event_type": event_type,
		"file_path": file_path,
		"message": message,
	}
	if extra:
		payload.update(extra)
	return payload


def format_duration(seconds: int | float) -> str:
	secs = int(seconds)
	if secs >= 3600:
		return f"{secs // 3600}h {secs % 3600 // 60}m {secs % 60}s"
	if secs >= 60:
		return f"{secs // 60}m {secs % 60}s"
	return f"{secs}s"


def format_bytes(size: int) -> str:
	if size >= 1024**3:
		return f"{size / 1024**3:.1f} GB"
	if size >= 1024**2:
		return f"{size / 1024**2:.1f} MB"
	if size >= 1024:
		return f"{size / 1024:.1f} KB"
	return f"{size} B"
