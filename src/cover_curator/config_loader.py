from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml


def load_config(path: Path) -> Dict[str, Any]:
	if not path.exists():
		raise FileNotFoundError(f"Config file not found: {path}")

	data = yaml.safe_load(path.read_text(encoding="utf-8"))
	if data is None:
		return {}
	if not isinstance(data, dict):
		raise ValueError("Config must be a YAML mapping")
	return data


def get_value(config: Dict[str, Any], key: str, section: str | None = None) -> Any:
	if section is None:
		return config.get(key)
	nested = config.get(section)
	if not isinstance(nested, dict):
		return None
	return nested.get(key)


def lookup(config: Dict[str, Any], key: str, section: str | None = None) -> Any:
	value = None
	if section is not None:
		value = get_value(config, key, section)
	if value is None:
		value = get_value(config, key)
	return value


def coerce_bool(value: Any) -> bool | None:
	if isinstance(value, bool):
		return value
	if isinstance(value, (int, float)):
		return bool(value)
	if isinstance(value, str):
		value = value.strip().lower()
		if value in {"1", "true", "yes", "on"}:
			return True
		if value in {"0", "false", "no", "off"}:
			return False
	return None


def coerce_int(value: Any, name: str, *, minimum: int | None = None) -> int:
	if isinstance(value, bool):
		raise ValueError(f"{name} must be an integer")
	try:
		number = int(value)
	except (TypeError, ValueError):
		raise ValueError(f"{name} must be an integer")
	if minimum is not None and number < minimum:
		raise ValueError(f"{name} must be >= {minimum}")
	return number


def coerce_float(value: Any, name: str, *, minimum: float | None = None) -> float:
	if isinstance(value, bool):
		raise ValueError(f"{name} must be a number")
	try:
		number = float(value)
	except (TypeError, ValueError):
		raise ValueError(f"{name} must be a number")
	if minimum is not None and number < minimum:
		raise ValueError(f"{name} must be >= {minimum}")
	return number
