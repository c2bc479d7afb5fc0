from __future__ import annotations

import pytest

from cover_curator import dependency_check
from cover_curator.dependency_check import (
	list_available_accelerators,
	parse_hwaccels,
	select_hwaccel,
	validate_dependencies,
)
from cover_curator.errors import MissingToolError
from cover_curator.tool_runner import ToolResult

HWACCELS_OUTPUT = """Hardware acceleration methods:
vdpau
cuda
vaapi
qsv
"""


def test_parse_hwaccels_skips_header() -> None:
	assert parse_hwaccels(HWACCELS_OUTPUT) == ["vdpau", "cuda", "vaapi", "qsv"]


def test_select_hwaccel_follows_preference() -> None:
	assert select_hwaccel(["vaapi", "cuda"]) == "cuda"
	assert select_hwaccel(["videotoolbox", "cuda"]) == "videotoolbox"
	assert select_hwaccel(["vdpau"]) is None
	assert select_hwaccel([]) is None


def test_list_accelerators_tolerates_tool_failure(monkeypatch) -> None:
	monkeypatch.setattr(dependency_check, "run_tool", lambda command, *, timeout: ToolResult(1, "", "boom"))
	assert list_available_accelerators() == []

	monkeypatch.setattr(dependency_check, "run_tool", lambda command, *, timeout: ToolResult(0, HWACCELS_OUTPUT, ""))
	assert list_available_accelerators() == ["vdpau", "cuda", "vaapi", "qsv"]


def test_missing_ffmpeg_is_fatal(monkeypatch) -> None:
	monkeypatch.setattr(dependency_check.shutil, "which", lambda name: None)

	with pytest.raises(MissingToolError):
		validate_dependencies(require_ffmpeg=True, require_ffprobe=True)


def test_present_tools_pass(monkeypatch) -> None:
	monkeypatch.setattr(dependency_check.shutil, "which", lambda name: f"/usr/bin/{name}")

	status = validate_dependencies(require_ffmpeg=True, require_ffprobe=True)

	assert status.ffmpeg_ok and status.ffprobe_ok
