from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from cover_curator.errors import MissingToolError
from cover_curator.tool_runner import ToolResult, run_tool

# Decode accelerators in order of preference. Only decode speed depends on
# the choice; the extracted pixels do not.
HWACCEL_PREFERENCE = ("videotoolbox", "cuda", "vaapi", "qsv", "d3d11va")
HWACCEL_LABELS = {
	"videotoolbox": "Apple VideoToolbox (GPU)",
	"cuda": "NVIDIA CUDA (GPU)",
	"vaapi": "VA-API (GPU)",
	"qsv": "Intel Quick Sync (GPU)",
	"d3d11va": "D3D11VA (GPU)",
}


@dataclass
class DependencyStatus:
	ffmpeg_ok: bool
	ffprobe_ok: bool


def validate_dependencies(
	*,
	ffmpeg_bin: str = "ffmpeg",
	ffprobe_bin: str = "ffprobe",
	require_ffmpeg: bool,
	require_ffprobe: bool,
) -> DependencyStatus:
	ffmpeg_ok = _check_tool(ffmpeg_bin) if require_ffmpeg else True
	if require_ffmpeg and not ffmpeg_ok:
		raise MissingToolError(
			f"{ffmpeg_bin} not found in PATH. Install it first: brew install ffmpeg / apt install ffmpeg"
		)

	ffprobe_ok = _check_tool(ffprobe_bin) if require_ffprobe else True
	if require_ffprobe and not ffprobe_ok:
		raise MissingToolError(f"{ffprobe_bin} not found in PATH.")

	return DependencyStatus(ffmpeg_ok=ffmpeg_ok, ffprobe_ok=ffprobe_ok)


def list_available_accelerators(ffmpeg_bin: str = "ffmpeg", timeout: float = 30.0) -> list[str]:
	result = run_tool([ffmpeg_bin, "-hide_banner", "-hwaccels"], timeout=timeout)
	if not result.ok:
		return []
	return parse_hwaccels(result.stdout)


def parse_hwaccels(output: str) -> list[str]:
	accelerators: list[str] = []
	for line in output.splitlines():
		name = line.strip()
		if not name or name.lower().startswith("hardware acceleration"):
			continue
		accelerators.append(name)
	return accelerators


def select_hwaccel(available: list[str]) -> str | None:
	for name in HWACCEL_PREFERENCE:
		if name in available:
			return name
	return None


def verify_hwaccel(
	video_path: Path,
	hwaccel: str,
	*,
	ffmpeg_bin: str = "ffmpeg",
	timeout: float | None = 60.0,
) -> ToolResult:
	"""Decode the first frame of ``video_path`` through ``hwaccel`` and discard it.

	``ffmpeg -hwaccels`` lists the methods the build supports, not the devices
	present on this host, so a listed accelerator can still fail to open.
	"""
	command = [
		ffmpeg_bin,
		"-hide_banner",
		"-loglevel",
		"error",
		"-hwaccel",
		hwaccel,
		"-i",
		str(video_path),
		"-frames:v",
		"1",
		"-f",
		"null",
		"-",
	]
	return run_tool(command, timeout=timeout)


def _check_tool(name: str) -> bool:
	return shutil.which(name) is not None
