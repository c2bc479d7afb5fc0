from __future__ import annotations

import subprocess
from dataclasses import dataclass


@dataclass(frozen=True)
class ToolResult:
	returncode: int
	stdout: str
	stderr: str
	timed_out: bool = False

	@property
	def ok(self) -> bool:
		return self.returncode == 0 and not self.timed_out

	def error_text(self, fallback: str) -> str:
		return self.stderr.strip() or fallback


def run_tool(command: list[str], *, timeout: float | None) -> ToolResult:
	try:
		result = subprocess.run(
			command,
			capture_output=True,
			text=True,
			check=False,
			timeout=timeout,
		)
	except subprocess.TimeoutExpired:
		return ToolResult(
			returncode=-1,
			stdout="",
			stderr=f"{command[0]} timed out after {timeout}s",
			timed_out=True,
		)
	except OSError as exc:
		return ToolResult(returncode=-1, stdout="", stderr=f"{command[0]}: {exc}")
	return ToolResult(
		returncode=result.returncode,
		stdout=result.stdout or "",
		stderr=result.stderr or "",
	)
