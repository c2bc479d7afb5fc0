from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

FRAME_PATTERN = re.compile(
	r"^(?P<stem>.+)-(?P<ordinal>\d{3})\.(?P<ext>jpg|jpeg|png)$",
	re.IGNORECASE,
)
IGNORED_NAMES = {".DS_Store", "Thumbs.db", "desktop.ini"}


@dataclass(frozen=True, order=True)
class FrameKey:
	stem: str
	ordinal: int
	extension: str


@dataclass(frozen=True)
class FrameSample:
	key: FrameKey
	path: Path

	@property
	def stem(self) -> str:
		return self.key.stem

	@property
	def ordinal(self) -> int:
		return self.key.ordinal


@dataclass
class FrameGroup:
	stem: str
	frames: list[FrameSample] = field(default_factory=list)
	conflicts: list[Path] = field(default_factory=list)

	@property
	def size(self) -> int:
		return len(self.frames)

	@property
	def paths(self) -> list[Path]:
		return [frame.path for frame in self.frames]

	@property
	def is_ambiguous(self) -> bool:
		return bool(self.conflicts)


@dataclass
class FrameScan:
	groups: dict[str, FrameGroup]
	ignored: list[Path]

	def ordered_groups(self) -> list[FrameGroup]:
		return [self.groups[stem] for stem in sorted(self.groups)]


def parse_frame_name(name: str) -> FrameKey | None:
	match = FRAME_PATTERN.match(name)
	if match is None:
		return None
	return FrameKey(
		stem=match.group("stem"),
		ordinal=int(match.group("ordinal")),
		extension=match.group("ext").lower(),
	)


def is_candidate_file(path: Path) -> bool:
	name = path.name
	if name in IGNORED_NAMES or name.startswith("."):
		return False
	try:
		return path.is_file() and path.stat().st_size > 0
	except OSError:
		return False


def scan_frame_groups(frame_dir: Path) -> FrameScan:
	groups: dict[str, FrameGroup] = {}
	ignored: list[Path] = []
	if not frame_dir.is_dir():
		return FrameScan(groups=groups, ignored=ignored)

	samples: list[FrameSample] = []
	for path in frame_dir.iterdir():
		if path.is_dir():
			continue
		if not is_candidate_file(path):
			ignored.append(path)
			continue
		key = parse_frame_name(path.name)
		if key is None:
			ignored.append(path)
			continue
		samples.append(FrameSample(key=key, path=path))

	for sample in sorted(samples, key=lambda item: (item.key, item.path.name)):
		group = groups.setdefault(sample.stem, FrameGroup(stem=sample.stem))
		if group.frames and group.frames[-1].ordinal == sample.ordinal:
			group.conflicts.append(sample.path)
			continue
		group.frames.append(sample)

	return FrameScan(groups=groups, ignored=sorted(ignored))


def frames_for_stem(frame_dir: Path, stem: str) -> list[Path]:
	if not frame_dir.is_dir():
		return []
	matches: list[Path] = []
	for path in frame_dir.iterdir():
		key = parse_frame_name(path.name)
		if key is None or key.stem != stem or not is_candidate_file(path):
			continue
		matches.append(path)
	return sorted(matches)
