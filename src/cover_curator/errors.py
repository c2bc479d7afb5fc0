from __future__ import annotations


class CoverCuratorError(RuntimeError):
	pass


class ProbeError(CoverCuratorError):
	pass


class ExtractionError(CoverCuratorError):
	pass


class CompositionError(CoverCuratorError):
	pass


class MuxError(CoverCuratorError):
	pass


class MissingToolError(CoverCuratorError):
	pass
