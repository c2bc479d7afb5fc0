from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence, TypeVar

from tqdm import tqdm

T = TypeVar("T")
R = TypeVar("R")


def run_in_batches(
	items: Sequence[T],
	worker: Callable[[T], R],
	*,
	limit: int,
	desc: str | None = None,
	show_progress: bool = True,
) -> list[R]:
	"""Run ``worker`` over ``items`` at most ``limit`` at a time.

	Items are dispatched in batches of ``limit`` and each batch must finish
	before the next one starts. Results keep the input order. An exception
	raised by ``worker`` propagates once its batch has finished.
	"""
	if limit < 1:
		raise ValueError("limit must be >= 1")

	results: list[R] = []
	with ThreadPoolExecutor(max_workers=limit) as executor:
		with tqdm(total=len(items), desc=desc, unit="item", disable=not show_progress) as progress:
			for start in range(0, len(items), limit):
				batch = items[start : start + limit]
				futures = [executor.submit(worker, item) for item in batch]
				batch_results: list[R] = []
				for future in futures:
					batch_results.append(future.result())
					progress.update(1)
				results.extend(batch_results)
	return results
