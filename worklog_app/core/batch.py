"""Bounded-concurrency fan-out over a list of items."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from .config import DEFAULT_BATCH_LIMIT

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> list[Sequence[T]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def process_batch(
    items: Sequence[T],
    fn: Callable[[T], R],
    limit: int = DEFAULT_BATCH_LIMIT,
) -> list[R]:
    """Apply ``fn`` to every item, ``limit`` items at a time.

    Items within a chunk run concurrently (threads; the work is HTTP-bound);
    chunks run one after another. Results come back in input order. The first
    exception escaping ``fn`` aborts the batch, so callers that want per-item
    resilience must catch inside ``fn``.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")
    items = list(items)
    if not items:
        return []
    results: list[R] = []
    with ThreadPoolExecutor(max_workers=min(limit, len(items))) as pool:
        for chunk in chunked(items, limit):
            # map() yields in submission order and re-raises the first failure
            results.extend(pool.map(fn, chunk))
    return results
