# Power BI Readiness MCP Server
# File: concurrency.py
# Version: v1

"""Bounded fan-out / fan-in for per-workspace and per-dataset work."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def batch_iterable(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    """Yield slices of *items* with at most ``size`` members."""

    for i in range(0, len(items), size):
        yield items[i : i + size]


async def gather_batched(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    max_workers: int = 1,
) -> List[R]:
    """Run ``worker`` over *items*, at most ``max_workers`` at a time.

    Results come back in input order. With ``max_workers <= 1`` the items are
    processed strictly one after another. Workers must not share mutable
    state; each returns its own accumulator for the caller to merge.
    """
    results: List[R] = []
    if max_workers <= 1:
        for item in items:
            results.append(await worker(item))
        return results

    for batch in batch_iterable(items, max_workers):
        results.extend(await asyncio.gather(*(worker(item) for item in batch)))
    return results


__all__ = ["batch_iterable", "gather_batched"]
