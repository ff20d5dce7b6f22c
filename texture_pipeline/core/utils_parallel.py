"""Parallel execution helpers for the map synthesis pipeline."""
from __future__ import annotations

import concurrent.futures
import logging
from typing import Callable, Optional, Sequence, TypeVar


LOGGER = logging.getLogger("texture_pipeline.parallel")

T = TypeVar("T")
R = TypeVar("R")


def create_thread_pool(max_workers: Optional[int] = None) -> concurrent.futures.ThreadPoolExecutor:
    """Create a thread pool executor with sane defaults."""

    return concurrent.futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="texture-map")


def run_parallel(function: Callable[[T], R], items: Sequence[T], *, max_workers: Optional[int] = None) -> list[R]:
    """Run *function* for each element in *items* concurrently.

    Results come back in the order of *items*. The first failure is logged
    and re-raised once the remaining workers are cancelled or finished, so
    callers never observe a partial result list.
    """

    if not items:
        return []
    LOGGER.debug("Starting thread pool with up to %s workers for %s tasks", max_workers, len(items))
    with create_thread_pool(max_workers=max_workers) as executor:
        futures = [executor.submit(function, item) for item in items]
        try:
            return [future.result() for future in futures]
        except Exception as exc:
            LOGGER.exception("Parallel worker failure: %s", exc)
            for future in futures:
                future.cancel()
            raise
