"""Shared helpers for running handlers with optional concurrency."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, List, Sequence, Tuple, TypeVar

from tqdm.auto import tqdm

from bids_grouping.config import Settings
from bids_grouping.services.logging import console_kwargs

logger = logging.getLogger(__name__)

TItem = TypeVar("TItem")
TResult = TypeVar("TResult")


def create_progress_bar(
    settings: Settings,
    total: int,
    desc: str,
    *,
    unit: str = "item",
) -> tqdm | None:
    """Create a tqdm progress bar if console display is enabled."""
    if not settings.show_progress or total <= 0:
        return None
    return tqdm(
        total=total,
        desc=desc,
        leave=False,
        unit=unit,
    )


def run_with_executor(
    items: Sequence[TItem],
    *,
    worker: Callable[[TItem], TResult],
    executor_factory: Callable[[int], Executor],
    max_workers: int,
    progress_desc: str,
    settings: Settings,
    unit: str = "item",
) -> List[TResult]:
    """Execute work with optional concurrency and tqdm tracking.

    Results are returned in the order of ``items`` whatever the completion
    order of the workers.
    """
    if not items:
        return []

    progress = create_progress_bar(settings, len(items), progress_desc, unit=unit)

    indexed: List[Tuple[int, TResult]] = []
    try:
        if max_workers <= 1 or len(items) == 1:
            for index, item in enumerate(items):
                indexed.append((index, worker(item)))
                if progress is not None:
                    progress.update(1)
        else:
            with executor_factory(max_workers) as executor:
                future_map = {executor.submit(worker, item): idx for idx, item in enumerate(items)}
                for future in as_completed(future_map):
                    indexed.append((future_map[future], future.result()))
                    if progress is not None:
                        progress.update(1)
    finally:
        if progress is not None:
            progress.close()

    return reorder_results(len(items), indexed)


def run_thread_pool(
    items: Sequence[TItem],
    *,
    worker: Callable[[TItem], TResult],
    settings: Settings,
    desc: str,
    max_workers: int,
    unit: str = "item",
) -> List[TResult]:
    """Convenience wrapper for thread-based concurrency."""
    return run_with_executor(
        items,
        worker=worker,
        executor_factory=lambda max_w: ThreadPoolExecutor(max_workers=max_w),
        max_workers=max_workers,
        progress_desc=desc,
        settings=settings,
        unit=unit,
    )


def reorder_results(
    total: int,
    indexed_results: Iterable[Tuple[int, TResult]],
) -> List[TResult]:
    """Place results back into their original order by index."""
    ordered: List[TResult | None] = [None] * total
    for index, result in indexed_results:
        ordered[index] = result
    return [result for result in ordered if result is not None]


def log_success(stage: str, produced: int, total: int) -> None:
    logger.info(
        "[%s] produced: %d/%d",
        stage,
        produced,
        total,
        extra=console_kwargs(),
    )


__all__ = [
    "create_progress_bar",
    "log_success",
    "reorder_results",
    "run_thread_pool",
    "run_with_executor",
]
