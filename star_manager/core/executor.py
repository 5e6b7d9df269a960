"""
Bulk executor for independent GitHub writes.

Operations run in fixed-width batches: every operation of a batch runs in
parallel, and the next batch starts only when the whole batch has settled.
A failing operation never aborts its batch.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Sequence, TypeVar

from star_manager.constants import BULK_CONCURRENCY, MAX_ERROR_MESSAGES
from star_manager.types import BatchResult
from star_manager.utils.logging import log_with_context

T = TypeVar("T")

ProgressCallback = Callable[[int, int], None]


class SkipOperation(Exception):
    """Raised by an operation whose target cannot be resolved.

    Counted as skipped rather than failed and never reported as an error.
    """


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


def run_bulk(
    items: Sequence[T],
    operation: Callable[[T], object],
    concurrency: int = BULK_CONCURRENCY,
    max_errors: int = MAX_ERROR_MESSAGES,
    on_progress: ProgressCallback | None = None,
    description: str = "operation",
) -> BatchResult:
    """
    Apply ``operation`` to every item in parallel batches.

    Args:
        items: Inputs, one per remote call
        operation: Callable performing one call; raise SkipOperation to skip
        concurrency: Batch width
        max_errors: Cap on the distinct error messages kept
        on_progress: Called with ``(finished, total)`` after every operation
        description: Label for log messages

    Returns:
        BatchResult with success, failed and skipped counts and distinct
        error messages in first-seen order
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    result = BatchResult()
    total = len(items)
    if total == 0:
        return result

    finished = 0
    with ThreadPoolExecutor(max_workers=min(concurrency, total)) as pool:
        for start in range(0, total, concurrency):
            batch = items[start : start + concurrency]
            futures: list[Future] = [pool.submit(operation, item) for item in batch]

            for _ in as_completed(futures):
                finished += 1
                if on_progress:
                    on_progress(finished, total)

            # Outcomes are read in submission order so error order is stable
            for item, future in zip(batch, futures):
                error = future.exception()
                if error is None:
                    result.success += 1
                elif isinstance(error, SkipOperation):
                    result.skipped += 1
                    log_with_context(
                        logging.DEBUG,
                        f"Skipped {description} for {item}: {error}",
                        component="executor",
                    )
                else:
                    result.failed += 1
                    message = _error_text(error)
                    log_with_context(
                        logging.DEBUG,
                        f"{description} failed for {item}: {message}",
                        component="executor",
                    )
                    if message not in result.errors and len(result.errors) < max_errors:
                        result.errors.append(message)

    log_with_context(
        logging.INFO,
        f"Finished {total} x {description}: {result.success} succeeded, "
        f"{result.failed} failed, {result.skipped} skipped",
        component="executor",
    )
    return result
