"""Sequential batch job runner with per-item timeout and rate limiting."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable, Sequence

from prompt_batch.batch.backend.base import ItemProcessor
from prompt_batch.batch.failure_classifier import classify_failure
from prompt_batch.batch.models import BatchSummary, Item, JobOutput, JobResult, JobStatus
from prompt_batch.errors import ItemTimeout

logger = logging.getLogger(__name__)


class BatchJobRunner:
    """Run items one at a time, isolating every failure to its own item.

    The bounded wait executes ``process`` on a daemon thread per item. A
    thread that outlives its timeout is abandoned and its late result is
    dropped; processors that own external resources (subprocesses) are
    expected to enforce the same deadline themselves.
    """

    def __init__(
        self,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        cancel_requested: Callable[[], bool] | None = None,
        on_result: Callable[[Item, JobResult], None] | None = None,
    ) -> None:
        self._sleep = sleep
        self._clock = clock
        self._cancel_requested = cancel_requested
        self._on_result = on_result

    def run(
        self,
        items: Sequence[Item],
        process: ItemProcessor,
        timeout: float,
        delay: float,
    ) -> BatchSummary:
        """Process ``items`` in order and return one result per processed item."""

        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")

        results: list[JobResult] = []
        cancelled = False
        for index, item in enumerate(items, start=1):
            if self._cancel_requested is not None and self._cancel_requested():
                logger.warning(
                    "Batch cancelled before item %s (%d/%d)",
                    item.item_id,
                    index,
                    len(items),
                )
                cancelled = True
                break

            logger.info("Processing %s (%d/%d)", item.item_id, index, len(items))
            result = self._run_item(item, process, timeout)
            results.append(result)
            if self._on_result is not None:
                self._on_result(item, result)

            if delay > 0:
                self._sleep(delay)

        summary = BatchSummary(results=tuple(results), cancelled=cancelled)
        logger.info(
            "Processing complete: %d successes, %d errors",
            summary.success_count,
            summary.error_count,
        )
        return summary

    def _run_item(self, item: Item, process: ItemProcessor, timeout: float) -> JobResult:
        started = self._clock()
        try:
            output = _call_with_timeout(process, item, timeout)
        except ItemTimeout as error:
            duration = self._clock() - started
            logger.warning("Timed out: %s after %.1fs", item.item_id, duration)
            return JobResult(
                item_id=item.item_id,
                status=JobStatus.TIMED_OUT,
                error=str(error) or f"Timed out after {timeout}s",
                failure_class=classify_failure(str(error), timed_out=True).failure_class,
                duration_seconds=duration,
            )
        except Exception as error:  # noqa: BLE001
            duration = self._clock() - started
            message = str(error).strip() or type(error).__name__
            logger.warning("Failed: %s: %s", item.item_id, message)
            return JobResult(
                item_id=item.item_id,
                status=JobStatus.FAILED,
                error=message,
                failure_class=classify_failure(message).failure_class,
                duration_seconds=duration,
            )

        duration = self._clock() - started
        logger.info("Success: %s in %.1fs", item.item_id, duration)
        return JobResult(
            item_id=item.item_id,
            status=JobStatus.SUCCESS,
            output=output,
            duration_seconds=duration,
        )


def _call_with_timeout(process: ItemProcessor, item: Item, timeout: float) -> JobOutput:
    outcome: queue.Queue[tuple[bool, object]] = queue.Queue(maxsize=1)

    def _target() -> None:
        try:
            outcome.put((True, process(item)))
        except Exception as error:  # noqa: BLE001
            outcome.put((False, error))

    worker = threading.Thread(target=_target, name=f"batch-item-{item.item_id}", daemon=True)
    worker.start()
    try:
        succeeded, value = outcome.get(timeout=timeout)
    except queue.Empty:
        raise ItemTimeout(
            f"Processing {item.item_id} exceeded {timeout}s",
            timeout_seconds=timeout,
        ) from None

    if succeeded:
        return value  # type: ignore[return-value]
    raise value  # type: ignore[misc]
