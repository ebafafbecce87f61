"""Bounded-concurrency runner for per-item API workflows.

Maps a list of items to one :class:`~p2j.models.Outcome` each, running at
most ``limit`` workers at a time on a thread pool. Submitting the
(limit + 1)-th item blocks until a slot frees up, so no unbounded queue
builds up in front of the pool.
"""

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Generic, TypeVar

from p2j.models import Outcome

T = TypeVar("T")


class BoundedConcurrencyRunner(Generic[T]):
    """Run one worker call per item with a hard cap on concurrent calls."""

    def __init__(
        self,
        limit: int,
        logger: logging.Logger,
        *,
        thread_name_prefix: str = "p2j-worker",
    ) -> None:
        """Initialize the runner.

        Args:
            limit: Maximum number of workers in flight, at least 1
            logger: Logger for fault and progress messages
            thread_name_prefix: Prefix for the pool's thread names

        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            msg = f"Concurrency limit must be an integer >= 1 (got {limit!r})"
            raise ValueError(msg)

        self.limit = limit
        self.logger = logger
        self.thread_name_prefix = thread_name_prefix

    def _guarded(
        self,
        worker: Callable[[T], Outcome],
        item: T,
        item_id: Callable[[T], str],
    ) -> Outcome:
        """Run the worker and turn any exception into a failure for this item."""
        try:
            outcome = worker(item)
        except Exception as e:  # noqa: BLE001
            self.logger.exception("Worker failed for %s", item_id(item))
            return Outcome.failure(item_id(item), f"{type(e).__name__}: {e!s}")

        if not isinstance(outcome, Outcome):
            msg = f"worker returned {type(outcome).__name__}, expected Outcome"
            self.logger.error("Worker for %s %s", item_id(item), msg)
            return Outcome.failure(item_id(item), msg)
        return outcome

    def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Outcome],
        limit: int | None = None,
        *,
        item_id: Callable[[T], str] = str,
    ) -> list[Outcome]:
        """Process every item and return after all of them produced an outcome.

        The returned list holds exactly one outcome per input item, in
        completion order. ``limit`` overrides the runner's limit for this call;
        ``item_id`` names the item in the failure outcome of a worker that raised.
        """
        if limit is None:
            limit = self.limit
        elif isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            msg = f"Concurrency limit must be an integer >= 1 (got {limit!r})"
            raise ValueError(msg)

        if not items:
            return []

        start_time = time.time()
        slots = threading.BoundedSemaphore(limit)
        outcomes: list[Outcome] = []

        def _release(_future: Future[Outcome]) -> None:
            slots.release()

        with ThreadPoolExecutor(
            max_workers=limit, thread_name_prefix=self.thread_name_prefix,
        ) as executor:
            futures: dict[Future[Outcome], T] = {}
            for item in items:
                # Back-pressure: wait for a free slot before handing out more work
                slots.acquire()
                try:
                    future = executor.submit(self._guarded, worker, item, item_id)
                except BaseException:
                    slots.release()
                    raise
                future.add_done_callback(_release)
                futures[future] = item

            # Single aggregation point: only this thread touches ``outcomes``
            for future in as_completed(futures):
                outcomes.append(future.result())

        self.logger.debug(
            "Runner finished %d items with limit %d in %.2fs",
            len(outcomes),
            limit,
            time.time() - start_time,
        )
        return outcomes
