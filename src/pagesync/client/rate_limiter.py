"""Request pacing for the remote API.

This module provides:
- RateLimiter: Serializes remote calls with a minimum start-to-start interval

The remote API allows roughly three requests per second. The limiter keeps
every invocation at least 350 ms after the previous one started, no matter
how many threads submit work, and honours server-issued backoff (HTTP 429)
by pausing and retrying the same task before anything queued behind it.

Usage:
    limiter = RateLimiter()
    page = limiter.execute(lambda: client.post("/pages", json=body))
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, TypeVar

from pagesync.client.errors import RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MIN_INTERVAL = 0.35  # seconds between request starts
DEFAULT_RETRY_AFTER = 1.0  # seconds, when a 429 carries no Retry-After


@dataclass
class _QueuedTask:
    fn: Callable[[], Any]
    future: Future[Any]


class RateLimiter:
    """FIFO task queue drained by a single worker thread.

    The worker thread is started on demand and exits when the queue is
    empty. A lock-guarded ``processing`` flag ensures at most one worker
    loop exists at any time.
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        default_retry_after: float = DEFAULT_RETRY_AFTER,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the limiter.

        Args:
            min_interval: Minimum seconds between two invocation starts.
            default_retry_after: Backoff used when a 429 has no retry hint.
            clock: Monotonic clock (injectable for tests).
            sleep: Sleep function (injectable for tests).
        """
        self._min_interval = min_interval
        self._default_retry_after = default_retry_after
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.Lock()
        self._queue: deque[_QueuedTask] = deque()
        self._processing = False
        self._last_start: float | None = None

    @property
    def min_interval(self) -> float:
        """Minimum seconds between two invocation starts."""
        return self._min_interval

    @property
    def queue_length(self) -> int:
        """Number of tasks waiting to start."""
        with self._lock:
            return len(self._queue)

    @property
    def is_processing(self) -> bool:
        """Check if a worker loop is active."""
        with self._lock:
            return self._processing

    def execute(self, fn: Callable[[], T]) -> T:
        """Run ``fn`` once the rate limit allows and return its result.

        Blocks the calling thread until the task has run.

        Args:
            fn: Zero-argument callable performing one remote request.

        Returns:
            Whatever ``fn`` returns.

        Raises:
            Any exception raised by ``fn`` other than RateLimitedError.
        """
        future: Future[T] = Future()
        with self._lock:
            self._queue.append(_QueuedTask(fn, future))
            start_worker = not self._processing
            if start_worker:
                self._processing = True

        if start_worker:
            worker = threading.Thread(
                target=self._process_queue,
                name="pagesync-rate-limiter",
                daemon=True,
            )
            worker.start()

        return future.result()

    def _process_queue(self) -> None:
        """Worker loop: run queued tasks one at a time until the queue is empty."""
        while True:
            with self._lock:
                if not self._queue:
                    self._processing = False
                    return
                task = self._queue.popleft()

            self._wait_for_slot()
            self._last_start = self._clock()

            try:
                result = task.fn()
            except RateLimitedError as e:
                retry_after = (
                    e.retry_after if e.retry_after is not None else self._default_retry_after
                )
                logger.warning("Rate limited. Retrying after %.2fs", retry_after)
                self._sleep(retry_after)
                with self._lock:
                    self._queue.appendleft(task)
            except Exception as e:  # delivered to the waiting caller
                task.future.set_exception(e)
            else:
                task.future.set_result(result)

    def _wait_for_slot(self) -> None:
        """Sleep until ``min_interval`` has passed since the last start."""
        if self._last_start is None:
            return
        elapsed = self._clock() - self._last_start
        if elapsed < self._min_interval:
            self._sleep(self._min_interval - elapsed)
