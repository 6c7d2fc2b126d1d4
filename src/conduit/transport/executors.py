"""Bounded thread pool for asynchronous dispatch.

Connectors that only implement the synchronous ``apply`` are run on this
pool when an invocation is submitted asynchronously. The pool has a fixed
capacity: when every worker is busy a submission is rejected with
ExecutorExhaustedError instead of queueing without bound.

Example:
    >>> from conduit.transport.executors import BoundedExecutor
    >>> executor = BoundedExecutor(max_workers=4)
    >>> future = executor.submit(pow, 2, 8)
    >>> future.result()
    256
    >>> executor.shutdown()
"""

import os
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from threading import Lock, Semaphore
from typing import Callable, TypeVar

from conduit.errors import ExecutorExhaustedError
from conduit.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BoundedExecutor(Executor):
    """Thread pool executor that fails fast when at capacity.

    Wraps a ThreadPoolExecutor and guards it with a semaphore; a permit is
    taken on submit and released when the task's future completes.

    Attributes:
        max_workers: Maximum number of concurrent tasks
    """

    def __init__(self, max_workers: int | None = None, thread_name_prefix: str = "conduit-async") -> None:
        """Initialize bounded executor.

        Args:
            max_workers: Maximum number of concurrent tasks.
                Defaults to min(32, os.cpu_count() + 4) if None.
            thread_name_prefix: Prefix for worker thread names

        Raises:
            ValueError: If max_workers is less than 1
        """
        if max_workers is None:
            cpu_count = os.cpu_count() or 1
            max_workers = min(32, cpu_count + 4)

        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )
        self._semaphore = Semaphore(max_workers)
        self._active = 0
        self._active_lock = Lock()
        self._shutdown = False

        logger.debug("conduit.executor.created", max_workers=max_workers)

    @property
    def active_workers(self) -> int:
        with self._active_lock:
            return self._active

    def submit(self, fn: Callable[..., T], /, *args: object, **kwargs: object) -> Future[T]:
        """Submit ``fn`` to the pool.

        Raises:
            ExecutorExhaustedError: If every worker is busy
            RuntimeError: If the executor has been shut down
        """
        if self._shutdown:
            raise RuntimeError("cannot schedule new work after shutdown")

        if not self._semaphore.acquire(blocking=False):
            active = self.active_workers
            logger.warning(
                "conduit.executor.exhausted",
                max_workers=self.max_workers,
                active_workers=active,
            )
            raise ExecutorExhaustedError(max_workers=self.max_workers, active_workers=active)

        with self._active_lock:
            self._active += 1

        try:
            future = self._executor.submit(fn, *args, **kwargs)
        except BaseException:
            self._release(None)
            raise

        future.add_done_callback(self._release)
        return future

    def _release(self, _: object) -> None:
        with self._active_lock:
            self._active -= 1
        self._semaphore.release()

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        """Shut the pool down; safe to call more than once."""
        if self._shutdown:
            return
        self._shutdown = True
        self._executor.shutdown(wait=wait, cancel_futures=cancel_futures)
        logger.debug("conduit.executor.shutdown", max_workers=self.max_workers)

    def __enter__(self) -> "BoundedExecutor":
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.shutdown(wait=True)
