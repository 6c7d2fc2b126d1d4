"""Result handle for asynchronous invocations.

A ResponseFuture is handed to the caller as soon as an asynchronous
invocation is submitted. It moves from PENDING to exactly one terminal
state (RESOLVED, FAILED or CANCELLED); the first terminal transition wins
and every later attempt is refused, so a late success can never overwrite
a cancellation or a failure.

The future can be waited on from threads (``result()``) or awaited from
asyncio code.

Example:
    >>> future = ResponseFuture()
    >>> future.set_result("done")
    True
    >>> future.set_exception(RuntimeError("late"))
    False
    >>> future.result()
    'done'
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable, Generator
from enum import Enum
from typing import Any, Generic, Optional, Protocol, TypeVar

from conduit.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class FutureState(str, Enum):
    """ResponseFuture states.

    PENDING: Submitted, no outcome yet
    RESOLVED: Completed with a value
    FAILED: Completed with an error
    CANCELLED: Cancelled before an outcome arrived
    """

    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Cancellable(Protocol):
    """Anything whose pending work can be cancelled (e.g. concurrent.futures.Future)."""

    def cancel(self) -> bool: ...


class FutureCancelledError(Exception):
    """Raised by ``result()``/``exception()`` on a cancelled future."""


class FutureTimeoutError(TimeoutError):
    """Raised when waiting on a future exceeds the given timeout."""


class ResponseFuture(Generic[T]):
    """Thread-safe single-assignment result handle."""

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.RLock())
        self._state = FutureState.PENDING
        self._result: Optional[T] = None
        self._exception: Optional[BaseException] = None
        self._callbacks: list[Callable[["ResponseFuture[T]"], None]] = []
        self._cancel_hook: Optional[Cancellable] = None

    @property
    def state(self) -> FutureState:
        with self._condition:
            return self._state

    def attach(self, cancellable: Optional[Cancellable]) -> None:
        """Link the transport-level handle that ``cancel()`` should cancel too."""
        with self._condition:
            self._cancel_hook = cancellable
            already_cancelled = self._state == FutureState.CANCELLED
        if already_cancelled and cancellable is not None:
            cancellable.cancel()

    def _transition(self, state: FutureState, result: Any = None, error: BaseException | None = None) -> bool:
        with self._condition:
            if self._state != FutureState.PENDING:
                return False
            self._state = state
            self._result = result
            self._exception = error
            callbacks = list(self._callbacks)
            self._callbacks.clear()
            self._condition.notify_all()
        for callback in callbacks:
            self._run_callback(callback)
        return True

    def _run_callback(self, callback: Callable[["ResponseFuture[T]"], None]) -> None:
        try:
            callback(self)
        except Exception as exc:
            logger.warning(
                "conduit.future.callback_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )

    def set_result(self, result: T) -> bool:
        """Resolve the future. Returns False if it already reached a terminal state."""
        return self._transition(FutureState.RESOLVED, result=result)

    def set_exception(self, error: BaseException) -> bool:
        """Fail the future. Returns False if it already reached a terminal state."""
        return self._transition(FutureState.FAILED, error=error)

    def cancel(self) -> bool:
        """Cancel the future and the attached transport handle, if still pending."""
        if not self._transition(FutureState.CANCELLED):
            return False
        with self._condition:
            hook = self._cancel_hook
        if hook is not None:
            hook.cancel()
        logger.debug("conduit.future.cancelled")
        return True

    def cancelled(self) -> bool:
        return self.state == FutureState.CANCELLED

    def done(self) -> bool:
        return self.state != FutureState.PENDING

    def _wait(self, timeout: float | None) -> None:
        with self._condition:
            if not self._condition.wait_for(lambda: self._state != FutureState.PENDING, timeout):
                raise FutureTimeoutError(f"Future not completed within {timeout} seconds")

    def result(self, timeout: float | None = None) -> T:
        """Block until resolved and return the value, or raise the failure.

        Raises:
            FutureTimeoutError: If ``timeout`` elapses first
            FutureCancelledError: If the future was cancelled
        """
        self._wait(timeout)
        if self._state == FutureState.CANCELLED:
            raise FutureCancelledError("Invocation was cancelled")
        if self._exception is not None:
            raise self._exception
        return self._result  # type: ignore[return-value]

    def exception(self, timeout: float | None = None) -> BaseException | None:
        self._wait(timeout)
        if self._state == FutureState.CANCELLED:
            raise FutureCancelledError("Invocation was cancelled")
        return self._exception

    def add_done_callback(self, callback: Callable[["ResponseFuture[T]"], None]) -> None:
        """Call ``callback(self)`` on completion (immediately if already done)."""
        with self._condition:
            if self._state == FutureState.PENDING:
                self._callbacks.append(callback)
                return
        self._run_callback(callback)

    def __await__(self) -> Generator[Any, None, T]:
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()

        def wake(_: "ResponseFuture[T]") -> None:
            loop.call_soon_threadsafe(_set_if_pending, waiter)

        self.add_done_callback(wake)
        yield from waiter.__await__()
        return self.result(timeout=0)

    def __repr__(self) -> str:
        return f"ResponseFuture(state={self.state.value})"


def _set_if_pending(waiter: "asyncio.Future[None]") -> None:
    if not waiter.done():
        waiter.set_result(None)
