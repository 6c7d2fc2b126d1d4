"""Tests for ResponseFuture."""

import asyncio
import threading

import pytest

from conduit.futures import (
    FutureCancelledError,
    FutureState,
    FutureTimeoutError,
    ResponseFuture,
)


class CountingHandle:
    def __init__(self) -> None:
        self.cancel_calls = 0

    def cancel(self) -> bool:
        self.cancel_calls += 1
        return True


class TestTransitions:
    """Tests for the single-assignment state machine."""

    def test_first_outcome_wins(self) -> None:
        """Test that a failure after success is refused."""
        future: ResponseFuture[str] = ResponseFuture()
        assert future.state is FutureState.PENDING

        assert future.set_result("ok")
        assert not future.set_exception(RuntimeError("late"))
        assert future.state is FutureState.RESOLVED
        assert future.result() == "ok"
        assert future.exception() is None

    def test_failure_is_raised(self) -> None:
        """Test that result() raises the stored error."""
        future: ResponseFuture[str] = ResponseFuture()
        error = RuntimeError("boom")
        future.set_exception(error)

        assert future.done()
        assert future.exception() is error
        with pytest.raises(RuntimeError, match="boom"):
            future.result()

    def test_cancel_refuses_late_result(self) -> None:
        """Test that a late success cannot overwrite a cancellation."""
        future: ResponseFuture[str] = ResponseFuture()

        assert future.cancel()
        assert not future.set_result("late")
        assert future.cancelled()
        with pytest.raises(FutureCancelledError):
            future.result()
        with pytest.raises(FutureCancelledError):
            future.exception()

    def test_cancel_after_completion_is_refused(self) -> None:
        """Test that completed futures cannot be cancelled."""
        future: ResponseFuture[int] = ResponseFuture()
        future.set_result(1)
        assert not future.cancel()
        assert future.result() == 1


class TestCancelHook:
    """Tests for the attached transport handle."""

    def test_cancel_propagates_to_handle(self) -> None:
        """Test that cancel() cancels the attached handle once."""
        future: ResponseFuture[str] = ResponseFuture()
        handle = CountingHandle()
        future.attach(handle)

        future.cancel()
        future.cancel()

        assert handle.cancel_calls == 1

    def test_attach_after_cancel_cancels_immediately(self) -> None:
        """Test that a handle attached to a cancelled future is cancelled at once."""
        future: ResponseFuture[str] = ResponseFuture()
        future.cancel()
        handle = CountingHandle()

        future.attach(handle)

        assert handle.cancel_calls == 1

    def test_completion_does_not_cancel_handle(self) -> None:
        """Test that resolving leaves the handle untouched."""
        future: ResponseFuture[str] = ResponseFuture()
        handle = CountingHandle()
        future.attach(handle)
        future.set_result("ok")
        assert handle.cancel_calls == 0


class TestWaiting:
    """Tests for blocking waits, callbacks and await."""

    def test_result_timeout(self) -> None:
        """Test that waiting on a pending future times out."""
        future: ResponseFuture[str] = ResponseFuture()
        with pytest.raises(FutureTimeoutError):
            future.result(timeout=0.01)

    def test_result_from_other_thread(self) -> None:
        """Test that result() wakes up when another thread resolves."""
        future: ResponseFuture[str] = ResponseFuture()
        threading.Timer(0.05, future.set_result, args=("later",)).start()
        assert future.result(timeout=5) == "later"

    def test_callbacks_run_once(self) -> None:
        """Test done callbacks before and after completion."""
        future: ResponseFuture[str] = ResponseFuture()
        seen: list[str] = []
        future.add_done_callback(lambda f: seen.append("before"))
        future.set_result("x")
        future.set_exception(RuntimeError())
        future.add_done_callback(lambda f: seen.append("after"))

        assert seen == ["before", "after"]

    def test_failing_callback_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a raising callback does not break completion."""
        future: ResponseFuture[str] = ResponseFuture()

        def explode(_: ResponseFuture[str]) -> None:
            raise ValueError("callback bug")

        future.add_done_callback(explode)

        assert future.set_result("x")
        assert future.result() == "x"
        assert "conduit.future.callback_failed" in caplog.text

    async def test_await_resolved_elsewhere(self) -> None:
        """Test awaiting a future completed from a worker thread."""
        future: ResponseFuture[str] = ResponseFuture()
        threading.Timer(0.05, future.set_result, args=("async",)).start()

        assert await asyncio.wait_for(future, timeout=5) == "async"

    async def test_await_failure(self) -> None:
        """Test that awaiting re-raises the failure."""
        future: ResponseFuture[str] = ResponseFuture()
        future.set_exception(KeyError("missing"))

        with pytest.raises(KeyError):
            await future
