"""Tests for the bounded async dispatch pool.

BoundedExecutor runs synchronous connectors for asynchronous invocations
and rejects work instead of queueing once every worker is busy.
"""

import asyncio
import os
import threading
import time

import pytest

from conduit.errors import ExecutorExhaustedError
from conduit.transport.executors import BoundedExecutor


class TestBoundedExecutor:
    """Test suite for BoundedExecutor."""

    def test_executor_accepts_tasks_within_limit(self) -> None:
        """Test that executor accepts tasks when within limit."""
        executor = BoundedExecutor(max_workers=2)

        future1 = executor.submit(lambda x: x * 2, 1)
        future2 = executor.submit(lambda x: x * 2, 2)

        assert future1.result() == 2
        assert future2.result() == 4

        executor.shutdown()

    def test_executor_rejects_when_pool_exhausted(self) -> None:
        """Test that executor rejects tasks when pool is exhausted."""
        executor = BoundedExecutor(max_workers=2)
        release = threading.Event()

        def blocking_task() -> int:
            release.wait(5)
            return 42

        future1 = executor.submit(blocking_task)
        future2 = executor.submit(blocking_task)

        with pytest.raises(ExecutorExhaustedError) as exc_info:
            executor.submit(blocking_task)

        assert exc_info.value.max_workers == 2
        assert exc_info.value.active_workers == 2

        release.set()
        assert future1.result() == 42
        assert future2.result() == 42

        executor.shutdown()

    def test_capacity_returns_after_completion(self) -> None:
        """Test that a finished task frees its slot."""
        executor = BoundedExecutor(max_workers=1)
        executor.submit(lambda: None).result()

        # The permit is released by a done callback; allow it to run
        deadline = time.monotonic() + 5
        while executor.active_workers and time.monotonic() < deadline:
            time.sleep(0.01)

        assert executor.submit(lambda: 7).result() == 7
        executor.shutdown()

    async def test_executor_works_with_run_in_executor(self) -> None:
        """Test that executor works with asyncio.run_in_executor."""
        executor = BoundedExecutor(max_workers=2)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(executor, lambda x: x * 3, 5)

        assert result == 15

        executor.shutdown()

    def test_executor_default_max_workers(self) -> None:
        """Test that executor uses default max_workers when None."""
        executor = BoundedExecutor(max_workers=None)
        cpu_count = os.cpu_count() or 1

        assert executor.max_workers == min(32, cpu_count + 4)

        executor.shutdown()

    def test_executor_raises_on_invalid_max_workers(self) -> None:
        """Test that executor raises ValueError for invalid max_workers."""
        with pytest.raises(ValueError, match="max_workers must be >= 1"):
            BoundedExecutor(max_workers=0)

        with pytest.raises(ValueError, match="max_workers must be >= 1"):
            BoundedExecutor(max_workers=-1)

    def test_executor_context_manager(self) -> None:
        """Test that executor works as context manager."""
        with BoundedExecutor(max_workers=2) as executor:
            future = executor.submit(lambda x: x * 2, 5)
            assert future.result() == 10

        with pytest.raises(RuntimeError):
            executor.submit(lambda: None)

    def test_shutdown_is_idempotent(self) -> None:
        """Test that shutting down twice is harmless."""
        executor = BoundedExecutor(max_workers=1)
        executor.shutdown()
        executor.shutdown()

    def test_executor_releases_semaphore_on_exception(self) -> None:
        """Test that executor releases semaphore even when task raises exception."""
        executor = BoundedExecutor(max_workers=1)

        def failing_task() -> int:
            raise ValueError("Task failed")

        future1 = executor.submit(failing_task)
        with pytest.raises(ValueError, match="Task failed"):
            future1.result()

        deadline = time.monotonic() + 5
        while executor.active_workers and time.monotonic() < deadline:
            time.sleep(0.01)

        future2 = executor.submit(lambda: 42)
        assert future2.result() == 42

        executor.shutdown()

    def test_exhaustion_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a rejected submission leaves a warning."""
        executor = BoundedExecutor(max_workers=1)
        release = threading.Event()
        executor.submit(release.wait, 5)

        with pytest.raises(ExecutorExhaustedError):
            executor.submit(lambda: None)

        release.set()
        executor.shutdown()
        assert "conduit.executor.exhausted" in caplog.text
