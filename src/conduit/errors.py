"""Conduit error taxonomy.

This module defines the error hierarchy for the conduit client runtime,
providing structured error handling with specific error codes
and context information.

Lifecycle errors (closed client, re-executed invocation) and input
validation errors are raised synchronously at the offending call.
Everything that goes wrong while a request is being processed (filters,
serialization, transport) is reported as a ProcessingError carrying the
original exception as its cause.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from conduit.message import Response


class ConduitError(Exception):
    """Base exception for all conduit errors.

    Attributes:
        code: Error code following the conduit:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class IllegalStateError(ConduitError, RuntimeError):
    """Raised when an operation is attempted on an object in the wrong state.

    Typical causes are calling methods on a closed client, executing an
    invocation a second time, or mutating a frozen runtime configuration.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="conduit:lifecycle/illegal_state", message=message, details=details or {}
        )


class InvalidArgumentError(ConduitError, ValueError):
    """Raised when a caller supplies a malformed argument (e.g. an invalid URI)."""

    def __init__(
        self,
        message: str,
        argument: str | None = None,
        details: dict[str, Any] | None = None,
        code: str = "conduit:input/invalid_argument",
    ) -> None:
        details_dict: dict[str, Any] = {}
        if argument is not None:
            details_dict["argument"] = argument
        if details:
            details_dict.update(details)
        super().__init__(code=code, message=message, details=details_dict)
        self.argument = argument


class NullArgumentError(InvalidArgumentError, TypeError):
    """Raised when a required argument is None.

    Attributes:
        argument: Name of the missing argument
    """

    def __init__(self, argument: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=f"{argument} must not be None",
            argument=argument,
            details=details,
            code="conduit:input/null_argument",
        )


class ProcessingError(ConduitError):
    """Raised when request processing fails.

    Wraps transport, serialization and filter chain failures. The message is
    kept exactly as supplied (usually the transport's own diagnostic text) so
    callers can match on it; the original exception is kept in ``cause`` and
    chained as ``__cause__``.

    Attributes:
        cause: Original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code="conduit:processing/failure", message=message, details=details or {}
        )
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @classmethod
    def wrap(cls, error: BaseException) -> "ProcessingError":
        """Return ``error`` if it is already a ProcessingError, else wrap it."""
        if isinstance(error, ProcessingError):
            return error
        return cls(str(error) or type(error).__name__, cause=error)


class ResponseStatusError(ProcessingError):
    """Raised when a typed entity is requested but the response is not successful.

    Attributes:
        response: The response that carried the unexpected status
        status: HTTP status code
    """

    def __init__(self, response: "Response", details: dict[str, Any] | None = None) -> None:
        message = f"HTTP {response.status} {response.reason}".rstrip()
        super().__init__(
            message=message,
            details={"status": response.status, **(details or {})},
        )
        self.code = "conduit:processing/response_status"
        self.response = response
        self.status = response.status


class ExecutorExhaustedError(ConduitError):
    """Raised when the async dispatch pool is full and cannot accept new work.

    Attributes:
        max_workers: Maximum number of workers in the pool
        active_workers: Current number of busy workers
    """

    def __init__(
        self,
        max_workers: int,
        active_workers: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = (
            f"Async dispatch pool exhausted: {active_workers}/{max_workers} workers in use."
        )
        super().__init__(
            code="conduit:transport/executor_exhausted",
            message=message,
            details={
                "max_workers": max_workers,
                "active_workers": active_workers,
                **(details or {}),
            },
        )
        self.max_workers = max_workers
        self.active_workers = active_workers
