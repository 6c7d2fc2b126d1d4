"""Observability module for conduit.

Structured logging (structlog) for the client runtime: console output with
colors for development, JSON for production, and context binding for
correlating the log lines of one invocation.

Example:
    >>> from conduit.observability import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("conduit.invocation.started", method="GET", uri="http://localhost/")
"""

from conduit.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_debug_mode,
    sanitize_for_logging,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "is_debug_mode",
    "sanitize_for_logging",
]
