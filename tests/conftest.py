"""Shared pytest fixtures for conduit tests.

This module routes structlog output into caplog for every test and loads
the conduit.testing fixtures.
"""

from __future__ import annotations

import logging

import pytest

from conduit.observability.logging import configure_logging

# Load conduit.testing fixtures (client, scripted_connector)
pytest_plugins = ["conduit.testing.fixtures"]


@pytest.fixture(autouse=True)
def _capture_conduit_logs(caplog: pytest.LogCaptureFixture) -> None:
    """Route structlog output through stdlib logging so caplog sees it."""
    configure_logging(log_format="console", log_level="DEBUG", force=True)
    caplog.set_level(logging.DEBUG)
