"""
Shared pytest fixtures and configuration for job-monitor tests.

This module provides:
- Settings isolation (no .env file, no cached settings between tests)
- Logging configuration restored after each test
- An in-memory step event transport
- Fixed reference instants for schedule previews

Usage:
    Fixtures are auto-discovered by pytest; request them by name.

    def test_something(memory_transport, settings):
        ...
"""

import logging
from collections.abc import Generator
from datetime import datetime
from pathlib import Path

import pytest
import structlog

from jobmonitor.core.settings import JobMonitorSettings, get_settings
from jobmonitor.execution.transports.memory import InMemoryStepEventTransport


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "cli" in test_path.parts:
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """
    Clear the cached settings and JOBMONITOR_* variables around each test.

    Keeps a developer's environment from leaking into assertions.
    """
    import os

    for key in list(os.environ):
        if key.startswith("JOBMONITOR_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    """Undo logging configuration done by CLI invocations."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("jobmonitor").setLevel(logging.NOTSET)
    structlog.reset_defaults()


@pytest.fixture
def settings() -> JobMonitorSettings:
    """Settings pointing at a fake dashboard API, ignoring any .env file."""
    return JobMonitorSettings(_env_file=None, api_url="http://dashboard.test/api")


# =============================================================================
# Transport Fixtures
# =============================================================================


@pytest.fixture
def memory_transport() -> InMemoryStepEventTransport:
    """Transport that acknowledges subscriptions immediately."""
    return InMemoryStepEventTransport()


@pytest.fixture
def manual_transport() -> InMemoryStepEventTransport:
    """Transport whose subscriptions stay connecting until acknowledged."""
    return InMemoryStepEventTransport(auto_open=False)


# =============================================================================
# Time Fixtures
# =============================================================================


@pytest.fixture
def wednesday_afternoon() -> datetime:
    """2025-01-01 13:30:00, a Wednesday."""
    return datetime(2025, 1, 1, 13, 30)
