"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest
from structlog.testing import capture_logs


@pytest.fixture(autouse=True)
def captured_logs():
    """Capture structlog events instead of printing them.

    Yields the list of captured event dicts so tests can assert on them.
    """
    with capture_logs() as logs:
        yield logs


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every RCS_* variable so tests start from an empty configuration."""
    for key in list(os.environ):
        if key.upper().startswith("RCS_"):
            monkeypatch.delenv(key)
    return monkeypatch
