"""Pytest configuration and fixtures for xcharvest tests."""

import sys
import tempfile
from pathlib import Path

import pytest

from fakes import FakeClock
from xcharvest.core.log import ConsoleSink, setup_logger


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Configure console-only logging for the test session.

    Nothing is sent to logfire.dev.
    """
    test_log_root = Path(tempfile.gettempdir()) / "xcharvest-tests"
    setup_logger(
        log_root=test_log_root,
        session_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_argv():
    """Save and restore sys.argv."""
    original = sys.argv.copy()
    sys.argv = ["xcharvest"]
    yield
    sys.argv = original


@pytest.fixture
def derived_data(tmp_path):
    root = tmp_path / "DerivedData"
    root.mkdir()
    return root
