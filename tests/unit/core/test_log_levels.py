"""Test log level filtering in the file sink."""

import tempfile
from pathlib import Path

import pytest

from xcharvest.core.log import (
    ConsoleSink,
    FileSink,
    LevelFilteringExporter,
    setup_logger,
)


@pytest.fixture
def temp_log_dir():
    """Create temporary directory for log files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def restore_session_logger():
    yield
    setup_logger(
        log_root=Path(tempfile.gettempdir()) / "xcharvest-tests",
        session_name="test",
        console=ConsoleSink(level="debug"),
    )


def _file_logger(temp_log_dir, level):
    log_file = temp_log_dir / f"{level}.log"
    logger = setup_logger(
        log_root=temp_log_dir,
        session_name="test",
        console=ConsoleSink(enabled=False),
        file=FileSink(enabled=True, level=level, path=str(log_file)),
    )
    return logger, log_file


def test_debug_level_includes_everything(temp_log_dir):
    logger, log_file = _file_logger(temp_log_dir, "debug")

    logger.debug("DEBUG message - should be included")
    logger.info("INFO message - should be included")
    logger.warn("WARN message - should be included")
    logger.close()

    content = log_file.read_text()

    assert "DEBUG message" in content
    assert "INFO message" in content
    assert "WARN message" in content


def test_info_level_filters_debug(temp_log_dir):
    logger, log_file = _file_logger(temp_log_dir, "info")

    logger.debug("DEBUG message - should be filtered")
    logger.info("INFO message - should be included")
    logger.error("ERROR message - should be included")
    logger.close()

    content = log_file.read_text()

    assert "DEBUG message" not in content
    assert "INFO message" in content
    assert "ERROR message" in content


def test_warn_level_filters_below_warn(temp_log_dir):
    logger, log_file = _file_logger(temp_log_dir, "warn")

    logger.debug("DEBUG message - should be filtered")
    logger.info("INFO message - should be filtered")
    logger.warning("WARN message - should be included")
    logger.error("ERROR message - should be included")
    logger.close()

    content = log_file.read_text()

    assert "DEBUG message" not in content
    assert "INFO message" not in content
    assert "WARN message" in content
    assert "ERROR message" in content


def test_structured_attributes_are_written(temp_log_dir):
    logger, log_file = _file_logger(temp_log_dir, "info")

    logger.info("Found fresh artifact", polls=3)
    logger.close()

    content = log_file.read_text()

    assert "Found fresh artifact" in content
    assert "polls=3" in content


def test_level_cascades_to_sinks():
    from xcharvest.core.log import Logger

    logger = Logger(level="error")

    assert logger.console.level == "error"
    assert logger.file.level == "error"


def test_level_names():
    assert LevelFilteringExporter.level_name(9) == "info"
    assert LevelFilteringExporter.level_name(5) == "debug"
    assert LevelFilteringExporter.level_name(17) == "error"
