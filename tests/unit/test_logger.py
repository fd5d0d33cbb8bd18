"""Unit tests for logging setup and helpers."""

import logging
import uuid
from logging.handlers import RotatingFileHandler

import pytest

from tripharvest.utils.logger import (
    configure_logging,
    get_logger,
    log_exception,
    log_execution_time,
    log_performance,
    log_scrape_complete,
    set_log_level,
)


@pytest.fixture
def logger(tmp_path):
    """A fresh logger writing to a temporary directory."""
    name = f"tripharvest.tests.{uuid.uuid4().hex}"
    created = get_logger(name, log_dir=tmp_path, level="debug")
    yield created
    for handler in list(created.handlers):
        handler.close()
        created.removeHandler(handler)


def own_handlers(logger: logging.Logger) -> list[type]:
    """Handler types installed by get_logger, ignoring any the test runner adds."""
    return sorted(
        (type(h) for h in logger.handlers if type(h) in (logging.StreamHandler, RotatingFileHandler)),
        key=lambda t: t.__name__,
    )


def read_log(tmp_path) -> str:
    return (tmp_path / "tripharvest.log").read_text(encoding="utf-8")


class TestGetLogger:
    """Test logger construction."""

    def test_handlers_and_level(self, logger):
        assert logger.level == logging.DEBUG
        assert own_handlers(logger) == [RotatingFileHandler, logging.StreamHandler]
        assert logger.propagate is False

    def test_no_duplicate_handlers(self, logger, tmp_path):
        """Test asking again returns the configured logger unchanged."""
        again = get_logger(logger.name, log_dir=tmp_path)
        assert again is logger
        assert own_handlers(again) == [RotatingFileHandler, logging.StreamHandler]

    def test_level_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        created = get_logger(f"tripharvest.tests.{uuid.uuid4().hex}", log_dir=tmp_path)
        try:
            assert created.level == logging.WARNING
        finally:
            for handler in list(created.handlers):
                handler.close()
                created.removeHandler(handler)

    def test_set_log_level(self, logger):
        set_log_level(logger, "error")
        assert logger.level == logging.ERROR
        assert all(handler.level == logging.ERROR for handler in logger.handlers)


class TestHelpers:
    """Test the helper functions write to the log file."""

    def test_scrape_complete(self, logger, tmp_path):
        log_scrape_complete(logger, "GetYourGuide", "https://example.com", 12, 1.5)
        assert "[GetYourGuide] Scrape complete: https://example.com (12 items in 1.50s)" in read_log(tmp_path)

    def test_performance_and_timing(self, logger, tmp_path):
        log_performance(logger, "batch", 0.25)
        with log_execution_time(logger, "extraction"):
            pass

        text = read_log(tmp_path)
        assert "Performance: batch completed in 0.250s" in text
        assert "Completed: extraction in" in text

    def test_log_exception_includes_traceback(self, logger, tmp_path):
        try:
            raise RuntimeError("browser crashed")
        except RuntimeError as e:
            log_exception(logger, "closing browser", e)

        text = read_log(tmp_path)
        assert "Failed: closing browser: browser crashed" in text
        assert "Traceback" in text


class TestConfigureLogging:
    """Test application settings applied to existing loggers."""

    def test_level_and_directory(self, logger, tmp_path):
        moved = tmp_path / "moved"

        configured = configure_logging("error", moved, prefix=logger.name)

        assert configured == [logger]
        assert logger.level == logging.ERROR
        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].level == logging.ERROR

        logger.error("written to the new directory")
        assert "written to the new directory" in read_log(moved)

    def test_other_loggers_untouched(self, logger):
        configure_logging("critical", prefix=f"{logger.name}-other")
        assert logger.level == logging.DEBUG
