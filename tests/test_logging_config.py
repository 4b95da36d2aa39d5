"""Tests for logging_config module."""

import json
import logging

import pytest

from credforge.logging_config import (PACKAGE_LOGGER, StructuredFormatter,
                                      configure_logging, correlation_id_var,
                                      setup_structured_logging)


@pytest.fixture
def package_logger():
    logger = logging.getLogger(PACKAGE_LOGGER)
    yield logger
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def make_record(self, **extra):
        record = logging.LogRecord(
            name="credforge.retry",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="[Retry Manager] %s failed",
            args=("find all",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_formats_json_with_correlation_id(self):
        """Test JSON output fields and the correlation id."""
        token = correlation_id_var.set("migration-1")
        try:
            output = json.loads(StructuredFormatter().format(self.make_record()))
        finally:
            correlation_id_var.reset(token)

        assert output["level"] == "WARNING"
        assert output["logger"] == "credforge.retry"
        assert output["message"] == "[Retry Manager] find all failed"
        assert output["correlation_id"] == "migration-1"

    def test_includes_extra_fields(self):
        """Test that custom record attributes are emitted."""
        output = json.loads(StructuredFormatter().format(self.make_record(project_ref="abc")))
        assert output["project_ref"] == "abc"
        assert output["correlation_id"] is None


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_sets_level_and_console_handler(self, package_logger):
        """Test level and a single console handler."""
        logger = configure_logging(log_level="DEBUG", log_format="text")
        assert logger is package_logger
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)

    def test_idempotent(self, package_logger):
        """Test that calling twice doesn't add duplicate handlers."""
        configure_logging(log_level="INFO")
        configure_logging(log_level="INFO")
        assert len(package_logger.handlers) == 1

    def test_json_format(self, package_logger):
        """Test that json format installs the structured formatter."""
        configure_logging(log_format="json")
        assert isinstance(package_logger.handlers[0].formatter, StructuredFormatter)

    def test_file_handler(self, package_logger, tmp_path):
        """Test logging to a file in a new directory."""
        log_file = tmp_path / "logs" / "credforge.log"
        configure_logging(log_level="INFO", log_file=log_file, log_to_console=False)

        logging.getLogger("credforge.test").info("[Credential Migration] hello")
        for handler in package_logger.handlers:
            handler.flush()

        assert "[Credential Migration] hello" in log_file.read_text(encoding="utf-8")


class TestSetupStructuredLogging:
    """Tests for setup_structured_logging."""

    def test_configures_root_logger(self):
        """Test the root logger gets one structured handler."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_structured_logging("WARNING")
            assert root.level == logging.WARNING
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
