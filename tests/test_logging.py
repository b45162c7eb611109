"""
Tests for logging utilities.
"""

import json
import logging
from unittest.mock import Mock, patch

from kufar_notifier.utils.logging import (
    PIPELINE_COMPONENTS,
    ROOT_LOGGER_NAME,
    ComponentLogger,
    LoggingManager,
    get_logger,
    get_logging_stats,
    setup_logging,
)


class TestComponentLogger:
    """Test cases for ComponentLogger."""

    def test_component_logger_initialization(self):
        """Test component logger initialization."""
        logger = ComponentLogger("sync.loop", {"key": "value"})

        assert logger.component_name == "sync.loop"
        assert logger.extra_context == {"key": "value"}
        assert logger.logger.name == "kufar_notifier.sync.loop"

    def test_format_message(self):
        """Test message formatting."""
        logger = ComponentLogger("listing.fetcher", {"context_key": "context_value"})

        formatted = logger._format_message("Test message", {"extra_key": "extra_value"})

        assert formatted["component"] == "listing.fetcher"
        assert formatted["message"] == "Test message"
        assert formatted["context_key"] == "context_value"
        assert formatted["extra_key"] == "extra_value"
        assert "timestamp" in formatted

    def test_log_methods(self):
        """Test that each level method logs at the matching level."""
        with patch("logging.getLogger") as mock_get_logger:
            mock_logger = Mock()
            mock_get_logger.return_value = mock_logger

            logger = ComponentLogger("test_component")
            logger.debug("Debug message", {"key": "value"})
            logger.info("Info message")
            logger.warning("Warning message")
            logger.error("Error message", exc_info=True)
            logger.critical("Critical message")

        levels = [call[0][0] for call in mock_logger.log.call_args_list]
        assert levels == [
            logging.DEBUG,
            logging.INFO,
            logging.WARNING,
            logging.ERROR,
            logging.CRITICAL,
        ]
        assert mock_logger.log.call_args_list[3][1]["exc_info"] is True

    def test_structured_logging_format(self):
        """Test that log messages are properly structured as JSON."""
        with patch("logging.getLogger") as mock_get_logger:
            mock_logger = Mock()
            mock_get_logger.return_value = mock_logger

            logger = ComponentLogger("message.dispatcher", {"recipient_id": "100"})
            logger.info("Alert sent", {"kufar_id": "1001"})

        logged_message = mock_logger.log.call_args[0][1]
        parsed = json.loads(logged_message)
        assert parsed["component"] == "message.dispatcher"
        assert parsed["message"] == "Alert sent"
        assert parsed["recipient_id"] == "100"
        assert parsed["kufar_id"] == "1001"

    def test_non_json_values_are_stringified(self):
        with patch("logging.getLogger") as mock_get_logger:
            mock_logger = Mock()
            mock_get_logger.return_value = mock_logger

            ComponentLogger("sync.loop").info("Cycle", {"path": object()})

        parsed = json.loads(mock_logger.log.call_args[0][1])
        assert parsed["path"].startswith("<object")


class TestLoggingManager:
    """Test cases for LoggingManager."""

    def test_logging_manager_initialization(self, temp_dir):
        """Test logging manager initialization."""
        manager = LoggingManager(str(temp_dir / "logs"), "DEBUG")

        assert manager.log_dir == temp_dir / "logs"
        assert manager.log_level == logging.DEBUG
        assert manager.log_dir.exists()

    def test_handlers_installed_on_root_logger(self, temp_dir):
        LoggingManager(str(temp_dir), "INFO")

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        file_names = sorted(
            handler.baseFilename.rsplit("/", 1)[-1]
            for handler in root_logger.handlers
            if hasattr(handler, "baseFilename")
        )
        assert file_names == ["errors.log", "kufar_notifier.log"]

    def test_component_log_files(self, temp_dir):
        LoggingManager(str(temp_dir), "INFO")

        for component in PIPELINE_COMPONENTS:
            component_logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
            assert len(component_logger.handlers) == 1
            assert (temp_dir / f"{component.replace('.', '_')}.log").exists()

    def test_get_component_logger_is_cached(self, temp_dir):
        """Test component logger retrieval and caching."""
        manager = LoggingManager(str(temp_dir), "INFO")

        logger1 = manager.get_component_logger("sync.loop", {"key": "value"})
        logger2 = manager.get_component_logger("sync.loop", {"key": "value"})
        logger3 = manager.get_component_logger("sync.loop", {"key": "other"})

        assert logger1 is logger2
        assert logger1 is not logger3

    def test_set_log_level_keeps_error_handler(self, temp_dir):
        """Test changing the log level."""
        manager = LoggingManager(str(temp_dir), "INFO")

        manager.set_log_level("DEBUG")

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        assert root_logger.level == logging.DEBUG
        for handler in root_logger.handlers:
            if "errors.log" in str(getattr(handler, "baseFilename", "")):
                assert handler.level == logging.ERROR
            else:
                assert handler.level == logging.DEBUG

    def test_get_log_stats(self, temp_dir):
        """Test getting logging statistics."""
        manager = LoggingManager(str(temp_dir), "WARNING")
        manager.get_component_logger("sync.loop")

        stats = manager.get_log_stats()

        assert stats["log_directory"] == str(temp_dir)
        assert stats["log_level"] == "WARNING"
        assert stats["component_loggers"] == 1
        names = [entry["name"] for entry in stats["log_files"]]
        assert "kufar_notifier.log" in names
        assert "errors.log" in names


class TestGlobalFunctions:
    """Test cases for module-level helpers."""

    def test_setup_logging(self, temp_dir):
        manager = setup_logging(str(temp_dir), "ERROR")

        assert isinstance(manager, LoggingManager)
        assert manager.log_level == logging.ERROR

    def test_get_logger(self, temp_dir):
        setup_logging(str(temp_dir), "INFO")

        logger = get_logger("delivery.tracker", {"kufar_id": "1"})

        assert isinstance(logger, ComponentLogger)
        assert logger.component_name == "delivery.tracker"
        assert logger.extra_context == {"kufar_id": "1"}

    def test_get_logging_stats(self, temp_dir):
        setup_logging(str(temp_dir), "INFO")

        stats = get_logging_stats()

        assert stats["log_directory"] == str(temp_dir)

    def test_get_logging_stats_before_setup(self):
        with patch("kufar_notifier.utils.logging._logging_manager", None):
            assert get_logging_stats() == {"error": "Logging not initialized"}
