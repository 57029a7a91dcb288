"""
Tests for setup_logging.
"""
import logging
import logging.handlers

import pytest

from backup_runner.logger import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    named = {name: logging.getLogger(name).level for name in ("backup_runner", "botocore", "urllib3")}
    yield root
    for name, named_level in named.items():
        logging.getLogger(name).setLevel(named_level)
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_level_and_file_come_from_environment(self, monkeypatch, tmp_path, restore_root_logger):
        """Should read LOG_LEVEL and LOG_FILE and create the log directory"""
        log_file = tmp_path / "logs" / "backup.log"
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_FILE", str(log_file))

        setup_logging()

        root = restore_root_logger
        assert root.level == logging.DEBUG
        file_handlers = [h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].baseFilename == str(log_file)
        assert log_file.parent.is_dir()

    def test_console_only_without_log_file(self, monkeypatch, restore_root_logger):
        monkeypatch.delenv("LOG_FILE", raising=False)
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        setup_logging()

        root = restore_root_logger
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.StreamHandler)
