"""
Tests for logging configuration.
"""

import logging
from pathlib import Path

import pytest

from deploybot.core.observability.logging_config import resolve_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestResolveLevel:
    def test_flags_take_precedence(self):
        env = {"DEPLOYBOT_LOG_LEVEL": "ERROR"}
        assert resolve_level(debug=True, verbose=True, environ=env) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True, environ=env) == "INFO"
        assert resolve_level(quiet=True, environ=env) == "ERROR"

    def test_environment(self):
        assert resolve_level(environ={"DEPLOYBOT_LOG_LEVEL": "INFO"}) == "INFO"

    def test_default(self):
        assert resolve_level(environ={}) == "WARNING"


class TestSetupLogging:
    def test_console_level(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_unknown_level_falls_back(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "deploybot.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        logging.getLogger("deploybot.test").debug("hello from a deploy")
        for handler in root.handlers:
            handler.flush()
        assert "hello from a deploy" in log_file.read_text()
        for handler in root.handlers:
            handler.close()

    def test_project_loggers_follow_root(self):
        setup_logging("INFO")
        for name in ("deploybot.adapters.vcs.git", "deploybot.adapters.ci.webhook"):
            assert logging.getLogger(name).getEffectiveLevel() == logging.INFO
