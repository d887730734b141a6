"""
Unit tests for logging setup
"""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from src.agent.logging_setup import configure_logging


class TestConfigureLogging:
    """Test suite for configure_logging"""

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_console_only(self):
        configure_logging()

        root = logging.getLogger()
        assert root.level == logging.INFO
        assert not any(isinstance(h, RotatingFileHandler) for h in root.handlers)

    def test_debug_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "fleet.log"

        configure_logging(debug=True, log_file=log_file)
        logging.getLogger("fleet.test").debug("hello")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        for handler in root.handlers:
            handler.flush()
        assert "hello" in log_file.read_text(encoding="utf-8")


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
