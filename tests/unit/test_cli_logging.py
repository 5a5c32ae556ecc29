"""Unit tests for cubench.cli.logging_setup."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from cubench.cli.logging_setup import CHATTY_LOGGERS, LOGGER_NAME, setup_logging


class TestSetupLogging:
    """Tests for the setup_logging function."""

    def teardown_method(self) -> None:
        """Clean up the cubench logger after each test."""
        logger = logging.getLogger(LOGGER_NAME)
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
        for name in CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.NOTSET)

    def test_returns_package_logger(self) -> None:
        logger = setup_logging()
        assert isinstance(logger, logging.Logger)
        assert logger.name == "cubench"

    def test_default_level_is_info(self) -> None:
        logger = setup_logging()
        assert logger.level == logging.INFO

    def test_case_insensitive_level(self) -> None:
        logger = setup_logging(level="debug")
        assert logger.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self) -> None:
        logger = setup_logging(level="chatty")
        assert logger.level == logging.INFO

    def test_has_single_rich_handler(self) -> None:
        logger = setup_logging()
        rich_handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
        assert len(rich_handlers) == 1

    def test_no_file_handler_by_default(self) -> None:
        logger = setup_logging()
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        assert file_handlers == []

    def test_file_handler_creates_parent_dirs(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "deep" / "bench.log"
        setup_logging(log_file=log_file)
        assert log_file.parent.exists()

    def test_file_handler_format_has_timestamp(self, tmp_path: Path) -> None:
        logger = setup_logging(log_file=tmp_path / "bench.log")
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert "asctime" in file_handlers[0].formatter._fmt

    def test_clears_existing_handlers(self) -> None:
        """Calling setup_logging twice doesn't duplicate handlers."""
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_child_loggers_reach_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "bench.log"
        logger = setup_logging(log_file=log_file, console=Console(stderr=True))
        logging.getLogger("cubench.sampler").info("Completed %d/%d measurements", 10, 100)
        for handler in logger.handlers:
            handler.flush()
        assert "Completed 10/100 measurements" in log_file.read_text()

    def test_accepts_string_log_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "bench.log"
        logger = setup_logging(log_file=str(log_file))
        logger.warning("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in log_file.read_text()

    def test_engine_chatter_held_back_at_info(self, tmp_path: Path) -> None:
        log_file = tmp_path / "bench.log"
        logger = setup_logging(log_file=log_file, console=Console(stderr=True))
        engine_logger = logging.getLogger("cubench.engine.memory")
        engine_logger.debug("Funded account")
        engine_logger.warning("Engine warning")
        for handler in logger.handlers:
            handler.flush()
        text = log_file.read_text()
        assert "Funded account" not in text
        assert "Engine warning" in text
        assert logging.getLogger("cubench.engine").level == logging.WARNING

    def test_engine_chatter_shown_at_debug(self, tmp_path: Path) -> None:
        log_file = tmp_path / "bench.log"
        logger = setup_logging(level="DEBUG", log_file=log_file, console=Console(stderr=True))
        logging.getLogger("cubench.engine.memory").debug("Funded account")
        for handler in logger.handlers:
            handler.flush()
        assert "Funded account" in log_file.read_text()

    def test_debug_after_info_releases_engine(self) -> None:
        setup_logging(level="INFO")
        setup_logging(level="DEBUG")
        assert logging.getLogger("cubench.engine").level == logging.NOTSET
