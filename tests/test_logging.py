"""Tests for the package logger set up in ``pos_deletion/__init__.py``."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pos_deletion


def test_configure_logging_writes_to_requested_directory(tmp_path, restore_package_logging):
    log_dir = tmp_path / "logs"

    logger = pos_deletion.configure_logging(log_dir, logging.DEBUG)
    logger.debug("debug line kept")
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.DEBUG
    assert [type(handler) for handler in logger.handlers] == [RotatingFileHandler, logging.StreamHandler]
    assert "debug line kept" in (log_dir / pos_deletion.LOG_FILE_NAME).read_text(encoding="utf-8")


def test_configure_logging_replaces_previous_handlers(tmp_path, restore_package_logging):
    pos_deletion.configure_logging(tmp_path / "first")
    logger = pos_deletion.configure_logging(tmp_path / "second")

    assert len(logger.handlers) == 2
    assert logger.handlers[0].baseFilename == str(tmp_path / "second" / pos_deletion.LOG_FILE_NAME)


def test_configure_logging_falls_back_to_console(tmp_path, capsys, restore_package_logging):
    """A log directory that cannot be created leaves only the console handler."""

    blocked = tmp_path / "not-a-dir"
    blocked.write_text("occupied", encoding="utf-8")

    logger = pos_deletion.configure_logging(blocked, logging.WARNING)
    logger.warning("still reported")

    err = capsys.readouterr().err
    assert "logging to console only" in err
    assert "still reported" in err
    assert [type(handler) for handler in logger.handlers] == [logging.StreamHandler]
