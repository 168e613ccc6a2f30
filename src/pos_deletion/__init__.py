"""Transactional deletion of recorded point-of-sale sales.

Importing the package installs the ``pos_deletion`` logger with a rotating
file under :data:`LOG_DIR` and a console handler. :func:`configure_logging`
re-targets both once a ``config.ini`` names another directory or level.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union


PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = PROJECT_ROOT / ".logs"
LOG_FILE_NAME = "pos_deletion.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """(Re)install the package handlers, writing to ``log_dir``.

    Handlers from an earlier call are closed and replaced, so the function is
    safe to call again after settings are loaded. When the log file cannot be
    opened a warning goes to stderr and only the console handler is kept.
    """

    logger = logging.getLogger(__name__)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    target_dir = Path(log_dir) if log_dir is not None else LOG_DIR
    log_file = target_dir / LOG_FILE_NAME
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,
            backupCount=5,
            encoding="utf-8",
        )
    except OSError as exc:
        print(
            f"Warning: logging to console only, cannot open '{log_file}': {exc}",
            file=sys.stderr,
        )
    else:
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


log = configure_logging()
log.debug("Logging configured in '%s'.", LOG_DIR)
