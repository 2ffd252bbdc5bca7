"""Logging setup shared by the CLI and web entry points."""

from __future__ import annotations

import logging
import logging.handlers

from swissharness.config import Config

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"


def setup_logging(config: Config, *, console: bool = True) -> logging.Logger:
    """Install a console handler plus a rotating file handler and return the package logger."""
    log_file = config.log_file_path
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_file, maxBytes=2 * 1024 * 1024, backupCount=3,  # 2 MB × 3 files
            encoding="utf-8",
        ),
    ]
    if console:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=getattr(logging, config.logging.level),
        format=_FORMAT,
        handlers=handlers,
        force=True,
    )
    return logging.getLogger("swissharness")
