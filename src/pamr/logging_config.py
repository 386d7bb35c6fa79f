"""Centralized logging configuration for PAMr."""

import logging
import logging.config
import os
import sys

from pathlib import Path
from typing import Any

from pamr.constants import (
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_MAX_BYTES,
)

_logging_configured = False

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_log_path(log_dir: Path | None = None) -> Path:
    """
    Get path to the active log file, creating its directory if needed.

    Args:
        log_dir: Directory override (defaults to ~/.pamr/logs)

    Returns:
        Path to pamr.log
    """
    log_dir = log_dir or DEFAULT_LOG_DIR
    os.makedirs(log_dir, mode=0o700, exist_ok=True)
    return log_dir / DEFAULT_LOG_FILE


def _get_user_logging_config() -> dict[str, Any]:
    """Return the [logging] table from the user config, or an empty dict."""
    try:
        from pamr.config import load_config

        logging_config = load_config().get("logging", {})
        return logging_config if isinstance(logging_config, dict) else {}
    except Exception:
        return {}


def _build_logging_config(
    verbose: bool,
    console_format: str | None,
    log_dir: Path | None,
) -> dict[str, Any]:
    """
    Build the dictConfig configuration dictionary.

    The console handler only carries the "pamr" hierarchy at INFO (DEBUG when
    verbose). The rotating file handler is controlled by the [logging] table
    of the user config: enabled, level, max_size_mb, backup_count.
    """
    user_config = _get_user_logging_config()
    max_size_mb = user_config.get("max_size_mb")
    max_bytes = (
        int(max_size_mb * 1024 * 1024) if max_size_mb else DEFAULT_LOG_MAX_BYTES
    )

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": console_format or FILE_FORMAT},
            "file": {"format": FILE_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "DEBUG" if verbose else "INFO",
                "formatter": "console",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "pamr": {"level": "DEBUG", "handlers": ["console"], "propagate": True},
        },
    }

    if user_config.get("enabled", True):
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": str(user_config.get("level", "DEBUG")).upper(),
            "formatter": "file",
            "filename": str(get_log_path(log_dir)),
            "maxBytes": max_bytes,
            "backupCount": user_config.get("backup_count", DEFAULT_LOG_BACKUP_COUNT),
            "encoding": "utf-8",
        }
        config["loggers"]["pamr"]["handlers"].append("file")

    return config


def setup_logging(
    *,
    verbose: bool = False,
    console_format: str | None = None,
    log_dir: Path | None = None,
) -> None:
    """
    Configure logging for the PAMr command line tools.

    Library code only creates module loggers; handlers are installed here,
    once per process.

    Args:
        verbose: If True, set console to DEBUG level
        console_format: Override console format string
        log_dir: Directory for the rotating log file
    """
    global _logging_configured

    if _logging_configured:
        return

    try:
        logging.config.dictConfig(
            _build_logging_config(verbose, console_format, log_dir)
        )
    except Exception as e:
        sys.stderr.write(f"WARNING: Failed to configure logging: {e}\n")
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format=console_format or "%(levelname)s: %(message)s",
        )

    _logging_configured = True


def reset_logging() -> None:
    """Remove handlers installed by setup_logging so it can run again."""
    global _logging_configured

    pamr_logger = logging.getLogger("pamr")
    for handler in list(pamr_logger.handlers):
        pamr_logger.removeHandler(handler)
        handler.close()
    _logging_configured = False
