from __future__ import annotations

import logging
import logging.config
from pathlib import Path

LOG_FILE_NAME = "inbox_inspector.log"

# Client libraries log every request and frame at DEBUG/INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "websockets")


def configure_logging(log_dir: Path, level: str = "INFO") -> Path:
    """Send logs to a rotating file and keep the console to warnings."""

    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME
    level = level.upper()

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
            "console": {
                "format": "%(levelname)s | %(name)s | %(message)s",
            },
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "standard",
                "filename": str(log_path),
                "maxBytes": 1_000_000,
                "backupCount": 3,
                "encoding": "utf-8",
            },
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "level": "WARNING",
            },
        },
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        "root": {
            "handlers": ["file", "stderr"],
            "level": level,
        },
    }

    logging.config.dictConfig(config)
    logging.getLogger(__name__).debug("Logging to %s at %s", log_path, level)
    return log_path
