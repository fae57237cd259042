"""
Logging Configuration Module.

Centralized stdlib logging setup for the ForgeKit backend.

- One console handler at the configured level; the root logger itself stays at
  DEBUG so per-module levels and handlers do the filtering.
- Optional DEBUG file handler under ``LOG_FILE_DIR``.
- ``simple``, ``detailed`` and ``json`` output formats. JSON lines are built
  with :mod:`json` so messages containing quotes stay valid.
- Quieter levels for chatty third-party clients (SQLAlchemy, httpx, OpenAI,
  Qdrant).
"""

import json
import logging
from pathlib import Path
from typing import Optional

from forgekit.server.core.config import settings

LOG_LEVEL = settings.log_level.upper()
LOG_FORMAT = settings.log_format
LOG_FILE_DIR = settings.log_file_dir
ENABLE_FILE_LOGGING = settings.enable_file_logging
LOG_FILE_NAME = "forgekit.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

MODULE_LOG_LEVELS = {
    "forgekit.core": "INFO",
    "forgekit.core.database": "INFO",
    "forgekit.usage": "DEBUG",
    "forgekit.embeddings": "DEBUG",
    "forgekit.providers": "INFO",
    "forgekit.server": "INFO",
    "forgekit.server.api": "DEBUG",
    "forgekit.server.services": "DEBUG",
    "sqlalchemy": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "sqlalchemy.pool": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "openai": "WARNING",
    "qdrant_client": "WARNING",
    "asyncio": "WARNING",
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
}


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "module": record.filename,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def build_formatter(log_format: str) -> logging.Formatter:
    """Formatter for ``simple``, ``json`` or anything else (``detailed``)."""
    if log_format == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    if log_format == "simple":
        return logging.Formatter(SIMPLE_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: bool = True,
) -> None:
    """
    Configure logging for the application.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        log_level: Console level, defaults to ``FORGEKIT_LOG_LEVEL``
        log_format: ``simple``, ``detailed`` or ``json``, defaults to ``LOG_FORMAT``
        enable_file: Also write to the log file when ``ENABLE_FILE_LOGGING`` is on
    """
    level = (log_level or LOG_LEVEL).upper()
    fmt = log_format or LOG_FORMAT
    formatter = build_formatter(fmt)
    write_file = enable_file and ENABLE_FILE_LOGGING

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if write_file:
        log_dir = Path(LOG_FILE_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for module_name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(module_level)

    root_logger.info(f"Logging configured: level={level}, format={fmt}, file_logging={write_file}")


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, usually called with ``__name__``."""
    return logging.getLogger(name)


setup_logging()
