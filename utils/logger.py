"""
Centralized logging configuration for the BookEchoes AIBot service.

Every module obtains its logger through ``get_logger(__name__)`` and attaches
structured context with ``extra={"extra_fields": {...}}``. Records are written
as one JSON object per line:

- ``app.log``   INFO and above
- ``error.log`` ERROR and above
- ``debug.log`` everything, only when LOG_LEVEL=DEBUG
- stderr       ERROR and above, only when LOG_TO_CONSOLE=true

Credential-like fields are redacted and long text fields (prompts, model
output) are truncated before they reach a file.
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

SERVICE_NAME = "bookechoes-aibot"
SENSITIVE_FIELDS = {"api_key", "apikey", "authorization", "token", "password", "secret"}
MAX_FIELD_CHARS = 2000
NOISY_LIBRARIES = ("httpx", "httpcore", "openai")


def sanitize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Redact credential-like keys and cap long strings, recursing into dicts."""
    clean: dict[str, Any] = {}
    for key, value in fields.items():
        if key.lower() in SENSITIVE_FIELDS and value:
            clean[key] = "[REDACTED]"
        elif isinstance(value, dict):
            clean[key] = sanitize_fields(value)
        elif isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
            clean[key] = value[:MAX_FIELD_CHARS] + f"...(+{len(value) - MAX_FIELD_CHARS} chars)"
        else:
            clean[key] = value
    return clean


class JsonFormatter(logging.Formatter):
    """Render a log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_data.update(sanitize_fields(extra_fields))

        # Chinese queries stay readable in the files
        return json.dumps(log_data, ensure_ascii=False, default=str)


class LoggerConfig:
    """Process-wide logging setup, applied once."""

    LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_TO_CONSOLE = os.getenv("LOG_TO_CONSOLE", "false").lower() == "true"
    MAX_BYTES = 10 * 1024 * 1024  # 10MB per file
    BACKUP_COUNT = 5

    _initialized = False

    @classmethod
    def _file_handler(cls, filename: str, level: int) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            cls.LOG_DIR / filename,
            maxBytes=cls.MAX_BYTES,
            backupCount=cls.BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(JsonFormatter())
        return handler

    @classmethod
    def setup_logging(cls) -> None:
        """
        Attach the JSON handlers to the root logger.

        Safe to call repeatedly; only the first call has an effect.
        """
        if cls._initialized:
            return

        cls.LOG_DIR.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, cls.LOG_LEVEL, logging.INFO))
        root_logger.handlers.clear()

        root_logger.addHandler(cls._file_handler("app.log", logging.INFO))
        root_logger.addHandler(cls._file_handler("error.log", logging.ERROR))
        if cls.LOG_LEVEL == "DEBUG":
            root_logger.addHandler(cls._file_handler("debug.log", logging.DEBUG))

        if cls.LOG_TO_CONSOLE:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(logging.ERROR)
            console_handler.setFormatter(
                logging.Formatter(
                    fmt="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            root_logger.addHandler(console_handler)

        # One line per outbound request from these is too chatty at INFO
        for name in NOISY_LIBRARIES:
            logging.getLogger(name).setLevel(logging.WARNING)

        cls._initialized = True

        logging.getLogger(__name__).info(
            "Logging system initialized",
            extra={
                "extra_fields": {
                    "log_level": cls.LOG_LEVEL,
                    "log_dir": str(cls.LOG_DIR),
                    "console_logging": cls.LOG_TO_CONSOLE,
                }
            },
        )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        if not cls._initialized:
            cls.setup_logging()
        return logging.getLogger(name)


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Example:
        >>> from utils.logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Draft generated", extra={"extra_fields": {"query": "宋史"}})
    """
    return LoggerConfig.get_logger(name)


LoggerConfig.setup_logging()
