"""Application logging configuration utilities."""

from __future__ import annotations

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "legallens.chat.audit"


class MinimalJSONFormatter(logging.Formatter):
    """Serialize log records to a compact JSON string.

    Telemetry events arrive as dict messages and are merged into the line.
    Plain messages land under ``message``. Of the ``extra`` attributes only
    the request and document identifiers are copied.
    """

    CONTEXT_FIELDS = ("req_id", "session_id", "document_id")

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )
        log_record: dict[str, Any] = {"ts": timestamp, "level": record.levelname, "module": record.name}

        for key in self.CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value

        if isinstance(record.msg, dict):
            log_record.update(record.msg)
        else:
            log_record["message"] = record.getMessage()

        # log_event already renders the traceback under "exc"
        if record.exc_info and "exc" not in log_record:
            log_record["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_record, ensure_ascii=False, default=str)


def configure_logging(log_dir: str | Path | None = None) -> None:
    """Configure application logging with JSON formatting.

    Chat transcripts are mirrored to ``chat_audit.log`` inside ``log_dir``
    (``LOG_DIR`` or ``logs`` by default) through a non-propagating logger.
    """

    directory = Path(log_dir or os.getenv("LOG_DIR", "logs"))
    directory.mkdir(parents=True, exist_ok=True)
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": MinimalJSONFormatter}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
                "chat_audit": {
                    "class": "logging.FileHandler",
                    "filename": str(directory / "chat_audit.log"),
                    "mode": "a",
                    "encoding": "utf-8",
                    "formatter": "json",
                },
            },
            "root": {
                "level": level,
                "handlers": ["default"],
            },
            "loggers": {
                AUDIT_LOGGER_NAME: {
                    "level": "INFO",
                    "handlers": ["chat_audit"],
                    "propagate": False,
                }
            },
        }
    )
