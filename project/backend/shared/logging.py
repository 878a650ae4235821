"""
Structured logging setup for all modules.

JSON log lines with the active job id injected from a context variable, so
every line emitted inside a pipeline run can be correlated to its job.
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

from shared.config import settings

# Job id bound for the current task (asyncio copies context per task)
job_id_context: ContextVar[Optional[str]] = ContextVar("job_id", default=None)

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "getMessage", "taskName"
}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        job_id = job_id_context.get()
        if job_id:
            log_data["job_id"] = job_id

        # extra={...} fields land on the record as attributes
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            if isinstance(value, (str, int, float, bool, type(None))):
                log_data[key] = value
            else:
                log_data[key] = str(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Dotted component name (e.g., "pipeline.orchestrator")

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter())
    logger.addHandler(console_handler)

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_dir / "pipeline.log",
        maxBytes=50 * 1024 * 1024,  # 50MB
        backupCount=5
    )
    file_handler.setFormatter(JSONFormatter())
    logger.addHandler(file_handler)

    return logger


def set_job_id(job_id: Optional[Union[UUID, str]]) -> Token:
    """
    Bind job_id to the current context for automatic injection into logs.

    Args:
        job_id: Job ID to bind, or None to clear

    Returns:
        Token for reset_job_id() to restore the previous binding
    """
    return job_id_context.set(str(job_id) if job_id else None)


def reset_job_id(token: Token) -> None:
    """Restore the job_id binding that was active before set_job_id()."""
    job_id_context.reset(token)


def get_job_id() -> Optional[str]:
    """Return the job_id bound to the current context, if any."""
    return job_id_context.get()
