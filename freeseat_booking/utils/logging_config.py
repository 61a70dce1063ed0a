"""
Logging configuration for the FreeSeat booking engine.
"""

import json
import logging
import logging.config
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import get_settings

APP_LOGGER = "freeseat_booking"
FILTERS = ["request_id", "sensitive_data"]

# Library loggers routed through our handlers, with the level each is held to
LIBRARY_LEVELS = {
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
    "sqlalchemy.engine": "WARNING",
    "redis": "WARNING",
    "celery": "INFO",
}

business_logger = logging.getLogger(f"{APP_LOGGER}.business")
security_logger = logging.getLogger(f"{APP_LOGGER}.security")


def _rotating_handler(filename: str, level: str, formatter: str, backups: int) -> Dict[str, Any]:
    Path(filename).parent.mkdir(parents=True, exist_ok=True)
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": formatter,
        "filename": filename,
        "maxBytes": 10 * 1024 * 1024,
        "backupCount": backups,
        "filters": list(FILTERS),
    }


def build_logging_config(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_json_logging: bool = False,
    environment: str = "development",
) -> Dict[str, Any]:
    """
    Build the dictConfig mapping for the engine, its web server and its libraries.

    Every handler carries the request-id and sensitive-data filters, so
    contact emails never reach a sink unmasked.
    """
    formatter = "json" if enable_json_logging else "detailed"
    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": formatter,
            "stream": sys.stdout,
            "filters": list(FILTERS),
        }
    }
    if log_file:
        handlers["file"] = _rotating_handler(log_file, log_level, formatter, backups=5)
    if environment == "production":
        error_file = log_file.replace(".log", "_errors.log") if log_file else "logs/errors.log"
        handlers["error_file"] = _rotating_handler(error_file, "ERROR", formatter, backups=10)

    shared = [name for name in handlers if name != "error_file"]
    loggers = {
        name: {"level": level, "handlers": list(shared), "propagate": False}
        for name, level in LIBRARY_LEVELS.items()
    }
    loggers[APP_LOGGER] = {"level": log_level, "handlers": list(handlers), "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d [%(request_id)s] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {"()": "freeseat_booking.utils.logging_config.JSONFormatter"},
        },
        "filters": {
            "request_id": {"()": "freeseat_booking.utils.logging_config.RequestIDFilter"},
            "sensitive_data": {"()": "freeseat_booking.utils.logging_config.SensitiveDataFilter"},
        },
        "handlers": handlers,
        "loggers": loggers,
        "root": {"level": log_level, "handlers": shared},
    }


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_json_logging: bool = False
) -> None:
    """Apply the logging configuration for the current environment."""
    config = build_logging_config(
        log_level, log_file, enable_json_logging, environment=get_settings().environment
    )
    logging.config.dictConfig(config)


class RequestIDFilter(logging.Filter):
    """Filter to add request ID to log records."""

    def filter(self, record):
        request_id = getattr(record, "request_id", None)

        if not request_id:
            try:
                from freeseat_booking.middleware.logging import request_id_var
                request_id = request_id_var.get()
            except (ImportError, LookupError):
                request_id = "no-request-id"

        record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Masks credentials, long tokens and email addresses before records are emitted."""

    SENSITIVE_KEYS = {
        "password", "token", "secret", "authorization",
        "cookie", "api_key", "smtp_password"
    }

    EMAIL_PATTERN = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")
    TOKEN_PATTERN = re.compile(r"\b[A-Za-z0-9]{32,}\b")

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._sanitize_string(record.msg)

        for key, value in list(record.__dict__.items()):
            if key in ("msg", "args"):
                continue
            if isinstance(value, (str, dict)):
                setattr(record, key, self._sanitize_data(value))

        return True

    def _sanitize_string(self, text: str) -> str:
        text = self.TOKEN_PATTERN.sub("***MASKED***", text)
        # Keep the first character and the domain; enough to debug delivery
        return self.EMAIL_PATTERN.sub(r"\1***@\2", text)

    def _sanitize_data(self, data):
        if isinstance(data, dict):
            return {
                key: "***MASKED***" if any(sensitive in key.lower() for sensitive in self.SENSITIVE_KEYS)
                else self._sanitize_data(value)
                for key, value in data.items()
            }
        elif isinstance(data, str):
            return self._sanitize_string(data)
        elif isinstance(data, (list, tuple)):
            return type(data)(self._sanitize_data(item) for item in data)
        return data


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    RESERVED_ATTRS = {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "lineno", "funcName", "created",
        "msecs", "relativeCreated", "thread", "threadName", "taskName",
        "processName", "process", "getMessage", "exc_info",
        "exc_text", "stack_info", "request_id"
    }

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "request_id"):
            log_entry["request_id"] = record.request_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in self.RESERVED_ATTRS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def log_business_event(event_type: str, details: Dict[str, Any], user_id: Optional[str] = None):
    """Log reservation, rejection and delivery events."""
    business_logger.info(
        f"Business event: {event_type}",
        extra={
            "event_type": event_type,
            "business_event": True,
            "user_id": user_id,
            "event_details": details,
        }
    )


def log_security_event(event_type: str, details: Dict[str, Any], severity: str = "WARNING"):
    """Log security-related events such as unauthenticated reservation attempts."""
    log_method = getattr(security_logger, severity.lower(), security_logger.warning)
    log_method(
        f"Security event: {event_type}",
        extra={
            "event_type": event_type,
            "security_event": True,
            "severity": severity,
            "event_details": details,
        }
    )
