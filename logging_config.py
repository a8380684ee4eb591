"""
Centralized logging configuration for the WorkHub notification service.
Structured JSON logs in production, colourised lines in development, with
request/tenant/user context carried through context variables.
"""

import logging
import logging.handlers
import json
import os
from datetime import datetime, timezone
from contextvars import ContextVar

# --- Context Variables (populated by middleware per-request) ---
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
tenant_id_var: ContextVar[str] = ContextVar("tenant_id", default="-")
user_id_var: ContextVar[str] = ContextVar("user_id", default="-")

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "motor": logging.WARNING,
    "pymongo": logging.WARNING,
    "apscheduler": logging.WARNING,
}


def _context() -> dict:
    return {
        "request_id": request_id_var.get("-"),
        "tenant_id": tenant_id_var.get("-"),
        "user_id": user_id_var.get("-"),
    }


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON with context variables."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            **_context(),
            "message": record.getMessage(),
        }

        # logger.info("msg", extra={"data": {...}})
        if getattr(record, "data", None):
            log_entry["data"] = record.data

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """Colorized, human-readable formatter for local development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        ctx = _context()

        prefix = f"{color}{record.levelname:<7}{self.RESET}"
        context = f"[req={ctx['request_id']} tenant={ctx['tenant_id']} user={ctx['user_id']}]"
        msg = f"{prefix} {record.name} {context} {record.getMessage()}"

        if getattr(record, "data", None):
            msg += f"  | data={record.data}"

        if record.exc_info and record.exc_info[0] is not None:
            msg += f"\n{self.formatException(record.exc_info)}"

        return msg


def setup_logging():
    """Initialize logging for the application."""
    env = os.getenv("ENV", "development").lower()
    log_level = os.getenv("LOG_LEVEL", "DEBUG" if env == "development" else "INFO").upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers (avoids duplicates on reload)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JSONFormatter() if env == "production" else DevFormatter())
    root_logger.addHandler(console_handler)

    # Rotating JSON file, skipped under test runs
    log_file = None
    if env != "testing":
        log_dir = os.getenv("LOG_DIR", os.path.join(os.path.dirname(__file__), "logs"))
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, "notifications.log")

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    logging.getLogger("workhub").info(f"Logging initialized | env={env} level={log_level} file={log_file}")


def get_logger(name: str) -> logging.Logger:
    """Get a named logger under the workhub namespace."""
    return logging.getLogger(f"workhub.{name}")
