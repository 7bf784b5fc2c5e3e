"""
Structured Logging

JSON log lines for the MedEase API, one object per line, so the output can be
shipped to ELK/Filebeat unchanged.

    from structured_logging import get_logger, LogContext

    logger = get_logger(__name__)
    with LogContext(request_id="abc123"):
        logger.info("Doctor updated", extra={"doctor_id": 7})

Besides the logger factory the module owns the event vocabulary of the clinic:
HTTP requests, security events, booking decisions, appointment changes and
account events each have one helper, so every module logs them the same way.

Settings come from config.py: LOG_LEVEL, LOG_FORMAT ("json" | "text"),
LOG_OUTPUT ("stdout" | "file" | "all") and LOG_FILE.
"""

import json
import logging
import logging.handlers
import socket
import sys
import uuid
from contextvars import ContextVar
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict

from config import LOG_LEVEL, LOG_FORMAT, LOG_OUTPUT, LOG_FILE

SERVICE_NAME = "medease-api"

_log_context: ContextVar[Dict[str, Any]] = ContextVar("medease_log_context", default={})

# Anything on a record that a blank LogRecord lacks came in through `extra`
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

class LogContext:
    """Fields attached to every log line emitted inside the `with` block."""

    def __init__(self, **fields):
        self.fields = fields
        self._token = None

    def __enter__(self):
        self._token = _log_context.set({**_log_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)
        return False


def set_context(**fields):
    """Add fields for the rest of the current request."""
    _log_context.set({**_log_context.get(), **fields})


# =============================================================================
# FORMATTER
# =============================================================================

class JSONFormatter(logging.Formatter):
    """Render a record as one JSON object; credentials in extras are masked."""

    TOP_LEVEL_CONTEXT = ("request_id", "correlation_id", "user_id")
    MASK = "***MASKED***"
    SENSITIVE_MARKERS = ("password", "token", "secret", "authorization", "api_key")

    def __init__(self, service_name: str = SERVICE_NAME):
        super().__init__()
        self.service_name = service_name
        self.hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        context = _log_context.get()
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "host": self.hostname,
        }
        entry.update({k: context[k] for k in self.TOP_LEVEL_CONTEXT if k in context})

        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in context.items() if k not in entry}
        for key, value in vars(record).items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                extra[key] = value
        if extra:
            entry["extra"] = {
                key: self.MASK if self._is_sensitive(key) else _jsonable(value)
                for key, value in extra.items()
            }

        return json.dumps(entry, default=str, ensure_ascii=False)

    def _is_sensitive(self, key: str) -> bool:
        key = key.lower()
        return any(marker in key for marker in self.SENSITIVE_MARKERS)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    return value


# =============================================================================
# SETUP
# =============================================================================

_configured = False


def configure_logging(level: str = None, fmt: str = None, output: str = None, log_file: str = None):
    """Install handlers on the root logger. Called lazily by get_logger."""
    global _configured

    level = (level or LOG_LEVEL).upper()
    fmt = (fmt or LOG_FORMAT).lower()
    output = (output or LOG_OUTPUT).lower()
    log_file = log_file or LOG_FILE

    if fmt == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    handlers = []
    targets = {target.strip() for target in output.split(",")}
    if targets & {"stdout", "all"}:
        handlers.append(logging.StreamHandler(sys.stdout))
    if targets & {"file", "all"}:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level, logging.INFO))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    _configured = True


def get_logger(name: str = "medease") -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


# =============================================================================
# EVENT HELPERS
# =============================================================================

def log_request(method: str, path: str, status_code: int, duration_ms: float, **fields):
    """One line per HTTP request; level follows the status class."""
    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO
    get_logger("http").log(level, f"{method} {path} -> {status_code}", extra={
        "http_status": status_code,
        "duration_ms": round(duration_ms, 2),
        **fields,
    })


def log_security_event(event_type: str, severity: str, user_id: int = None, details: str = None, **fields):
    """Failed sign-ins, bad tokens, permission denials and the like."""
    level = {"high": logging.ERROR, "critical": logging.ERROR, "medium": logging.WARNING}.get(severity, logging.INFO)
    get_logger("security").log(level, f"Security event: {event_type}", extra={
        "security_event": event_type,
        "severity": severity,
        "subject_user_id": user_id,
        "details": details,
        **fields,
    })


# Rejections that point at a bad request rather than a busy calendar
_BOOKING_WARNINGS = {"patient_not_found", "doctor_not_found", "slot_taken_at_commit"}


def log_booking_decision(outcome: str, patient_id: int, doctor_id: int, appointment_date: datetime, **fields):
    """
    Record how a booking request ended.

    `outcome` is "booked" or the rejection reason: patient_not_found,
    doctor_not_found, doctor_unavailable, slot_conflict, slot_taken_at_commit.
    """
    if outcome == "booked":
        level, message = logging.INFO, "Appointment booked"
    else:
        level = logging.WARNING if outcome in _BOOKING_WARNINGS else logging.INFO
        message = f"Booking rejected: {outcome.replace('_', ' ')}"
    get_logger("booking").log(level, message, extra={
        "booking_outcome": outcome,
        "patient_id": patient_id,
        "doctor_id": doctor_id,
        "appointment_date": appointment_date,
        **fields,
    })


def log_appointment_change(change: str, appointment_id: int, **fields):
    """Status overwrites and cancellations of an existing appointment."""
    get_logger("booking").info(f"Appointment {change}", extra={
        "appointment_id": appointment_id,
        "appointment_change": change,
        **fields,
    })


def log_account_event(event: str, account_id: int = None, **fields):
    """Successful account actions: registered, signed_in, password_changed, token_refreshed, logged_out."""
    get_logger("accounts").info(f"Account {event.replace('_', ' ')}", extra={
        "account_event": event,
        "account_id": account_id,
        **fields,
    })
