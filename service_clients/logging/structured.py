import json
import logging
from datetime import UTC, datetime

from service_clients.security.pii_detector import redact_phi

_EXTRA_FIELDS = ("service", "request_id", "correlation_id", "attempt", "circuit_state")


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs JSON strings for structured logging systems (ELK, Datadog, etc.)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process_id": record.process,
            "thread_id": record.thread,
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        # Add extra fields if passed via 'extra'
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                value = getattr(record, name)
                log_obj[name] = value.value if hasattr(value, "value") else value

        return json.dumps(log_obj, default=str)


class PHIRedactionFilter(logging.Filter):
    """
    Redacts PHI from the rendered message and drops the raw args.

    Attached to handlers, not loggers, so records from third-party
    libraries are scrubbed too.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_phi(message, max_length=4000)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_structured_logging(service_name: str, level: str = "INFO") -> logging.Handler:
    """
    Configure the root logger to use JSON formatting with PHI redaction

    Returns the installed handler.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    handler.addFilter(PHIRedactionFilter())
    handler.addFilter(_ServiceNameFilter(service_name))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Replace existing handlers to avoid duplicates
    if root_logger.handlers:
        root_logger.handlers = []

    root_logger.addHandler(handler)
    return handler


class _ServiceNameFilter(logging.Filter):
    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "service"):
            record.service = self.service_name
        return True
