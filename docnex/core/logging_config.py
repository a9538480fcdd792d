"""Logging setup for the API and the command-line tools.

``LOG_FORMAT=json`` writes one JSON object per line with the caller's
``extra`` fields at the top level and the current request id attached;
``LOG_FORMAT=text`` is meant for a terminal. Provider keys never reach
the output: every record passes through ``redact_secrets``.
"""

import contextvars
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "LiteLLM", "httpx")

_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({})))

_REDACTED = "***REDACTED***"
_KEY_PATTERNS = (
    re.compile(r"\bAIza[0-9A-Za-z_\-]{30,}"),
    re.compile(r"\bsk-[a-zA-Z0-9]{20,}\b"),
    re.compile(r"(?i)(bearer\s+)[a-zA-Z0-9._\-]{20,}"),
    re.compile(r"(?i)((?:api_key|key|secret|password|token|authorization)[=:]\s*)[^\s,&'\"]{8,}"),
)


def redact_secrets(text: str) -> str:
    for pattern in _KEY_PATTERNS:
        text = pattern.sub(lambda m: (m.group(1) if m.lastindex else "") + _REDACTED, text)
    return text


class RedactingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_secrets(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(redact_secrets(arg) if isinstance(arg, str) else arg for arg in record.args)
        if record.exc_text:
            record.exc_text = redact_secrets(record.exc_text)
        return True


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id
        entry.update(
            (name, value) for name, value in vars(record).items()
            if name not in _STANDARD_ATTRS and name not in entry
        )
        if record.exc_info:
            entry["exception"] = redact_secrets(self.formatException(record.exc_info))
        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Replace the root handlers with a single stdout handler.

    *log_level* defaults to INFO and *log_format* to ``"json"``.
    """
    level = (log_level or "INFO").upper()
    output = (log_format or "json").lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RedactingFilter())
    if output == "json":
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging configured", extra={"level": level, "format": output})
