"""
Central logging configuration for the analysis backend.

- LOG_LEVEL from env (default INFO).
- LOG_JSON=1 switches to single-line JSON records for log aggregators.
- Never log credentials: API keys arrive in headers and must not be passed
  into log messages. Anything shaped like a Google API key is masked by
  ApiKeyRedactionFilter before it reaches a handler.
"""
import json
import logging
import os
import re
import sys
from typing import Any, Dict

NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "google_genai", "google_genai.models")

# LogRecord attributes that are not user-supplied `extra=` fields
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_GOOGLE_KEY_RE = re.compile(r"AIza[0-9A-Za-z_\-]{20,}")
REDACTED = "AIza***"


class ApiKeyRedactionFilter(logging.Filter):
    """Mask Google API keys in the rendered message (provider errors echo them)."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if _GOOGLE_KEY_RE.search(message):
            record.msg = _GOOGLE_KEY_RE.sub(REDACTED, message)
            record.args = None
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and key not in payload and value is not None:
                payload[key] = value
        if record.exc_info and record.exc_info[0]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging() -> None:
    level_name = (os.getenv("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    use_json = os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes")

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ApiKeyRedactionFilter())
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
