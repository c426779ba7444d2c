"""Gateway logging.

Production and staging emit one JSON object per line; development gets a
single readable line per record with any ``extra=`` fields appended.
"""

import json
import logging
import logging.config
from datetime import UTC, datetime
from typing import Any

from bedrock_gateway.config import Environment, get_settings

SERVICE_NAME = "bedrock-gateway"

# Attributes present on every LogRecord; anything else came from `extra=`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

# Client libraries that log every request at INFO/DEBUG.
_CLIENT_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "botocore", "asyncpg")

_SECRET_MARKERS = ("secret", "token", "password", "api_key", "authorization")
_REDACTED = "***"


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Fields attached with ``extra=``, secret-looking keys masked."""
    fields = {}
    for key, value in vars(record).items():
        if key in _RESERVED_ATTRS or key.startswith("_"):
            continue
        if any(marker in key.lower() for marker in _SECRET_MARKERS):
            value = _REDACTED
        fields[key] = value
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON document per record, tagged with service and environment."""

    def __init__(self, environment: str | None = None) -> None:
        super().__init__()
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
            "file": f"{record.pathname}:{record.lineno}",
        }
        if self.environment:
            entry["environment"] = self.environment

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        extra = _extra_fields(record)
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str, ensure_ascii=False)


class DevFormatter(logging.Formatter):
    """Readable single-line format; extras follow as ``key=value``."""

    FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
    DATE_FORMAT = "%H:%M:%S"

    def __init__(self) -> None:
        super().__init__(fmt=self.FORMAT, datefmt=self.DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = _extra_fields(record)
        if not extra:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in sorted(extra.items()))
        # Tracebacks stay on the lines after the message.
        first, sep, rest = line.partition("\n")
        return f"{first} | {pairs}{sep}{rest}"


def setup_logging(
    level: str | None = None,
    json_output: bool | None = None,
) -> logging.Logger:
    """Install the gateway's stdout handler on the root logger.

    Args:
        level: Log level name; settings.log_level when omitted.
        json_output: JSON lines; defaults to every environment but development.

    Returns:
        The root logger.
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    if not isinstance(logging.getLevelName(level_name), int):
        level_name = "INFO"
    if json_output is None:
        json_output = settings.environment != Environment.DEVELOPMENT

    formatter: dict[str, Any] = (
        {"()": JSONFormatter, "environment": settings.environment.value}
        if json_output
        else {"()": DevFormatter}
    )
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"gateway": formatter},
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "gateway",
                    "level": level_name,
                }
            },
            "root": {"handlers": ["stdout"], "level": level_name},
            "loggers": {name: {"level": "WARNING"} for name in _CLIENT_LOGGERS},
        }
    )
    return logging.getLogger()


def get_logger(name: str) -> logging.Logger:
    """Module logger; call as ``get_logger(__name__)``."""
    return logging.getLogger(name)
