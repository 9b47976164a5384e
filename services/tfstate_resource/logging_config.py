"""
Centralized logging configuration for the tfstate resource.

Configures structlog for JSON output in pipelines and console output locally.
Logs always go to stderr: stdout is reserved for the JSON response. Values of
credential-bearing keys are masked before rendering.
"""

import logging
import sys
from datetime import UTC, datetime
from typing import Any

import structlog
from structlog.types import EventDict, Processor

APP_NAME = "tfstate-resource"

REDACTED = "***"

# Event keys whose values must never reach a build log.
SECRET_KEYS = frozenset(
    {
        "token",
        "secret_access_key",
        "session_token",
        "account_key",
        "security_token",
        "secret_key",
    }
)

NOISY_LOGGERS = (
    "urllib3",
    "httpx",
    "httpcore",
    "asyncio",
    "botocore",
    "aiobotocore",
    "azure",
)


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["app"] = APP_NAME
    return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential values, including inside nested dicts."""
    return _redact(event_dict)


def _redact(values: dict) -> dict:
    for key, value in values.items():
        if key in SECRET_KEYS and value:
            values[key] = REDACTED
        elif isinstance(value, dict):
            values[key] = _redact(dict(value))
    return values


def level_and_time_first(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Put level and timestamp at the front of JSON lines."""
    head = {k: event_dict.pop(k) for k in ("level", "timestamp") if k in event_dict}
    return {**head, **event_dict}


def utc_timestamper(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Millisecond ISO8601 UTC timestamp."""
    now = datetime.now(UTC)
    event_dict["timestamp"] = now.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return event_dict


def configure_logging(json_logs: bool = True, log_level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one stderr handler."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        utc_timestamper,
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        redact_secrets,
    ]

    renderer: Processor
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
        final_processors = [level_and_time_first, renderer]
    else:
        # Build logs are plain text; no ANSI colors.
        renderer = structlog.dev.ConsoleRenderer(colors=False)
        final_processors = [renderer]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final_processors],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_command(command: str) -> None:
    """Tag every log line of this process with the resource command."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
