"""
Structured logging for the aggregation engine and the prefetch worker.
Uses structlog on top of the stdlib logging tree so library records
(httpx, redis) pass through the same renderer.

Provider credentials travel in query strings for some APIs, so every event is
passed through `redact_secrets` before rendering.
"""
from __future__ import annotations

import logging
import re
import sys
from typing import Any, MutableMapping

import structlog
from shared.config import Environment, get_settings

_SECRET_PARAM = re.compile(
    r"(?i)\b(api_token|api_key|apikey|access_token|token|key)=([^&\s\"']+)"
)
_SECRET_FIELDS = frozenset({"api_token", "api_key", "auth_token", "password", "x-auth-token"})
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "redis")


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credential-looking query parameters and fields."""
    for field, value in list(event_dict.items()):
        if field.lower() in _SECRET_FIELDS and value:
            event_dict[field] = "***"
        elif isinstance(value, str) and "=" in value:
            event_dict[field] = _SECRET_PARAM.sub(r"\1=***", value)
    return event_dict


def _renderer(json_logs: bool) -> structlog.types.Processor:
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(service_name: str, extra_context: dict[str, Any] | None = None) -> None:
    """
    Configure structured logging for a process.

    Args:
        service_name: The process identifier (aggregator, prefetch).
        extra_context: Additional static context fields bound to every log entry.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    json_logs = settings.log_json if settings.log_json is not None else settings.environment != Environment.DEV

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        redact_secrets,
    ]
    if json_logs:
        shared_processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(json_logs),
        ],
        foreign_pre_chain=shared_processors,
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    bound: dict[str, Any] = {"service": service_name, "environment": settings.environment.value}
    if settings.instance_id:
        bound["instance_id"] = settings.instance_id
    if extra_context:
        bound.update(extra_context)
    structlog.contextvars.bind_contextvars(**bound)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
