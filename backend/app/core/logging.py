"""Structured logging for the Oracle backend.

structlog renders every event (ours and stdlib ones from uvicorn, SQLAlchemy,
anthropic) through one ProcessorFormatter: JSON lines in production,
coloured console output in debug. Each event carries the request's
correlation id and the service/environment it came from.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "sqlalchemy.engine", "anthropic")


def add_correlation_id(logger, method, event_dict):
    """Copy the X-Request-ID of the current request onto the event."""
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def service_context(service: str, environment: str):
    """Processor stamping service and environment, without clobbering explicit values."""

    def _add(logger, method, event_dict):
        event_dict.setdefault("service", service)
        event_dict.setdefault("environment", environment)
        return event_dict

    return _add


def _pre_chain(service: str, environment: str) -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        service_context(service, environment),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _formatter(renderer, pre_chain: list) -> dict:
    return {
        "()": structlog.stdlib.ProcessorFormatter,
        "foreign_pre_chain": pre_chain,
        "processors": [structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    }


def configure_structlog(
    log_level: str = "INFO",
    json_logs: bool = True,
    service: str = "oracle-backend",
    environment: str = "development",
) -> None:
    """Install the structlog pipeline and bridge stdlib logging into it.

    structlog caches processor chains on first use, so call this before any
    module logs (app.main does it ahead of its other imports).
    """
    pre_chain = _pre_chain(service, environment)
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"oracle": _formatter(renderer, pre_chain)},
        "handlers": {
            "stdout": {"class": "logging.StreamHandler", "formatter": "oracle", "stream": "ext://sys.stdout"},
        },
        "root": {"handlers": ["stdout"], "level": log_level},
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
    })

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
