"""
Structured logging for the admissions service.

Every record goes through structlog's stdlib bridge so that our own loggers and
third-party ones (uvicorn, SQLAlchemy, the database drivers) share one handler
and one renderer. Records carry the service name and environment plus whatever
the request middleware bound (request_id, method, path), which is how an
admission transition, its post-commit notices and the HTTP request that caused
them are tied together.

LOG_FORMAT picks the renderer: "json", "console", or "auto" (JSON in
production, colored console elsewhere).
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.types import EventDict, WrappedLogger

from admissions.core.config import get_settings

# Loggers that are chatty at INFO and only interesting when something breaks
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "asyncpg": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "alembic.runtime.migration": logging.INFO,
}


def _service_context(service: str, environment: str):
    def add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_service


def _use_json(log_format: str, environment: str) -> bool:
    log_format = log_format.lower()
    if log_format == "auto":
        return environment == "production"
    return log_format == "json"


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Configure structlog and the root stdlib logger.

    `level` and `json_output` override LOG_LEVEL / LOG_FORMAT; tests use them
    to get machine-readable output regardless of the environment.
    """
    settings = get_settings()
    if json_output is None:
        json_output = _use_json(settings.LOG_FORMAT, settings.ENVIRONMENT)
    level_name = (level or settings.LOG_LEVEL).upper()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        _service_context(settings.APP_NAME, settings.ENVIRONMENT),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
        final_processors = [structlog.processors.format_exc_info, renderer]
    else:
        final_processors = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            # Records from plain stdlib loggers get the same context and timestamps
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final_processors],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
