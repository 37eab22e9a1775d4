"""
Structured logging for workers and the CLI, built on structlog.

Production renders one JSON object per line; development renders colored
console output. The job runner binds job_id, job, queue and record_id, and
handlers add tenant_id and site_id once their record is loaded, so every
line a job emits can be filtered by tenant.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from curator.config.settings import Settings, get_settings

# HTTP and SDK loggers that drown out pipeline events at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "openai")


def drop_unset_context(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    """Drop keys bound as None (record_id on sweeps, tenant before a record loads)."""
    return {key: value for key, value in event_dict.items() if value is not None}


def _renderers(settings: Settings) -> list[Processor]:
    json_logs = settings.log_json if settings.log_json is not None else settings.is_production
    if json_logs:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    The CLI calls this once before any command runs. Library modules that
    log through ``logging.getLogger`` share the same root handler.

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Entry enriched", entry_id=42)
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            drop_unset_context,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            *_renderers(settings),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=settings.log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Bind fields to every log line emitted from the current task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
