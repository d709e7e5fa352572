"""structlog setup for the onboarding backend.

Every log line, including stdlib ones from uvicorn and SQLAlchemy, goes
through the same processor chain: level, logger name, ISO timestamp, the
request's correlation id and the service name. Wizard payloads carry
personal data (names, job titles, company descriptions), so known payload
keys are replaced with their key list before rendering.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

SERVICE_NAME = "stratix-onboarding"

# Event keys whose values are user-entered wizard content
REDACTED_KEYS = frozenset({"form_data", "step_data", "partial_data", "token"})

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "anthropic", "httpx")


def add_correlation_id(logger, method, event_dict):
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def add_service(logger, method, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def redact_payloads(logger, method, event_dict):
    """Log only the shape of wizard payloads, never their values."""
    for key in REDACTED_KEYS.intersection(event_dict):
        value = event_dict[key]
        event_dict[key] = sorted(value) if isinstance(value, dict) else "[redacted]"
    return event_dict


def _processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        add_service,
        redact_payloads,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Route structlog and stdlib logging through one formatter.

    Must run before the rest of stratix is imported: module-level loggers
    cache the processor chain on first use.

    Args:
        log_level: Root level name
        json_logs: JSONRenderer when True, ConsoleRenderer for local runs
    """
    chain = _processors()
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
                "foreign_pre_chain": chain,
            },
        },
        "handlers": {
            "stdout": {"class": "logging.StreamHandler", "formatter": "structured", "stream": "ext://sys.stdout"},
        },
        "root": {"handlers": ["stdout"], "level": log_level},
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
    })

    structlog.configure(
        processors=chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
