"""Structured logging for the HALCYON services.

Every record, whether it comes from structlog or from a stdlib logger such as
uvicorn's, goes through the same processor chain and renderer. The chain adds
the request's correlation ID and the service identity, and it scrubs
credentials and signed URL query strings before anything is written.
"""

import logging
import sys
from contextvars import ContextVar, Token
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from ..config import LoggingSettings

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"api_key", "authorization", "cookie", "csrf_token", "password", "secret", "token"})
SENSITIVE_SUFFIXES = ("_token", "_secret", "_api_key")

# Client libraries that log every HTTP exchange at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "azure.core.pipeline.policies.http_logging_policy")


def get_correlation_id() -> str | None:
    """Get the correlation ID of the current request or task."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current request or task."""
    _correlation_id_var.set(correlation_id)


def add_correlation_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


class ServiceInfo:
    """Processor that stamps events with the service name and version."""

    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", self.name)
        event_dict.setdefault("version", self.version)
        return event_dict


def strip_query(url: str) -> str:
    """Drop the query string and fragment of a URL, where SAS tokens live."""
    parts = urlsplit(url)
    if not parts.query and not parts.fragment:
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def _is_sensitive(key: str) -> bool:
    return key in SENSITIVE_KEYS or key.endswith(SENSITIVE_SUFFIXES)


def redact_sensitive_values(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential fields and strip query strings from ``*url`` fields."""
    for key, value in event_dict.items():
        lowered = key.lower()
        if _is_sensitive(lowered):
            event_dict[key] = REDACTED
        elif isinstance(value, str) and lowered.endswith("url"):
            event_dict[key] = strip_query(value)
    return event_dict


def build_processors(service_name: str, service_version: str) -> list[Processor]:
    """The processors shared by structlog and stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_correlation_id,
        ServiceInfo(service_name, service_version),
        redact_sensitive_values,
    ]


def configure_logging(
    settings: LoggingSettings | None = None,
    service_name: str = "halcyon-api",
    service_version: str = "0.1.0",
) -> None:
    """Route structlog and stdlib logging through one renderer on stdout.

    Args:
        settings: Level and output format. Defaults to ``LoggingSettings()``,
            which reads ``LOG_LEVEL`` and ``LOG_JSON_FORMAT``.
        service_name: Added to every record as ``service``.
        service_version: Added to every record as ``version``.
    """
    settings = settings or LoggingSettings()

    shared = build_processors(service_name, service_version)

    if settings.json_format:
        renderer: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=[
            *shared,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderer],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class LogContext:
    """Bind log context for the duration of a block.

    Leaving the block restores whatever the keys were bound to before, so
    contexts can nest:

        with LogContext(project_id=project_id):
            with LogContext(segment_id="episode-2"):
                logger.info("Segment started")
            logger.info("Batch finished")  # still has project_id
    """

    def __init__(self, **values: Any):
        self._values = values
        self._tokens: dict[str, Token[Any]] = {}

    def __enter__(self) -> "LogContext":
        self._tokens = dict(structlog.contextvars.bind_contextvars(**self._values))
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
        self._tokens = {}


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
