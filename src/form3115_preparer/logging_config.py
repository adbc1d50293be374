"""structlog setup for Form 3115 Preparer.

Development gets a readable console stream, production one JSON object per
line. Two context helpers tag events with where they came from:

- ``request_context`` binds the API request id, caller and route.
- ``filing_context`` binds the filing being saved or rendered, so a
  filing's trail can be followed across services.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import UUID

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from form3115_preparer.config import Settings, get_settings

# pypdf reports every recoverable structural quirk of the IRS template
QUIET_LOGGERS = ("pypdf", "httpx", "httpcore", "uvicorn.access")


def _app_context(settings: Settings) -> Processor:
    def add_app_context(
        logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("app", settings.app_name)
        event_dict.setdefault("version", settings.app_version)
        event_dict.setdefault("environment", settings.environment.value)
        return event_dict

    return add_app_context


def build_processors(settings: Settings) -> list[Processor]:
    """Processor chain for the configured log format."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.log_format == "json":
        processors += [
            _app_context(settings),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(settings: Settings | None = None) -> None:
    """Route structlog through stdlib logging at the configured level.

    Called once by the API lifespan. Replaces any handlers installed earlier.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.value)

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
    logging.basicConfig(format="%(message)s", level=level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Module logger; events are snake_case with keyword context.

    Example:
        logger = get_logger(__name__)
        logger.info("part_saved", part="part-iv", completion=100)
    """
    return structlog.stdlib.get_logger(name)


@contextmanager
def request_context(
    request_id: str, owner_id: str, method: str, path: str
) -> Iterator[None]:
    """Bind one API request's identifiers for the duration of the request.

    Context left over from an earlier request on the same worker is
    discarded first.
    """
    structlog.contextvars.clear_contextvars()
    with structlog.contextvars.bound_contextvars(
        request_id=request_id, owner_id=owner_id, method=method, path=path
    ):
        yield


@contextmanager
def filing_context(filing_id: UUID, **extra: Any) -> Iterator[None]:
    """Tag every event inside the block with the filing it concerns.

    Extra keyword values (``part``, ``tax_year``) are bound alongside when
    they are not None. Previous values are restored on exit.
    """
    values = {"filing_id": str(filing_id)}
    values.update({key: value for key, value in extra.items() if value is not None})
    with structlog.contextvars.bound_contextvars(**values):
        yield
