# trip_dates/logging_config.py
"""
structlog setup for the service.

Call `configure_logging()` once at startup (the FastAPI lifespan does this).
Modules then use:

    import structlog
    log = structlog.get_logger(__name__)
    log.info("window_created", trip_id=1, window_id=7)
"""
import logging
from typing import Optional

import structlog
from structlog.typing import Processor

from trip_dates.config import get_settings


def _resolve_level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog processors.

    JSON lines when LOG_JSON is set (production), colored console otherwise.
    """
    settings = get_settings()
    level_name = level or settings.LOG_LEVEL
    use_json = settings.LOG_JSON if json_output is None else json_output

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if use_json:
        final_processor: Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level_name)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
