"""Logging setup for applications and tests using fluenthttp.

fluenthttp itself only emits structlog events; calling ``setup_logging`` is
optional and meant for applications, scripts and the test-suite.
"""

import logging
import sys
from typing import Any

import structlog
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from fluenthttp.config.logging import LoggingSettings


# Custom theme for the logger
CUSTOM_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "critical": "bold white on red",
        "debug": "dim white",
        "timestamp": "dim cyan",
        "path": "dim blue",
    }
)


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def setup_logging(
    json_logs: bool = False,
    log_level_name: str = "INFO",
    console_width: int | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        json_logs: Render JSON lines instead of rich console output
        log_level_name: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        console_width: Optional console width override for rich output
    """
    level = getattr(logging, log_level_name.upper())

    renderer: Any
    if json_logs:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        renderer = structlog.processors.JSONRenderer()
    else:
        handler = RichHandler(
            console=Console(theme=CUSTOM_THEME, width=console_width, stderr=True),
            show_time=False,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    logging.basicConfig(level=level, handlers=[handler], force=True)

    # Quiet the transport's own loggers
    for logger_name in ["httpx", "httpcore"]:
        logging.getLogger(logger_name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def setup_logging_from_settings(settings: LoggingSettings) -> None:
    """Configure logging from ``LoggingSettings``.

    ``auto`` picks JSON when stderr is not a terminal.
    """
    json_logs = settings.format == "json" or (
        settings.format == "auto" and not sys.stderr.isatty()
    )
    setup_logging(json_logs=json_logs, log_level_name=settings.level)
