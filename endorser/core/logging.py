"""
Structured logging setup using structlog.
Provides consistent logging across all modules.
"""

import sys
import logging
from typing import Optional
from pathlib import Path

import structlog
from rich.console import Console
from rich.logging import RichHandler

from .config import settings


def _build_processors(json_output: bool) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def setup_logging(log_file: Optional[str] = None, service: str = "validator") -> None:
    """
    Configure structured logging for the validator process.

    Args:
        log_file: Optional path to log file, overrides LOG_FILE
        service: Name bound to every log line of this process
    """
    logging.getLogger().handlers.clear()

    json_output = settings.log_format == "json"

    structlog.configure(
        processors=_build_processors(json_output),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service)

    level = getattr(logging, settings.log_level)
    handlers = []

    # Rich console output while developing
    if settings.is_development and not json_output:
        console = Console(file=sys.stderr)
        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=True,
            rich_tracebacks=True,
        )
        rich_handler.setLevel(level)
        handlers.append(rich_handler)
    else:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setLevel(level)
        stream_handler.setFormatter(_plain_formatter(json_output))
        handlers.append(stream_handler)

    if log_file or settings.log_file:
        file_path = Path(log_file or settings.log_file)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(file_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(_plain_formatter(json_output))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def _plain_formatter(json_output: bool) -> logging.Formatter:
    if json_output:
        return logging.Formatter('%(message)s')
    return logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
