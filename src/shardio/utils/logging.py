from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional, TextIO, cast

import structlog
from structlog.dev import ConsoleRenderer
from structlog.stdlib import BoundLogger
from structlog.types import Processor

SHARDIO_VERSION = "0.1.0"


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.strip().upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Invalid log level: {level}")
    return numeric


def configure_logging(
    level: str | int = "WARNING",
    json_output: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Route structlog events through stdlib logging to ``stream`` (stderr).

    Library modules only emit events; applications (the CLI) call this once.
    stdout is left to command output.
    """
    numeric_level = _coerce_level(level)
    renderer: Processor = (
        structlog.processors.JSONRenderer(sort_keys=True) if json_output else ConsoleRenderer(colors=False)
    )

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)
    )
    logging.basicConfig(level=numeric_level, handlers=[handler], force=True)
    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(max(numeric_level, logging.INFO))


def get_logger(name: str) -> BoundLogger:
    """
    Return a lazily configured structlog logger with service metadata bound.

    Module-level loggers are created at import time; they resolve the
    active configuration on first use, so configure_logging() may run later.
    """
    service_name = os.getenv("SHARDIO_SERVICE_NAME", "shardio")
    return cast(
        BoundLogger,
        structlog.get_logger(name, service_name=service_name, version=SHARDIO_VERSION),
    )


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind key/values (prefix, transform name) to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield
