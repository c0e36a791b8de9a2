"""
Utility functions for the application
"""

import sys
import time
import logging
import structlog
from structlog import contextvars as struct_context
from contextlib import contextmanager
from typing import Any, Dict, Iterator

import orjson

from .config import Settings

# LOG_LEVEL value -> (threshold, human readable console output)
_LOG_LEVELS = {
    "debug": (logging.DEBUG, True),
    "info": (logging.INFO, True),
    "false": (logging.CRITICAL, False),
}


def configure_structlog(settings: Settings) -> None:
    """Configure structlog from the process settings (called once per app)."""
    log_level, console = _LOG_LEVELS.get(settings.LOG_LEVEL, _LOG_LEVELS["info"])
    renderer = structlog.dev.ConsoleRenderer() if console else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            struct_context.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


_logger = structlog.get_logger()


def bind_request_context(**kwargs) -> None:
    """Bind structured log context for the current request; ``None`` values are skipped."""
    values = {key: value for key, value in kwargs.items() if value is not None}
    if values:
        struct_context.bind_contextvars(**values)


def reset_request_context(*keys: str) -> None:
    """Unbind ``keys``, or the whole request context when called without keys."""
    if not keys:
        struct_context.clear_contextvars()
        return
    struct_context.unbind_contextvars(*keys)


def _format(message: str, args: tuple) -> str:
    return message % args if args else message


def error_log(message: str, *args, **kwargs) -> None:
    """
    Error-level log, emitted at every level.

    Args:
        message: log message, %-style when ``args`` are given
        **kwargs: structured context fields
    """
    _logger.error(_format(message, args), **kwargs)


def warning_log(message: str, *args, **kwargs) -> None:
    _logger.warning(_format(message, args), **kwargs)


def info_log(message: str, *args, **kwargs) -> None:
    """Info-level log, emitted for ``info`` and ``debug``."""
    _logger.info(_format(message, args), **kwargs)


def debug_log(message: str, *args, **kwargs) -> None:
    """Debug-level log, emitted for ``debug`` only."""
    _logger.debug(_format(message, args), **kwargs)


def request_stage_log(stage: str, message: str, **kwargs) -> None:
    """
    Log a request pipeline transition at info level.

    Args:
        stage: stage identifier such as ``received`` or ``engine_request``
        message: short description for terminal readers
        **kwargs: extra structured fields; keep payload bodies out of here
    """
    stage_name = (stage or "unknown").strip().lower().replace(" ", "_")
    info_log(f"[REQUEST] {message}", stage=stage_name, **kwargs)


def verbose_log(enabled: bool, event: str, payload: Any) -> None:
    """Log a full JSON payload when verbose mode is on."""
    if not enabled:
        return
    try:
        serialized = orjson.dumps(payload).decode("utf-8")
    except TypeError as exc:
        warning_log("[VERBOSE] failed to serialize verbose payload", event=event, error=str(exc))
        return
    info_log("[VERBOSE] verbose emit", event=event, payload=serialized)


def get_logger(name: str = None):
    """Named structlog logger, or the module default when ``name`` is empty."""
    return structlog.get_logger(name) if name else _logger


@contextmanager
def perf_timer(operation_name: str) -> Iterator[Dict[str, float]]:
    """
    Time the enclosed block and log the result at debug level.

    Example:
        with perf_timer("engine_ttfb") as timer:
            response = await client.send(request, stream=True)
        timer["elapsed_ms"]
    """
    timing = {"elapsed_ms": 0.0}
    started = time.perf_counter()
    try:
        yield timing
    finally:
        timing["elapsed_ms"] = (time.perf_counter() - started) * 1000
        debug_log(f"[PERF] {operation_name}", elapsed_ms=f"{timing['elapsed_ms']:.2f}ms")
