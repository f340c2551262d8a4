__all__ = ['init_loguru']

import logging
import sys
from collections.abc import Iterable
from types import FrameType
from typing import TYPE_CHECKING, TypedDict, Unpack

from loguru import logger

if TYPE_CHECKING:
    from loguru import FilterDict, FilterFunction

_DEFAULT_FMT = (
    '<green>{time:HH:mm:ss.SSS}</green>'
    ' | '
    '<level>{level: <8}</level>'
    ' | '
    '<cyan>{name}</cyan>:<cyan>{line}</cyan>'
    ' | '
    '<level>{message}</level>'
)

# `asyncio` reports futures rejected without anyone to retrieve the error
_OWN_LOGGERS = ('obsfuture', 'asyncio')


class _LoggerAddKwds(TypedDict, total=False):
    colorize: bool | None
    serialize: bool
    backtrace: bool
    diagnose: bool
    filter: 'str | FilterFunction | FilterDict'


def init_loguru(
    level: str = 'WARNING',
    *,
    names: Iterable[str] = (),
    fmt: str = _DEFAULT_FMT,
    **logger_add_kwargs: Unpack[_LoggerAddKwds],
) -> None:
    """
    Send `logging` and `warnings` of obsfuture to loguru.

    Does:
    - remap root `logging.Logger` to `loguru` calls
    - remap all warnings (i.e. re-runs of cold producers) to `logger.warning`
    - intercept `obsfuture` and `asyncio` loggers, and ones from `names`.
    """
    logging.basicConfig(
        level=level,
        handlers=[_InterceptHandler()],
        force=True,
    )
    logging.captureWarnings(True)

    logger.remove()
    logger.add(sys.stderr, level=level, format=fmt, **logger_add_kwargs)

    for name in ('', *_OWN_LOGGERS, *names):
        log = logging.getLogger(name)
        log.handlers = [_InterceptHandler(level=level)]
        log.propagate = False


def _loguru_level(record: logging.LogRecord) -> str | int:
    try:
        return logger.level(record.levelname).name
    except ValueError:  # Custom level, unknown to loguru
        return record.levelno


def _caller_depth() -> int:
    """Count frames from `emit` up to whoever called the `logging` API"""
    frame: FrameType | None = sys._getframe(2)
    depth = 1
    while frame and frame.f_code.co_filename == logging.__file__:
        frame = frame.f_back
        depth += 1
    return depth


class _InterceptHandler(logging.Handler):
    """Re-emits `logging` records via loguru, keeping caller location"""

    def emit(self, record: logging.LogRecord) -> None:
        opt = logger.opt(exception=record.exc_info, depth=_caller_depth())
        opt.log(_loguru_level(record), record.getMessage())
