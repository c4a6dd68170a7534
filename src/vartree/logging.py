"""Logging utilities for vartree.

The package logs through loguru and is silent by default: ``vartree/__init__``
calls ``logger.disable("vartree")``.  Use :func:`enable_logging` to route
vartree records to stderr, either as a context manager or through the
returned handle::

    with enable_logging(level="DEBUG"):
        VarianceTreeRegressor().fit(X, y)
"""
from __future__ import annotations

import contextlib
import sys
import threading
from typing import TYPE_CHECKING, ClassVar, Literal, Optional

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME = __name__.split(".")[0]

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {function} - {message} {extra}"


class LoggingHandle:
    """Owns one loguru handler added by :func:`enable_logging`.

    When the last active handle is disabled the ``vartree`` logger is
    disabled again.
    """

    _active_ids: ClassVar[set] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        self.handler_id: Optional[int] = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove this handle's handler. Calling it twice is a no-op."""
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        with cls._lock:
            return len(cls._active_ids)


def _package_filter(record: Record) -> bool:
    name = record["name"] or ""
    return name == PACKAGE_NAME or name.startswith(PACKAGE_NAME + ".")


def enable_logging(*, level: LogLevel = "INFO") -> LoggingHandle:
    """
    Send vartree log records at ``level`` or above to stderr.

    Parameters
    ----------
    level : str, default="INFO"
        Minimum level.  ``"INFO"`` reports one summary line per ``fit``;
        ``"DEBUG"`` also reports every chosen split and every leaf with the
        reason the builder stopped.

    Returns
    -------
    LoggingHandle
        Handle whose ``disable()`` (or context-manager exit) removes the handler.
    """
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(sys.stderr, level=level, format=_FORMAT, filter=_package_filter)
    return LoggingHandle(handler_id)
