"""Structured logging helpers with import correlation context.

Every record carries the current ``import_id`` and pipeline ``stage``.
``stage_scope`` also records how long each stage of the current import took,
so the import report can carry the same timings the log shows.
"""

from __future__ import annotations

import contextvars
import logging
import time
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)

UNSET = "-"

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | import_id=%(import_id)s | stage=%(stage)s | "
    "%(name)s | %(message)s"
)

_IMPORT_ID_VAR: contextvars.ContextVar[str] = contextvars.ContextVar(
    "import_id", default=UNSET
)
_STAGE_VAR: contextvars.ContextVar[str] = contextvars.ContextVar(
    "stage", default=UNSET
)
# Stage name -> elapsed seconds for the current import, in completion order.
_STAGE_DURATIONS_VAR: contextvars.ContextVar[Optional[Dict[str, float]]] = (
    contextvars.ContextVar("stage_durations", default=None)
)


class _ImportContextFilter(logging.Filter):
    """Stamp import_id and stage onto every record passing a root handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.import_id = _IMPORT_ID_VAR.get()
        record.stage = _STAGE_VAR.get()
        return True


def configure_structured_logging(level: int = logging.INFO, fmt: str = LOG_FORMAT) -> None:
    """Configure root logging with the import/stage format.

    Existing root handlers (pytest's capture handler, for one) are kept and
    re-formatted rather than replaced.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setFormatter(logging.Formatter(fmt))
    else:
        logging.basicConfig(level=level, format=fmt)

    for handler in root_logger.handlers:
        if not any(isinstance(f, _ImportContextFilter) for f in handler.filters):
            handler.addFilter(_ImportContextFilter())


def set_import_id(import_id: str | None = None) -> str:
    """Start a new import context and return its id (generated when omitted).

    Stage timings recorded for a previous import are discarded.
    """
    value = import_id or str(uuid.uuid4())
    _IMPORT_ID_VAR.set(value)
    _STAGE_DURATIONS_VAR.set({})
    return value


def get_import_id() -> str:
    return _IMPORT_ID_VAR.get()


def get_stage() -> str:
    return _STAGE_VAR.get()


def get_stage_durations() -> Dict[str, float]:
    """Seconds spent in each finished stage of the current import."""
    return dict(_STAGE_DURATIONS_VAR.get() or {})


@contextmanager
def stage_scope(stage: str) -> Iterator[None]:
    """Run a block as pipeline stage ``stage``.

    The stage is visible to log records inside the block. On exit, whether or
    not the body raised, the elapsed time is logged at debug level and added
    to the current import's stage durations.
    """
    token = _STAGE_VAR.set(stage)
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - started
        durations = _STAGE_DURATIONS_VAR.get()
        if durations is None:
            durations = {}
            _STAGE_DURATIONS_VAR.set(durations)
        durations[stage] = round(durations.get(stage, 0.0) + elapsed, 6)
        logger.debug("Stage %s finished in %.3fs", stage, elapsed)
        _STAGE_VAR.reset(token)
