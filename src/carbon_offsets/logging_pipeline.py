"""Structured JSON logging for the scanning, authority and display surfaces."""

from __future__ import annotations

import copy
import json
import logging
import logging.handlers
from datetime import datetime, timezone
from queue import Full, Queue
from typing import IO, Iterable, override
from uuid import uuid4

LOGGER = logging.getLogger(__name__)

__all__ = [
    "BoundedQueueHandler",
    "JsonFormatter",
    "configure_structured_logging",
    "shutdown_listeners",
]

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON documents.

    Keys passed through ``extra`` are collected under ``context``. The
    ``surface`` names the process emitting the record (``scan``,
    ``authority``, ``display`` or ``cli``).
    """

    def __init__(self, *, surface: str, default_trace_id: str | None = None) -> None:
        super().__init__()
        self._surface = surface
        self._default_trace_id = default_trace_id

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES and key != "trace_id"
        }
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "surface": self._surface,
            "trace_id": getattr(record, "trace_id", None) or self._default_trace_id,
            "context": context,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exception"] = record.exc_text
        return json.dumps(payload, default=str)


class BoundedQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that drops records instead of blocking when full."""

    @override
    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except Full:
            self.handleError(record)

    @override
    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # Keep the traceback out of ``msg`` so the formatter can emit it under
        # its own key.
        prepared = copy.copy(record)
        prepared.message = record.getMessage()
        prepared.msg = prepared.message
        prepared.args = None
        if record.exc_info:
            prepared.exc_text = logging.Formatter().formatException(record.exc_info)
        prepared.exc_info = None
        prepared.stack_info = None
        return prepared

    @override
    def handleError(self, record: logging.LogRecord) -> None:
        return


def configure_structured_logging(
    logger: logging.Logger,
    *,
    surface: str,
    trace_id: str | None = None,
    level: int = logging.INFO,
    stream: IO[str] | None = None,
    queue_size: int = 1024,
) -> logging.handlers.QueueListener:
    """Attach queued JSON output to ``logger``.

    Args:
        logger: Target logger, usually the ``carbon_offsets`` package logger.
        surface: Name of the emitting surface recorded on every line.
        trace_id: Static trace identifier; a random one is generated when
            omitted.
        level: Logging verbosity level.
        stream: Destination stream, ``sys.stderr`` by default.
        queue_size: Records buffered before new ones are dropped.

    Returns:
        The started queue listener; pass it to :func:`shutdown_listeners`.
    """

    logger.setLevel(level)

    record_queue: Queue[logging.LogRecord] = Queue(maxsize=queue_size)
    logger.addHandler(BoundedQueueHandler(record_queue))

    stream_handler = logging.StreamHandler(stream)
    stream_handler.setFormatter(
        JsonFormatter(surface=surface, default_trace_id=trace_id or str(uuid4()))
    )

    listener = logging.handlers.QueueListener(record_queue, stream_handler)
    listener.start()
    return listener


def shutdown_listeners(listeners: Iterable[logging.handlers.QueueListener]) -> None:
    """Stop all queue listeners while suppressing shutdown errors."""
    for listener in listeners:
        try:
            listener.stop()
        except Exception as exc:  # pragma: no cover - listener stop failure
            LOGGER.warning("Failed to stop logging listener", exc_info=exc)
