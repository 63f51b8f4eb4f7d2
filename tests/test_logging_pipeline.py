"""Tests for structured logging pipeline utilities."""

from __future__ import annotations

import io
import json
import logging
from logging.handlers import QueueListener
from queue import Queue

import pytest

from carbon_offsets import logging_pipeline


def _detach(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


def test_configure_structured_logging_emits_json() -> None:
    """Configure structured logging and verify JSON payloads are emitted."""

    logger = logging.getLogger("carbon-offsets-test.json")
    buffer = io.StringIO()
    listener = logging_pipeline.configure_structured_logging(
        logger, surface="authority", trace_id="trace-123", stream=buffer
    )

    logger.info("Offset recorded", extra={"offset_id": "abc", "carbon_kg": 12.5})
    logging_pipeline.shutdown_listeners([listener])
    _detach(logger)

    payload = json.loads(buffer.getvalue().strip())
    assert payload["message"] == "Offset recorded"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "carbon-offsets-test.json"
    assert payload["surface"] == "authority"
    assert payload["trace_id"] == "trace-123"
    assert payload["context"] == {"offset_id": "abc", "carbon_kg": 12.5}


def test_configure_structured_logging_generates_trace_id() -> None:
    """When trace ID is omitted a random identifier should be emitted."""

    logger = logging.getLogger("carbon-offsets-test.auto-trace")
    buffer = io.StringIO()
    listener = logging_pipeline.configure_structured_logging(
        logger, surface="scan", stream=buffer
    )

    logger.warning("auto-trace")
    logging_pipeline.shutdown_listeners([listener])
    _detach(logger)

    payload = json.loads(buffer.getvalue())
    assert isinstance(payload["trace_id"], str)
    assert payload["trace_id"]
    assert payload["surface"] == "scan"


def test_exceptions_are_rendered() -> None:
    logger = logging.getLogger("carbon-offsets-test.exception")
    buffer = io.StringIO()
    listener = logging_pipeline.configure_structured_logging(
        logger, surface="display", stream=buffer
    )

    try:
        raise ValueError("bad payload")
    except ValueError:
        logger.exception("Reconcile failed")
    logging_pipeline.shutdown_listeners([listener])
    _detach(logger)

    payload = json.loads(buffer.getvalue())
    assert "ValueError: bad payload" in payload["exception"]


def test_full_queue_drops_records() -> None:
    """A full queue never blocks the caller."""

    record_queue: Queue[logging.LogRecord] = Queue(maxsize=1)
    handler = logging_pipeline.BoundedQueueHandler(record_queue)
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)

    handler.emit(record)
    handler.emit(record)

    assert record_queue.qsize() == 1


def test_shutdown_listeners_logs_failures(caplog: pytest.LogCaptureFixture) -> None:
    """Listener shutdown failures should emit warnings."""

    class _FailingListener(QueueListener):
        def __init__(self) -> None:
            super().__init__(Queue(), logging.StreamHandler())

        def stop(self) -> None:
            raise RuntimeError("stop failure")

    with caplog.at_level(logging.WARNING):
        logging_pipeline.shutdown_listeners([_FailingListener()])

    assert "Failed to stop logging listener" in caplog.text
