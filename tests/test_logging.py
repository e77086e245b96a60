"""Tests for structured logging helpers."""

from structlog.contextvars import bind_contextvars, clear_contextvars, get_contextvars
from structlog.testing import capture_logs

from linkshield.utils.logging import LoggingContextManager, get_structured_logger


def test_context_manager_binds_and_restores():
    clear_contextvars()
    bind_contextvars(request_id="r1")
    try:
        with LoggingContextManager(scan_id="abc123"):
            assert get_contextvars() == {"request_id": "r1", "scan_id": "abc123"}
        assert get_contextvars() == {"request_id": "r1"}
    finally:
        clear_contextvars()


def test_structured_logger_forwards_levels():
    logger = get_structured_logger("linkshield.tests")
    with capture_logs() as logs:
        logger.info("Scan started", total=3)
        logger.warning("Blocklist database unavailable, continuing scan")
        logger.error("Scan failed", error="boom")

    assert [(entry["event"], entry["log_level"]) for entry in logs] == [
        ("Scan started", "info"),
        ("Blocklist database unavailable, continuing scan", "warning"),
        ("Scan failed", "error"),
    ]
    assert logs[0]["total"] == 3
    assert logs[2]["error"] == "boom"
