"""Structured Logging — JSON lines with known extra fields."""

import json
import logging

from meethalf.infrastructure.observability import JSONFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "meethalf.test", logging.WARNING, __file__, 1, "poke %s", ("sent",), None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_core_fields():
    log = json.loads(JSONFormatter().format(_record()))
    assert log["level"] == "WARNING"
    assert log["logger"] == "meethalf.test"
    assert log["message"] == "poke sent"
    assert "timestamp" in log


def test_surfaces_known_extras_only():
    log = json.loads(JSONFormatter().format(
        _record(event_id=7, member_id=3, unrelated="x"),
    ))
    assert log["event_id"] == 7
    assert log["member_id"] == 3
    assert "unrelated" not in log


def test_setup_logging_replaces_its_handler():
    setup_logging("DEBUG", "text")
    count = len(logging.root.handlers)
    setup_logging("INFO", "json")
    assert len(logging.root.handlers) == count
    assert logging.root.level == logging.INFO
    assert isinstance(logging.root.handlers[-1].formatter, JSONFormatter)
