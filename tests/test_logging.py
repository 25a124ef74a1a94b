"""
Test Logging Module
===================

Tests for logger naming, formatters and evaluation context.
"""

import json
import logging
import pytest
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.logging import (
    ContextFilter,
    JSONFormatter,
    ColoredFormatter,
    get_logger,
    set_log_context,
    clear_log_context,
)


def make_record(message="script log: hello"):
    return logging.LogRecord(
        name="sieve_vars.rules.engine",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )


@pytest.fixture(autouse=True)
def clean_context():
    clear_log_context()
    yield
    clear_log_context()


class TestGetLogger:
    """Tests for get_logger."""

    def test_prefix(self):
        assert get_logger("rules.engine").logger.name == "sieve_vars.rules.engine"

    def test_already_prefixed(self):
        assert get_logger("sieve_vars.main").logger.name == "sieve_vars.main"

    def test_extra(self):
        adapter = get_logger("main", component="cli")
        msg, kwargs = adapter.process("hi", {})
        assert kwargs["extra"] == {"component": "cli"}


class TestFormatters:
    """Tests for the JSON and colored formatters."""

    def test_json_formatter(self):
        data = json.loads(JSONFormatter().format(make_record("tag: おしらせ")))
        assert data["level"] == "INFO"
        assert data["logger"] == "sieve_vars.rules.engine"
        assert data["message"] == "tag: おしらせ"
        assert "data" not in data

    def test_context_in_json(self):
        set_log_context(account="joe@example.com", message_id="<1@host>")
        record = make_record()
        ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))
        assert data["data"] == {"account": "joe@example.com", "message_id": "<1@host>"}

    def test_context_in_console(self):
        set_log_context(account="joe@example.com")
        record = make_record()
        ContextFilter().filter(record)

        text = ColoredFormatter().format(record)
        assert "script log: hello" in text
        assert "[account=joe@example.com]" in text

    def test_clear_context(self):
        set_log_context(account="joe@example.com")
        clear_log_context()
        record = make_record()
        ContextFilter().filter(record)
        assert record.extra_data == {}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
