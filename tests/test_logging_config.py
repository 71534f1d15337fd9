"""
Tests for log formatters.
"""

from __future__ import annotations

import json
import logging

from polyglot.logging_config import HumanFormatter, JSONFormatter


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("polyglot.mirror.reconciler", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record("synced")))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "polyglot.mirror.reconciler"
        assert entry["message"] == "synced"
        assert "mirror_id" not in entry

    def test_mirror_and_alternative_ids(self):
        entry = json.loads(JSONFormatter().format(_record("synced", mirror_id="m1", alternative_id="alt-pt")))
        assert entry["mirror_id"] == "m1"
        assert entry["alternative_id"] == "alt-pt"


class TestHumanFormatter:

    def test_short_logger_name(self):
        line = HumanFormatter().format(_record("synced"))
        assert "[reconciler" in line
        assert line.endswith("synced")
