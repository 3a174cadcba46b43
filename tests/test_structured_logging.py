"""
Tests for structured logging.
"""

import json
import logging
import os
import unittest
from io import StringIO
from unittest.mock import patch

from edgehost.structured_logging import JSONFormatter, PassLogger, is_json_logging_enabled


class TestJSONFormatter(unittest.TestCase):
    def setUp(self):
        self.formatter = JSONFormatter()

    def _record(self, msg="Test message", **extra):
        record = logging.LogRecord(
            name="edgehost.test",
            level=logging.WARNING,
            pathname="/path/to/launcher.py",
            lineno=42,
            msg=msg,
            args=(),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_log_formatting(self):
        data = json.loads(self.formatter.format(self._record()))

        self.assertEqual(data["level"], "WARNING")
        self.assertEqual(data["logger"], "edgehost.test")
        self.assertEqual(data["message"], "Test message")
        self.assertEqual(data["file"], "launcher.py:42")
        self.assertIn("timestamp", data)

    def test_extras_are_emitted(self):
        record = self._record(app="myapp", payload="port is already allocated")
        data = json.loads(self.formatter.format(record))

        self.assertEqual(data["app"], "myapp")
        self.assertEqual(data["payload"], "port is already allocated")
        self.assertNotIn("args", data)

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            import sys

            record = self._record()
            record.exc_info = sys.exc_info()

        data = json.loads(self.formatter.format(record))
        self.assertIn("ValueError: boom", data["exception"])


class TestLoggingSwitches(unittest.TestCase):
    def test_json_disabled_by_default(self):
        with patch.dict(os.environ, {}, clear=True):
            self.assertFalse(is_json_logging_enabled())

    def test_json_enabled(self):
        with patch.dict(os.environ, {"EDGEHOST_LOG_FORMAT": "JSON"}):
            self.assertTrue(is_json_logging_enabled())


class TestPassLogger(unittest.TestCase):
    def test_records_carry_app(self):
        stream = StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JSONFormatter())
        base = logging.getLogger("edgehost.test.pass")
        base.addHandler(handler)
        base.setLevel(logging.INFO)
        base.propagate = False
        try:
            log = PassLogger(base, app="myapp")
            log.info("Defining proxy for the first time")
            log.info("Override", extra={"app": "other", "port": 8080})
        finally:
            base.removeHandler(handler)

        first, second = [json.loads(line) for line in stream.getvalue().splitlines()]
        self.assertEqual(first["app"], "myapp")
        self.assertEqual(second["app"], "other")
        self.assertEqual(second["port"], 8080)


if __name__ == "__main__":
    unittest.main()
