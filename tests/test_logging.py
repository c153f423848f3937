"""Tests for logging configuration."""

import io
import json
import logging

import pytest

from nahcloud.utils import JSONFormatter, setup_logging, timed_operation


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo root logger changes."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJSONFormatter:
    """Tests for JSON log output."""

    def _format(self, **extra):
        record = logging.LogRecord("nahcloud.test", logging.INFO, __file__, 1, "hello", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return json.loads(JSONFormatter().format(record))

    def test_basic_fields(self):
        """Test level, logger and message are present."""
        data = self._format()

        assert data["level"] == "INFO"
        assert data["logger"] == "nahcloud.test"
        assert data["message"] == "hello"
        assert "timestamp" in data

    def test_extra_fields_included(self):
        """Test structured extra fields are rendered."""
        data = self._format(method="GET", status_code=200)

        assert data["method"] == "GET"
        assert data["status_code"] == 200

    def test_secrets_redacted(self):
        """Test token-like keys are masked."""
        data = self._format(token="abc", Authorization="Bearer abc")

        assert data["token"] == "***"
        assert data["Authorization"] == "***"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_output(self):
        """Test JSON lines reach the stream."""
        stream = io.StringIO()
        setup_logging(level="DEBUG", json_format=True, stream=stream)

        logging.getLogger("nahcloud.tests").info("ping", extra={"endpoint": "/v1/projects"})

        line = json.loads(stream.getvalue().strip())
        assert line["message"] == "ping"
        assert line["logger"] == "nahcloud.tests"
        assert line["endpoint"] == "/v1/projects"

    def test_level_applied(self):
        """Test records below the level are dropped."""
        stream = io.StringIO()
        setup_logging(level="WARNING", stream=stream)

        logging.getLogger("nahcloud").info("quiet")

        assert stream.getvalue() == ""


class TestTimedOperation:
    """Tests for timed_operation."""

    def test_duration_recorded(self):
        """Test timer captures duration."""
        with timed_operation("noop") as timer:
            pass

        assert timer.duration_ms >= 0
        assert not timer.failed

    def test_failure_flagged(self, caplog):
        """Test exceptions mark the timer failed and propagate."""
        logger = logging.getLogger("nahcloud.tests.timing")
        caplog.set_level(logging.DEBUG, logger="nahcloud.tests.timing")

        with pytest.raises(RuntimeError):
            with timed_operation("boom", logger, kind="project") as timer:
                raise RuntimeError("boom")

        assert timer.failed
        assert "failed" in caplog.records[-1].getMessage()
        assert caplog.records[-1].kind == "project"
