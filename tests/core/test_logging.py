"""
Tests for the logging module.

Tests verify:
- JSON output carries the event name, level and bound fields
- DEBUG logs are suppressed at INFO level
- Settings supply the defaults when no arguments are given
"""

import json

import pytest

from certdispatch.core.logging import configure_logging, get_logger, is_configured


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    configure_logging(force=True)


def last_json_line(text: str) -> dict:
    lines = [line for line in text.splitlines() if line.startswith("{")]
    return json.loads(lines[-1])


class TestConfigureLogging:
    def test_marks_configured(self):
        configure_logging(force=True)
        assert is_configured()

    def test_json_output(self, capsys):
        configure_logging(level="INFO", format="json", force=True)
        get_logger("certdispatch.test.json").info("pending_jobs_added", selected=2, enqueued=2)

        record = last_json_line(capsys.readouterr().err)
        assert record["event"] == "pending_jobs_added"
        assert record["level"] == "info"
        assert record["selected"] == 2
        assert "timestamp" in record

    def test_debug_suppressed_at_info(self, capsys):
        configure_logging(level="INFO", format="json", force=True)
        get_logger("certdispatch.test.debug").debug("adding_request_job", certificate_id=1)
        assert "adding_request_job" not in capsys.readouterr().err

    def test_settings_defaults(self, capsys, monkeypatch):
        from certdispatch.core.settings import reset_settings

        monkeypatch.setenv("CERTDISPATCH_LOG_FORMAT", "json")
        monkeypatch.setenv("CERTDISPATCH_LOG_LEVEL", "DEBUG")
        reset_settings()
        configure_logging(force=True)
        get_logger("certdispatch.test.settings").debug("claim_attempted", certificate_id=3)

        record = last_json_line(capsys.readouterr().err)
        assert record["event"] == "claim_attempted"
        assert record["certificate_id"] == 3
