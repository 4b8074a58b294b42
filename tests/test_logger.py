"""
Tests for FreezeEventLogger and configure_logging.
"""

import json
import logging
from io import StringIO

import pytest

from freezeray.logger import FreezeEventLogger, configure_logging


@pytest.fixture
def captured_logs():
    """Capture log output for testing."""
    return StringIO()


@pytest.fixture
def events(captured_logs):
    """An event logger whose output lands in captured_logs as JSON."""
    configure_logging(level="info", fmt="json", stream=captured_logs)
    return FreezeEventLogger(project="MyApp", service_name="test-service")


def log_lines(captured_logs) -> list:
    captured_logs.seek(0)
    return [json.loads(line) for line in captured_logs.read().splitlines() if line]


def parse_log_line(captured_logs) -> dict:
    """Parse the last JSON log line."""
    lines = log_lines(captured_logs)
    return lines[-1] if lines else {}


class TestStageEvents:
    """Tests for freeze.stage events."""

    def test_stage_fields(self, events, captured_logs):
        """Stage events carry version, stage and extra fields."""
        events.log_stage("1.0.0", "driver_generated", driver="FreezeRayDriver_1_0_0_abcd1234")

        log = parse_log_line(captured_logs)
        assert log["event"] == "freeze.stage"
        assert log["version"] == "1.0.0"
        assert log["stage"] == "driver_generated"
        assert log["driver"] == "FreezeRayDriver_1_0_0_abcd1234"
        assert log["project"] == "MyApp"
        assert log["service"] == "test-service"
        assert log["level"] == "info"
        assert "timestamp" in log

    def test_none_fields_dropped(self, events, captured_logs):
        events.log_failed("1.0.0", kind="build_failed", stage=None)

        log = parse_log_line(captured_logs)
        assert log["event"] == "freeze.failed"
        assert log["level"] == "error"
        assert "stage" not in log


class TestOutcomeEvents:

    def test_committed(self, events, captured_logs):
        events.log_committed("2.0.0", directory="FreezeRay/Fixtures/2.0.0", forced=True)

        log = parse_log_line(captured_logs)
        assert log["event"] == "freeze.committed"
        assert log["forced"] is True

    def test_scaffold_created_and_skipped(self, events, captured_logs):
        events.log_scaffold("1.0.0", "drift", "Tests/AppSchemaV1_DriftTests.swift", created=True)
        events.log_scaffold("1.0.0", "drift", "Tests/AppSchemaV1_DriftTests.swift", created=False)

        assert [line["event"] for line in log_lines(captured_logs)] == [
            "scaffold.created",
            "scaffold.skipped",
        ]

    def test_drift_is_a_warning(self, events, captured_logs):
        events.log_drift_checked("1.0.0", "drift", expected="aaa", actual="bbb")

        log = parse_log_line(captured_logs)
        assert log["event"] == "drift.checked"
        assert log["level"] == "warn"
        assert (log["expected"], log["actual"]) == ("aaa", "bbb")


class TestConfigureLogging:

    def test_level_filters_events(self, captured_logs):
        configure_logging(level="warning", fmt="json", stream=captured_logs)
        events = FreezeEventLogger()

        events.log_stage("1.0.0", "built")
        events.log_drift_checked("1.0.0", "drift", expected="a", actual="b")

        assert [line["event"] for line in log_lines(captured_logs)] == ["drift.checked"]

    def test_json_wraps_plain_records(self, captured_logs):
        configure_logging(level="info", fmt="json", stream=captured_logs)

        logging.getLogger("freezeray.pipeline").info("Found %s", "AppSchemaV1")

        log = parse_log_line(captured_logs)
        assert log["logger"] == "freezeray.pipeline"
        assert log["message"] == "Found AppSchemaV1"
        assert log["level"] == "info"

    def test_text_format(self, captured_logs):
        configure_logging(level="debug", fmt="text", stream=captured_logs)

        logging.getLogger("freezeray.store").debug("Committed %s", "1.0.0")

        assert captured_logs.getvalue() == "DEBUG freezeray.store: Committed 1.0.0\n"

    def test_reconfigure_replaces_handler(self):
        first, second = StringIO(), StringIO()
        configure_logging(level="info", stream=first)
        configure_logging(level="info", stream=second)

        logging.getLogger("freezeray.drift").warning("drift")

        assert first.getvalue() == ""
        assert "drift" in second.getvalue()
        flagged = [h for h in logging.getLogger("freezeray").handlers if getattr(h, "_freezeray_handler", False)]
        assert len(flagged) == 1
