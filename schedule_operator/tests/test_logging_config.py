"""
Logging configuration tests
"""

import json
import logging

import pytest

from schedule_common.config.logging_config import ColoredFormatter, JSONFormatter, setup_logging


def make_record(msg="Reconciling WorkloadSchedule default/office-hours", **extra):
    record = logging.LogRecord("schedule_operator.services.reconciler", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:

    def test_json_merges_extra_fields(self):
        line = JSONFormatter("workload-schedule-operator").format(
            make_record(schedule="default/office-hours", replicas=3)
        )
        entry = json.loads(line)

        assert entry["level"] == "INFO"
        assert entry["service"] == "workload-schedule-operator"
        assert entry["schedule"] == "default/office-hours"
        assert entry["replicas"] == 3
        assert entry["ts"].endswith("Z")
        assert "args" not in entry

    def test_text_prefixes_schedule(self):
        text = ColoredFormatter().format(make_record(msg="Time check", schedule="default/office-hours"))

        assert "[default/office-hours] Time check" in text

    def test_text_without_schedule(self):
        text = ColoredFormatter().format(make_record(msg="Listed 2 WorkloadSchedules"))

        assert text.endswith("Listed 2 WorkloadSchedules")


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_replaces_handlers_and_caps_client_loggers(self):
        setup_logging("workload-schedule-operator", log_level="DEBUG", log_format="text")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, ColoredFormatter)
        assert logging.getLogger("kubernetes").level == logging.INFO

    def test_reconciler_extra_is_accepted(self):
        setup_logging("workload-schedule-operator", log_format="json")
        records = []
        capture = logging.Handler()
        capture.emit = records.append
        logging.getLogger().addHandler(capture)

        logging.getLogger("schedule_operator.services.reconciler").info(
            "Reconciling WorkloadSchedule default/office-hours", extra={"schedule": "default/office-hours"}
        )

        assert records[-1].schedule == "default/office-hours"
