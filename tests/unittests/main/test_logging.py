import json
import logging

from pagewatch.main.logging import ContextJSONFormatter, get_logger
from pagewatch.main.request_context import clear_request_context, phase_context, set_request_context


def make_record(message="Scanned alpha", **extra):
    record = logging.LogRecord("pagewatch.phases.discover", logging.INFO, __file__, 1, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_lines_carry_phase_context_and_extra():
    clear_request_context()
    set_request_context(correlation_id="abc")

    with phase_context("discover", "job-1", 0):
        line = ContextJSONFormatter().format(make_record(source="牛经沧海", new=2))

    log = json.loads(line)
    assert log["level"] == "info"
    assert log["logger"] == "pagewatch.phases.discover"
    assert log["message"] == "Scanned alpha"
    assert log["correlation_id"] == "abc"
    assert log["phase"] == "discover"
    assert log["job_id"] == "job-1"
    assert log["batch_index"] == 0
    assert log["source"] == "牛经沧海"
    assert log["new"] == 2
    assert "lineno" not in log
    clear_request_context()


def test_none_values_are_left_out():
    log = json.loads(ContextJSONFormatter().format(make_record(error=None)))

    assert "error" not in log


def test_get_logger_configures_once():
    first = get_logger("pagewatch.tests.logging")
    second = get_logger("pagewatch.tests.logging")

    assert first is second
    assert len(first.handlers) == 1
    assert first.propagate is False
