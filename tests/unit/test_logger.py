"""
Unit tests for logging utilities.
"""

import json
import logging

from pumpswap_stream.utils.logger import JSONFormatter, PerformanceLogger


def make_record(**extra):
    record = logging.LogRecord("pumpswap_stream.test", logging.INFO, __file__, 10, "hello %s", ("pool",), None)
    for name, value in extra.items():
        setattr(record, name, value)
    return record


def test_json_formatter_includes_context_fields():
    line = JSONFormatter().format(make_record(pool="poolA", slot=5, unrelated="x"))
    entry = json.loads(line)

    assert entry["message"] == "hello pool"
    assert entry["level"] == "INFO"
    assert entry["pool"] == "poolA"
    assert entry["slot"] == 5
    assert "unrelated" not in entry


def test_performance_logger_warns_when_slow(caplog):
    perf = PerformanceLogger(logging.getLogger("pumpswap_stream.test"), slow_threshold_ms=0)

    with caplog.at_level(logging.DEBUG, logger="pumpswap_stream.test"):
        with perf.timer("process_record", slot=7):
            pass

    assert caplog.records[-1].levelno == logging.WARNING
    assert caplog.records[-1].slot == 7
