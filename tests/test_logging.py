"""Tests for structured logging and run metrics."""

import json
import logging

from barsim.engine import SimulationContext, make_key
from barsim.engine.recurrence import buffered
from barsim.utils.logging import RunMetricsEmitter, StructuredFormatter, get_logger


class TestStructuredFormatter:
    def _record(self, **extra):
        record = logging.LogRecord("barsim.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_single_json_line(self):
        line = StructuredFormatter().format(self._record())
        payload = json.loads(line)
        assert payload["level"] == "INFO"
        assert payload["message"] == "hello world"
        assert "timestamp" in payload
        assert "\n" not in line

    def test_metrics_included(self):
        payload = json.loads(StructuredFormatter().format(self._record(metrics={"bars": 3})))
        assert payload["metrics"] == {"bars": 3}

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys

            record = logging.LogRecord("barsim.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        payload = json.loads(StructuredFormatter().format(record))
        assert "RuntimeError: boom" in payload["exception"]


def test_get_logger_adds_one_handler():
    name = "barsim.test_get_logger"
    first = get_logger(name, level="DEBUG")
    second = get_logger(name, level="DEBUG")
    assert first is second
    assert len(first.handlers) == 1
    assert isinstance(first.handlers[0].formatter, StructuredFormatter)
    assert first.level == logging.DEBUG
    first.handlers.clear()


class TestRunMetrics:
    def test_payload(self, caplog):
        emitter = RunMetricsEmitter(logger_name="barsim.test_metrics")
        with caplog.at_level(logging.INFO, logger="barsim.test_metrics"):
            metrics = emitter.emit_run_metrics("r1", bars=10, entries=2, hits=18, misses=2,
                                               recomputes=20, nan_substitutions=0)
        assert metrics["hit_rate"] == 0.9
        assert [r.levelno for r in caplog.records] == [logging.INFO]

    def test_nan_substitutions_warn(self, caplog):
        with caplog.at_level(logging.INFO, logger="barsim.metrics"):
            with SimulationContext() as ctx:
                ctx.advance()
                buffered(ctx, make_key(None, "test.nan"), lambda prev: float("nan"), 0.0)
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].metrics["nan_substitutions"] == 1

    def test_metrics_can_be_disabled(self, caplog):
        from barsim.config_structured import config_from_dict

        cfg = config_from_dict({"logging": {"emit_run_metrics": False}})
        with caplog.at_level(logging.INFO, logger="barsim.metrics"):
            with SimulationContext(config=cfg) as ctx:
                ctx.advance()
        assert not [r for r in caplog.records if r.getMessage() == "run_metrics"]
