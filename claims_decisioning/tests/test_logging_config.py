"""Tests for claims_decisioning.logging_config module."""

import json
import logging
import sys

import pytest

from claims_decisioning.logging_config import (
    CorrelationFilter,
    JSONFormatter,
    TextFormatter,
    clear_correlation_id,
    configure_logging,
    correlation_scope,
    get_correlation_ids,
    set_correlation_id,
)


def _record(msg="hello", args=None, level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


@pytest.fixture(autouse=True)
def _reset_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    clear_correlation_id()
    yield
    clear_correlation_id()
    for h in root.handlers[:]:
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


class TestJSONFormatter:
    def test_basic_format(self):
        fmt = JSONFormatter()
        output = fmt.format(_record(msg="hello %s", args=("world",)))
        data = json.loads(output)
        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "hello world"
        assert "timestamp" in data

    def test_correlation_id_included(self):
        set_correlation_id(claim_id="CLM-1001", run_id="r_1")
        data = json.loads(JSONFormatter().format(_record()))
        assert data["correlation"]["claim_id"] == "CLM-1001"
        assert data["correlation"]["run_id"] == "r_1"

    def test_no_correlation_when_cleared(self):
        set_correlation_id(claim_id="CLM-1001")
        clear_correlation_id()
        data = json.loads(JSONFormatter().format(_record()))
        assert "correlation" not in data

    def test_pipeline_extras(self):
        record = _record()
        record.stage = "valuation"
        record.duration_sec = 0.25
        data = json.loads(JSONFormatter().format(record))
        assert data["stage"] == "valuation"
        assert data["duration_sec"] == 0.25
        assert "decision" not in data

    def test_exception_info(self):
        try:
            raise ValueError("boom")
        except ValueError:
            exc_info = sys.exc_info()
        data = json.loads(JSONFormatter().format(_record(level=logging.ERROR, exc_info=exc_info)))
        assert "ValueError: boom" in data["exception"]


class TestCorrelationIds:
    def test_ids_merge(self):
        set_correlation_id(claim_id="CLM-1")
        set_correlation_id(run_id="r_2")
        assert get_correlation_ids() == {"claim_id": "CLM-1", "run_id": "r_2"}

    def test_returned_copy_is_detached(self):
        set_correlation_id(claim_id="CLM-1")
        ids = get_correlation_ids()
        ids["claim_id"] = "other"
        assert get_correlation_ids()["claim_id"] == "CLM-1"

    def test_scope_restores_previous_ids(self):
        set_correlation_id(run_id="r_1")
        with correlation_scope(claim_id="CLM-2") as ids:
            assert ids == {"run_id": "r_1", "claim_id": "CLM-2"}
        assert get_correlation_ids() == {"run_id": "r_1"}

    def test_scope_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with correlation_scope(claim_id="CLM-3"):
                raise RuntimeError("stage crashed")
        assert get_correlation_ids() == {}

    def test_filter_stamps_record(self):
        record = _record()
        with correlation_scope(claim_id="CLM-4"):
            assert CorrelationFilter().filter(record) is True
        assert record.correlation == {"claim_id": "CLM-4"}
        assert record.correlation_tag == " [CLM-4]"
        data = json.loads(JSONFormatter().format(record))
        assert data["correlation"] == {"claim_id": "CLM-4"}


class TestTextFormatter:
    def test_claim_tag_from_context(self):
        with correlation_scope(claim_id="CLM-1"):
            line = TextFormatter().format(_record(msg="decided"))
        assert "[INFO] test [CLM-1]: decided" in line

    def test_extra_claim_id_wins(self):
        record = _record(msg="decided")
        record.claim_id = "CLM-7"
        with correlation_scope(claim_id="CLM-1"):
            line = TextFormatter().format(record)
        assert "[CLM-7]" in line

    def test_untagged_without_claim(self):
        line = TextFormatter().format(_record(msg="startup"))
        assert line.endswith("[INFO] test: startup")


class TestConfigureLogging:
    def test_json_output(self):
        configure_logging(level="DEBUG", json_output=True)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_text_output_and_filters(self):
        configure_logging(level="INFO")
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, TextFormatter)
        assert any(isinstance(f, CorrelationFilter) for f in handler.filters)

    def test_no_handler_accumulation(self):
        configure_logging(level="INFO")
        configure_logging(level="INFO")
        assert len(logging.getLogger().handlers) == 1

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "pipeline.log"
        configure_logging(level="INFO", json_output=True, log_file=str(log_file))
        logging.getLogger("claims_decisioning.test").info("written", extra={"claim_id": "CLM-9"})
        for h in logging.getLogger().handlers:
            h.flush()
        line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
        assert json.loads(line)["claim_id"] == "CLM-9"
        for h in logging.getLogger().handlers:
            h.close()
