"""Unit tests for utils.logging."""

import logging
import sys

import orjson
import pytest

from utils.logging import JsonFormatter, setup_logging


def make_record(msg="Batch processed", **extra):
    record = logging.LogRecord("apps.crawler", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    line = JsonFormatter().format(make_record(start_id=11, found=3))

    payload = orjson.loads(line)
    assert payload["message"] == "Batch processed"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "apps.crawler"
    assert payload["start_id"] == 11
    assert payload["found"] == 3
    assert "ts" in payload


def test_json_formatter_serializes_exceptions():
    try:
        raise ValueError("bad checkpoint")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

    payload = orjson.loads(JsonFormatter().format(record))
    assert "ValueError: bad checkpoint" in payload["exc_info"]


def test_setup_logging_json(capsys):
    setup_logging(level="DEBUG", format_type="json")
    try:
        logging.getLogger("test.json").info("hello", extra={"batch": 1})

        out = capsys.readouterr().out.strip().splitlines()[-1]
        assert orjson.loads(out)["batch"] == 1
    finally:
        setup_logging(level="WARNING", format_type="text")


def test_setup_logging_rejects_unknown_format():
    with pytest.raises(ValueError):
        setup_logging(format_type="xml")
