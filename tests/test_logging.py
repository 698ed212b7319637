"""Tests for logging setup and the JSON formatter."""

import json
import logging
import sys

from imageupload.core import logging as log_module
from imageupload.core.config import settings
from imageupload.core.logging import JsonFormatter, region_context, setup_logging


def make_record(**extra):
    record = logging.LogRecord(
        name="imageupload.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg="EC2 DescribeImages failed (attempt %d/10)",
        args=(3,),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_single_line_json():
    output = JsonFormatter().format(make_record(operation="EC2 DescribeImages"))

    assert "\n" not in output
    entry = json.loads(output)
    assert entry["level"] == "WARNING"
    assert entry["message"] == "EC2 DescribeImages failed (attempt 3/10)"
    assert entry["logger"] == "imageupload.test"
    assert entry["operation"] == "EC2 DescribeImages"
    assert entry["time"].endswith("Z")
    assert entry["location"].startswith("test_logging.")


def test_formatter_adds_region_context():
    token = region_context.set("ap-south-1")
    try:
        entry = json.loads(JsonFormatter().format(make_record()))
    finally:
        region_context.reset(token)

    assert entry["region"] == "ap-south-1"


def test_formatter_includes_exception():
    try:
        raise ValueError("bad part")
    except ValueError:
        record = make_record()
        record.exc_info = sys.exc_info()

    entry = json.loads(JsonFormatter().format(record))

    assert entry["error_type"] == "ValueError"
    assert entry["error"] == "bad part"
    assert "Traceback" in entry["traceback"]


def test_setup_logging_local(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "local")
    monkeypatch.setattr(settings, "LOG_LEVEL", "info")

    setup_logging()

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.handlers[0].stream is sys.stderr
    assert not isinstance(root.handlers[0].formatter, JsonFormatter)
    assert root.level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_json(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "production")

    setup_logging()

    assert isinstance(logging.getLogger().handlers[0].formatter, log_module.JsonFormatter)
