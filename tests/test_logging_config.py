"""Tests for structured logging."""

import json
import logging

from crate_swap.logging_config import (
    CorrelationContext, JSONFormatter, StructuredFormatter, get_correlation_id, setup_logging,
)


def _record(message="Validated SOL"):
    return logging.LogRecord("crate_swap.validator", logging.INFO, __file__, 10, message, None, None)


def test_correlation_context_sets_and_resets():
    assert get_correlation_id() is None
    with CorrelationContext("run-1234", crate_id="crate-9") as ctx:
        assert get_correlation_id() == "run-1234"
        assert ctx.crate_id == "crate-9"
    assert get_correlation_id() is None


def test_json_formatter_includes_context():
    with CorrelationContext("run-1234", crate_id="crate-9"):
        data = json.loads(JSONFormatter().format(_record()))

    assert data["message"] == "Validated SOL"
    assert data["level"] == "INFO"
    assert data["correlation_id"] == "run-1234"
    assert data["crate_id"] == "crate-9"


def test_structured_formatter_without_context():
    line = StructuredFormatter(use_color=False).format(_record())
    assert "[INFO]" in line
    assert "Validated SOL" in line
    assert "crate=" not in line


def test_structured_formatter_with_context():
    with CorrelationContext("abcdef123456", crate_id="crate-9"):
        line = StructuredFormatter(use_color=False).format(_record())
    assert "run=abcdef12" in line
    assert "crate=crate-9" in line


def test_setup_logging_writes_json_file(tmp_path):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        setup_logging(level="DEBUG", log_dir=tmp_path, json_format=True, console_output=False)
        logging.getLogger("crate_swap.test").info("hello")
        for handler in root.handlers:
            handler.flush()
            handler.close()
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)

    lines = (tmp_path / "crate_swap.log").read_text().splitlines()
    assert json.loads(lines[-1])["message"] == "hello"
