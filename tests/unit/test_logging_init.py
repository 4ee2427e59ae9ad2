from __future__ import annotations

import logging

from officeholder_import.logging.init import (
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    setup_logging,
)


def _record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord("officeholder_import.test", level, __file__, 1, msg, None, None)


def test_labels():
    fmt = LabeledFormatter()
    assert fmt.format(_record(logging.INFO, "hello")) == "INFO hello"
    assert fmt.format(_record(logging.WARNING, "careful")) == "WARN careful"
    assert fmt.format(_record(logging.ERROR, "bad")) == "ERROR bad"
    assert fmt.format(_record(SUMMARY_LEVEL, "file=x rows=1")) == "SUMMARY file=x rows=1"


def test_setup_is_idempotent_and_child_loggers_propagate(capsys):
    logger = setup_logging()
    assert setup_logging() is logger
    assert get_logger() is logger
    assert len(logger.handlers) == 1

    logging.getLogger("officeholder_import.services.validator").warning("row 3 invalid")
    logging.getLogger("officeholder_import.services.validator").debug("hidden")
    out = capsys.readouterr().out
    assert "WARN row 3 invalid" in out
    assert "hidden" not in out


def test_debug_mode(capsys):
    setup_logging()
    setup_logging(debug=True)
    logging.getLogger("officeholder_import.db.postgres").debug("visible now")
    assert "DEBUG visible now" in capsys.readouterr().out


def test_log_summary(capsys):
    setup_logging()
    log_summary("file=a.xlsx rows=0")
    assert capsys.readouterr().out.strip() == "SUMMARY file=a.xlsx rows=0"
