"""Tests for the error types and the notify logging handler."""

import logging

from groveui import errors
from groveui.errors import ApiError, NotifyHandler, log_exception, set_notify_callback


def make_record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord("groveui.test", level, __file__, 1, msg, None, None)


def test_notify_handler_maps_levels_and_truncates():
    seen = []
    set_notify_callback(lambda msg, severity: seen.append((msg, severity)))
    try:
        handler = NotifyHandler()
        handler.emit(make_record(logging.ERROR, "boom"))
        handler.emit(make_record(logging.WARNING, "careful"))
        handler.emit(make_record(logging.INFO, "x" * 300))
    finally:
        set_notify_callback(None)

    assert seen[0] == ("boom", "error")
    assert seen[1] == ("careful", "warning")
    assert seen[2][1] == "information"
    assert len(seen[2][0]) == 200
    assert seen[2][0].endswith("...")


def test_notify_handler_without_callback_is_silent():
    set_notify_callback(None)
    NotifyHandler().emit(make_record(logging.ERROR, "nobody listening"))
    assert errors._notify_callback is None


def test_notify_handler_survives_failing_callback(capsys):
    def explode(msg, severity):
        raise RuntimeError("ui gone")

    set_notify_callback(explode)
    try:
        NotifyHandler().emit(make_record(logging.WARNING, "hello"))
    finally:
        set_notify_callback(None)
    assert "NotifyHandler.emit() failed: ui gone" in capsys.readouterr().err


def test_log_exception_returns_display_message():
    try:
        raise ValueError("bad value")
    except ValueError as e:
        assert log_exception(e, "Parsing failed") == "Parsing failed: bad value"
        assert log_exception(e) == "bad value"


def test_archive_confirm_detection():
    assert ApiError(409, "confirm", {"code": "ARCHIVE_CONFIRM_REQUIRED"}).needs_archive_confirm
    assert not ApiError(409, "conflict").needs_archive_confirm
    assert not ApiError(500, "x", {"code": "ARCHIVE_CONFIRM_REQUIRED"}).needs_archive_confirm
