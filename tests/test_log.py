from datetime import datetime, timedelta, timezone

import pytest

from fleetcmd import log


@pytest.fixture(autouse=True)
def _reset_level():
    log.set_level(log.Level.NONE)
    yield
    log.set_level(log.Level.NONE)


def test_set_and_get_level_round_trip():
    log.set_level(log.Level.WARNING)
    assert log.get_level() is log.Level.WARNING


def test_set_level_accepts_int():
    log.set_level(int(log.Level.DEBUG))
    assert log.get_level() is log.Level.DEBUG


def test_info_is_written_with_label(capsys):
    log.set_level(log.Level.INFO)
    log.info("hello %s", "world")
    err = capsys.readouterr().err
    assert "[info ] hello world" in err


def test_debug_suppressed_below_level(capsys):
    log.set_level(log.Level.INFO)
    log.debug("hidden")
    assert capsys.readouterr().err == ""


def test_none_level_disables_errors(capsys):
    log.error("nothing to see")
    assert capsys.readouterr().err == ""


def test_warning_label(capsys):
    log.set_level(log.Level.WARNING)
    log.warning("careful")
    assert "[warn ] careful" in capsys.readouterr().err


def test_error_label_at_debug_level(capsys):
    log.set_level(log.Level.DEBUG)
    log.error("boom")
    assert "[error] boom" in capsys.readouterr().err


def test_message_without_args_is_literal(capsys):
    log.set_level(log.Level.INFO)
    log.info("100% done")
    assert "100% done" in capsys.readouterr().err


def test_line_starts_with_rfc3339_timestamp(capsys):
    log.set_level(log.Level.DEBUG)
    log.debug("detail")
    line = capsys.readouterr().err.splitlines()[0]
    timestamp, label, text = line.split(" ", 2)
    assert label == "[debug]"
    assert text == "detail"
    assert "T" in timestamp
    parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    assert parsed.tzinfo is not None
    assert abs(parsed - datetime.now(timezone.utc)) < timedelta(minutes=5)