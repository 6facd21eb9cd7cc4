# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

import datetime as dt
import logging

import pytest

from minerhub.storage.sources import readonly_uri
from minerhub.utils import config as CFG
from minerhub.utils.errors import RetryExhausted, SnapshotNotReady
from minerhub.utils.helpers import (
    escape_sqlite_string,
    format_number,
    normalize_sender,
    retry_with_backoff,
    string_to_color,
    to_iso,
)
from minerhub.utils.hub_logging import TRACE, get_ctx_logger, log_timing


def test_escape_sqlite_string_doubles_single_quotes():
    assert escape_sqlite_string("path/with'single") == "path/with''single"
    assert escape_sqlite_string("/data/o'brien/marf.sqlite") == "/data/o''brien/marf.sqlite"
    assert escape_sqlite_string("plain/path") == "plain/path"


def test_readonly_uri_is_escaped_for_attach(tmp_path):
    target = tmp_path / "it's here" / "marf.sqlite"
    uri = readonly_uri(target)
    assert uri.startswith("file://")
    assert uri.endswith("?mode=ro")
    escaped = escape_sqlite_string(uri)
    assert escaped.count("''") == uri.count("'")


def test_normalize_sender_strips_quotes_and_truncates():
    assert normalize_sender('"bc1qxyzabcdef"') == "bc1qxyza"
    assert normalize_sender("") == "unknown"
    assert normalize_sender(None) == "unknown"


def test_format_number_rounds_and_groups():
    assert format_number(1234567.4) == "1,234,567"
    assert format_number(2.5) == "3"
    assert format_number(0) == "0"


def test_string_to_color_is_deterministic_and_from_palette():
    first = string_to_color("bc1qminera0000000")
    assert first == string_to_color("bc1qminera0000000")
    assert first in CFG.PASTEL_COLORS
    assert string_to_color("short") == CFG.PASTEL_COLORS[0]
    expected = CFG.PASTEL_COLORS[int.from_bytes(b"abcdefgh", "big") % len(CFG.PASTEL_COLORS)]
    assert string_to_color("abcdefghXYZ") == expected


def test_to_iso_is_fixed_width_utc():
    ts = dt.datetime(2025, 1, 2, 3, 4, 5, 600000, tzinfo=dt.timezone.utc)
    assert to_iso(ts) == "2025-01-02T03:04:05.600Z"
    assert len(to_iso(ts.replace(microsecond=0))) == len(to_iso(ts))


def test_retry_succeeds_after_failures_with_linear_delay():
    calls = []
    sleeps = []
    errors = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise RuntimeError(f"boom {len(calls)}")
        return "ok"

    result = retry_with_backoff(flaky, retries=2, delay=5.0, sleep=sleeps.append,
                                on_error=lambda n, exc: errors.append(n))
    assert result == "ok"
    assert len(calls) == 3
    assert sleeps == [5.0, 10.0]
    assert errors == [1, 2]


def test_retry_exhausted_carries_last_error():
    sleeps = []

    def always_fails():
        raise ValueError("bad")

    with pytest.raises(RetryExhausted) as info:
        retry_with_backoff(always_fails, retries=2, delay=1.0, sleep=sleeps.append)
    assert info.value.attempts == 3
    assert isinstance(info.value.last_error, ValueError)
    assert sleeps == [1.0, 2.0]


def test_retry_does_not_repeat_fatal_errors():
    calls = []

    def not_ready():
        calls.append(1)
        raise SnapshotNotReady("empty")

    with pytest.raises(SnapshotNotReady):
        retry_with_backoff(not_ready, retries=2, delay=1.0, sleep=lambda s: None, fatal=(SnapshotNotReady,))
    assert len(calls) == 1


def test_ctx_logger_fills_context_and_trace(caplog):
    log = get_ctx_logger("minerhub.tests.helpers", height=123)
    with caplog.at_level(TRACE, logger="minerhub.tests.helpers"):
        log.trace("fine detail")
        with log_timing(log, "unit"):
            pass
    records = [r for r in caplog.records if r.name == "minerhub.tests.helpers"]
    assert records[0].levelno == TRACE
    assert records[0].height == 123
    assert records[0].sortition == "-"
    assert any("[timing] unit took" in r.getMessage() and r.levelno == logging.DEBUG for r in records)


def test_retry_gives_up_when_stopped():
    calls = []
    sleeps = []

    def always_fails():
        calls.append(1)
        raise RuntimeError("locked")

    with pytest.raises(RetryExhausted) as info:
        retry_with_backoff(always_fails, retries=2, delay=1.0, sleep=sleeps.append, stop=lambda: True)
    assert info.value.attempts == 1
    assert len(calls) == 1
    assert sleeps == []
