# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
from __future__ import annotations
import datetime as dt
import math
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from ..utils import config as CFG
from .errors import RetryExhausted

T = TypeVar("T")


def print_banner():
    banner = r"""
  __  __ _                 _   _       _
 |  \/  (_)_ __   ___ _ __| | | |_   _| |__
 | |\/| | | '_ \ / _ \ '__| |_| | | | | '_ \
 | |  | | | | | |  __/ |  |  _  | |_| | |_) |
 |_|  |_|_|_| |_|\___|_|  |_| |_|\__,_|_.__/

                  MinerHub Snapshot Worker
    """
    print(banner)

# -----------------------------
# SQL / TEXT UTIL
# -----------------------------

def escape_sqlite_string(value: str) -> str:
    """Double single quotes so ``value`` can sit inside a '...' SQL literal."""
    return value.replace("'", "''")

def normalize_sender(sender: str | None) -> str:
    return (sender or "").replace('"', "")[:8] or "unknown"

def strip_quotes(value: str | None) -> str:
    return (value or "").strip('"')

def round_half_up(value: float) -> int:
    return int(math.floor(float(value) + 0.5))

def format_number(value: float) -> str:
    return f"{round_half_up(value):,}"

def string_to_color(value: str) -> str:
    palette = CFG.PASTEL_COLORS
    raw = (value or "").encode("utf-8")
    if len(raw) < 8:
        return palette[0]
    return palette[int.from_bytes(raw[:8], "big") % len(palette)]

def to_int(value, default: int = 0) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default

def to_float(value, default: float = 0.0) -> float:
    try:
        v = float(value) if value is not None else default
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default

# -----------------------------
# TIME UTIL
# -----------------------------

def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

def to_iso(ts: dt.datetime) -> str:
    """Fixed-width UTC timestamp (millisecond precision) so text order matches time order."""
    return ts.astimezone(dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def utc_now_iso() -> str:
    return to_iso(utc_now())

# -----------------------------
# RETRY UTIL
# -----------------------------

def retry_with_backoff(
    fn: Callable[[], T],
    *,
    retries: int,
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
    on_error: Optional[Callable[[int, BaseException], None]] = None,
    fatal: Tuple[Type[BaseException], ...] = (),
    stop: Optional[Callable[[], bool]] = None,
) -> T:
    """
    Call ``fn`` up to ``1 + retries`` times. After failure ``n`` (1-based) wait
    ``n * delay`` seconds before the next attempt. Raises RetryExhausted chained
    to the last error when no attempt succeeds. Exceptions listed in ``fatal``
    propagate at once. When ``stop()`` is true after a failure, no further
    attempt is made.
    """
    attempts = 1 + max(0, int(retries))
    last_error: BaseException | None = None
    made = 0
    for attempt in range(1, attempts + 1):
        made = attempt
        try:
            return fn()
        except fatal:
            raise
        except Exception as exc:
            last_error = exc
            if on_error is not None:
                on_error(attempt, exc)
            if attempt >= attempts or (stop is not None and stop()):
                break
            sleep(float(delay) * attempt)
    assert last_error is not None
    raise RetryExhausted(made, last_error) from last_error
