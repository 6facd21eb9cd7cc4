# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
'''
HOW TO USE logging in your code:

log = get_ctx_logger("minerhub.mining.graph")

log.trace("per-row details, usually unnecessary")
log.debug("technical details for diagnosis")
log.info("normal event / milestone")
log.warning("a non-fatal condition that needs attention")
log.error("handled error")
log.exception("context message when an exception occurs") >automatically include traceback

with log_timing(log, "viz-generation"):
    ...   # logs "[timing] viz-generation took 12.3 ms"
'''

from __future__ import annotations

import os, logging, json, time, hashlib
from contextlib import contextmanager
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Iterator, Optional

from . import config as CFG

# ===== TRACE level (below DEBUG) =====
TRACE = 9
logging.addLevelName(TRACE, "TRACE")
def _trace(self, msg, *a, **k):
    if self.isEnabledFor(TRACE):
        self._log(TRACE, msg, a, **k)
logging.Logger.trace = _trace

CONTEXT_FIELDS = ("height", "sortition")

# =========================
# 1) Core logging setup
# =========================

if CFG.LOG_SHOW_PROCESS:
    _DEFAULT_FMT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"
else:
    _DEFAULT_FMT = f"%(asctime)s [%(levelname)s] {CFG.LOG_PROC_PLACEHOLDER} %(name)s: %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class RateLimitFilter(logging.Filter):
    def __init__(self, min_interval: float = 2.0):
        super().__init__()
        self.min_interval = float(min_interval)
        self._last: dict[str, float] = {}
    def filter(self, record):
        base = f"{record.name}|{record.levelno}|{record.msg}"
        key = hashlib.blake2b(base.encode(), digest_size=8).hexdigest()
        now = time.monotonic()
        last = self._last.get(key, 0.0)
        if (now - last) < self.min_interval:
            return False
        self._last[key] = now
        return True

class JsonFormatter(logging.Formatter):
    def format(self, record):
        d = {
            "ts": self.formatTime(record, _DEFAULT_DATEFMT),
            "lvl": record.levelname,
            "logger": record.name,
            "thread": (record.threadName if CFG.LOG_SHOW_PROCESS else CFG.LOG_PROC_PLACEHOLDER),
            "msg": record.getMessage(),
        }
        for k in CONTEXT_FIELDS:
            v = getattr(record, k, None)
            if v not in (None, "-"):
                d[k] = v
        if record.exc_info:
            d["exc"] = self.formatException(record.exc_info)
        return json.dumps(d, ensure_ascii=False)

class SafeFormatter(logging.Formatter):
    def format(self, record):
        for k in CONTEXT_FIELDS:
            if not hasattr(record, k):
                setattr(record, k, "-")
        return super().format(record)

class ContextAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        extra = kwargs.setdefault("extra", {})
        for k in CONTEXT_FIELDS:
            extra.setdefault(k, self.extra.get(k, "-") if self.extra else "-")
        return msg, kwargs

    def isEnabledFor(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)

    def trace(self, msg, *args, **kwargs):
        if self.logger.isEnabledFor(TRACE):
            self.log(TRACE, msg, *args, **kwargs)


def get_ctx_logger(name: str = "minerhub", **ctx) -> ContextAdapter:
    return ContextAdapter(get_logger(name), ctx)

def setup_logging(
    log_file: str | os.PathLike | None = None,
    level: int | str | None = None,
    to_console: bool | None = None,
    rotate_max_bytes: int | None = None,
    backup_count: int | None = None,
    force: bool = False,
    fmt: str = _DEFAULT_FMT,
    datefmt: str = _DEFAULT_DATEFMT,) -> logging.Logger:

    if level is None:
        level = CFG.LOG_LEVEL
    if log_file is None:
        log_file = CFG.LOG_PATH

    # Get preference from CFG when argument is None
    if to_console is None:
        to_console = bool(getattr(CFG, "LOG_TO_CONSOLE", True))
    if rotate_max_bytes is None:
        rotate_max_bytes = int(getattr(CFG, "LOG_ROTATE_MAX_BYTES", 5_000_000))
    if backup_count is None:
        backup_count = int(getattr(CFG, "LOG_BACKUP_COUNT", 3))

    log_path = Path(log_file)
    if log_path.parent and not log_path.parent.exists():
        log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = []
    as_json = str(CFG.LOG_FORMAT).lower() == "json"
    rate_seconds_console = float(getattr(CFG, "LOG_RATE_LIMIT_SECONDS", 0.0))
    rate_seconds_file    = float(getattr(CFG, "LOG_FILE_RATE_LIMIT_SECONDS", 0.0))

    # --- File handler ---
    fh = RotatingFileHandler(
        log_path, maxBytes=int(rotate_max_bytes), backupCount=int(backup_count),
        encoding="utf-8", delay=True
    )
    fh.setFormatter(JsonFormatter() if as_json else SafeFormatter(fmt, datefmt))
    if rate_seconds_file > 0.0:
        fh.addFilter(RateLimitFilter(rate_seconds_file))
    handlers.append(fh)

    # --- Console handler (optional) ---
    if to_console:
        sh = logging.StreamHandler()
        sh.setFormatter(JsonFormatter() if as_json else SafeFormatter(fmt, datefmt))
        if rate_seconds_console > 0.0:
            sh.addFilter(RateLimitFilter(rate_seconds_console))
        handlers.append(sh)

    # Level
    lvl = level
    if isinstance(lvl, str):
        lvl = logging.getLevelName(lvl.upper())
        if not isinstance(lvl, int):
            lvl = logging.INFO

    logging.basicConfig(level=lvl, handlers=handlers, force=force)
    logging.getLogger("minerhub").debug(
        "Logging configured: level=%s file=%s format=%s console=%s rotate=%s backup=%s",
        logging.getLevelName(lvl), str(log_path), ("json" if as_json else "plain"),
        to_console, rotate_max_bytes, backup_count
    )
    return logging.getLogger("minerhub")


def get_logger(name: Optional[str] = None) -> logging.Logger:
    base = "minerhub" if not name else name
    return logging.getLogger(base)


@contextmanager
def log_timing(log: logging.Logger | logging.LoggerAdapter, label: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        log.debug("[timing] %s took %.1f ms", label, (time.perf_counter() - start) * 1000.0)
