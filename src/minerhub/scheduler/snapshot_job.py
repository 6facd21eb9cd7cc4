# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations

import datetime as dt
import threading
import time
from typing import Callable, Optional

# ---------------- Local Project ----------------
from ..core.snapshot import SnapshotRecord
from ..mining.addresses import MinerAddressMaps, build_miner_address_maps
from ..mining.power import compute_miner_power_snapshot
from ..mining.viz import compute_miner_viz_snapshot
from ..storage.snapshot_store import insert_snapshot, latest_cached_height, prune_snapshots
from ..storage.sources import SourceStores, max_commit_height
from ..utils import config as CFG
from ..utils.errors import ConfigError, RetryExhausted, SnapshotNotReady
from ..utils.helpers import retry_with_backoff, to_iso, utc_now

# ---------------- Logger ----------------
from ..utils.hub_logging import get_ctx_logger, log_timing
log = get_ctx_logger("minerhub.scheduler.snapshot_job")

__all__ = ["SnapshotScheduler", "maybe_start_snapshot_worker", "get_snapshot_worker", "stop_snapshot_worker"]


class SnapshotScheduler:
    """
    Owns the snapshot pipeline for one data directory.

    One worker thread fires ``tick()`` immediately and then every
    ``interval_s`` seconds. A tick that finds a run in progress is dropped,
    not queued. A run whose source height equals the cached height writes
    nothing. Failed runs are retried as a whole; the cache only ever receives
    complete records.
    """

    def __init__(
        self,
        data_dir: str | None,
        *,
        interval_s: float = CFG.SNAPSHOT_INTERVAL_S,
        retries: int = CFG.SNAPSHOT_RETRY_ATTEMPTS,
        retry_delay_s: float = CFG.SNAPSHOT_RETRY_DELAY_S,
        retention_s: float = CFG.SNAPSHOT_RETENTION_S,
        viz_window: int = CFG.MINER_VIZ_WINDOW,
        power_window: int = CFG.MINER_POWER_WINDOW,
        query_deadline_s: float = CFG.SOURCE_QUERY_DEADLINE_S,
        sleep: Optional[Callable[[float], object]] = None,
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        if not data_dir:
            raise ConfigError(f"{CFG.DATA_DIR_ENV} is not set; miner snapshots disabled")
        self.data_dir = data_dir
        self.interval_s = float(interval_s)
        self.retries = int(retries)
        self.retry_delay_s = float(retry_delay_s)
        self.retention_s = float(retention_s)
        self.viz_window = int(viz_window)
        self.power_window = int(power_window)
        self.query_deadline_s = float(query_deadline_s)
        self._clock = clock

        self._stop = threading.Event()
        self._sleep = sleep if sleep is not None else self._stop.wait
        self._state_lock = threading.Lock()
        self._running = False
        self._thread: threading.Thread | None = None

        self.address_maps: MinerAddressMaps | None = None
        self.last_height: int | None = None
        self.last_record: SnapshotRecord | None = None
        self.runs_written = 0

    # ---------- state ----------

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._running

    def _try_begin(self) -> bool:
        with self._state_lock:
            if self._running:
                return False
            self._running = True
            return True

    def _end(self) -> None:
        with self._state_lock:
            self._running = False

    # ---------- pipeline ----------

    def run_once(self) -> SnapshotRecord | None:
        """
        One full pipeline pass. Returns the stored record, or None when the
        source height is already cached. Raises SnapshotNotReady when the
        sortition store holds no commitments.
        """
        generated_at = to_iso(self._clock())

        with SourceStores(self.data_dir, deadline_s=self.query_deadline_s) as src:
            start = max_commit_height(src.sortition)
            if not start:
                raise SnapshotNotReady("no block commits in the sortition store")

            cached = latest_cached_height(self.data_dir)
            if cached == start:
                log.debug("[run_once] Height %s already cached; nothing to do", start, extra={"height": start})
                return None

            lower_viz = max(0, start - self.viz_window)
            lower_power = max(0, start - self.power_window)

            with log_timing(log, "viz-generation"):
                viz = compute_miner_viz_snapshot(src.sortition, src.chainstate, lower_viz, start,
                                                 generated_at=generated_at)

            with log_timing(log, "address-map"):
                maps = build_miner_address_maps(src.chainstate, src.sortition_path)

            with log_timing(log, "power-generation"):
                power = compute_miner_power_snapshot(
                    src.chainstate, src.sortition, lower_power, maps,
                    bitcoin_block_height=start,
                    sortition_id=viz.sortition_id,
                    window_size=self.power_window,
                    generated_at=generated_at,
                )

        record = SnapshotRecord(
            generated_at=generated_at,
            bitcoin_block_height=start,
            sortition_id=viz.sortition_id,
            miner_power=power,
            miner_viz=viz,
        )
        insert_snapshot(self.data_dir, record)
        prune_snapshots(self.data_dir, self.retention_s, now=self._clock())

        self.address_maps = maps
        self.last_height = start
        self.last_record = record
        self.runs_written += 1
        log.info("[run_once] Stored snapshot for Bitcoin block %s (sortition %s) at %s",
                 start, viz.sortition_id or "unknown", generated_at,
                 extra={"height": start, "sortition": viz.sortition_id or "-"})
        return record

    def _on_attempt_failed(self, attempt: int, exc: BaseException) -> None:
        remaining = (1 + self.retries) - attempt
        if self._stop.is_set():
            log.warning("[tick] Snapshot attempt %s failed (%s); worker stopping, no further attempts", attempt, exc)
        elif remaining > 0:
            log.warning("[tick] Snapshot attempt %s failed (%s); retrying in %.1fs",
                        attempt, exc, self.retry_delay_s * attempt)
        else:
            log.warning("[tick] Snapshot attempt %s failed (%s); no attempts left", attempt, exc)

    def tick(self) -> bool:
        """Run the pipeline unless a run is already in progress. Returns False when the tick was skipped or failed."""
        if not self._try_begin():
            log.warning("[tick] Previous run still in progress; skipping this tick")
            return False
        try:
            retry_with_backoff(
                self.run_once,
                retries=self.retries,
                delay=self.retry_delay_s,
                sleep=self._sleep,
                on_error=self._on_attempt_failed,
                fatal=(SnapshotNotReady,),
                stop=self._stop.is_set,
            )
            return True
        except SnapshotNotReady as exc:
            log.warning("[tick] Skipping snapshot generation: %s", exc)
            return True
        except RetryExhausted as exc:
            log.exception("[tick] Failed to generate miner snapshot after %s attempts", exc.attempts)
            return False
        finally:
            self._end()

    # ---------- thread ----------

    def _loop(self) -> None:
        log.info("[_loop] Miner snapshot scheduler started (interval: %ss)", int(self.interval_s))
        started = time.monotonic()
        self.tick()
        log.debug("[_loop] initial snapshot took %.1fs", time.monotonic() - started)
        while not self._stop.wait(timeout=self.interval_s):
            log.debug("[_loop] Triggering miner snapshot refresh")
            self.tick()
        log.info("[_loop] stopped")

    def start(self) -> "SnapshotScheduler":
        if self._thread is not None and self._thread.is_alive():
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=CFG.SNAPSHOT_THREAD_NAME, daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        worker = self._thread
        if worker is not None:
            worker.join(timeout=timeout)
            if worker.is_alive():
                log.warning("[stop] snapshot worker did not stop within %.1fs", timeout)
        self._thread = None

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


# =========================
# Process-wide worker handle
# =========================

_worker: SnapshotScheduler | None = None
_worker_lock = threading.Lock()


def maybe_start_snapshot_worker(data_dir: str | None = None) -> SnapshotScheduler | None:
    global _worker
    with _worker_lock:
        if _worker is not None and _worker.alive:
            log.info("[startup] Miner snapshot worker already running")
            return _worker

        data_dir = data_dir or CFG.get_stacks_data_dir()
        log.info("[startup] %s %s", CFG.DATA_DIR_ENV, f"-> {data_dir}" if data_dir else "not configured")
        if not data_dir:
            log.warning("[startup] Miner snapshot worker not started (missing %s)", CFG.DATA_DIR_ENV)
            return None

        _worker = SnapshotScheduler(data_dir).start()
        return _worker


def get_snapshot_worker() -> SnapshotScheduler | None:
    return _worker


def stop_snapshot_worker(timeout: float = 5.0) -> None:
    global _worker
    with _worker_lock:
        if _worker is not None:
            _worker.stop(timeout=timeout)
        _worker = None
