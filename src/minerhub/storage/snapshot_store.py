# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
"""
Cache store: an append-only SQLite table of complete snapshot records.

The single scheduler thread is the only writer. Readers (any number of
threads or processes) open the file read-only and get ``None`` when the file
or table does not exist yet, which callers treat as "not ready".
"""

from __future__ import annotations

import datetime as dt
import json
import os
import sqlite3
from typing import Any, Optional, Sequence

# ---------------- Local Project ----------------
from ..core.snapshot import MinerPowerSnapshot, MinerVizSnapshot, SnapshotRecord
from ..utils import config as CFG
from ..utils.helpers import to_iso, utc_now
from .sources import readonly_uri

# ---------------- Logger ----------------
from ..utils.hub_logging import get_ctx_logger
log = get_ctx_logger("minerhub.storage.snapshot_store")

SNAPSHOT_SCHEMA = """CREATE TABLE IF NOT EXISTS miner_snapshots (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  generated_at TEXT NOT NULL,
  bitcoin_block_height INTEGER NOT NULL,
  sortition_id TEXT,
  miner_power_json TEXT NOT NULL,
  dot_source TEXT NOT NULL
)"""

_SELECT_COLUMNS = """SELECT
       generated_at,
       bitcoin_block_height,
       sortition_id,
       miner_power_json,
       dot_source
     FROM miner_snapshots"""


def hub_path(data_dir: str) -> str:
    return os.path.join(data_dir, CFG.HUB_DB_RELATIVE)


def _open_hub(data_dir: str, mode: str) -> sqlite3.Connection | None:
    path = hub_path(data_dir)
    if mode == "read":
        if not os.path.isfile(path):
            return None
        conn = sqlite3.connect(readonly_uri(path), uri=True)
        conn.row_factory = sqlite3.Row
        return conn

    os.makedirs(os.path.dirname(path), exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(SNAPSHOT_SCHEMA)
    return conn


def insert_snapshot(data_dir: str, record: SnapshotRecord) -> int:
    conn = _open_hub(data_dir, "write")
    try:
        with conn:
            cur = conn.execute(
                """INSERT INTO miner_snapshots (
                    generated_at,
                    bitcoin_block_height,
                    sortition_id,
                    miner_power_json,
                    dot_source
                  ) VALUES (?, ?, ?, ?, ?)""",
                (
                    record.generated_at,
                    int(record.bitcoin_block_height),
                    record.sortition_id,
                    json.dumps(record.miner_power.to_dict(), separators=(",", ":")),
                    record.dot_source,
                ),
            )
        log.debug("[insert_snapshot] stored row %s for height %s", cur.lastrowid, record.bitcoin_block_height)
        return int(cur.lastrowid)
    finally:
        conn.close()


def prune_snapshots(data_dir: str, max_age_s: float = CFG.SNAPSHOT_RETENTION_S, *, now: dt.datetime | None = None) -> int:
    cutoff = to_iso((now or utc_now()) - dt.timedelta(seconds=float(max_age_s)))
    conn = _open_hub(data_dir, "write")
    try:
        with conn:
            cur = conn.execute("DELETE FROM miner_snapshots WHERE generated_at < ?", (cutoff,))
        removed = int(cur.rowcount or 0)
        if removed:
            log.info("[prune_snapshots] removed %s snapshot(s) older than %s", removed, cutoff)
        return removed
    finally:
        conn.close()


def _parse_row(row: sqlite3.Row) -> SnapshotRecord:
    power = MinerPowerSnapshot.from_dict(json.loads(row["miner_power_json"]))
    viz = MinerVizSnapshot(
        generated_at=row["generated_at"],
        bitcoin_block_height=int(row["bitcoin_block_height"]),
        sortition_id=row["sortition_id"],
        dot_source=row["dot_source"],
    )
    return SnapshotRecord(
        generated_at=row["generated_at"],
        bitcoin_block_height=int(row["bitcoin_block_height"]),
        sortition_id=row["sortition_id"],
        miner_power=power,
        miner_viz=viz,
    )


def _fetch_one(data_dir: str, query: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
    conn = _open_hub(data_dir, "read")
    if conn is None:
        return None
    try:
        try:
            return conn.execute(query, tuple(params)).fetchone()
        except sqlite3.OperationalError as exc:
            if "no such table" in str(exc).lower():
                return None
            raise
    finally:
        conn.close()


def load_latest_snapshot(data_dir: str) -> Optional[SnapshotRecord]:
    row = _fetch_one(data_dir, f"{_SELECT_COLUMNS}\n     ORDER BY id DESC\n     LIMIT 1")
    return _parse_row(row) if row is not None else None


def load_snapshot_by_height(data_dir: str, target_height: int) -> Optional[SnapshotRecord]:
    """Record whose burn height is nearest to ``target_height``; newest wins ties."""
    row = _fetch_one(
        data_dir,
        f"{_SELECT_COLUMNS}\n     ORDER BY ABS(bitcoin_block_height - ?) ASC, id DESC\n     LIMIT 1",
        (int(target_height),),
    )
    return _parse_row(row) if row is not None else None


def latest_cached_height(data_dir: str) -> Optional[int]:
    row = _fetch_one(data_dir, "SELECT bitcoin_block_height FROM miner_snapshots ORDER BY id DESC LIMIT 1")
    return int(row["bitcoin_block_height"]) if row is not None else None


def count_snapshots(data_dir: str) -> int:
    row = _fetch_one(data_dir, "SELECT COUNT(*) AS total FROM miner_snapshots")
    return int(row["total"]) if row is not None else 0
