# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio
"""
Read-only access to the two node-owned stores.

- sortition store : block_commits, snapshots (production rounds)
- chain-state store: nakamoto_block_headers, payments

Both are opened per run through ``file:...?mode=ro`` URIs and closed when the
run ends. Nothing in this module writes to either file.
"""

from __future__ import annotations

import os
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

# ---------------- Local Project ----------------
from ..utils import config as CFG
from ..utils.errors import SourceUnavailable
from ..utils.helpers import escape_sqlite_string

# ---------------- Logger ----------------
from ..utils.hub_logging import get_ctx_logger
log = get_ctx_logger("minerhub.storage.sources")

SORTITION_ALIAS = "sortition"


def sortition_path(data_dir: str) -> str:
    return os.path.join(data_dir, CFG.SORTITION_DB_RELATIVE)


def chainstate_path(data_dir: str) -> str:
    return os.path.join(data_dir, CFG.CHAINSTATE_DB_RELATIVE)


def readonly_uri(path: str | os.PathLike) -> str:
    return Path(path).resolve().as_uri() + "?mode=ro"


def _install_deadline(conn: sqlite3.Connection, deadline: Optional[float]) -> None:
    if deadline is None:
        return
    def _check() -> int:
        return 1 if time.monotonic() > deadline else 0
    conn.set_progress_handler(_check, int(CFG.SOURCE_PROGRESS_OPS))


def open_readonly(path: str | os.PathLike, *, deadline: Optional[float] = None) -> sqlite3.Connection:
    """Open ``path`` read-only. ``deadline`` is a time.monotonic() value after which queries are interrupted."""
    if not os.path.isfile(path):
        raise SourceUnavailable(str(path))
    try:
        conn = sqlite3.connect(
            readonly_uri(path),
            uri=True,
            timeout=float(CFG.SOURCE_BUSY_TIMEOUT_S),
            check_same_thread=False,
        )
    except sqlite3.Error as exc:
        raise SourceUnavailable(str(path), reason=str(exc)) from exc
    conn.row_factory = sqlite3.Row
    _install_deadline(conn, deadline)
    return conn


class SourceStores:
    """Both source connections for one run. Use as a context manager."""

    def __init__(self, data_dir: str, *, deadline_s: float | None = None):
        self.data_dir = data_dir
        self.sortition_path = sortition_path(data_dir)
        self.chainstate_path = chainstate_path(data_dir)
        if deadline_s is None:
            deadline_s = float(CFG.SOURCE_QUERY_DEADLINE_S)
        self.deadline = (time.monotonic() + deadline_s) if deadline_s > 0 else None
        self.sortition: sqlite3.Connection | None = None
        self.chainstate: sqlite3.Connection | None = None

    def open(self) -> "SourceStores":
        try:
            self.sortition = open_readonly(self.sortition_path, deadline=self.deadline)
            self.chainstate = open_readonly(self.chainstate_path, deadline=self.deadline)
        except Exception:
            self.close()
            raise
        log.trace("[open] sources opened (sortition=%s chainstate=%s)", self.sortition_path, self.chainstate_path)
        return self

    def close(self) -> None:
        for conn in (self.sortition, self.chainstate):
            if conn is None:
                continue
            try:
                conn.close()
            except sqlite3.Error:
                log.warning("[close] failed closing source connection", exc_info=True)
        self.sortition = None
        self.chainstate = None

    def __enter__(self) -> "SourceStores":
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()


@contextmanager
def attach_sortition(chainstate: sqlite3.Connection, path: str) -> Iterator[str]:
    """Attach the sortition store to a chain-state connection for cross-store joins."""
    escaped = escape_sqlite_string(readonly_uri(path))
    chainstate.execute(f"ATTACH DATABASE '{escaped}' AS {SORTITION_ALIAS}")
    try:
        yield SORTITION_ALIAS
    finally:
        chainstate.execute(f"DETACH DATABASE {SORTITION_ALIAS}")


# =========================
# Sortition store readers
# =========================

def max_commit_height(sortition: sqlite3.Connection) -> int | None:
    row = sortition.execute("SELECT MAX(block_height) AS max_height FROM block_commits").fetchone()
    if row is None or row["max_height"] is None:
        return None
    return int(row["max_height"])


def iter_commit_rows(sortition: sqlite3.Connection, lower_bound: int, upper_bound: int) -> Iterator[sqlite3.Row]:
    """Commitments in ``[lower_bound, upper_bound]``, ascending by height then position."""
    return sortition.execute(
        """SELECT
              burn_header_hash,
              txid,
              apparent_sender,
              sortition_id,
              vtxindex,
              block_height,
              burn_fee,
              parent_block_ptr,
              parent_vtxindex,
              memo
            FROM block_commits
            WHERE block_height BETWEEN ? AND ?
            ORDER BY block_height ASC, vtxindex ASC""",
        (int(lower_bound), int(upper_bound)),
    )


def production_round(sortition: sqlite3.Connection, height: int) -> sqlite3.Row | None:
    return sortition.execute(
        """SELECT winning_block_txid, canonical_stacks_tip_height, consensus_hash, sortition_id
            FROM snapshots
            WHERE block_height = ?""",
        (int(height),),
    ).fetchone()


def burn_fee_totals(sortition: sqlite3.Connection, lower_bound: int) -> Iterator[sqlite3.Row]:
    """Total commitment spend per sender above ``lower_bound``, winners and losers alike."""
    return sortition.execute(
        """SELECT sender, SUM(total_burn_fee) AS total_burn_fee FROM (
              SELECT TRIM(apparent_sender, '"') AS sender, burn_fee AS total_burn_fee
              FROM block_commits
              WHERE block_height > ?
            )
            GROUP BY sender""",
        (int(lower_bound),),
    )


# =========================
# Chain-state store readers
# =========================

def payment_for_consensus(chainstate: sqlite3.Connection, consensus_hash: str) -> sqlite3.Row | None:
    return chainstate.execute(
        "SELECT block_hash, coinbase FROM payments WHERE consensus_hash = ?",
        (consensus_hash,),
    ).fetchone()


def tenure_fees_at(chainstate: sqlite3.Connection, burn_height: int) -> sqlite3.Row | None:
    return chainstate.execute(
        """SELECT tenure_tx_fees FROM nakamoto_block_headers
            WHERE burn_header_height = ?
            ORDER BY height_in_tenure DESC
            LIMIT 1""",
        (int(burn_height),),
    ).fetchone()


def canonical_tenure_rows(chainstate: sqlite3.Connection, lower_bound: int, limit: int) -> Iterator[sqlite3.Row]:
    """
    Tenure-changing blocks on the ancestor chain of the newest tenure change,
    walked back through ``parent_block_id`` while the burn height stays above
    ``lower_bound``, joined with their payment. Blocks on forks that do not
    lead to the tip are never reached.
    """
    return chainstate.execute(
        """WITH RECURSIVE tip AS (
              SELECT index_block_hash
              FROM nakamoto_block_headers
              WHERE tenure_changed = 1
                AND burn_header_height > ?
              ORDER BY burn_header_height DESC, block_height DESC
              LIMIT 1
            ),
            block_ancestors(index_block_hash, parent_block_id, burn_header_height, tenure_changed) AS (
              SELECT h.index_block_hash, h.parent_block_id, h.burn_header_height, h.tenure_changed
              FROM nakamoto_block_headers AS h
              JOIN tip ON h.index_block_hash = tip.index_block_hash
              UNION
              SELECT h.index_block_hash, h.parent_block_id, h.burn_header_height, h.tenure_changed
              FROM nakamoto_block_headers AS h
              JOIN block_ancestors ON h.index_block_hash = block_ancestors.parent_block_id
              WHERE h.burn_header_height > ?
            )
            SELECT
              block_ancestors.burn_header_height,
              payments.recipient AS address,
              payments.burnchain_commit_burn,
              payments.coinbase + payments.tx_fees_anchored + payments.tx_fees_streamed AS stx_reward
            FROM block_ancestors
            JOIN payments ON payments.index_block_hash = block_ancestors.index_block_hash
            WHERE block_ancestors.tenure_changed = 1
            ORDER BY block_ancestors.burn_header_height DESC
            LIMIT ?""",
        (int(lower_bound), int(lower_bound), int(limit)),
    )


def recipient_sender_rows(chainstate: sqlite3.Connection, alias: str, limit: int) -> Iterator[sqlite3.Row]:
    """
    Most recent reward records joined to the sender of the winning commitment:
    payment -> header -> production round -> winning commit. Broken joins
    surface as a NULL bitcoin_address. Requires ``attach_sortition``.
    """
    return chainstate.execute(
        f"""WITH recent_payments AS (
              SELECT recipient, index_block_hash
              FROM payments
              WHERE recipient IS NOT NULL
              ORDER BY stacks_block_height DESC
              LIMIT ?
            )
            SELECT
              recent_payments.recipient AS stacks_address,
              TRIM({alias}.block_commits.apparent_sender, '"') AS bitcoin_address
            FROM recent_payments
            LEFT JOIN nakamoto_block_headers
              ON recent_payments.index_block_hash = nakamoto_block_headers.index_block_hash
            LEFT JOIN {alias}.snapshots
              ON nakamoto_block_headers.consensus_hash = {alias}.snapshots.consensus_hash
            LEFT JOIN {alias}.block_commits
              ON {alias}.snapshots.winning_block_txid = {alias}.block_commits.txid""",
        (int(limit),),
    )


def max_header_burn_height(chainstate: sqlite3.Connection) -> int | None:
    row = chainstate.execute(
        "SELECT MAX(burn_header_height) AS max_height FROM nakamoto_block_headers"
    ).fetchone()
    if row is None or row["max_height"] is None:
        return None
    return int(row["max_height"])


def recent_header_rows(chainstate: sqlite3.Connection, lower_bound: int) -> Iterator[sqlite3.Row]:
    return chainstate.execute(
        """SELECT
              block_size,
              cost,
              total_tenure_cost,
              tenure_changed,
              tenure_tx_fees,
              block_height,
              burn_header_height,
              timestamp
            FROM nakamoto_block_headers
            WHERE burn_header_height > ?
            ORDER BY block_height ASC""",
        (int(lower_bound),),
    )
