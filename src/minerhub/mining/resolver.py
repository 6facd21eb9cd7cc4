# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations

import sqlite3
from typing import Optional

# ---------------- Local Project ----------------
from ..core.commit import CommitGraph, Commitment
from ..storage.sources import payment_for_consensus, production_round, tenure_fees_at
from ..utils.helpers import to_int

# ---------------- Logger ----------------
from ..utils.hub_logging import get_ctx_logger
log = get_ctx_logger("minerhub.mining.resolver")


def _attach_rewards(commit: Commitment, consensus_hash: str, chainstate: sqlite3.Connection) -> None:
    payment = payment_for_consensus(chainstate, consensus_hash)
    if payment is not None:
        if payment["block_hash"] is not None:
            commit.block_hash = payment["block_hash"]
        if payment["coinbase"] is not None:
            commit.coinbase_earned = to_int(payment["coinbase"])

    fees = tenure_fees_at(chainstate, commit.burn_block_height)
    if fees is not None and fees["tenure_tx_fees"] is not None:
        commit.fees_earned = to_int(fees["tenure_tx_fees"])


def _mark_winner(commit: Commitment, graph: CommitGraph, stacks_height: int,
                 consensus_hash: str, chainstate: sqlite3.Connection) -> None:
    commit.won = True
    commit.potential_tip = True
    commit.stacks_height = stacks_height

    parent = graph.parent_of(commit)
    if parent is not None:
        parent.potential_tip = False

    if stacks_height <= 0:
        return
    _attach_rewards(commit, consensus_hash, chainstate)


def process_winning_blocks(graph: CommitGraph, sortition: sqlite3.Connection,
                           chainstate: sqlite3.Connection) -> Optional[sqlite3.Row]:
    """
    Walk the window's heights in ascending order and mark each round's winning
    commit. Heights without a production round are skipped. Returns the latest
    production round seen, or None.
    """
    latest_round = None
    for height in graph.heights():
        commits = graph.at_height(height)
        if not commits:
            continue

        rnd = production_round(sortition, height)
        if rnd is None:
            log.trace("[process_winning_blocks] no production round at %s", height, extra={"height": height})
            continue
        latest_round = rnd

        stacks_height = to_int(rnd["canonical_stacks_tip_height"])
        winner_txid = rnd["winning_block_txid"]
        for commit in commits:
            if rnd["canonical_stacks_tip_height"] is not None:
                commit.stacks_height = stacks_height
            if commit.txid == winner_txid:
                _mark_winner(commit, graph, stacks_height, rnd["consensus_hash"], chainstate)
    return latest_round


def trace_canonical_tip(graph: CommitGraph, tip_txid: Optional[str]) -> int:
    """
    Mark the commit ``tip_txid`` as tip and every ancestor reachable through
    resolved parents as canonical. Visits each commit at most once and never
    takes more steps than the window has heights. Returns the length of the
    canonical chain.
    """
    max_steps = min(len(graph), len(graph.heights()))
    visited: set[str] = set()
    txid = tip_txid or ""
    while txid and txid not in visited and len(visited) < max_steps:
        commit = graph.get(txid)
        if commit is None:
            break
        if not visited:
            commit.tip = True
        commit.canonical = True
        visited.add(txid)
        txid = commit.parent
    return len(visited)


def process_canonical_tip(graph: CommitGraph, sortition: sqlite3.Connection) -> int:
    rnd = production_round(sortition, graph.upper_bound)
    if rnd is None or not rnd["winning_block_txid"]:
        log.debug("[process_canonical_tip] no winner at tip height %s", graph.upper_bound)
        return 0
    return trace_canonical_tip(graph, rnd["winning_block_txid"])
