# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations

import sqlite3
from typing import Dict, Iterable

# ---------------- Local Project ----------------
from ..core.commit import CommitGraph, Commitment, PositionKey
from ..storage.sources import iter_commit_rows

# ---------------- Logger ----------------
from ..utils.hub_logging import get_ctx_logger
log = get_ctx_logger("minerhub.mining.graph")


def build_commit_graph(commits: Iterable[Commitment], lower_bound: int, upper_bound: int) -> CommitGraph:
    """
    Single ordered pass over ``commits`` (ascending height, then vtxindex).
    Each commit looks up its parent position before registering its own, so a
    parent must already be ingested; parents always sit at a lower height.
    A parent below ``lower_bound`` is never registered and resolves to "".
    """
    graph = CommitGraph(lower_bound, upper_bound)
    positions: Dict[PositionKey, str] = {}

    for commit in commits:
        parent_txid = positions.get(commit.parent_key)
        if parent_txid:
            commit.parent = parent_txid
        graph.all_commits[commit.txid] = commit
        positions[commit.key] = commit.txid

    for commit in graph.all_commits.values():
        graph.commits_by_block.setdefault(commit.burn_block_height, []).append(commit)
        graph.sortition_spend[commit.sortition_id] = graph.sortition_spend.get(commit.sortition_id, 0) + commit.spend

    log.debug("[build_commit_graph] %s commits across %s heights in [%s, %s]",
              len(graph.all_commits), len(graph.commits_by_block), lower_bound, upper_bound)
    return graph


def fetch_commit_graph(sortition: sqlite3.Connection, lower_bound: int, upper_bound: int) -> CommitGraph:
    if upper_bound < lower_bound:
        return CommitGraph(lower_bound, upper_bound)
    rows = iter_commit_rows(sortition, lower_bound, upper_bound)
    return build_commit_graph((Commitment.from_row(row) for row in rows), lower_bound, upper_bound)
