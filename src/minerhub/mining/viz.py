# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations

import sqlite3
from typing import List, Optional

# ---------------- Local Project ----------------
from ..core.commit import CommitGraph, Commitment
from ..core.snapshot import MinerVizSnapshot
from ..utils import config as CFG
from ..utils.helpers import format_number, normalize_sender, string_to_color, utc_now_iso
from .graph import fetch_commit_graph
from .resolver import process_canonical_tip, process_winning_blocks

# ---------------- Logger ----------------
from ..utils.hub_logging import get_ctx_logger
log = get_ctx_logger("minerhub.mining.viz")

DOT_HEADER = (
    "digraph G {",
    "  graph [rankdir=TB, fontname=monospace];",
    '  node [shape=component, fontname=monospace, style="filled,dashed,rounded", penwidth=1, margin="0.5,0.2"];',
    f'  edge [penwidth=1.5, color="{CFG.EDGE_DEFAULT_COLOR}", arrowsize=0.8];',
)


def escape_dot_string(value: str) -> str:
    return value.replace('"', '\\"')


def _sats_k(amount: float) -> str:
    return f"{format_number(amount / 1000)}K sats"


def build_node_label(commit: Commitment) -> str:
    parts = [
        f"⛏️ {normalize_sender(commit.sender)}",
        f"🔗 {commit.stacks_height}",
        f"💸 {_sats_k(commit.spend)}",
    ]
    if commit.memo:
        parts.append(f"📋 {escape_dot_string(commit.memo)}\\l")
    return "\\l".join(parts)


def commit_url(commit: Commitment) -> str:
    if commit.block_hash:
        return CFG.BLOCK_EXPLORER_URL.format(block_hash=commit.block_hash)
    return CFG.BURN_TX_URL.format(txid=commit.txid)


def _node_line(commit: Commitment) -> str:
    style = "filled,rounded"
    penwidth = 1
    color = CFG.NODE_BORDER_COLOR
    if not commit.won and not commit.canonical:
        style = "dashed,filled,rounded"
    if commit.won:
        penwidth = 3
        color = CFG.NODE_WON_COLOR
    if commit.tip:
        penwidth = 4
    return (
        f'    "{commit.txid}" [label="{build_node_label(commit)}", URL="{commit_url(commit)}", '
        f'fillcolor="{string_to_color(commit.sender)}", color="{color}", style="{style}", penwidth={penwidth}];'
    )


def _edge_line(parent: Commitment, child: Commitment) -> str:
    color, penwidth = CFG.EDGE_DEFAULT_COLOR, 1.5
    if child.burn_block_height > parent.burn_block_height + 1:
        color, penwidth = CFG.EDGE_FORK_COLOR, 2.5
    if child.canonical:
        color, penwidth = CFG.EDGE_CANONICAL_COLOR, 3.0
    return f'  "{parent.txid}" -> "{child.txid}" [color="{color}", penwidth={penwidth:g}];'


def generate_dot(graph: CommitGraph) -> str:
    """Graphviz source: one cluster per burn height, one node per commit, parent -> child edges."""
    lines: List[str] = list(DOT_HEADER)

    for height in graph.heights():
        commits = graph.at_height(height)
        if not commits:
            continue
        lines.append(f"  subgraph cluster_block_{height} {{")
        lines.append('    style="filled,rounded";')
        lines.append('    color="#E2E8F0";')
        lines.append('    fillcolor="#F7FAFC";')
        lines.append("    margin=8;")
        for commit in commits:
            lines.append(_node_line(commit))
        spend = graph.spend_for(commits[0].sortition_id)
        lines.append(f'    label="₿ {height}\\l💰 {_sats_k(spend)}\\l";')
        lines.append("  }")

    for commit in graph:
        parent = graph.parent_of(commit)
        if parent is not None:
            lines.append(_edge_line(parent, commit))

    lines.append("}")
    return "\n".join(lines)


def compute_miner_viz_snapshot(
    sortition: sqlite3.Connection,
    chainstate: sqlite3.Connection,
    lower_bound: int,
    start_block: int,
    generated_at: Optional[str] = None,
) -> MinerVizSnapshot:
    graph = fetch_commit_graph(sortition, lower_bound, start_block)
    latest_round = process_winning_blocks(graph, sortition, chainstate)
    canonical = process_canonical_tip(graph, sortition)
    log.debug("[compute_miner_viz_snapshot] %s commits, canonical chain length %s",
              len(graph), canonical, extra={"height": start_block})
    return MinerVizSnapshot(
        generated_at=generated_at or utc_now_iso(),
        bitcoin_block_height=start_block,
        sortition_id=(latest_round["sortition_id"] if latest_round is not None else None),
        dot_source=generate_dot(graph),
    )
