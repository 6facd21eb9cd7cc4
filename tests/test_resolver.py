# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from minerhub.core.commit import CommitGraph, Commitment
from minerhub.mining.graph import fetch_commit_graph
from minerhub.mining.resolver import process_canonical_tip, process_winning_blocks, trace_canonical_tip
from minerhub.storage.sources import SourceStores


def _resolved(data_dir, lower, upper):
    with SourceStores(data_dir) as src:
        graph = fetch_commit_graph(src.sortition, lower, upper)
        latest = process_winning_blocks(graph, src.sortition, src.chainstate)
        length = process_canonical_tip(graph, src.sortition)
    return graph, latest, length


def test_winners_marked_with_rewards(seeded_stores):
    graph, latest, _ = _resolved(seeded_stores.data_dir, 100, 105)

    winners = sorted(c.txid for c in graph if c.won)
    assert winners == ["a102", "a104", "b101", "b103", "b105"]
    assert latest["sortition_id"] == "sort-105"

    b103 = graph.get("b103")
    assert b103.stacks_height == 3
    assert b103.block_hash == "block-103"
    assert b103.coinbase_earned == 1_000_000_000
    assert b103.fees_earned == 500

    # losers carry the round's stacks height but no rewards
    a103 = graph.get("a103")
    assert not a103.won
    assert a103.stacks_height == 3
    assert a103.block_hash == ""


def test_potential_tip_cleared_on_parent(seeded_stores):
    graph, _, _ = _resolved(seeded_stores.data_dir, 100, 105)
    # b105 builds on a104, so a104 is no longer a potential tip
    assert graph.get("b105").potential_tip
    assert not graph.get("a104").potential_tip


def test_canonical_chain_traced_from_tip(seeded_stores):
    graph, _, length = _resolved(seeded_stores.data_dir, 100, 105)

    assert length == 5
    tips = [c.txid for c in graph if c.tip]
    assert tips == ["b105"]
    assert [c.txid for c in graph.canonical_chain()] == ["b105", "a104", "a103", "a102", "a101"]
    assert not graph.get("b104").canonical


def test_height_without_round_is_skipped(node_stores):
    node_stores.add_commit("a201", "bc1qminera0000000", 201, 1, 1000, 200, 1)
    node_stores.add_commit("a202", "bc1qminera0000000", 202, 1, 1000, 201, 1)
    node_stores.add_round(202, "a202", 7)

    graph, latest, length = _resolved(node_stores.data_dir, 201, 202)
    assert not graph.get("a201").won
    assert graph.get("a202").won
    assert latest["winning_block_txid"] == "a202"
    assert length == 2


def test_zero_stacks_height_skips_reward_lookup(node_stores):
    node_stores.add_commit("a301", "bc1qminera0000000", 301, 1, 1000, 300, 1)
    node_stores.add_round(301, "a301", 0)
    node_stores.add_payment("SP1MINERA", 301, 0, 1000)

    graph, _, _ = _resolved(node_stores.data_dir, 301, 301)
    commit = graph.get("a301")
    assert commit.won
    assert commit.block_hash == ""
    assert commit.coinbase_earned == 0


def test_no_winner_at_tip_leaves_chain_unmarked(node_stores):
    node_stores.add_commit("a401", "bc1qminera0000000", 401, 1, 1000, 400, 1)
    graph, latest, length = _resolved(node_stores.data_dir, 401, 401)
    assert latest is None
    assert length == 0
    assert not any(c.canonical for c in graph)


def _bare(txid, height):
    return Commitment(txid, "bc1qsender000", height, 1, 1000, f"sort-{height}", height - 1, 1)


def test_trace_terminates_on_cycle():
    graph = CommitGraph(1, 2)
    a, b = _bare("a", 1), _bare("b", 2)
    a.parent, b.parent = "b", "a"
    graph.all_commits = {"a": a, "b": b}

    assert trace_canonical_tip(graph, "b") == 2
    assert a.canonical and b.canonical
    assert b.tip and not a.tip


def test_trace_stops_at_absent_parent():
    graph = CommitGraph(1, 2)
    b = _bare("b", 2)
    b.parent = "gone"
    graph.all_commits = {"b": b}

    assert trace_canonical_tip(graph, "b") == 1
    assert trace_canonical_tip(graph, "missing") == 0
    assert trace_canonical_tip(graph, None) == 0


def test_trace_bounded_by_window_heights():
    graph = CommitGraph(5, 6)
    chain = [_bare(t, 6) for t in ("a", "b", "c", "d")]
    for child, parent in zip(chain, chain[1:]):
        child.parent = parent.txid
    graph.all_commits = {c.txid: c for c in chain}

    assert trace_canonical_tip(graph, "a") == 2
    assert [c.txid for c in chain if c.canonical] == ["a", "b"]
