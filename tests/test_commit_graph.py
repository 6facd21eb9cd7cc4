# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from minerhub.core.commit import Commitment
from minerhub.mining.graph import build_commit_graph, fetch_commit_graph
from minerhub.storage.sources import SourceStores


def _commit(txid, height, vtx, parent_ptr, parent_vtx, spend=1000, sortition_id=None, sender="bc1qsender000"):
    return Commitment(
        txid=txid,
        sender=sender,
        burn_block_height=height,
        vtxindex=vtx,
        spend=spend,
        sortition_id=sortition_id or f"sort-{height}",
        parent_block_ptr=parent_ptr,
        parent_vtxindex=parent_vtx,
    )


def test_parents_resolve_by_position():
    commits = [
        _commit("x10", 10, 1, 9, 1),
        _commit("y10", 10, 2, 9, 1),
        _commit("x11", 11, 1, 10, 2),
        _commit("x13", 13, 5, 10, 1),
    ]
    graph = build_commit_graph(commits, 10, 13)

    assert len(graph) == 4
    assert graph.get("x11").parent == "y10"
    assert graph.get("x13").parent == "x10"
    assert graph.parent_of(graph.get("x13")).txid == "x10"


def test_parent_below_lower_bound_is_empty():
    graph = build_commit_graph([_commit("x10", 10, 1, 9, 1)], 10, 10)
    commit = graph.get("x10")
    assert commit.parent == ""
    assert graph.parent_of(commit) is None


def test_parent_at_unknown_position_is_empty():
    commits = [_commit("x10", 10, 1, 9, 1), _commit("x11", 11, 1, 10, 7)]
    graph = build_commit_graph(commits, 10, 11)
    assert graph.get("x11").parent == ""


def test_commits_grouped_by_height_in_order_and_spend_summed():
    commits = [
        _commit("a", 20, 1, 19, 1, spend=1500),
        _commit("b", 20, 3, 19, 1, spend=2500),
        _commit("c", 21, 2, 20, 1, spend=700),
    ]
    graph = build_commit_graph(commits, 19, 21)

    assert [c.txid for c in graph.at_height(20)] == ["a", "b"]
    assert graph.at_height(19) == []
    assert list(graph.heights()) == [19, 20, 21]
    assert graph.spend_for("sort-20") == 4000
    assert graph.spend_for("sort-21") == 700
    assert graph.spend_for("missing") == 0


def test_fetch_commit_graph_reads_window(seeded_stores):
    with SourceStores(seeded_stores.data_dir) as src:
        graph = fetch_commit_graph(src.sortition, 102, 104)

    assert sorted(graph.commits_by_block) == [102, 103, 104]
    assert len(graph) == 6
    # parents of the lowest height lie outside the window
    assert all(c.parent == "" for c in graph.at_height(102))
    assert graph.get("b103").parent == "a102"
    assert graph.get("a104").sender == '"bc1qminera0000000"'
    assert graph.get("a104").spend == 1000


def test_fetch_commit_graph_empty_when_bounds_inverted(seeded_stores):
    with SourceStores(seeded_stores.data_dir) as src:
        graph = fetch_commit_graph(src.sortition, 110, 100)
    assert graph.is_empty
