# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

import json
import os
import sqlite3
import sys

import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(PROJECT_ROOT, "src")
for path in (PROJECT_ROOT, SRC_ROOT):
    if path not in sys.path:
        sys.path.append(path)

from minerhub.storage.sources import chainstate_path, sortition_path  # noqa: E402

SORTITION_SCHEMA = (
    """CREATE TABLE block_commits (
        burn_header_hash TEXT,
        txid TEXT NOT NULL,
        apparent_sender TEXT,
        sortition_id TEXT,
        vtxindex INTEGER,
        block_height INTEGER,
        burn_fee INTEGER,
        parent_block_ptr INTEGER,
        parent_vtxindex INTEGER,
        memo TEXT
    )""",
    """CREATE TABLE snapshots (
        block_height INTEGER,
        winning_block_txid TEXT,
        canonical_stacks_tip_height INTEGER,
        consensus_hash TEXT,
        sortition_id TEXT
    )""",
)

CHAINSTATE_SCHEMA = (
    """CREATE TABLE payments (
        recipient TEXT,
        consensus_hash TEXT,
        block_hash TEXT,
        coinbase INTEGER,
        index_block_hash TEXT,
        stacks_block_height INTEGER,
        burnchain_commit_burn INTEGER,
        tx_fees_anchored INTEGER,
        tx_fees_streamed INTEGER
    )""",
    """CREATE TABLE nakamoto_block_headers (
        index_block_hash TEXT,
        consensus_hash TEXT,
        burn_header_height INTEGER,
        height_in_tenure INTEGER,
        tenure_tx_fees INTEGER,
        tenure_changed INTEGER,
        parent_block_id TEXT,
        block_size INTEGER,
        cost TEXT,
        total_tenure_cost TEXT,
        block_height INTEGER,
        timestamp INTEGER
    )""",
)

MINER_A_BTC = "bc1qminera0000000"
MINER_B_BTC = "bc1qminerb0000000"
MINER_A_STX = "SP1MINERA"
MINER_B_STX = "SP2MINERB"


class NodeStores:
    """Writable fixture copies of the node's sortition and chain-state stores."""

    def __init__(self, data_dir):
        self.data_dir = str(data_dir)
        self.sortition_file = sortition_path(self.data_dir)
        self.chainstate_file = chainstate_path(self.data_dir)
        for path, schema in ((self.sortition_file, SORTITION_SCHEMA), (self.chainstate_file, CHAINSTATE_SCHEMA)):
            os.makedirs(os.path.dirname(path), exist_ok=True)
            conn = sqlite3.connect(path)
            with conn:
                for stmt in schema:
                    conn.execute(stmt)
            conn.close()

    def _insert(self, path, table, values: dict):
        cols = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        conn = sqlite3.connect(path)
        with conn:
            conn.execute(f"INSERT INTO {table} ({cols}) VALUES ({marks})", tuple(values.values()))
        conn.close()

    def add_commit(self, txid, sender, height, vtx, fee, parent_ptr, parent_vtx, sortition_id=None, memo=""):
        self._insert(self.sortition_file, "block_commits", {
            "burn_header_hash": f"bh-{height}",
            "txid": txid,
            "apparent_sender": json.dumps(sender),
            "sortition_id": sortition_id or f"sort-{height}",
            "vtxindex": vtx,
            "block_height": height,
            "burn_fee": fee,
            "parent_block_ptr": parent_ptr,
            "parent_vtxindex": parent_vtx,
            "memo": memo,
        })

    def add_round(self, height, winner_txid, stacks_height, consensus_hash=None, sortition_id=None):
        self._insert(self.sortition_file, "snapshots", {
            "block_height": height,
            "winning_block_txid": winner_txid,
            "canonical_stacks_tip_height": stacks_height,
            "consensus_hash": consensus_hash or f"ch-{height}",
            "sortition_id": sortition_id or f"sort-{height}",
        })

    def add_payment(self, recipient, height, stacks_height, commit_burn, coinbase=1_000_000_000,
                    fees_anchored=0, fees_streamed=0, consensus_hash=None, index_block_hash=None):
        self._insert(self.chainstate_file, "payments", {
            "recipient": recipient,
            "consensus_hash": consensus_hash or f"ch-{height}",
            "block_hash": f"block-{height}",
            "coinbase": coinbase,
            "index_block_hash": index_block_hash or f"ibh-{height}",
            "stacks_block_height": stacks_height,
            "burnchain_commit_burn": commit_burn,
            "tx_fees_anchored": fees_anchored,
            "tx_fees_streamed": fees_streamed,
        })

    def add_header(self, height, block_height, tenure_changed=1, tenure_tx_fees=500, cost=None,
                   consensus_hash=None, index_block_hash=None, parent_block_id=None):
        self._insert(self.chainstate_file, "nakamoto_block_headers", {
            "index_block_hash": index_block_hash or f"ibh-{height}",
            "consensus_hash": consensus_hash or f"ch-{height}",
            "burn_header_height": height,
            "height_in_tenure": 1,
            "tenure_tx_fees": tenure_tx_fees,
            "tenure_changed": tenure_changed,
            "parent_block_id": parent_block_id or f"ibh-{height - 1}",
            "block_size": 1024,
            "cost": cost,
            "total_tenure_cost": cost,
            "block_height": block_height,
            "timestamp": 1_700_000_000 + height * 600,
        })

    def seed_chain(self, heights=range(101, 106)):
        """
        Two miners commit at every height. A builds on A, B builds on A.
        B wins odd heights, A wins even heights. Each win has a tenure-change
        header and a payment to the winner's recipient.
        """
        for h in heights:
            self.add_commit(f"a{h}", MINER_A_BTC, h, 1, 1000, h - 1, 1)
            self.add_commit(f"b{h}", MINER_B_BTC, h, 2, 2000, h - 1, 1)
            winner, recipient, burn = (f"b{h}", MINER_B_STX, 2000) if h % 2 else (f"a{h}", MINER_A_STX, 1000)
            self.add_round(h, winner, h - 100)
            self.add_header(h, h - 100, cost=json.dumps({"runtime": 10 * h, "readCount": 2}))
            self.add_payment(recipient, h, h - 100, burn)


@pytest.fixture
def node_stores(tmp_path):
    return NodeStores(tmp_path)


@pytest.fixture
def seeded_stores(node_stores):
    node_stores.seed_chain()
    return node_stores
