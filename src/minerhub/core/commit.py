# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Tuple

PositionKey = Tuple[int, int]


class Commitment:
    """
    One miner's block-commit at a burn height. ``parent_block_ptr`` and
    ``parent_vtxindex`` point at the parent by position, not by hash; the
    graph builder resolves them into ``parent`` (a txid, or "" at the window
    boundary). Everything below "resolved fields" is set by the resolver.
    """

    def __init__(self, txid: str, sender: str, burn_block_height: int, vtxindex: int, spend: int,
                 sortition_id: str, parent_block_ptr: int, parent_vtxindex: int, memo: str = "",
                 burn_header_hash: str = ""):
        self.txid = txid
        self.sender = sender
        self.burn_block_height = int(burn_block_height)
        self.vtxindex = int(vtxindex)
        self.spend = int(spend)
        self.sortition_id = sortition_id
        self.parent_block_ptr = int(parent_block_ptr)
        self.parent_vtxindex = int(parent_vtxindex)
        self.memo = memo
        self.burn_header_hash = burn_header_hash

        # resolved fields
        self.parent: str = ""
        self.won = False
        self.canonical = False
        self.tip = False
        self.potential_tip = False
        self.stacks_height = 0
        self.block_hash = ""
        self.coinbase_earned = 0
        self.fees_earned = 0

    @property
    def key(self) -> PositionKey:
        return (self.burn_block_height, self.vtxindex)

    @property
    def parent_key(self) -> PositionKey:
        return (self.parent_block_ptr, self.parent_vtxindex)

    @classmethod
    def from_row(cls, row) -> "Commitment":
        def _col(name, default):
            value = row[name]
            return default if value is None else value
        return cls(
            txid=row["txid"],
            sender=_col("apparent_sender", ""),
            burn_block_height=_col("block_height", 0),
            vtxindex=_col("vtxindex", 0),
            spend=int(float(_col("burn_fee", 0) or 0)),
            sortition_id=_col("sortition_id", ""),
            parent_block_ptr=_col("parent_block_ptr", 0),
            parent_vtxindex=_col("parent_vtxindex", 0),
            memo=_col("memo", ""),
            burn_header_hash=_col("burn_header_hash", ""),
        )

    def to_dict(self) -> dict:
        return {
            "txid": self.txid,
            "sender": self.sender,
            "burn_block_height": self.burn_block_height,
            "vtxindex": self.vtxindex,
            "spend": self.spend,
            "sortition_id": self.sortition_id,
            "parent_block_ptr": self.parent_block_ptr,
            "parent_vtxindex": self.parent_vtxindex,
            "memo": self.memo,
            "parent": self.parent,
            "won": self.won,
            "canonical": self.canonical,
            "tip": self.tip,
            "stacks_height": self.stacks_height,
            "block_hash": self.block_hash,
            "coinbase_earned": self.coinbase_earned,
            "fees_earned": self.fees_earned,
        }

    def __repr__(self) -> str:
        return f"Commitment(txid={self.txid!r}, height={self.burn_block_height}, vtx={self.vtxindex}, parent={self.parent!r})"


class CommitGraph:
    """All commitments of one run's window. Owned by that run only."""

    def __init__(self, lower_bound: int, upper_bound: int):
        self.lower_bound = int(lower_bound)
        self.upper_bound = int(upper_bound)
        self.all_commits: Dict[str, Commitment] = {}
        self.commits_by_block: Dict[int, List[Commitment]] = {}
        self.sortition_spend: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self.all_commits)

    def __iter__(self) -> Iterator[Commitment]:
        return iter(self.all_commits.values())

    def __contains__(self, txid: object) -> bool:
        return txid in self.all_commits

    @property
    def is_empty(self) -> bool:
        return not self.all_commits

    def get(self, txid: str) -> Optional[Commitment]:
        return self.all_commits.get(txid) if txid else None

    def parent_of(self, commit: Commitment) -> Optional[Commitment]:
        return self.get(commit.parent)

    def at_height(self, height: int) -> List[Commitment]:
        return self.commits_by_block.get(int(height), [])

    def heights(self) -> range:
        return range(self.lower_bound, self.upper_bound + 1)

    def spend_for(self, sortition_id: str) -> int:
        return self.sortition_spend.get(sortition_id, 0)

    def canonical_chain(self) -> List[Commitment]:
        """Canonical commitments, tip first."""
        chain = [c for c in self.all_commits.values() if c.canonical]
        chain.sort(key=lambda c: c.key, reverse=True)
        return chain
