# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations

import sqlite3
from typing import Dict, Iterable, Optional, Set, Tuple

# ---------------- Local Project ----------------
from ..storage.sources import attach_sortition, recipient_sender_rows
from ..utils import config as CFG

# ---------------- Logger ----------------
from ..utils.hub_logging import get_ctx_logger
log = get_ctx_logger("minerhub.mining.addresses")


class MinerAddressMaps:
    """
    Reward recipient <-> commit sender association for one snapshot.
    A recipient maps to one sender (first seen wins); a sender may map to
    several recipients.
    """

    def __init__(self):
        self.stacks_to_btc: Dict[str, str] = {}
        self.btc_to_stacks: Dict[str, Set[str]] = {}

    def __len__(self) -> int:
        return len(self.stacks_to_btc)

    def add(self, stacks_address: Optional[str], bitcoin_address: Optional[str]) -> bool:
        if not stacks_address or not bitcoin_address:
            return False
        if stacks_address in self.stacks_to_btc:
            return False
        self.stacks_to_btc[stacks_address] = bitcoin_address
        self.btc_to_stacks.setdefault(bitcoin_address, set()).add(stacks_address)
        return True

    def bitcoin_for(self, stacks_address: str) -> Optional[str]:
        return self.stacks_to_btc.get(stacks_address)

    def stacks_for(self, bitcoin_address: str) -> Set[str]:
        return self.btc_to_stacks.get(bitcoin_address, set())

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[Optional[str], Optional[str]]]) -> "MinerAddressMaps":
        maps = cls()
        for stacks_address, bitcoin_address in pairs:
            maps.add(stacks_address, bitcoin_address)
        return maps


def build_miner_address_maps(chainstate: sqlite3.Connection, sortition_path: str,
                             limit: int = CFG.MINER_POWER_WINDOW * CFG.ADDRESS_MAP_MULTIPLIER) -> MinerAddressMaps:
    """Correlate the most recent ``limit`` reward records with their winning commit's sender."""
    with attach_sortition(chainstate, sortition_path) as alias:
        rows = recipient_sender_rows(chainstate, alias, limit).fetchall()

    maps = MinerAddressMaps.from_pairs((row["stacks_address"], row["bitcoin_address"]) for row in rows)
    skipped = len(rows) - len(maps)
    log.debug("[build_miner_address_maps] %s recipients from %s reward records (%s skipped or repeated)",
              len(maps), len(rows), skipped)
    return maps
