# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations

import sqlite3
from typing import Dict, Iterable, List, Optional, Tuple

# ---------------- Local Project ----------------
from ..core.snapshot import MinerPowerRow, MinerPowerSnapshot
from ..storage.sources import burn_fee_totals, canonical_tenure_rows
from ..utils import config as CFG
from ..utils.helpers import to_int, utc_now_iso
from .addresses import MinerAddressMaps

# ---------------- Logger ----------------
from ..utils.hub_logging import get_ctx_logger
log = get_ctx_logger("minerhub.mining.power")


def aggregate_miner_power(
    tenure_rows: Iterable[Tuple[int, Optional[str], int, int]],
    burn_fees: Iterable[Tuple[Optional[str], int]],
    maps: MinerAddressMaps,
    lower_bound: int,
    window_size: int = CFG.MINER_POWER_WINDOW,
) -> List[MinerPowerRow]:
    """
    ``tenure_rows``: (burn_height, recipient, commit_burn, reward) per tenure-changing block.
    ``burn_fees``: (sender, total_spend) per commit sender over the same range.

    Counts wins, spend and rewards per recipient. A recipient whose reward
    records carry no spend takes its sender's total commit spend instead
    (overwrite, not sum). The sentinel row
    absorbs the blocks no recipient accounts for, so ``blocks_won`` always sums
    to ``window_size`` when fewer rows were counted.
    """
    btc_spent: Dict[str, int] = {}
    stx_earned: Dict[str, int] = {}
    blocks_won: Dict[str, int] = {}

    counted = 0
    for burn_height, address, commit_burn, reward in tenure_rows:
        if counted >= window_size:
            break
        if burn_height <= lower_bound or not address:
            continue
        blocks_won[address] = blocks_won.get(address, 0) + 1
        btc_spent[address] = btc_spent.get(address, 0) + commit_burn
        stx_earned[address] = stx_earned.get(address, 0) + reward
        counted += 1

    for sender, total in burn_fees:
        if not sender:
            continue
        for stacks_address in maps.stacks_for(sender):
            if not btc_spent.get(stacks_address):
                btc_spent[stacks_address] = total

    items = [
        MinerPowerRow(
            stacks_recipient=address,
            bitcoin_address=maps.bitcoin_for(address),
            blocks_won=won,
            btc_spent=btc_spent.get(address, 0),
            stx_earnt=stx_earned.get(address, 0) / CFG.REWARD_MICRO_UNITS,
            win_rate=(won / window_size) * 100,
        )
        for address, won in blocks_won.items()
    ]

    missing = max(0, window_size - counted)
    if missing > 0:
        items.append(MinerPowerRow(
            stacks_recipient=CFG.UNATTRIBUTED_RECIPIENT,
            bitcoin_address=None,
            blocks_won=missing,
            btc_spent=0,
            stx_earnt=0.0,
            win_rate=(missing / window_size) * 100,
        ))

    items.sort(key=lambda row: row.blocks_won, reverse=True)
    return items


def compute_miner_power_snapshot(
    chainstate: sqlite3.Connection,
    sortition: sqlite3.Connection,
    lower_bound: int,
    maps: MinerAddressMaps,
    bitcoin_block_height: int,
    sortition_id: Optional[str],
    window_size: int = CFG.MINER_POWER_WINDOW,
    generated_at: Optional[str] = None,
) -> MinerPowerSnapshot:
    tenure_rows = [
        (to_int(row["burn_header_height"]), row["address"],
         to_int(row["burnchain_commit_burn"]), to_int(row["stx_reward"]))
        for row in canonical_tenure_rows(chainstate, lower_bound, window_size)
    ]
    burn_fees = [
        (row["sender"], to_int(row["total_burn_fee"]))
        for row in burn_fee_totals(sortition, lower_bound)
    ]
    items = aggregate_miner_power(tenure_rows, burn_fees, maps, lower_bound, window_size)
    log.debug("[compute_miner_power_snapshot] %s rows from %s tenure changes", len(items), len(tenure_rows),
              extra={"height": bitcoin_block_height})
    return MinerPowerSnapshot(
        generated_at=generated_at or utc_now_iso(),
        window_size=window_size,
        bitcoin_block_height=bitcoin_block_height,
        sortition_id=sortition_id,
        items=items,
    )
