# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass(frozen=True)
class MinerPowerRow:
    stacks_recipient: str
    bitcoin_address: Optional[str]
    blocks_won: int
    btc_spent: int
    stx_earnt: float
    win_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "stacks_recipient": self.stacks_recipient,
            "bitcoin_address": self.bitcoin_address,
            "blocks_won": self.blocks_won,
            "btc_spent": self.btc_spent,
            "stx_earnt": self.stx_earnt,
            "win_rate": self.win_rate,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MinerPowerRow":
        return cls(
            stacks_recipient=str(data["stacks_recipient"]),
            bitcoin_address=data.get("bitcoin_address"),
            blocks_won=int(data.get("blocks_won", 0)),
            btc_spent=int(data.get("btc_spent", 0)),
            stx_earnt=float(data.get("stx_earnt", 0.0)),
            win_rate=float(data.get("win_rate", 0.0)),
        )


@dataclass(frozen=True)
class MinerPowerSnapshot:
    generated_at: str
    window_size: int
    bitcoin_block_height: int
    sortition_id: Optional[str]
    items: List[MinerPowerRow] = field(default_factory=list)

    @property
    def total_blocks(self) -> int:
        return sum(row.blocks_won for row in self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "window_size": self.window_size,
            "bitcoin_block_height": self.bitcoin_block_height,
            "sortition_id": self.sortition_id,
            "items": [row.to_dict() for row in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MinerPowerSnapshot":
        return cls(
            generated_at=str(data.get("generated_at", "")),
            window_size=int(data.get("window_size", 0)),
            bitcoin_block_height=int(data.get("bitcoin_block_height", 0)),
            sortition_id=data.get("sortition_id"),
            items=[MinerPowerRow.from_dict(r) for r in data.get("items", [])],
        )


@dataclass(frozen=True)
class MinerVizSnapshot:
    generated_at: str
    bitcoin_block_height: int
    sortition_id: Optional[str]
    dot_source: str


@dataclass(frozen=True)
class SnapshotRecord:
    """One complete cache row. Readers only ever see whole records."""
    generated_at: str
    bitcoin_block_height: int
    sortition_id: Optional[str]
    miner_power: MinerPowerSnapshot
    miner_viz: MinerVizSnapshot

    @property
    def dot_source(self) -> str:
        return self.miner_viz.dot_source
