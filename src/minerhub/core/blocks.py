# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations

import json
from dataclasses import dataclass, field

from ..utils.helpers import to_float, to_int

# ---------------- Logger ----------------
from ..utils.hub_logging import get_ctx_logger
log = get_ctx_logger("minerhub.core.blocks")

_COST_FIELDS = (
    ("read_length", "readLength"),
    ("read_count", "readCount"),
    ("write_length", "writeLength"),
    ("write_count", "writeCount"),
    ("runtime", "runtime"),
)


@dataclass(frozen=True)
class CostVector:
    read_length: int = 0
    read_count: int = 0
    write_length: int = 0
    write_count: int = 0
    runtime: int = 0

    def to_dict(self) -> dict:
        return {
            "read_length": self.read_length,
            "read_count": self.read_count,
            "write_length": self.write_length,
            "write_count": self.write_count,
            "runtime": self.runtime,
        }


ZERO_COST = CostVector()


@dataclass(frozen=True)
class BlockSample:
    block_size: int
    block_height: int
    burn_header_height: int
    timestamp: int
    tenure_changed: bool
    tenure_tx_fees: int
    cost: CostVector = field(default_factory=CostVector)
    tenure_cost: CostVector = field(default_factory=CostVector)

    @classmethod
    def from_row(cls, row) -> "BlockSample":
        return cls(
            block_size=to_int(row["block_size"]),
            block_height=to_int(row["block_height"]),
            burn_header_height=to_int(row["burn_header_height"]),
            timestamp=to_int(row["timestamp"]),
            tenure_changed=to_int(row["tenure_changed"]) == 1,
            tenure_tx_fees=to_int(row["tenure_tx_fees"]),
            cost=parse_cost_vector(row["cost"]),
            tenure_cost=parse_cost_vector(row["total_tenure_cost"]),
        )


def parse_cost_vector(raw: str | bytes | None) -> CostVector:
    """Decode a cost JSON payload (snake_case or camelCase keys). Null or malformed input yields zeros."""
    if not raw:
        return ZERO_COST
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as exc:
        log.warning("[parse_cost_vector] Failed to parse cost vector: %s", exc)
        return ZERO_COST
    if not isinstance(parsed, dict):
        log.warning("[parse_cost_vector] Unexpected cost payload type %s", type(parsed).__name__)
        return ZERO_COST

    values = {}
    for snake, camel in _COST_FIELDS:
        value = parsed.get(camel)
        if value is None:
            value = parsed.get(snake)
        values[snake] = int(to_float(value))
    return CostVector(**values)
