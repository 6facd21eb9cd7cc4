# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations

from typing import List

from ..core.blocks import BlockSample
from ..storage.sources import chainstate_path, max_header_burn_height, open_readonly, recent_header_rows
from ..utils import config as CFG


def fetch_recent_blocks(data_dir: str, window_size: int = CFG.RECENT_BLOCKS_WINDOW) -> List[BlockSample]:
    """Block samples whose burn height lies within ``window_size`` of the newest header."""
    conn = open_readonly(chainstate_path(data_dir))
    try:
        max_height = max_header_burn_height(conn)
        if not max_height:
            return []
        lower_bound = max(0, max_height - int(window_size))
        return [BlockSample.from_row(row) for row in recent_header_rows(conn, lower_bound)]
    finally:
        conn.close()
