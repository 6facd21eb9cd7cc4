#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

import os
import sys
import argparse

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(PROJECT_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.append(SRC_ROOT)

from minerhub.mining.blocks import fetch_recent_blocks  # noqa: E402
from minerhub.storage.snapshot_store import (  # noqa: E402
    count_snapshots, hub_path, load_latest_snapshot, load_snapshot_by_height,
)
from minerhub.utils.config import get_stacks_data_dir  # noqa: E402
from minerhub.utils.errors import SourceUnavailable  # noqa: E402


def _print_power(record, top: int):
    power = record.miner_power
    print(f"window: {power.window_size} blocks, accounted: {power.total_blocks}")
    print(f"{'recipient':<44} {'btc address':<36} {'won':>4} {'sats spent':>14} {'STX earnt':>12} {'rate':>7}")
    for row in power.items[:max(1, top)]:
        print(f"{row.stacks_recipient:<44} {(row.bitcoin_address or '-'):<36} {row.blocks_won:>4} "
              f"{row.btc_spent:>14,} {row.stx_earnt:>12,.2f} {row.win_rate:>6.2f}%")


def _print_blocks(data_dir: str, window: int):
    try:
        blocks = fetch_recent_blocks(data_dir, window)
    except SourceUnavailable as exc:
        print(str(exc))
        return
    print(f"\n[recent blocks: {len(blocks)}]")
    for b in blocks[-20:]:
        flag = "T" if b.tenure_changed else " "
        print(f"- {b.block_height} burn={b.burn_header_height} {flag} size={b.block_size} "
              f"runtime={b.cost.runtime} fees={b.tenure_tx_fees}")


def main():
    ap = argparse.ArgumentParser(description='Snapshot cache quick stats for MinerHub.')
    ap.add_argument('--data-dir', dest='data_dir', default=get_stacks_data_dir(), help='Node data directory (default: $STACKS_DATA_DIR)')
    ap.add_argument('--height', dest='height', type=int, help='Show the snapshot nearest to this Bitcoin height')
    ap.add_argument('--top', dest='top', type=int, default=10, help='Number of miner rows to show')
    ap.add_argument('--dot', dest='dot', action='store_true', help='Print the DOT source of the snapshot')
    ap.add_argument('--blocks', dest='blocks', type=int, help='Also list recent blocks within N burn heights')
    args = ap.parse_args()

    data_dir = args.data_dir
    if not data_dir or not os.path.isdir(data_dir):
        print(f"Data dir not found: {data_dir}")
        sys.exit(1)

    print(f"cache: {hub_path(data_dir)}")
    print(f"snapshots: {count_snapshots(data_dir)}")

    if args.height is not None:
        record = load_snapshot_by_height(data_dir, args.height)
    else:
        record = load_latest_snapshot(data_dir)

    if record is None:
        print("no snapshot cached yet")
    else:
        print(f"height: {record.bitcoin_block_height} sortition: {record.sortition_id or 'n/a'} generated: {record.generated_at}")
        _print_power(record, args.top)
        if args.dot:
            print()
            print(record.dot_source)

    if args.blocks:
        _print_blocks(data_dir, args.blocks)


if __name__ == '__main__':
    main()
