# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

"""
MinerHub — Snapshot Worker CLI

Role
- Reads the node's sortition and chain-state stores (read-only).
- Every interval builds the commit diagram and the miner power table and
  appends one snapshot record to <data-dir>/minerhub/hub.sqlite.

Key flags
--data-dir   : Node data directory (default: $STACKS_DATA_DIR).
--interval   : Seconds between refreshes (default: 240).
--once       : Run a single snapshot pass and exit.
--log-level  : Override the configured log level.
"""

import argparse, os, signal, sys, time, colorama
from datetime import datetime

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(PROJECT_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.append(SRC_ROOT)

# ---------------- Local Project ----------------
from minerhub.scheduler.snapshot_job import SnapshotScheduler
from minerhub.storage.snapshot_store import count_snapshots, hub_path
from minerhub.utils import config as CFG
from minerhub.utils.errors import ConfigError
from minerhub.utils.helpers import print_banner

from minerhub.utils.hub_logging import setup_logging

# ---------- Simple color + timestamp utilities ----------

colorama.init()
RESET  = colorama.Style.RESET_ALL
BLUE   = colorama.Fore.BLUE
YELLOW = colorama.Fore.YELLOW
GREEN  = colorama.Fore.GREEN
RED    = colorama.Fore.RED
CYAN   = colorama.Fore.CYAN

def _stamp() -> str:
    now = datetime.now()
    d = f"{now.year:04d}.{now.month:02d}.{now.day:02d}"
    t = f"{now.hour:02d}.{now.minute:02d}.{now.second:02d}"
    return f"[{BLUE}{d}{RESET}] - [{YELLOW}{t}{RESET}]"

def clog(message: str, color: str = GREEN):
    print(f"{_stamp()} : {color}{message}{RESET}")


class WorkerRunner:
    def __init__(self, scheduler: SnapshotScheduler):
        self.scheduler = scheduler
        self.running = True
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum, _frame):
        clog(f"Received signal {signum}, stopping snapshot worker...", color=YELLOW)
        self.running = False

    def run_forever(self):
        data_dir = self.scheduler.data_dir
        clog(f"Data dir : {data_dir}", color=CYAN)
        clog(f"Cache    : {hub_path(data_dir)}", color=CYAN)
        clog(f"Interval : {int(self.scheduler.interval_s)}s")
        self.scheduler.start()
        clog("Press Ctrl+C to stop.", color=YELLOW)

        last_status = ""
        try:
            while self.running:
                time.sleep(2)
                height = self.scheduler.last_height
                status = f"[snapshots] latest height={height if height is not None else '?'} cached={count_snapshots(data_dir)}"
                if status != last_status:
                    clog(status)
                    last_status = status
        finally:
            self.scheduler.stop()
            clog("Snapshot worker stopped.", color=YELLOW)

    def run_once(self) -> int:
        ok = self.scheduler.tick()
        if not ok:
            clog("Snapshot pass failed, see log for details", color=RED)
            return 1
        record = self.scheduler.last_record
        if record is None:
            clog("Nothing new to store (no commits yet, or height already cached)", color=YELLOW)
            return 0
        clog(f"Stored snapshot for Bitcoin block {record.bitcoin_block_height} "
             f"({len(record.miner_power.items)} miners)")
        return 0


def parse_args():
    parser = argparse.ArgumentParser(description="MinerHub miner snapshot worker")
    parser.add_argument("--data-dir", default=CFG.get_stacks_data_dir(),
                        help=f"Node data directory (default: ${CFG.DATA_DIR_ENV})")
    parser.add_argument("--interval", type=float, default=CFG.SNAPSHOT_INTERVAL_S,
                        help="Seconds between snapshot refreshes")
    parser.add_argument("--once", action="store_true", help="Run one snapshot pass and exit")
    parser.add_argument("--log-level", default=None, help="Log level (TRACE, DEBUG, INFO, ...)")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    setup_logging(level=args.log_level, force=True)
    print_banner()

    try:
        scheduler = SnapshotScheduler(args.data_dir, interval_s=args.interval)
    except ConfigError as exc:
        clog(str(exc), color=RED)
        return 2

    runner = WorkerRunner(scheduler)
    if args.once:
        return runner.run_once()
    runner.run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
