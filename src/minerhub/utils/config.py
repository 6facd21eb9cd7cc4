# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

'''
=============================================================================
 ---------------- MINERHUB RUNTIME SETTINGS - READ BEFORE EDITING ----------------
=============================================================================

The stores under STACKS_DATA_DIR belong to the running node. MinerHub opens
them read-only and never writes there, except for its own cache store
(HUB_DB_RELATIVE) which it creates on first write.

  1) WINDOWS
   - MINER_VIZ_WINDOW, MINER_POWER_WINDOW, ADDRESS_MAP_MULTIPLIER
   Changing these changes the shape of every snapshot written afterwards.

  2) SCHEDULER
   - SNAPSHOT_INTERVAL_S, SNAPSHOT_RETRY_ATTEMPTS, SNAPSHOT_RETRY_DELAY_S
   - SNAPSHOT_RETENTION_S

=============================================================================
'''

import os
import appdirs


# =============================================================================
# 1. MODE & APPLICATION
# =============================================================================
# ---- RUNTIME PROFILE ----
MODE   = os.getenv("MINERHUB_MODE", "dev")  # "dev" or "prod", selects the logging profile
IS_DEV = (MODE.lower() == "dev")  # cached boolean to simplify dev/prod toggles

# ---- APP METADATA ----
APP_NAME   = "MinerHub"  # display name used for platform directories
APP_AUTHOR = "TsarStudio"  # vendor string passed into platform dir helpers
LOG_DIR    = appdirs.user_log_dir(APP_NAME, APP_AUTHOR)  # OS-specific log folder resolved via appdirs


# =============================================================================
# 2. EXTERNAL STORES
# =============================================================================
# ---- DATA DIRECTORY ----
DATA_DIR_ENV = "STACKS_DATA_DIR"  # environment variable naming the node data root

# ---- STORE LOCATIONS (relative to the data root) ----
SORTITION_DB_RELATIVE  = os.path.join("burnchain", "sortition", "marf.sqlite")  # sortition store (commits, rounds)
CHAINSTATE_DB_RELATIVE = os.path.join("chainstate", "vm", "index.sqlite")  # chain-state store (headers, payments)
HUB_DB_RELATIVE        = os.path.join("minerhub", "hub.sqlite")  # cache store owned by MinerHub

# ---- SOURCE ACCESS ----
SOURCE_BUSY_TIMEOUT_S   = 10.0  # seconds sqlite waits on a lock held by the node
SOURCE_QUERY_DEADLINE_S = 120.0  # wall-clock budget for one run's source queries (0 disables)
SOURCE_PROGRESS_OPS     = 10_000  # VM instructions between deadline checks


# =============================================================================
# 3. WINDOWS
# =============================================================================
MINER_VIZ_WINDOW       = 20  # burn heights rendered in the commit diagram
MINER_POWER_WINDOW     = 144  # burn heights aggregated into miner power (~1 day)
ADDRESS_MAP_MULTIPLIER = 4  # reward records read by the correlator = window * multiplier
RECENT_BLOCKS_WINDOW   = 120  # burn heights returned by fetch_recent_blocks


# =============================================================================
# 4. SCHEDULER & CACHE
# =============================================================================
SNAPSHOT_INTERVAL_S     = 240  # seconds between snapshot ticks
SNAPSHOT_RETRY_ATTEMPTS = 2  # additional attempts after a failed run
SNAPSHOT_RETRY_DELAY_S  = 5.0  # linear backoff unit: retry n waits n * delay
SNAPSHOT_RETENTION_S    = 24 * 3600  # cache rows older than this are pruned
SNAPSHOT_THREAD_NAME    = "minerhub.snapshots"  # name of the worker thread


# =============================================================================
# 5. MINER POWER
# =============================================================================
UNATTRIBUTED_RECIPIENT = "No Canonical Sortition"  # sentinel row for unattributed blocks
REWARD_MICRO_UNITS     = 1_000_000  # micro-STX per STX


# =============================================================================
# 6. DIAGRAM
# =============================================================================
BLOCK_EXPLORER_URL = "https://explorer.hiro.so/block/0x{block_hash}"  # link for won commits with a known block
BURN_TX_URL        = "https://mempool.space/tx/{txid}"  # link for every other commit

PASTEL_COLORS = (
    "#E0BBE4", "#957DAD", "#D291BC", "#FEC8D8", "#FFDFD3",
    "#D9EEF5", "#B6E3F4", "#B5EAD7", "#C7F4F4", "#E8F3F8",
    "#F4F1BB", "#D4E09B", "#99C4C8", "#F2D0A9", "#E9D5DA",
    "#D8E2DC", "#FFE5D9", "#FFCAD4", "#F4ACB7", "#9D8189",
)  # miner fill colors, indexed by sender bytes

EDGE_DEFAULT_COLOR   = "#718096"  # parent in the previous height
EDGE_FORK_COLOR      = "#E53E3E"  # parent more than one height below
EDGE_CANONICAL_COLOR = "#3182CE"  # child sits on the canonical chain
NODE_BORDER_COLOR    = "#2D3748"  # default node border
NODE_WON_COLOR       = "#2B6CB0"  # border of winning commits


# =============================================================================
# 7. LOGGING
# =============================================================================
# ---- BASE OUTPUT ----
LOG_PATH             = os.path.join(LOG_DIR, "minerhub.log")  # canonical log file path before format-specific override
LOG_SHOW_PROCESS     = False  # include process metadata in log context when True
LOG_PROC_PLACEHOLDER = "-"  # value used when process info is hidden

# ---- MODE PROFILES ----
if IS_DEV:
    # ---- DEV PROFILE ----
    LOG_LEVEL                   = "DEBUG"  # verbose logging for development
    LOG_FORMAT                  = "plain"  # plain text logs ease local debugging
    LOG_TO_CONSOLE              = True  # mirror logs to stdout for dev loops
    LOG_RATE_LIMIT_SECONDS      = 0.0  # disable console throttling in dev
    LOG_FILE_RATE_LIMIT_SECONDS = 0.0  # disable file throttling in dev
    LOG_ROTATE_MAX_BYTES        = 5_000_000  # rollover log files after ~5MB in dev
    LOG_BACKUP_COUNT            = 3  # retain a few rotated dev log files
else:
    # ---- PROD PROFILE ----
    LOG_LEVEL                   = "INFO"  # balanced verbosity for production
    LOG_FORMAT                  = "json"  # JSON logs simplify ingestion in prod
    LOG_TO_CONSOLE              = False  # suppress console spam for daemons
    LOG_RATE_LIMIT_SECONDS      = 2.0  # throttle console spam in prod
    LOG_FILE_RATE_LIMIT_SECONDS = 1.0  # throttle file spam in prod
    LOG_ROTATE_MAX_BYTES        = 10_000_000  # rollover log files after ~10MB in prod
    LOG_BACKUP_COUNT            = 7  # keep more history on production hosts

# ---- LOG PATH NORMALIZATION ----
if str(LOG_FORMAT).lower().strip() == "json":
    LOG_PATH = os.path.join(LOG_DIR, "minerhub.jsonl")  # JSON lines extension to aid parsing


def get_stacks_data_dir() -> str | None:
    value = (os.getenv(DATA_DIR_ENV) or "").strip()
    return value or None
