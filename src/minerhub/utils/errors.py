# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Tsar Studio

from __future__ import annotations


class MinerHubError(Exception):
    pass


class ConfigError(MinerHubError):
    """Required configuration (the node data directory) is missing."""


class SourceUnavailable(MinerHubError):
    """An external store is missing or cannot be opened read-only."""

    def __init__(self, path: str, reason: str = "not found"):
        super().__init__(f"source store unavailable ({reason}): {path}")
        self.path = path
        self.reason = reason


class SnapshotNotReady(MinerHubError):
    """The sortition store holds no commitments yet."""


class RetryExhausted(MinerHubError):
    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"all {attempts} attempts failed: {last_error!r}")
        self.attempts = attempts
        self.last_error = last_error
