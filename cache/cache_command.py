#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Command Output Cache

Memoizes the text output of git/gh invocations so repeated runs (e.g. while tuning
--older-than or --limit) do not re-walk history for every branch.

Cache dir: $STALE_BRANCHES_CACHE_DIR, else <tempdir>/stale-branches-cache

Cache key format:
- sha256 hex digest of the exact command string, e.g.
  "git -C /src/repo rev-list --count feature/x ^main"
  Any argument change (branch, base ref, repo path) yields a different key.

Predicates (`succeeds()`) are cached as the text "true"/"false" under the command string
with an " #exit-status" suffix.
"""

from __future__ import annotations

import hashlib
import logging
import time
from pathlib import Path
from typing import Callable, Optional, Sequence

from cache.cache_base import BaseCacheStats, CacheStore, FileCacheStore
from common import DEFAULT_CACHE_MAX_AGE_MINUTES, CommandRunner, stale_branches_cache_dir

_logger = logging.getLogger(__name__)


def command_cache_key(command: str) -> str:
    return hashlib.sha256(command.encode("utf-8")).hexdigest()


class CommandCache:
    """TTL cache of command output on top of a CacheStore.

    Stats (hit/miss/write) are tracked automatically.
    """

    def __init__(self, store: CacheStore, *, clock: Callable[[], float] = time.time):
        self.store = store
        self._clock = clock
        self.stats = BaseCacheStats()

    def get(self, command: str, max_age_minutes: float, produce: Callable[[], str]) -> str:
        """Return cached output for `command`, or run `produce()` and store its output.

        Exceptions from `produce()` propagate and nothing is stored.
        """
        key = command_cache_key(command)
        entry = self.store.get(key)
        if entry is not None:
            value, stored_at = entry
            age_s = float(self._clock()) - float(stored_at)
            if age_s <= float(max_age_minutes) * 60.0:
                self.stats.hit += 1
                _logger.debug("cache hit (%.0fs old): %s", age_s, command)
                return value
            _logger.debug("cache stale (%.0fs old): %s", age_s, command)
        self.stats.miss += 1
        value = produce()
        self.store.put(key, value)
        self.stats.write += 1
        return value

    def clear(self) -> None:
        """Drop every entry (no-op when the store is empty or missing)."""
        self.store.clear()


def default_command_cache(cache_dir: Optional[Path] = None) -> CommandCache:
    return CommandCache(FileCacheStore(cache_dir=cache_dir or stale_branches_cache_dir()))


class CachedRunner(CommandRunner):
    """CommandRunner wrapper that answers from a CommandCache when fresh."""

    def __init__(
        self,
        inner: CommandRunner,
        cache: CommandCache,
        *,
        max_age_minutes: float = DEFAULT_CACHE_MAX_AGE_MINUTES,
    ):
        self.inner = inner
        self.cache = cache
        self.max_age_minutes = max_age_minutes

    def describe(self, args: Sequence[str]) -> str:
        return self.inner.describe(args)

    def run(self, args: Sequence[str]) -> str:
        return self.cache.get(self.describe(args), self.max_age_minutes, lambda: self.inner.run(args))

    def succeeds(self, args: Sequence[str]) -> bool:
        command = f"{self.describe(args)} #exit-status"
        value = self.cache.get(
            command,
            self.max_age_minutes,
            lambda: "true" if self.inner.succeeds(args) else "false",
        )
        return value.strip() == "true"
