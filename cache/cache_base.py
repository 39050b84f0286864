#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Key-value stores backing the command cache.

Stores only know how to save text under a key and report when it was stored.
Freshness (TTL) and key derivation live in `cache_command.CommandCache`.

- MemoryCacheStore: dict-backed, for tests
- FileCacheStore:   one file per key under a directory; mtime is the stored-at time
"""

from __future__ import annotations

import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple


@dataclass
class BaseCacheStats:
    """Basic cache statistics tracked automatically by CommandCache."""
    hit: int = 0
    miss: int = 0
    write: int = 0


class CacheStore:
    """Interface for cache storage backends."""

    def get(self, key: str) -> Optional[Tuple[str, float]]:
        """Return (value, stored_at_epoch) or None when absent."""
        raise NotImplementedError

    def put(self, key: str, value: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError


class MemoryCacheStore(CacheStore):
    """In-memory store; `clock` supplies stored-at timestamps."""

    def __init__(self, *, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._items: Dict[str, Tuple[str, float]] = {}

    def get(self, key: str) -> Optional[Tuple[str, float]]:
        return self._items.get(key)

    def put(self, key: str, value: str) -> None:
        self._items[key] = (value, float(self._clock()))

    def clear(self) -> None:
        self._items.clear()

    def count(self) -> int:
        return len(self._items)


class FileCacheStore(CacheStore):
    """Directory-backed store: `<cache_dir>/<key>` holds the raw text.

    Writes go through a temp file + os.replace() so a reader sees either the complete
    previous value or the complete new one, never a partial file.
    """

    def __init__(self, *, cache_dir: Path):
        self.cache_dir = Path(cache_dir)

    def _path(self, key: str) -> Path:
        return self.cache_dir / key

    def get(self, key: str) -> Optional[Tuple[str, float]]:
        p = self._path(key)
        try:
            stored_at = p.stat().st_mtime
            value = p.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return value, stored_at

    def put(self, key: str, value: str) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        p = self._path(key)
        tmp = p.with_name(f".{p.name}.tmp.{os.getpid()}")
        tmp.write_text(value, encoding="utf-8")
        os.replace(str(tmp), str(p))

    def clear(self) -> None:
        if self.cache_dir.exists():
            shutil.rmtree(self.cache_dir)

    def count(self) -> int:
        if not self.cache_dir.is_dir():
            return 0
        return sum(1 for p in self.cache_dir.iterdir() if p.is_file() and not p.name.startswith("."))
